"""64-bit bitboard helpers for the 8x8 puzzle board.

A board is a plain ``int`` in ``0 .. 2**64 - 1``.  Bit ``y * 8 + x`` is set
when the cell at column ``x`` and row ``y`` is occupied::

      x: 0  1  2  3  4  5  6  7
    y 0: 0  1  2  3  4  5  6  7
    y 1: 8  9 10 11 12 13 14 15
    ...
    y 7: 56 57 58 59 60 61 62 63

Every helper is a pure function of its inputs.  Boards are values: nothing in
this module mutates or retains them.

The public entry points are intentionally small:

``ROW_MASKS`` / ``COL_MASKS``
    Precomputed full-row and full-column masks used for line detection.

``filled_rows`` / ``filled_cols``
    Scan the eight lines in ascending order and report the complete ones.

``clear_lines``
    OR the masks of the given rows and columns together and remove them.

``board_to_grid``
    Return a NumPy ``uint8`` occupancy grid for presentation code.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray


BOARD_SIZE = 8
TOTAL_CELLS = BOARD_SIZE * BOARD_SIZE

EMPTY_BOARD = 0
FULL_BOARD = (1 << TOTAL_CELLS) - 1

Grid = NDArray[np.uint8]


def _build_row_masks() -> Tuple[int, ...]:
    masks: List[int] = []
    for y in range(BOARD_SIZE):
        mask = 0
        for x in range(BOARD_SIZE):
            mask |= 1 << (y * BOARD_SIZE + x)
        masks.append(mask)
    return tuple(masks)


def _build_col_masks() -> Tuple[int, ...]:
    masks: List[int] = []
    for x in range(BOARD_SIZE):
        mask = 0
        for y in range(BOARD_SIZE):
            mask |= 1 << (y * BOARD_SIZE + x)
        masks.append(mask)
    return tuple(masks)


# Eight consecutive bits per row, eight bits spaced a row apart per column.
ROW_MASKS: Tuple[int, ...] = _build_row_masks()
COL_MASKS: Tuple[int, ...] = _build_col_masks()


def in_bounds(x: int, y: int) -> bool:
    """Return ``True`` if ``(x, y)`` lies on the board."""

    return 0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE


def coord_to_index(x: int, y: int) -> int:
    """Return the bit index for ``(x, y)``.

    Raises:
        IndexError: If the coordinates are outside the board.
    """

    if not in_bounds(x, y):
        raise IndexError(f"Cell ({x}, {y}) out of bounds")
    return y * BOARD_SIZE + x


def index_to_coord(index: int) -> Tuple[int, int]:
    """Return ``(x, y)`` for bit ``index``."""

    if not 0 <= index < TOTAL_CELLS:
        raise IndexError(f"Bit index {index} out of bounds")
    return index % BOARD_SIZE, index // BOARD_SIZE


def get_bit(board: int, x: int, y: int) -> bool:
    return (board >> coord_to_index(x, y)) & 1 == 1


def set_bit(board: int, x: int, y: int) -> int:
    return board | (1 << coord_to_index(x, y))


def clear_bit(board: int, x: int, y: int) -> int:
    return board & ~(1 << coord_to_index(x, y)) & FULL_BOARD


def toggle_bit(board: int, x: int, y: int) -> int:
    return board ^ (1 << coord_to_index(x, y))


def popcount(board: int) -> int:
    """Return the number of occupied cells."""

    return board.bit_count()


def is_row_filled(board: int, y: int) -> bool:
    mask = ROW_MASKS[y]
    return board & mask == mask


def is_col_filled(board: int, x: int) -> bool:
    mask = COL_MASKS[x]
    return board & mask == mask


def filled_rows(board: int) -> List[int]:
    """Return the indices of completely occupied rows in ascending order."""

    return [y for y in range(BOARD_SIZE) if is_row_filled(board, y)]


def filled_cols(board: int) -> List[int]:
    """Return the indices of completely occupied columns in ascending order."""

    return [x for x in range(BOARD_SIZE) if is_col_filled(board, x)]


def clear_lines(board: int, rows: Iterable[int], cols: Iterable[int]) -> int:
    """Return ``board`` with every cell of ``rows`` and ``cols`` emptied."""

    clear_mask = 0
    for y in rows:
        clear_mask |= ROW_MASKS[y]
    for x in cols:
        clear_mask |= COL_MASKS[x]
    return board & ~clear_mask & FULL_BOARD


def cells_to_mask(cells: Iterable[Tuple[int, int]]) -> int:
    """Return a mask with every ``(x, y)`` in ``cells`` set."""

    mask = 0
    for x, y in cells:
        mask = set_bit(mask, x, y)
    return mask


def mask_to_cells(mask: int) -> List[Tuple[int, int]]:
    """Return the ``(x, y)`` coordinates of every set bit in row-major order."""

    return [index_to_coord(i) for i in range(TOTAL_CELLS) if (mask >> i) & 1]


def board_to_grid(board: int) -> Grid:
    """Return an ``(8, 8)`` 0/1 grid indexed ``[y, x]``."""

    bits = np.array([(board >> i) & 1 for i in range(TOTAL_CELLS)], dtype=np.uint8)
    return bits.reshape(BOARD_SIZE, BOARD_SIZE)


def grid_to_board(grid: Sequence[Sequence[int]] | Grid) -> int:
    """Return the board encoded by an 8x8 grid of truthy/falsy cells.

    Raises:
        ValueError: If the grid is not 8x8.
    """

    cells = np.asarray(grid)
    if cells.shape != (BOARD_SIZE, BOARD_SIZE):
        raise ValueError(f"Expected an 8x8 grid, got shape {cells.shape}")
    board = 0
    for y, x in zip(*np.nonzero(cells)):
        board |= 1 << (int(y) * BOARD_SIZE + int(x))
    return board


def board_to_string(board: int) -> str:
    """Render ``board`` as ASCII art with axis labels (``#`` occupied)."""

    lines = ["  " + "".join(str(x) for x in range(BOARD_SIZE))]
    for y in range(BOARD_SIZE):
        row = "".join("#" if get_bit(board, x, y) else "." for x in range(BOARD_SIZE))
        lines.append(f"{y} {row}")
    return "\n".join(lines)


__all__ = [
    "BOARD_SIZE",
    "TOTAL_CELLS",
    "EMPTY_BOARD",
    "FULL_BOARD",
    "ROW_MASKS",
    "COL_MASKS",
    "in_bounds",
    "coord_to_index",
    "index_to_coord",
    "get_bit",
    "set_bit",
    "clear_bit",
    "toggle_bit",
    "popcount",
    "is_row_filled",
    "is_col_filled",
    "filled_rows",
    "filled_cols",
    "clear_lines",
    "cells_to_mask",
    "mask_to_cells",
    "board_to_grid",
    "grid_to_board",
    "board_to_string",
]
