"""Placement engine: locking pieces, clearing lines and board metrics.

``place`` is the only way boards change during play.  It ORs a piece mask into
the board, detects every complete row and column of the result and clears them
all at once, so a cell on a cleared row *and* a cleared column is removed once.

``mobility`` is the ranking heuristic used by the solver: the number of legal
placements summed over the whole catalog.  Strictly higher is strictly better.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .bitboard import (
    BOARD_SIZE,
    COL_MASKS,
    ROW_MASKS,
    clear_lines,
    filled_cols,
    filled_rows,
    popcount,
)
from .pieces import DEFAULT_CATALOG, PieceCatalog, mask_at


# Rows/columns with at least this many occupied cells count as nearly full.
NEARLY_FULL_THRESHOLD = 6


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of locking one piece mask into a board."""

    board: int
    board_before_clear: int
    cleared_rows: Tuple[int, ...]
    cleared_cols: Tuple[int, ...]
    cells_cleared: int

    @property
    def lines_cleared(self) -> int:
        return len(self.cleared_rows) + len(self.cleared_cols)


@dataclass(frozen=True)
class LineClearPotential:
    nearly_full_rows: int
    nearly_full_cols: int


def place(board: int, mask: int) -> PlacementResult:
    """Lock ``mask`` into ``board`` and clear every completed line.

    The caller is responsible for checking that ``mask`` is a legal, non-empty
    placement; this function does not test for overlap.
    """

    before = board | mask
    rows = filled_rows(before)
    cols = filled_cols(before)
    after = clear_lines(before, rows, cols)
    # Intersections of a cleared row and a cleared column are counted once.
    cells_cleared = BOARD_SIZE * len(rows) + BOARD_SIZE * len(cols) - len(rows) * len(cols)
    return PlacementResult(
        board=after,
        board_before_clear=before,
        cleared_rows=tuple(rows),
        cleared_cols=tuple(cols),
        cells_cleared=cells_cleared,
    )


def find_filled_lines(board: int) -> Tuple[List[int], List[int]]:
    """Return ``(rows, cols)`` that are completely occupied on ``board``."""

    return filled_rows(board), filled_cols(board)


def simulate_placement(
    board: int,
    piece_id: int,
    x: int,
    y: int,
    *,
    catalog: PieceCatalog = DEFAULT_CATALOG,
) -> Optional[PlacementResult]:
    """Return the result of placing ``piece_id`` at ``(x, y)`` or ``None``.

    ``None`` covers unknown pieces, anchors that leave the board and overlaps.
    """

    piece = catalog.get(piece_id)
    if piece is None:
        return None
    mask = mask_at(piece, x, y)
    if mask == 0 or board & mask:
        return None
    return place(board, mask)


def mobility(board: int, catalog: PieceCatalog = DEFAULT_CATALOG) -> int:
    """Return the number of legal placements over every piece of ``catalog``."""

    masks = catalog.all_masks
    if masks.size == 0:
        return 0
    return int(np.count_nonzero((masks & np.uint64(board)) == 0))


def evaluate(board: int, catalog: PieceCatalog = DEFAULT_CATALOG) -> int:
    """Scalar score: mobility dominates, fewer occupied cells breaks ties."""

    return 100 * mobility(board, catalog) - popcount(board)


def can_place_any_piece(
    board: int, hand: Iterable[int], catalog: PieceCatalog = DEFAULT_CATALOG
) -> bool:
    return any(catalog.has_legal_placement(board, pid) for pid in hand if pid in catalog)


def can_place_all_pieces(
    board: int, hand: Iterable[int], catalog: PieceCatalog = DEFAULT_CATALOG
) -> bool:
    """Return ``True`` if every piece of ``hand`` fits on its own.

    Pieces are checked independently; placing one may still block another.
    Unknown piece ids make the hand unplaceable.
    """

    for pid in hand:
        if pid not in catalog or not catalog.has_legal_placement(board, pid):
            return False
    return True


def line_clear_potential(
    board: int, threshold: int = NEARLY_FULL_THRESHOLD
) -> LineClearPotential:
    """Count rows and columns holding at least ``threshold`` occupied cells."""

    rows = sum(1 for mask in ROW_MASKS if popcount(board & mask) >= threshold)
    cols = sum(1 for mask in COL_MASKS if popcount(board & mask) >= threshold)
    return LineClearPotential(nearly_full_rows=rows, nearly_full_cols=cols)


__all__ = [
    "NEARLY_FULL_THRESHOLD",
    "PlacementResult",
    "LineClearPotential",
    "place",
    "find_filled_lines",
    "simulate_placement",
    "mobility",
    "evaluate",
    "can_place_any_piece",
    "can_place_all_pieces",
    "line_clear_potential",
]
