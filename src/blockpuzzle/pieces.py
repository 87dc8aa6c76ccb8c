"""Piece catalog and placement geometry.

Pieces have a fixed orientation: there is no rotation, so every distinct
orientation of a shape is its own catalog entry.  Offsets are ``(dx, dy)``
pairs relative to the top-left corner of the piece's tight bounding box.

The catalog precomputes, for every piece, the occupancy mask of each anchor
where the bounding box stays on the board (row-major anchor order).  Queries
against a live board then only need the overlap test, which runs over a
read-only NumPy ``uint64`` array of those masks.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .bitboard import BOARD_SIZE


Cell = Tuple[int, int]

# Pieces dealt per hand.
HAND_SIZE = 3


def canonical_signature(cells: Iterable[Sequence[int]]) -> str:
    """Return the translation-invariant signature of a set of cells.

    Cells are shifted so the minimum ``x`` and ``y`` are zero, sorted by
    ``(x, y)`` and joined as ``"x,y;x,y;..."``.  Two shapes are the same piece
    exactly when their signatures match; rotations and reflections are
    different shapes.
    """

    points = [(int(x), int(y)) for x, y in cells]
    if not points:
        return ""
    min_x = min(x for x, _ in points)
    min_y = min(y for _, y in points)
    normalised = sorted((x - min_x, y - min_y) for x, y in points)
    return ";".join(f"{x},{y}" for x, y in normalised)


@dataclass(frozen=True)
class Piece:
    """Immutable catalog entry."""

    id: int
    width: int
    height: int
    cells: Tuple[Cell, ...]
    signature: str

    def __post_init__(self) -> None:
        if not self.cells:
            raise ValueError(f"Piece {self.id} has no cells")
        xs = [dx for dx, _ in self.cells]
        ys = [dy for _, dy in self.cells]
        if min(xs) != 0 or min(ys) != 0:
            raise ValueError(f"Piece {self.id} bounding box is not anchored at (0, 0)")
        if max(xs) + 1 != self.width or max(ys) + 1 != self.height:
            raise ValueError(
                f"Piece {self.id} size {self.width}x{self.height} does not match its cells"
            )
        if len(set(self.cells)) != len(self.cells):
            raise ValueError(f"Piece {self.id} has duplicate cells")

    @classmethod
    def from_cells(cls, piece_id: int, cells: Iterable[Sequence[int]]) -> "Piece":
        """Build a piece from offsets, deriving size and signature."""

        offsets = tuple((int(dx), int(dy)) for dx, dy in cells)
        if not offsets:
            raise ValueError(f"Piece {piece_id} has no cells")
        width = max(dx for dx, _ in offsets) + 1
        height = max(dy for _, dy in offsets) + 1
        return cls(
            id=piece_id,
            width=width,
            height=height,
            cells=offsets,
            signature=canonical_signature(offsets),
        )

    @property
    def size(self) -> int:
        return len(self.cells)


@dataclass(frozen=True)
class Placement:
    """A precomputed in-bounds anchor for a piece."""

    piece_id: int
    x: int
    y: int
    mask: int


def mask_at(piece: Piece, x: int, y: int) -> int:
    """Return the occupancy mask of ``piece`` anchored at ``(x, y)``.

    ``0`` is returned when the bounding box would leave the board; it is a
    sentinel and never a legal placement.
    """

    if x < 0 or y < 0 or x + piece.width > BOARD_SIZE or y + piece.height > BOARD_SIZE:
        return 0
    mask = 0
    for dx, dy in piece.cells:
        mask |= 1 << ((y + dy) * BOARD_SIZE + (x + dx))
    return mask


def can_place(board: int, piece: Piece, x: int, y: int) -> bool:
    """Return ``True`` if ``piece`` fits at ``(x, y)`` without overlap."""

    mask = mask_at(piece, x, y)
    return mask != 0 and board & mask == 0


@dataclass(frozen=True)
class PlacementTable:
    """All in-bounds placements of one piece on an empty board."""

    placements: Tuple[Placement, ...]
    masks: np.ndarray

    def __post_init__(self) -> None:
        self.masks.setflags(write=False)


def _build_table(piece: Piece) -> PlacementTable:
    placements: List[Placement] = []
    for y in range(BOARD_SIZE - piece.height + 1):
        for x in range(BOARD_SIZE - piece.width + 1):
            mask = mask_at(piece, x, y)
            if mask:
                placements.append(Placement(piece_id=piece.id, x=x, y=y, mask=mask))
    masks = np.array([p.mask for p in placements], dtype=np.uint64)
    return PlacementTable(placements=tuple(placements), masks=masks)


class PieceCatalog(Mapping):
    """Read-only mapping of piece id to :class:`Piece` with placement tables."""

    def __init__(self, pieces: Iterable[Piece]) -> None:
        ordered: Dict[int, Piece] = {}
        by_signature: Dict[str, int] = {}
        for piece in pieces:
            if piece.id in ordered:
                raise ValueError(f"Duplicate piece id {piece.id}")
            if piece.signature in by_signature:
                raise ValueError(
                    f"Piece {piece.id} has the same shape as piece {by_signature[piece.signature]}"
                )
            ordered[piece.id] = piece
            by_signature[piece.signature] = piece.id
        self._pieces = ordered
        self._by_signature = by_signature
        self._tables = {pid: _build_table(p) for pid, p in ordered.items()}
        if self._tables:
            all_masks = np.concatenate([t.masks for t in self._tables.values()])
        else:
            all_masks = np.zeros(0, dtype=np.uint64)
        all_masks.setflags(write=False)
        self._all_masks = all_masks

    # Mapping protocol -------------------------------------------------
    def __getitem__(self, piece_id: int) -> Piece:
        return self._pieces[piece_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._pieces)

    def __len__(self) -> int:
        return len(self._pieces)

    def __repr__(self) -> str:
        return f"PieceCatalog({len(self)} pieces)"

    # Construction -----------------------------------------------------
    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "PieceCatalog":
        """Build a catalog from ``{id, w, h, cells, hash}`` records.

        ``w``/``h`` must describe the tight bounding box of ``cells`` and
        ``hash``, when present, must equal the computed signature.

        Raises:
            ValueError: If a record is incomplete or inconsistent, or ids repeat.
        """

        pieces: List[Piece] = []
        for record in records:
            try:
                piece_id = int(record["id"])
                cells = record["cells"]
            except KeyError as exc:
                raise ValueError(f"Piece record {record!r} is missing {exc.args[0]!r}") from None
            piece = Piece.from_cells(piece_id, cells)
            width = record.get("w", piece.width)
            height = record.get("h", piece.height)
            if (int(width), int(height)) != (piece.width, piece.height):
                raise ValueError(
                    f"Piece {piece.id} declares {width}x{height} but its cells span "
                    f"{piece.width}x{piece.height}"
                )
            expected = record.get("hash")
            if expected is not None and expected != piece.signature:
                raise ValueError(
                    f"Piece {piece.id} hash {expected!r} does not match {piece.signature!r}"
                )
            pieces.append(piece)
        return cls(pieces)

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": p.id,
                "w": p.width,
                "h": p.height,
                "cells": [list(c) for c in p.cells],
                "hash": p.signature,
            }
            for p in self._pieces.values()
        ]

    # Queries ----------------------------------------------------------
    @property
    def all_masks(self) -> np.ndarray:
        """Every precomputed placement mask of every piece."""

        return self._all_masks

    def table(self, piece_id: int) -> PlacementTable:
        return self._tables[piece_id]

    def placements(self, piece_id: int) -> Tuple[Placement, ...]:
        """Return every in-bounds placement of ``piece_id`` (row-major)."""

        return self._tables[piece_id].placements

    def legal_placements(self, board: int, piece_id: int) -> List[Placement]:
        """Return the placements of ``piece_id`` that do not overlap ``board``."""

        table = self._tables[piece_id]
        if not table.placements:
            return []
        free = np.flatnonzero((table.masks & np.uint64(board)) == 0)
        return [table.placements[int(i)] for i in free]

    def count_legal_placements(self, board: int, piece_id: int) -> int:
        table = self._tables[piece_id]
        if not table.placements:
            return 0
        return int(np.count_nonzero((table.masks & np.uint64(board)) == 0))

    def has_legal_placement(self, board: int, piece_id: int) -> bool:
        return self.count_legal_placements(board, piece_id) > 0

    def mask_at(self, piece_id: int, x: int, y: int) -> int:
        return mask_at(self._pieces[piece_id], x, y)

    def piece_cells_at(self, piece_id: int, x: int, y: int) -> List[Cell]:
        """Return the absolute cells ``piece_id`` covers when anchored at ``(x, y)``."""

        return [(x + dx, y + dy) for dx, dy in self._pieces[piece_id].cells]

    def by_signature(self, signature: str) -> Optional[Piece]:
        piece_id = self._by_signature.get(signature)
        return None if piece_id is None else self._pieces[piece_id]

    def match_cells(self, cells: Iterable[Sequence[int]]) -> Optional[int]:
        """Return the id of the piece whose shape equals ``cells`` if any.

        The cells may be given at any translation, e.g. absolute board
        coordinates extracted from a screenshot.
        """

        return self._by_signature.get(canonical_signature(cells))


def load_catalog(path: str | Path) -> PieceCatalog:
    """Load a catalog from a JSON file holding a list of piece records."""

    with open(path, "r", encoding="utf-8") as fh:
        records = json.load(fh)
    return PieceCatalog.from_records(records)


def _line(length: int, horizontal: bool) -> List[Cell]:
    return [(i, 0) if horizontal else (0, i) for i in range(length)]


def _rect(width: int, height: int) -> List[Cell]:
    return [(x, y) for y in range(height) for x in range(width)]


# Built-in shapes in id order (ids start at 1).
_BASE_SHAPES: List[List[Cell]] = [
    [(0, 0)],
    _line(2, True),
    _line(3, True),
    _line(4, True),
    _line(5, True),
    _line(2, False),
    _line(3, False),
    _line(4, False),
    _line(5, False),
    _rect(2, 2),
    _rect(3, 3),
    _rect(3, 2),
    _rect(2, 3),
    # small corners
    [(0, 0), (1, 0), (0, 1)],
    [(0, 0), (1, 0), (1, 1)],
    [(0, 0), (0, 1), (1, 1)],
    [(1, 0), (0, 1), (1, 1)],
    # L and J tetrominoes
    [(0, 0), (0, 1), (0, 2), (1, 2)],
    [(1, 0), (1, 1), (1, 2), (0, 2)],
    [(0, 0), (1, 0), (0, 1), (0, 2)],
    [(0, 0), (1, 0), (1, 1), (1, 2)],
    [(0, 0), (1, 0), (2, 0), (0, 1)],
    [(0, 0), (1, 0), (2, 0), (2, 1)],
    [(0, 0), (0, 1), (1, 1), (2, 1)],
    [(2, 0), (0, 1), (1, 1), (2, 1)],
    # T tetrominoes
    [(0, 0), (1, 0), (2, 0), (1, 1)],
    [(1, 0), (0, 1), (1, 1), (2, 1)],
    [(0, 0), (0, 1), (0, 2), (1, 1)],
    [(1, 0), (1, 1), (1, 2), (0, 1)],
    # S and Z tetrominoes
    [(1, 0), (2, 0), (0, 1), (1, 1)],
    [(0, 0), (1, 0), (1, 1), (2, 1)],
    [(0, 0), (0, 1), (1, 1), (1, 2)],
    [(1, 0), (1, 1), (0, 1), (0, 2)],
    # large corners
    [(0, 0), (1, 0), (2, 0), (0, 1), (0, 2)],
    [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2)],
    [(0, 0), (0, 1), (0, 2), (1, 2), (2, 2)],
    [(2, 0), (2, 1), (0, 2), (1, 2), (2, 2)],
    # diagonals
    [(0, 0), (1, 1)],
    [(1, 0), (0, 1)],
    [(0, 0), (1, 1), (2, 2)],
    [(2, 0), (1, 1), (0, 2)],
]


def default_catalog() -> PieceCatalog:
    """Return a freshly built catalog of the 41 standard pieces."""

    return PieceCatalog(
        Piece.from_cells(piece_id, cells)
        for piece_id, cells in enumerate(_BASE_SHAPES, start=1)
    )


DEFAULT_CATALOG = default_catalog()

MONOMINO_ID = 1


__all__ = [
    "Cell",
    "HAND_SIZE",
    "Piece",
    "Placement",
    "PlacementTable",
    "PieceCatalog",
    "DEFAULT_CATALOG",
    "MONOMINO_ID",
    "canonical_signature",
    "mask_at",
    "can_place",
    "default_catalog",
    "load_catalog",
]
