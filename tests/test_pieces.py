from __future__ import annotations

import dataclasses
import json

import pytest

from blockpuzzle.bitboard import BOARD_SIZE, FULL_BOARD, ROW_MASKS, popcount
from blockpuzzle.pieces import (
    DEFAULT_CATALOG,
    MONOMINO_ID,
    Piece,
    PieceCatalog,
    can_place,
    canonical_signature,
    load_catalog,
    mask_at,
)


def test_default_catalog_has_41_distinct_pieces() -> None:
    assert len(DEFAULT_CATALOG) == 41
    assert list(DEFAULT_CATALOG) == list(range(1, 42))
    signatures = {piece.signature for piece in DEFAULT_CATALOG.values()}
    assert len(signatures) == 41
    assert DEFAULT_CATALOG[MONOMINO_ID].cells == ((0, 0),)


def test_catalog_bounding_boxes_are_tight() -> None:
    for piece in DEFAULT_CATALOG.values():
        xs = [dx for dx, _ in piece.cells]
        ys = [dy for _, dy in piece.cells]
        assert min(xs) == 0 and min(ys) == 0
        assert max(xs) + 1 == piece.width
        assert max(ys) + 1 == piece.height


def test_signature_is_translation_invariant_and_sorted_by_x_then_y() -> None:
    assert canonical_signature([(3, 4), (4, 4)]) == "0,0;1,0"
    assert canonical_signature([(0, 1), (1, 0), (0, 0)]) == "0,0;0,1;1,0"
    assert canonical_signature([(5, 5), (6, 6)]) == canonical_signature([(0, 0), (1, 1)])
    assert canonical_signature([]) == ""


def test_signature_distinguishes_orientations() -> None:
    horizontal = canonical_signature([(0, 0), (1, 0)])
    vertical = canonical_signature([(0, 0), (0, 1)])
    assert horizontal != vertical


def test_mask_at_sets_one_bit_per_cell_for_every_anchor() -> None:
    for piece in DEFAULT_CATALOG.values():
        for y in range(BOARD_SIZE):
            for x in range(BOARD_SIZE):
                mask = mask_at(piece, x, y)
                fits = x + piece.width <= BOARD_SIZE and y + piece.height <= BOARD_SIZE
                if fits:
                    assert popcount(mask) == piece.size
                    assert mask & ~FULL_BOARD == 0
                else:
                    assert mask == 0


def test_mask_at_rejects_negative_anchor() -> None:
    piece = DEFAULT_CATALOG[MONOMINO_ID]
    assert mask_at(piece, -1, 0) == 0
    assert mask_at(piece, 0, -1) == 0


def test_can_place_matches_mask_and_overlap() -> None:
    board = ROW_MASKS[0]
    for piece in DEFAULT_CATALOG.values():
        for y in range(-1, BOARD_SIZE + 1):
            for x in range(-1, BOARD_SIZE + 1):
                mask = mask_at(piece, x, y)
                expected = mask != 0 and board & mask == 0
                assert can_place(board, piece, x, y) is expected


def test_placement_table_is_row_major() -> None:
    placements = DEFAULT_CATALOG.placements(2)  # horizontal domino
    assert len(placements) == 7 * 8
    anchors = [(p.y, p.x) for p in placements]
    assert anchors == sorted(anchors)
    assert (placements[0].x, placements[0].y) == (0, 0)
    assert (placements[1].x, placements[1].y) == (1, 0)


def test_legal_placements_match_brute_force() -> None:
    board = ROW_MASKS[3] | (1 << 9) | (1 << 50)
    for piece_id, piece in DEFAULT_CATALOG.items():
        legal = DEFAULT_CATALOG.legal_placements(board, piece_id)
        expected = [
            (x, y)
            for y in range(BOARD_SIZE)
            for x in range(BOARD_SIZE)
            if can_place(board, piece, x, y)
        ]
        assert [(p.x, p.y) for p in legal] == expected
        assert DEFAULT_CATALOG.count_legal_placements(board, piece_id) == len(expected)


def test_no_legal_placements_on_full_board() -> None:
    assert DEFAULT_CATALOG.legal_placements(FULL_BOARD, MONOMINO_ID) == []
    assert not DEFAULT_CATALOG.has_legal_placement(FULL_BOARD, MONOMINO_ID)


def test_unknown_piece_raises_key_error() -> None:
    with pytest.raises(KeyError):
        DEFAULT_CATALOG.legal_placements(0, 99)


def test_match_cells_recognises_shapes_at_any_offset() -> None:
    # Small corner with the missing cell at bottom right, placed at (4, 5).
    cells = [(4, 5), (5, 5), (4, 6)]
    piece_id = DEFAULT_CATALOG.match_cells(cells)
    assert piece_id is not None
    assert DEFAULT_CATALOG[piece_id].signature == canonical_signature(cells)
    assert DEFAULT_CATALOG.piece_cells_at(piece_id, 4, 5) == cells
    assert DEFAULT_CATALOG.match_cells([(0, 0), (2, 0)]) is None


def test_catalog_is_read_only() -> None:
    with pytest.raises(TypeError):
        DEFAULT_CATALOG[1] = DEFAULT_CATALOG[2]  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_CATALOG[1].width = 3  # type: ignore[misc]
    with pytest.raises(ValueError):
        DEFAULT_CATALOG.all_masks[0] = 0


def test_piece_rejects_loose_bounding_box() -> None:
    with pytest.raises(ValueError):
        Piece(id=1, width=2, height=1, cells=((1, 0),), signature="0,0")
    with pytest.raises(ValueError):
        Piece(id=1, width=3, height=1, cells=((0, 0), (1, 0)), signature="0,0;1,0")


def test_from_records_validates_consistency() -> None:
    good = {"id": 7, "w": 2, "h": 1, "cells": [[0, 0], [1, 0]], "hash": "0,0;1,0"}
    catalog = PieceCatalog.from_records([good])
    assert catalog[7].width == 2

    with pytest.raises(ValueError):
        PieceCatalog.from_records([dict(good, w=3)])
    with pytest.raises(ValueError):
        PieceCatalog.from_records([dict(good, hash="0,0;0,1")])
    with pytest.raises(ValueError):
        PieceCatalog.from_records([good, dict(good, cells=[[0, 0]], w=1, hash="0,0")])


def test_from_records_rejects_duplicate_shapes() -> None:
    with pytest.raises(ValueError):
        PieceCatalog.from_records(
            [{"id": 1, "cells": [[0, 0]]}, {"id": 2, "cells": [[0, 0]]}]
        )


def test_load_catalog_reads_json_records(tmp_path) -> None:
    path = tmp_path / "pieces.json"
    path.write_text(json.dumps(DEFAULT_CATALOG.to_records()), encoding="utf-8")
    loaded = load_catalog(path)
    assert loaded == DEFAULT_CATALOG
    assert len(loaded.all_masks) == len(DEFAULT_CATALOG.all_masks)


@pytest.mark.parametrize("record", [{"cells": [[0, 0]]}, {"id": 3}])
def test_from_records_rejects_incomplete_records(record) -> None:
    with pytest.raises(ValueError, match="missing"):
        PieceCatalog.from_records([record])
