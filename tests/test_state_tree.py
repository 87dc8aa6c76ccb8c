from __future__ import annotations

import pytest

import blockpuzzle
from blockpuzzle.bitboard import EMPTY_BOARD, ROW_MASKS, clear_bit
from blockpuzzle.errors import InvalidMoveError, NodeNotFoundError
from blockpuzzle.pieces import MONOMINO_ID
from blockpuzzle.state_tree import (
    EditCellMove,
    MoveKind,
    PlaceMove,
    SetHandMove,
    StateTree,
    create_initial_tree,
    describe_move,
)


HAND = (MONOMINO_ID, 2, 3)


class FakeClock:
    def __init__(self) -> None:
        self.current = 100.0

    def __call__(self) -> float:
        self.current += 1.0
        return self.current


def new_tree(board: int = EMPTY_BOARD) -> StateTree:
    return create_initial_tree(board, HAND, clock=FakeClock())


def test_initial_tree_has_single_root() -> None:
    tree = new_tree()
    root = tree.current
    assert tree.node_count == 1
    assert root.parent_id is None
    assert root.last_move is None
    assert root.hand == HAND
    assert root.hand_used == (False, False, False)
    assert tree.root_id == tree.current_id == root.id
    assert not tree.can_undo() and not tree.can_redo()


def test_apply_place_appends_child_and_leaves_old_tree_intact() -> None:
    tree = new_tree()
    after = tree.apply_place(MONOMINO_ID, 0, 0, 0)

    assert after.node_count == 2
    child = after.current
    assert child.parent_id == tree.root_id
    assert child.board == 1
    assert child.hand_used == (True, False, False)
    assert child.created_at > tree.root.created_at
    assert after.root.children_ids == (child.id,)
    assert isinstance(child.last_move, PlaceMove)
    assert child.last_move.kind is MoveKind.PLACE
    assert child.last_move.cleared_rows == ()

    # The previous tree value is untouched.
    assert tree.node_count == 1
    assert tree.current.board == EMPTY_BOARD
    assert tree.root.children_ids == ()


def test_apply_place_records_cleared_lines() -> None:
    tree = new_tree(clear_bit(ROW_MASKS[0], 7, 0))
    after = tree.apply_place(MONOMINO_ID, 0, 7, 0)
    assert after.current.board == EMPTY_BOARD
    assert after.current.last_move.cleared_rows == (0,)
    assert after.current.last_move.cleared_cols == ()


@pytest.mark.parametrize(
    "piece_id, hand_index, x, y",
    [
        (MONOMINO_ID, 3, 0, 0),  # slot out of range
        (MONOMINO_ID, -1, 0, 0),
        (2, 0, 0, 0),  # wrong piece for slot
        (3, 2, 6, 0),  # leaves the board
        (3, 2, 0, 8),
        (2, 1, 0, 0),  # overlaps the occupied corner
    ],
)
def test_invalid_placements_raise(piece_id: int, hand_index: int, x: int, y: int) -> None:
    tree = new_tree(board=1)
    with pytest.raises(InvalidMoveError):
        tree.apply_place(piece_id, hand_index, x, y)
    assert tree.node_count == 1


def test_used_slot_cannot_be_placed_again() -> None:
    tree = new_tree().apply_place(MONOMINO_ID, 0, 4, 4)
    with pytest.raises(InvalidMoveError, match="already used"):
        tree.apply_place(MONOMINO_ID, 0, 5, 5)


def test_edit_cell_toggles_without_rules() -> None:
    tree = new_tree().apply_place(MONOMINO_ID, 0, 0, 0)
    edited = tree.apply_edit_cell(0, 0)
    move = edited.current.last_move
    assert isinstance(move, EditCellMove)
    assert move.was_occupied is True
    assert edited.current.board == EMPTY_BOARD
    assert edited.current.hand_used == tree.current.hand_used

    again = edited.apply_edit_cell(0, 0)
    assert again.current.board == 1
    assert again.current.last_move.was_occupied is False

    with pytest.raises(InvalidMoveError):
        tree.apply_edit_cell(8, 0)


def test_set_hand_resets_used_flags() -> None:
    tree = new_tree().apply_place(MONOMINO_ID, 0, 0, 0)
    updated = tree.apply_set_hand([5, 6, 7])
    move = updated.current.last_move
    assert isinstance(move, SetHandMove)
    assert move.previous_hand == HAND
    assert move.new_hand == (5, 6, 7)
    assert updated.current.hand_used == (False, False, False)
    assert updated.current.board == tree.current.board

    with pytest.raises(InvalidMoveError):
        tree.apply_set_hand([1, 2, 99])


def test_undo_then_redo_returns_to_same_node() -> None:
    tree = new_tree().apply_place(MONOMINO_ID, 0, 3, 3)
    placed = tree.current
    back = tree.undo()
    assert back.current_id == tree.root_id
    forward = back.redo()
    assert forward.current_id == placed.id
    assert forward.current == placed
    assert forward.node_count == tree.node_count


def test_undo_at_root_and_redo_at_leaf_are_noops() -> None:
    tree = new_tree()
    assert tree.undo() is tree
    leaf = tree.apply_place(MONOMINO_ID, 0, 0, 0)
    assert leaf.redo() is leaf


def test_redo_follows_most_recent_branch() -> None:
    tree = new_tree()
    first = tree.apply_place(MONOMINO_ID, 0, 0, 0)
    second = first.undo().apply_place(MONOMINO_ID, 0, 7, 7)
    root = second.undo()
    assert root.current.children_ids == (first.current_id, second.current_id)
    assert root.redo().current_id == second.current_id
    # The older branch is still there and reachable by id.
    assert root.checkout(first.current_id).current.board == 1


def test_checkout_unknown_node_fails() -> None:
    tree = new_tree()
    with pytest.raises(NodeNotFoundError):
        tree.checkout(42)
    with pytest.raises(InvalidMoveError):
        tree.checkout(42)


def test_checkout_changes_only_current() -> None:
    tree = new_tree().apply_place(MONOMINO_ID, 0, 0, 0).apply_place(2, 1, 2, 0)
    moved = tree.checkout(tree.root_id)
    assert moved.nodes is tree.nodes
    assert moved.current_id == tree.root_id


def test_queries_on_branching_history() -> None:
    tree = new_tree()
    a = tree.apply_place(MONOMINO_ID, 0, 0, 0)
    ab = a.apply_place(2, 1, 2, 0)
    c = ab.checkout(tree.root_id).apply_set_hand([4, 5, 6])

    assert c.node_count == 4
    assert [n.id for n in c.path_to(ab.current_id)] == [tree.root_id, a.current_id, ab.current_id]
    assert [n.id for n in c.current_path()] == [tree.root_id, c.current_id]
    assert {n.id for n in c.leaves()} == {ab.current_id, c.current_id}
    assert c.depth(tree.root_id) == 0
    assert c.depth(ab.current_id) == 2
    assert c.depth(c.current_id) == 1
    with pytest.raises(NodeNotFoundError):
        c.path_to(99)


def test_delete_branch_removes_descendants() -> None:
    tree = new_tree()
    a = tree.apply_place(MONOMINO_ID, 0, 0, 0)
    ab = a.apply_place(2, 1, 2, 0)
    other = ab.checkout(tree.root_id).apply_place(MONOMINO_ID, 0, 5, 5)

    pruned = other.delete_branch(a.current_id)
    assert pruned.node_count == 2
    assert a.current_id not in pruned
    assert ab.current_id not in pruned
    assert pruned.root.children_ids == (other.current_id,)
    assert pruned.current_id == other.current_id
    # The unpruned value still owns every node.
    assert other.node_count == 4


def test_deleted_ids_are_not_reused() -> None:
    tree = new_tree()
    a = tree.apply_place(MONOMINO_ID, 0, 0, 0)
    pruned = a.undo().delete_branch(a.current_id)
    fresh = pruned.apply_place(MONOMINO_ID, 0, 1, 1)
    assert fresh.current_id != a.current_id
    assert fresh.current_id > a.current_id


def test_delete_branch_guards() -> None:
    tree = new_tree()
    a = tree.apply_place(MONOMINO_ID, 0, 0, 0)
    ab = a.apply_place(2, 1, 2, 0)

    with pytest.raises(InvalidMoveError, match="root"):
        ab.delete_branch(ab.root_id)
    with pytest.raises(InvalidMoveError, match="current"):
        ab.delete_branch(ab.current_id)
    with pytest.raises(InvalidMoveError):
        ab.delete_branch(a.current_id)  # ancestor of the current node
    with pytest.raises(NodeNotFoundError):
        ab.delete_branch(99)
    assert ab.node_count == 3


def test_set_note_annotates_a_node() -> None:
    tree = new_tree().apply_place(MONOMINO_ID, 0, 0, 0)
    noted = tree.set_note(tree.root_id, "opening")
    assert noted.root.note == "opening"
    assert noted.root.children_ids == tree.root.children_ids
    assert tree.root.note is None
    with pytest.raises(NodeNotFoundError):
        tree.set_note(99, "missing")


def test_hand_progress_queries() -> None:
    tree = new_tree()
    assert tree.unused_piece_ids() == list(HAND)
    tree = tree.apply_place(2, 1, 0, 0)
    assert tree.unused_piece_ids() == [MONOMINO_ID, 3]
    assert tree.unused_hand_indices() == [0, 2]
    tree = tree.apply_place(MONOMINO_ID, 0, 0, 1).apply_place(3, 2, 0, 2)
    assert tree.is_hand_complete()
    assert tree.unused_piece_ids() == []


def test_describe_move_labels() -> None:
    assert describe_move(None) == "start"
    place = PlaceMove(piece_id=1, hand_index=0, x=7, y=0, cleared_rows=(0,), cleared_cols=())
    assert describe_move(place) == "place piece 1 (slot 0) at (7, 0), cleared 1 line"
    assert describe_move(EditCellMove(x=2, y=3, was_occupied=True)) == "toggle (2, 3) off"
    assert describe_move(SetHandMove(previous_hand=(1,), new_hand=(2,))) == "set hand [1] -> [2]"


def test_default_catalog_tree_is_usable() -> None:
    tree = blockpuzzle.StateTree(
        nodes=new_tree().nodes, root_id=0, current_id=0, next_id=1
    )
    assert tree.catalog is blockpuzzle.DEFAULT_CATALOG
    assert tree.apply_place(MONOMINO_ID, 0, 0, 0).current.board == 1


@pytest.mark.parametrize("hand", [[], [1, 2], [1, 2, 3, 4]])
def test_hands_must_hold_three_pieces(hand) -> None:
    with pytest.raises(InvalidMoveError, match="exactly 3"):
        create_initial_tree(EMPTY_BOARD, hand)
    tree = new_tree()
    with pytest.raises(InvalidMoveError, match="exactly 3"):
        tree.apply_set_hand(hand)
    assert tree.node_count == 1


def test_initial_hand_rejects_unknown_pieces() -> None:
    with pytest.raises(InvalidMoveError):
        create_initial_tree(EMPTY_BOARD, [1, 2, 99])
