"""Branching, persistent history of board/hand snapshots.

The tree is an arena of immutable :class:`GameNode` values addressed by
integer ids.  Every operation returns a *new* :class:`StateTree`; the node map
is copied on write (only the parent's ``children_ids`` and the new node
change), so older tree values stay valid and can be shared freely.

Moving around the history never creates or destroys nodes:

* ``undo`` checks out the parent of the current node.
* ``redo`` checks out the most recently created child.  Older sibling
  branches are only reachable through ``checkout``.
* ``checkout`` jumps to any node by id.

Ids are issued from a counter that only grows, so an id removed by
``delete_branch`` is never handed out again.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .bitboard import get_bit, in_bounds, toggle_bit
from .engine import place
from .errors import InvalidMoveError, NodeNotFoundError
from .pieces import DEFAULT_CATALOG, HAND_SIZE, PieceCatalog, mask_at


LOGGER = logging.getLogger(__name__)

NodeId = int


class MoveKind(str, Enum):
    """The three kinds of edge between a node and its parent."""

    PLACE = "place"
    EDIT_CELL = "edit_cell"
    SET_HAND = "set_hand"


@dataclass(frozen=True)
class PlaceMove:
    piece_id: int
    hand_index: int
    x: int
    y: int
    cleared_rows: Tuple[int, ...]
    cleared_cols: Tuple[int, ...]
    kind: MoveKind = field(default=MoveKind.PLACE, init=False)


@dataclass(frozen=True)
class EditCellMove:
    x: int
    y: int
    was_occupied: bool
    kind: MoveKind = field(default=MoveKind.EDIT_CELL, init=False)


@dataclass(frozen=True)
class SetHandMove:
    previous_hand: Tuple[int, ...]
    new_hand: Tuple[int, ...]
    kind: MoveKind = field(default=MoveKind.SET_HAND, init=False)


Move = Union[PlaceMove, EditCellMove, SetHandMove]


def describe_move(move: Optional[Move]) -> str:
    """Return a short human readable label for ``move``."""

    if move is None:
        return "start"
    if move.kind is MoveKind.PLACE:
        label = f"place piece {move.piece_id} (slot {move.hand_index}) at ({move.x}, {move.y})"
        lines = len(move.cleared_rows) + len(move.cleared_cols)
        if lines:
            label += f", cleared {lines} line{'s' if lines != 1 else ''}"
        return label
    if move.kind is MoveKind.EDIT_CELL:
        state = "off" if move.was_occupied else "on"
        return f"toggle ({move.x}, {move.y}) {state}"
    return f"set hand {list(move.previous_hand)} -> {list(move.new_hand)}"


@dataclass(frozen=True)
class GameNode:
    """One immutable snapshot in the history."""

    id: NodeId
    parent_id: Optional[NodeId]
    children_ids: Tuple[NodeId, ...]
    board: int
    hand: Tuple[int, ...]
    hand_used: Tuple[bool, ...]
    last_move: Optional[Move]
    created_at: float
    note: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return not self.children_ids


@dataclass(frozen=True)
class StateTree:
    """Persistent history tree; all mutators return a new tree."""

    nodes: Mapping[NodeId, GameNode] = field(repr=False)
    root_id: NodeId
    current_id: NodeId
    next_id: NodeId
    # PieceCatalog is unhashable; dataclasses reject it as a plain default.
    catalog: PieceCatalog = field(
        default_factory=lambda: DEFAULT_CATALOG, compare=False, repr=False
    )
    clock: Callable[[], float] = field(default=time.time, compare=False, repr=False)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def current(self) -> GameNode:
        return self.nodes[self.current_id]

    @property
    def root(self) -> GameNode:
        return self.nodes[self.root_id]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def node(self, node_id: NodeId) -> GameNode:
        """Return the node with ``node_id``.

        Raises:
            NodeNotFoundError: If no such node exists.
        """

        try:
            return self.nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def path_to(self, node_id: NodeId) -> List[GameNode]:
        """Return the nodes from the root down to ``node_id`` inclusive."""

        path: List[GameNode] = []
        current: Optional[NodeId] = self.node(node_id).id
        while current is not None:
            node = self.nodes[current]
            path.append(node)
            current = node.parent_id
        path.reverse()
        return path

    def current_path(self) -> List[GameNode]:
        return self.path_to(self.current_id)

    def leaves(self) -> List[GameNode]:
        """Return every node without children, in creation order."""

        return [node for node in self.nodes.values() if node.is_leaf]

    def depth(self, node_id: NodeId) -> int:
        """Return the number of edges between the root and ``node_id``."""

        depth = 0
        node = self.node(node_id)
        while node.parent_id is not None:
            depth += 1
            node = self.nodes[node.parent_id]
        return depth

    def can_undo(self) -> bool:
        return self.current.parent_id is not None

    def can_redo(self) -> bool:
        return bool(self.current.children_ids)

    def is_hand_complete(self) -> bool:
        return all(self.current.hand_used)

    def unused_piece_ids(self) -> List[int]:
        node = self.current
        return [pid for pid, used in zip(node.hand, node.hand_used) if not used]

    def unused_hand_indices(self) -> List[int]:
        return [i for i, used in enumerate(self.current.hand_used) if not used]

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------
    def apply_place(self, piece_id: int, hand_index: int, x: int, y: int) -> "StateTree":
        """Place the piece in ``hand_index`` at ``(x, y)`` as a new child node.

        Raises:
            InvalidMoveError: If the slot is out of range, already used or holds
                a different piece, or the placement leaves the board or overlaps.
        """

        node = self.current
        if not 0 <= hand_index < len(node.hand):
            raise InvalidMoveError(f"Invalid hand index: {hand_index}")
        if node.hand_used[hand_index]:
            raise InvalidMoveError(f"Piece at hand index {hand_index} already used")
        if node.hand[hand_index] != piece_id:
            raise InvalidMoveError(
                f"Piece ID mismatch: expected {node.hand[hand_index]}, got {piece_id}"
            )
        piece = self.catalog.get(piece_id)
        if piece is None:
            raise InvalidMoveError(f"Unknown piece ID: {piece_id}")
        mask = mask_at(piece, x, y)
        if mask == 0:
            raise InvalidMoveError(f"Cannot place piece {piece_id} at ({x}, {y})")
        if node.board & mask:
            raise InvalidMoveError(f"Overlap at ({x}, {y})")

        result = place(node.board, mask)
        used = list(node.hand_used)
        used[hand_index] = True
        move = PlaceMove(
            piece_id=piece_id,
            hand_index=hand_index,
            x=x,
            y=y,
            cleared_rows=result.cleared_rows,
            cleared_cols=result.cleared_cols,
        )
        return self._append(result.board, node.hand, tuple(used), move)

    def apply_edit_cell(self, x: int, y: int) -> "StateTree":
        """Toggle the cell at ``(x, y)`` regardless of placement rules."""

        if not in_bounds(x, y):
            raise InvalidMoveError(f"Cell ({x}, {y}) out of bounds")
        node = self.current
        move = EditCellMove(x=x, y=y, was_occupied=get_bit(node.board, x, y))
        return self._append(toggle_bit(node.board, x, y), node.hand, node.hand_used, move)

    def apply_set_hand(self, new_hand: Sequence[int]) -> "StateTree":
        """Replace the hand wholesale; every slot becomes unused.

        Raises:
            InvalidMoveError: If the hand does not hold exactly ``HAND_SIZE``
                known pieces.
        """

        hand = _validate_hand(new_hand, self.catalog)
        node = self.current
        move = SetHandMove(previous_hand=node.hand, new_hand=hand)
        return self._append(node.board, hand, (False,) * len(hand), move)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def checkout(self, node_id: NodeId) -> "StateTree":
        """Make ``node_id`` the current node."""

        if node_id not in self.nodes:
            raise NodeNotFoundError(node_id)
        if node_id == self.current_id:
            return self
        return replace(self, current_id=node_id)

    def undo(self) -> "StateTree":
        parent = self.current.parent_id
        if parent is None:
            return self
        return self.checkout(parent)

    def redo(self) -> "StateTree":
        children = self.current.children_ids
        if not children:
            return self
        return self.checkout(children[-1])

    # ------------------------------------------------------------------
    # Editing the tree itself
    # ------------------------------------------------------------------
    def delete_branch(self, node_id: NodeId) -> "StateTree":
        """Remove ``node_id`` and all of its descendants.

        Raises:
            NodeNotFoundError: If ``node_id`` is unknown.
            InvalidMoveError: If the branch contains the root or the current
                node.
        """

        if node_id == self.root_id:
            raise InvalidMoveError("Cannot delete root node")
        if node_id == self.current_id:
            raise InvalidMoveError("Cannot delete current node")
        target = self.node(node_id)

        doomed = set()
        queue = [node_id]
        while queue:
            nid = queue.pop()
            doomed.add(nid)
            queue.extend(self.nodes[nid].children_ids)
        if self.current_id in doomed:
            raise InvalidMoveError(f"Branch {node_id} contains the current node")

        nodes: Dict[NodeId, GameNode] = {
            nid: n for nid, n in self.nodes.items() if nid not in doomed
        }
        parent = nodes[target.parent_id]
        nodes[parent.id] = replace(
            parent, children_ids=tuple(c for c in parent.children_ids if c != node_id)
        )
        LOGGER.debug("Deleted branch %s (%d nodes)", node_id, len(doomed))
        return replace(self, nodes=MappingProxyType(nodes))

    def set_note(self, node_id: NodeId, note: Optional[str]) -> "StateTree":
        """Attach a free-form annotation to a node."""

        node = self.node(node_id)
        nodes = dict(self.nodes)
        nodes[node_id] = replace(node, note=note)
        return replace(self, nodes=MappingProxyType(nodes))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _append(
        self,
        board: int,
        hand: Tuple[int, ...],
        hand_used: Tuple[bool, ...],
        move: Move,
    ) -> "StateTree":
        parent = self.current
        child = GameNode(
            id=self.next_id,
            parent_id=parent.id,
            children_ids=(),
            board=board,
            hand=hand,
            hand_used=hand_used,
            last_move=move,
            created_at=self.clock(),
        )
        nodes = dict(self.nodes)
        nodes[parent.id] = replace(parent, children_ids=parent.children_ids + (child.id,))
        nodes[child.id] = child
        LOGGER.debug("Node %d -> %d: %s", parent.id, child.id, describe_move(move))
        return replace(
            self,
            nodes=MappingProxyType(nodes),
            current_id=child.id,
            next_id=self.next_id + 1,
        )


def _validate_hand(hand: Sequence[int], catalog: PieceCatalog) -> Tuple[int, ...]:
    pieces = tuple(int(pid) for pid in hand)
    if len(pieces) != HAND_SIZE:
        raise InvalidMoveError(f"Hand must contain exactly {HAND_SIZE} pieces, got {len(pieces)}")
    unknown = [pid for pid in pieces if pid not in catalog]
    if unknown:
        raise InvalidMoveError(f"Unknown piece IDs in hand: {unknown}")
    return pieces


def create_initial_tree(
    board: int,
    hand: Sequence[int],
    *,
    catalog: PieceCatalog = DEFAULT_CATALOG,
    clock: Callable[[], float] = time.time,
) -> StateTree:
    """Return a tree holding a single root node for ``board``/``hand``.

    Raises:
        InvalidMoveError: If the hand does not hold exactly ``HAND_SIZE``
            known pieces.
    """

    hand_tuple = _validate_hand(hand, catalog)
    root = GameNode(
        id=0,
        parent_id=None,
        children_ids=(),
        board=board,
        hand=hand_tuple,
        hand_used=(False,) * len(hand_tuple),
        last_move=None,
        created_at=clock(),
    )
    return StateTree(
        nodes=MappingProxyType({root.id: root}),
        root_id=root.id,
        current_id=root.id,
        next_id=root.id + 1,
        catalog=catalog,
        clock=clock,
    )


__all__ = [
    "NodeId",
    "MoveKind",
    "PlaceMove",
    "EditCellMove",
    "SetHandMove",
    "Move",
    "GameNode",
    "StateTree",
    "describe_move",
    "create_initial_tree",
]
