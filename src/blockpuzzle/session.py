"""Mutable session wrapper around the persistent state tree.

:class:`GameSession` is the single owner of "the current tree".  Front-ends
talk to it instead of building nodes or boards themselves.  The tree values
are immutable, so readers can take ``session.tree`` at any time; writers are
serialised with a re-entrant lock so two callers can never both derive a new
tree from the same old one and lose an update.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from .bitboard import EMPTY_BOARD
from .errors import InvalidMoveError
from .pieces import DEFAULT_CATALOG, HAND_SIZE, PieceCatalog, Placement
from .solver import Solution, Solver
from .state_tree import NodeId, StateTree, create_initial_tree


LOGGER = logging.getLogger(__name__)

# Monomino plus the horizontal two- and three-cell lines.
DEFAULT_HAND = (1, 2, 3)


class GameSession:
    """Current tree, piece selection and pending solver result."""

    def __init__(
        self,
        board: int = EMPTY_BOARD,
        hand: Sequence[int] = DEFAULT_HAND,
        *,
        catalog: PieceCatalog = DEFAULT_CATALOG,
        solver: Optional[Solver] = None,
    ) -> None:
        self.catalog = catalog
        self.solver = solver or Solver(catalog)
        self._lock = threading.RLock()
        self.tree: StateTree = create_initial_tree(board, hand, catalog=catalog)
        self.selected_index: Optional[int] = None
        self.editing = False
        self.solution: Optional[Solution] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def board(self) -> int:
        return self.tree.current.board

    @property
    def hand(self) -> tuple[int, ...]:
        return self.tree.current.hand

    @property
    def hand_used(self) -> tuple[bool, ...]:
        return self.tree.current.hand_used

    def can_undo(self) -> bool:
        return self.tree.can_undo()

    def can_redo(self) -> bool:
        return self.tree.can_redo()

    def legal_placements(self) -> List[Placement]:
        """Return the legal anchors of the selected, still unused piece."""

        node = self.tree.current
        if self.selected_index is None or node.hand_used[self.selected_index]:
            return []
        return self.catalog.legal_placements(node.board, node.hand[self.selected_index])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self, board: int = EMPTY_BOARD, hand: Optional[Sequence[int]] = None) -> None:
        """Start a fresh history rooted at ``board``/``hand``."""

        with self._lock:
            hand = DEFAULT_HAND if hand is None else hand
            self.tree = create_initial_tree(board, hand, catalog=self.catalog)
            self.selected_index = None
            self.editing = False
            self.solution = None

    def clear_board(self) -> None:
        """Restart from an empty board keeping the current hand."""

        with self._lock:
            hand = self.tree.current.hand
            self.tree = create_initial_tree(EMPTY_BOARD, hand, catalog=self.catalog)
            self.selected_index = None
            self.solution = None

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------
    def select_piece(self, index: Optional[int]) -> None:
        """Select hand slot ``index``; used or out-of-range slots are ignored."""

        with self._lock:
            if index is None:
                self.selected_index = None
                return
            used = self.tree.current.hand_used
            if 0 <= index < len(used) and not used[index]:
                self.selected_index = index

    def place(self, x: int, y: int) -> bool:
        """Place the selected piece at ``(x, y)``; return whether it was accepted."""

        with self._lock:
            if self.selected_index is None:
                return False
            node = self.tree.current
            piece_id = node.hand[self.selected_index]
            try:
                self.tree = self.tree.apply_place(piece_id, self.selected_index, x, y)
            except InvalidMoveError as exc:
                LOGGER.debug("Rejected placement: %s", exc)
                return False
            self.selected_index = None
            self.solution = None
            return True

    def toggle_edit_mode(self) -> None:
        with self._lock:
            self.editing = not self.editing
            self.selected_index = None

    def toggle_cell(self, x: int, y: int) -> bool:
        """Flip a cell while in edit mode; return whether the board changed."""

        with self._lock:
            if not self.editing:
                return False
            try:
                self.tree = self.tree.apply_edit_cell(x, y)
            except InvalidMoveError as exc:
                LOGGER.debug("Rejected cell edit: %s", exc)
                return False
            self.solution = None
            return True

    def set_hand(self, hand: Sequence[int]) -> None:
        with self._lock:
            self.tree = self.tree.apply_set_hand(hand)
            self.selected_index = None
            self.solution = None

    def set_hand_slot(self, index: int, piece_id: int) -> None:
        """Replace one slot; this is a whole-hand change and resets used flags."""

        with self._lock:
            hand = list(self.tree.current.hand)
            if not 0 <= index < len(hand):
                raise InvalidMoveError(f"Invalid hand index: {index}")
            hand[index] = piece_id
            self.set_hand(hand)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def undo(self) -> None:
        with self._lock:
            self._navigate(self.tree.undo())

    def redo(self) -> None:
        with self._lock:
            self._navigate(self.tree.redo())

    def checkout(self, node_id: NodeId) -> None:
        with self._lock:
            self._navigate(self.tree.checkout(node_id))

    def delete_branch(self, node_id: NodeId) -> None:
        with self._lock:
            self.tree = self.tree.delete_branch(node_id)

    def _navigate(self, tree: StateTree) -> None:
        if tree is self.tree:
            return
        self.tree = tree
        self.selected_index = None
        self.solution = None

    # ------------------------------------------------------------------
    # Solver integration
    # ------------------------------------------------------------------
    def solve(self, *, best: Optional[bool] = None) -> Optional[Solution]:
        """Search from the current node and remember the result.

        By default a full, untouched hand is ranked by mobility and, once some
        pieces are placed, the first complete sequence for the rest is
        returned.  ``best`` forces one mode or the other.
        """

        tree = self.tree
        node = tree.current
        pieces = tree.unused_piece_ids()
        indices = tree.unused_hand_indices()
        if not pieces:
            solution = None
        elif best or (best is None and len(pieces) == HAND_SIZE):
            solution = self.solver.find_best_solution(node.board, pieces, indices)
        else:
            solution = self.solver.solve_partial(node.board, pieces, indices)
        with self._lock:
            if self.tree is tree:
                self.solution = solution
        if solution is None:
            LOGGER.info("No solution for hand %s", pieces)
        else:
            LOGGER.info(
                "Solution for hand %s: %d steps, mobility %d",
                pieces,
                len(solution.steps),
                solution.mobility,
            )
        return solution

    def apply_solution_step(self, step_index: int = 0) -> bool:
        """Apply one step of the pending solution through the tree's move API."""

        with self._lock:
            solution = self.solution
            if solution is None or not 0 <= step_index < len(solution.steps):
                return False
            step = solution.steps[step_index]
            try:
                self.tree = self.tree.apply_place(step.piece_id, step.hand_index, step.x, step.y)
            except InvalidMoveError as exc:
                LOGGER.warning("Solution step no longer applies: %s", exc)
                self.solution = None
                return False
            self.solution = solution.remaining(step_index + 1)
            self.selected_index = None
            return True

    def apply_full_solution(self) -> int:
        """Apply every pending step, stopping at the first rejected one.

        Returns the number of steps applied.
        """

        with self._lock:
            solution = self.solution
            if solution is None:
                return 0
            applied = 0
            for step in solution.steps:
                try:
                    self.tree = self.tree.apply_place(
                        step.piece_id, step.hand_index, step.x, step.y
                    )
                except InvalidMoveError as exc:
                    LOGGER.warning("Stopped applying solution: %s", exc)
                    break
                applied += 1
            self.solution = None
            self.selected_index = None
            return applied

    def clear_solution(self) -> None:
        with self._lock:
            self.solution = None


__all__ = ["DEFAULT_HAND", "GameSession"]
