"""Depth-first solver for a hand of up to three pieces.

Every ordering of the unused pieces is tried in ``itertools.permutations``
order of their slot positions.  Within an ordering the search places the next
piece at each of its legal anchors in the catalog's row-major order, applies
line clears, and recurses on the resulting board.  A dead end at some depth is
ordinary backtracking; only exhausting every ordering means "no solution",
which is reported as ``None``.

Two modes are offered:

``solve_triple`` / ``solve_partial``
    First-fit.  Return the first complete sequence found.

``find_best_solution``
    Best-of.  Collect complete sequences across all orderings, stopping once
    ``max_solutions`` have been found, and return the one whose final board has
    the highest mobility.  Ties keep the earliest solution.  Because of the cap
    this is a bounded approximation rather than a global optimum.
"""

from __future__ import annotations

import itertools
import logging
from contextlib import nullcontext
from dataclasses import dataclass, replace
from typing import ContextManager, Iterator, List, Optional, Sequence, Tuple

from .engine import mobility, place
from .perf import SearchProfiler
from .pieces import DEFAULT_CATALOG, HAND_SIZE, PieceCatalog, Placement


LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_SOLUTIONS = 200
STATS_MAX_SOLUTIONS = 500


@dataclass(frozen=True)
class SolutionStep:
    """One placement of a solution, replayable without recomputation."""

    piece_id: int
    hand_index: int
    x: int
    y: int
    cleared_rows: Tuple[int, ...]
    cleared_cols: Tuple[int, ...]
    board_after: int


@dataclass(frozen=True)
class Solution:
    steps: Tuple[SolutionStep, ...]
    final_board: int
    mobility: int
    order: Tuple[int, ...]

    def remaining(self, applied: int) -> Optional["Solution"]:
        """Return this solution without its first ``applied`` steps.

        ``None`` is returned once no steps are left.
        """

        rest = self.steps[applied:]
        if not rest:
            return None
        return replace(self, steps=rest)


@dataclass(frozen=True)
class SolverStats:
    total_solutions: int
    best_mobility: int
    worst_mobility: int
    average_mobility: float


class Solver:
    """Search orderings and anchors of a small hand of pieces."""

    def __init__(
        self,
        catalog: PieceCatalog = DEFAULT_CATALOG,
        *,
        max_solutions: int = DEFAULT_MAX_SOLUTIONS,
        profiler: Optional[SearchProfiler] = None,
    ) -> None:
        if max_solutions < 1:
            raise ValueError("max_solutions must be positive")
        self.catalog = catalog
        self.max_solutions = max_solutions
        self.profiler = profiler

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def solve_triple(self, board: int, hand: Sequence[int]) -> Optional[Solution]:
        """Return the first way to place all three pieces of ``hand``."""

        if len(hand) != HAND_SIZE:
            raise ValueError(f"Hand must contain exactly {HAND_SIZE} pieces")
        return self.solve_partial(board, hand, range(HAND_SIZE))

    def solve_partial(
        self,
        board: int,
        piece_ids: Sequence[int],
        hand_indices: Sequence[int],
    ) -> Optional[Solution]:
        """Return the first way to place every piece of a partial hand.

        ``hand_indices[i]`` is the originating slot of ``piece_ids[i]``.  An
        empty hand is trivially solved by an empty step list.
        """

        pieces, indices = self._normalise(piece_ids, hand_indices)
        if not pieces:
            return Solution(steps=(), final_board=board, mobility=self._mobility(board), order=())

        with self._section("solver.first_fit"):
            for order, slots in self._orderings(pieces, indices):
                steps = self._first(board, order, slots, 0, [])
                if steps is not None:
                    LOGGER.debug("First-fit solution for %s in order %s", pieces, order)
                    return self._solution(board, steps, order)
        LOGGER.debug("No solution for %s", pieces)
        return None

    def find_all_solutions(
        self,
        board: int,
        piece_ids: Sequence[int],
        hand_indices: Optional[Sequence[int]] = None,
        *,
        max_solutions: Optional[int] = None,
    ) -> List[Solution]:
        """Return complete solutions in discovery order, at most ``max_solutions``."""

        pieces, indices = self._normalise(piece_ids, hand_indices)
        limit = self.max_solutions if max_solutions is None else max_solutions
        if limit < 1:
            raise ValueError("max_solutions must be positive")
        if not pieces:
            return [Solution(steps=(), final_board=board, mobility=self._mobility(board), order=())]

        found: List[Solution] = []
        with self._section("solver.collect"):
            for order, slots in self._orderings(pieces, indices):
                if len(found) >= limit:
                    break
                self._collect(board, order, slots, 0, [], found, limit)
        LOGGER.debug("Collected %d solutions for %s (cap %d)", len(found), pieces, limit)
        return found

    def find_best_solution(
        self,
        board: int,
        piece_ids: Sequence[int],
        hand_indices: Optional[Sequence[int]] = None,
        *,
        max_solutions: Optional[int] = None,
    ) -> Optional[Solution]:
        """Return the collected solution with the highest final mobility."""

        solutions = self.find_all_solutions(
            board, piece_ids, hand_indices, max_solutions=max_solutions
        )
        if not solutions:
            return None
        # max() keeps the first of equally good candidates.
        return max(solutions, key=lambda s: s.mobility)

    def has_solution(self, board: int, hand: Sequence[int]) -> bool:
        return self.solve_partial(board, hand, range(len(hand))) is not None

    def stats(
        self,
        board: int,
        piece_ids: Sequence[int],
        hand_indices: Optional[Sequence[int]] = None,
        *,
        max_solutions: int = STATS_MAX_SOLUTIONS,
    ) -> Optional[SolverStats]:
        """Summarise the mobility spread of up to ``max_solutions`` solutions."""

        solutions = self.find_all_solutions(
            board, piece_ids, hand_indices, max_solutions=max_solutions
        )
        if not solutions:
            return None
        values = [s.mobility for s in solutions]
        return SolverStats(
            total_solutions=len(values),
            best_mobility=max(values),
            worst_mobility=min(values),
            average_mobility=sum(values) / len(values),
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def _first(
        self,
        board: int,
        order: Tuple[int, ...],
        slots: Tuple[int, ...],
        depth: int,
        path: List[SolutionStep],
    ) -> Optional[List[SolutionStep]]:
        if depth == len(order):
            return path
        for placement in self.catalog.legal_placements(board, order[depth]):
            step = self._step(board, slots[depth], placement)
            found = self._first(step.board_after, order, slots, depth + 1, path + [step])
            if found is not None:
                return found
        return None

    def _collect(
        self,
        board: int,
        order: Tuple[int, ...],
        slots: Tuple[int, ...],
        depth: int,
        path: List[SolutionStep],
        found: List[Solution],
        limit: int,
    ) -> None:
        if depth == len(order):
            found.append(self._solution(board, path, order))
            return
        for placement in self.catalog.legal_placements(board, order[depth]):
            if len(found) >= limit:
                return
            step = self._step(board, slots[depth], placement)
            self._collect(step.board_after, order, slots, depth + 1, path + [step], found, limit)

    def _step(self, board: int, hand_index: int, placement: Placement) -> SolutionStep:
        if self.profiler is not None:
            self.profiler.count("nodes")
        result = place(board, placement.mask)
        return SolutionStep(
            piece_id=placement.piece_id,
            hand_index=hand_index,
            x=placement.x,
            y=placement.y,
            cleared_rows=result.cleared_rows,
            cleared_cols=result.cleared_cols,
            board_after=result.board,
        )

    def _solution(
        self, board: int, steps: Sequence[SolutionStep], order: Tuple[int, ...]
    ) -> Solution:
        final_board = steps[-1].board_after if steps else board
        if self.profiler is not None:
            self.profiler.count("solutions")
        return Solution(
            steps=tuple(steps),
            final_board=final_board,
            mobility=self._mobility(final_board),
            order=order,
        )

    def _mobility(self, board: int) -> int:
        with self._section("solver.mobility"):
            return mobility(board, self.catalog)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _normalise(
        piece_ids: Sequence[int], hand_indices: Optional[Sequence[int]]
    ) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        pieces = tuple(piece_ids)
        indices = tuple(range(len(pieces))) if hand_indices is None else tuple(hand_indices)
        if len(pieces) != len(indices):
            raise ValueError("piece_ids and hand_indices must have the same length")
        if len(pieces) > HAND_SIZE:
            raise ValueError(f"At most {HAND_SIZE} pieces can be searched")
        return pieces, indices

    @staticmethod
    def _orderings(
        pieces: Tuple[int, ...], indices: Tuple[int, ...]
    ) -> Iterator[Tuple[Tuple[int, ...], Tuple[int, ...]]]:
        for perm in itertools.permutations(range(len(pieces))):
            yield tuple(pieces[i] for i in perm), tuple(indices[i] for i in perm)

    def _section(self, name: str) -> ContextManager[None]:
        if self.profiler is None:
            return nullcontext()
        return self.profiler.section(name)


_DEFAULT_SOLVER = Solver()


def solve_triple(board: int, hand: Sequence[int]) -> Optional[Solution]:
    return _DEFAULT_SOLVER.solve_triple(board, hand)


def solve_partial(
    board: int, piece_ids: Sequence[int], hand_indices: Sequence[int]
) -> Optional[Solution]:
    return _DEFAULT_SOLVER.solve_partial(board, piece_ids, hand_indices)


def find_all_solutions(
    board: int,
    piece_ids: Sequence[int],
    hand_indices: Optional[Sequence[int]] = None,
    max_solutions: int = DEFAULT_MAX_SOLUTIONS,
) -> List[Solution]:
    return _DEFAULT_SOLVER.find_all_solutions(
        board, piece_ids, hand_indices, max_solutions=max_solutions
    )


def find_best_solution(
    board: int,
    piece_ids: Sequence[int],
    hand_indices: Optional[Sequence[int]] = None,
    max_solutions: int = DEFAULT_MAX_SOLUTIONS,
) -> Optional[Solution]:
    return _DEFAULT_SOLVER.find_best_solution(
        board, piece_ids, hand_indices, max_solutions=max_solutions
    )


def has_solution(board: int, hand: Sequence[int]) -> bool:
    return _DEFAULT_SOLVER.has_solution(board, hand)


def solver_stats(
    board: int,
    piece_ids: Sequence[int],
    hand_indices: Optional[Sequence[int]] = None,
    max_solutions: int = STATS_MAX_SOLUTIONS,
) -> Optional[SolverStats]:
    return _DEFAULT_SOLVER.stats(board, piece_ids, hand_indices, max_solutions=max_solutions)


__all__ = [
    "HAND_SIZE",
    "DEFAULT_MAX_SOLUTIONS",
    "STATS_MAX_SOLUTIONS",
    "SolutionStep",
    "Solution",
    "SolverStats",
    "Solver",
    "solve_triple",
    "solve_partial",
    "find_all_solutions",
    "find_best_solution",
    "has_solution",
    "solver_stats",
]
