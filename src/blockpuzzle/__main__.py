"""Command line solver for the block puzzle.

Run with: ``python -m blockpuzzle --hand 1 2 3 --row 7 --fill 0,6``

Builds a board from ``--row``/``--fill`` options, solves the hand and replays
the solution through a :class:`~blockpuzzle.session.GameSession`, printing the
board before and after.  Exits with status 1 when the hand cannot be placed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from .bitboard import EMPTY_BOARD, ROW_MASKS, board_to_string, set_bit
from .pieces import DEFAULT_CATALOG, HAND_SIZE
from .session import DEFAULT_HAND, GameSession
from .solver import DEFAULT_MAX_SOLUTIONS, Solver
from .state_tree import describe_move


LOGGER = logging.getLogger(__name__)


def _cell(text: str) -> Tuple[int, int]:
    try:
        x, y = (int(part) for part in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected X,Y but got {text!r}") from None
    return x, y


def build_board(rows: Sequence[int], cells: Sequence[Tuple[int, int]]) -> int:
    board = EMPTY_BOARD
    for y in rows:
        board |= ROW_MASKS[y]
    for x, y in cells:
        board = set_bit(board, x, y)
    return board


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="blockpuzzle", description=__doc__)
    parser.add_argument(
        "--hand",
        type=int,
        nargs="+",
        default=list(DEFAULT_HAND),
        help="The three piece ids in the hand (1-41).",
    )
    parser.add_argument(
        "--fill",
        type=_cell,
        action="append",
        default=[],
        metavar="X,Y",
        help="Occupy a single cell (repeatable).",
    )
    parser.add_argument(
        "--row",
        type=int,
        action="append",
        default=[],
        choices=range(8),
        help="Occupy a whole row (repeatable).",
    )
    parser.add_argument(
        "--mode",
        choices=("first", "best"),
        default="best",
        help="Return the first solution found or the one with the highest mobility.",
    )
    parser.add_argument(
        "--max-solutions",
        type=int,
        default=DEFAULT_MAX_SOLUTIONS,
        help="Cap on complete solutions compared in best mode.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (e.g. DEBUG, INFO, WARNING).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING), format="%(message)s"
    )

    unknown = [pid for pid in args.hand if pid not in DEFAULT_CATALOG]
    if unknown:
        print(f"Unknown piece ids: {unknown}", file=sys.stderr)
        return 2
    if len(args.hand) != HAND_SIZE:
        print(f"A hand holds exactly {HAND_SIZE} pieces", file=sys.stderr)
        return 2

    try:
        board = build_board(args.row, args.fill)
    except IndexError as exc:
        print(exc, file=sys.stderr)
        return 2
    LOGGER.info("Solving hand %s in %s mode", args.hand, args.mode)
    solver = Solver(max_solutions=max(1, args.max_solutions))
    session = GameSession(board, args.hand, solver=solver)
    print(board_to_string(session.board))
    print()

    session.solve(best=args.mode == "best")
    solution = session.solution
    if solution is None:
        print("No solution.")
        return 1

    session.apply_full_solution()
    for node in session.tree.current_path()[1:]:
        print(describe_move(node.last_move))
    print()
    print(board_to_string(session.board))
    print(f"mobility: {solution.mobility}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
