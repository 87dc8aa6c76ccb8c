"""Bitboard engine, solver and branching history for an 8x8 block puzzle."""

from .bitboard import BOARD_SIZE, board_to_grid, board_to_string, grid_to_board
from .engine import PlacementResult, evaluate, mobility, place
from .errors import InvalidMoveError, NodeNotFoundError
from .perf import SearchProfiler, SectionStat
from .pieces import DEFAULT_CATALOG, Piece, PieceCatalog, Placement, load_catalog
from .session import DEFAULT_HAND, GameSession
from .solver import Solution, SolutionStep, Solver, SolverStats
from .state_tree import GameNode, MoveKind, StateTree, create_initial_tree

__all__ = [
    "BOARD_SIZE",
    "board_to_grid",
    "board_to_string",
    "grid_to_board",
    "PlacementResult",
    "evaluate",
    "mobility",
    "place",
    "InvalidMoveError",
    "NodeNotFoundError",
    "SearchProfiler",
    "SectionStat",
    "DEFAULT_CATALOG",
    "Piece",
    "PieceCatalog",
    "Placement",
    "load_catalog",
    "DEFAULT_HAND",
    "GameSession",
    "Solution",
    "SolutionStep",
    "Solver",
    "SolverStats",
    "GameNode",
    "MoveKind",
    "StateTree",
    "create_initial_tree",
]
