"""Profile the best-of solver using :mod:`blockpuzzle.perf`.

Run with::

    PYTHONPATH=src python examples/profile_solver.py

Each simulation draws random boards and hands, runs the solver and, when a
solution exists, replays it through a session.  Pass ``--help`` to see options
for the number of simulations and periodic logging summaries.
"""

from __future__ import annotations

import argparse
import logging
import random

from blockpuzzle.bitboard import TOTAL_CELLS
from blockpuzzle.perf import SearchProfiler
from blockpuzzle.pieces import DEFAULT_CATALOG, HAND_SIZE
from blockpuzzle.session import GameSession
from blockpuzzle.solver import DEFAULT_MAX_SOLUTIONS, Solver


LOGGER = logging.getLogger(__name__)


def random_board(rng: random.Random, density: float) -> int:
    board = 0
    for index in range(TOTAL_CELLS):
        if rng.random() < density:
            board |= 1 << index
    return board


def run_simulation(
    rounds: int,
    profiler: SearchProfiler,
    *,
    seed: int,
    density: float = 0.35,
    max_solutions: int = DEFAULT_MAX_SOLUTIONS,
) -> int:
    """Solve ``rounds`` random positions and return how many were solvable."""

    rng = random.Random(seed)
    piece_ids = list(DEFAULT_CATALOG)
    solver = Solver(max_solutions=max_solutions, profiler=profiler)
    solved = 0
    for _ in range(rounds):
        hand = [rng.choice(piece_ids) for _ in range(HAND_SIZE)]
        session = GameSession(random_board(rng, density), hand, solver=solver)
        with profiler.section("session.solve"):
            solution = session.solve()
        if solution is None:
            continue
        solved += 1
        with profiler.section("session.apply"):
            session.apply_full_solution()
    return solved


def _format_summary(summary: list[dict[str, float | int]], limit: int = 10) -> str:
    if not summary:
        return "No timings recorded."
    parts: list[str] = []
    for row in summary[:limit]:
        total_ms = row["total"] * 1000.0
        avg_ms = row["average"] * 1000.0
        parts.append(
            f"{row['name']}: total={total_ms:.3f}ms, count={int(row['count'])}, avg={avg_ms:.3f}ms"
        )
    return "; ".join(parts)


def print_summary(profiler: SearchProfiler, limit: int = 10) -> None:
    summary = profiler.summary(sort_by="total")
    if not summary:
        print("No timings recorded.")
        return
    width = max(len(row["name"]) for row in summary[:limit])
    header = f"{'Section':<{width}}  Total (ms)  Count  Avg (ms)"
    print(header)
    print("-" * len(header))
    for row in summary[:limit]:
        print(
            f"{row['name']:<{width}}  {row['total'] * 1000.0:10.3f}"
            f"  {int(row['count']):5d}  {row['average'] * 1000.0:8.3f}"
        )
    for name, value in sorted(profiler.counters.items()):
        print(f"{name}: {value}")


def log_summary(
    profiler: SearchProfiler, *, limit: int, index: int
) -> list[dict[str, float | int]]:
    summary = profiler.summary(sort_by="total")
    limit = max(0, limit)
    limited_summary = summary[:limit] if limit else []
    message = _format_summary(limited_summary, limit=limit)
    LOGGER.info("Simulation %d performance: %s", index, message)
    return limited_summary


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--rounds", type=int, default=50, help="Positions per simulation.")
    parser.add_argument("--simulations", type=int, default=1, help="How many simulations to run.")
    parser.add_argument("--seed", type=int, default=42, help="Seed of the first simulation.")
    parser.add_argument(
        "--density", type=float, default=0.35, help="Probability that a cell starts occupied."
    )
    parser.add_argument(
        "--max-solutions",
        type=int,
        default=DEFAULT_MAX_SOLUTIONS,
        help="Cap on complete solutions compared per position.",
    )
    parser.add_argument(
        "--log-interval",
        type=int,
        default=20,
        help="Emit a performance summary every N simulations (0 disables periodic logging).",
    )
    parser.add_argument(
        "--summary-limit",
        type=int,
        default=10,
        help="Maximum number of sections to include in summaries.",
    )
    parser.add_argument(
        "--no-table",
        dest="print_table",
        action="store_false",
        help="Skip printing the final tabular summary (logging only).",
    )
    parser.set_defaults(print_table=True)
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(message)s")

    profiler = SearchProfiler()
    last_summary: list[dict[str, float | int]] = []
    for sim_idx in range(1, args.simulations + 1):
        solved = run_simulation(
            args.rounds,
            profiler,
            seed=args.seed + sim_idx - 1,
            density=args.density,
            max_solutions=args.max_solutions,
        )
        LOGGER.info("Simulation %d solved %d/%d positions", sim_idx, solved, args.rounds)
        should_log = args.log_interval > 0 and sim_idx % args.log_interval == 0
        if should_log or sim_idx == args.simulations:
            last_summary = log_summary(profiler, limit=args.summary_limit, index=sim_idx)
            if sim_idx != args.simulations:
                profiler.reset()

    if args.print_table and last_summary:
        print_summary(profiler, limit=args.summary_limit)


if __name__ == "__main__":
    main()
