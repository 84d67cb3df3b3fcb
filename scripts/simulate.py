#!/usr/bin/env python3
"""Deal Klondike games and grade them with the greedy solvability playout."""

from __future__ import annotations

import argparse
import logging
import random
from typing import Optional, Sequence

from klondike.generator import search_deal
from klondike.rules import PROFILES
from klondike.simulator import run_simulation
from klondike.state import DealMode

LOGGER = logging.getLogger("simulate")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the first deal. Subsequent deals advance the RNG deterministically.",
    )
    parser.add_argument(
        "--games",
        type=int,
        default=1,
        help="Number of deals to generate (default: 1).",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in DealMode],
        default=DealMode.SOLVABLE.value,
        help="Deal mode (default: solvable).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Use the first-game regime that requires all 52 cards to be cleared.",
    )
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        default="flexible",
        help="Simulation profile used to grade each deal (default: flexible).",
    )
    parser.add_argument(
        "--stuck-limit",
        default=None,
        help="Override the grading profile's stuck counter limit.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress per-game output and only print the summary line.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging from the generator.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.games < 1:
        LOGGER.error("--games must be at least 1")
        return 1

    master_seed = args.seed if args.seed is not None else random.randrange(0, 2**32)
    master_rng = random.Random(master_seed)
    profile = PROFILES[args.profile]
    if args.stuck_limit is not None:
        try:
            profile = profile.with_overrides(stuck_limit=args.stuck_limit)
        except (TypeError, ValueError) as exc:
            LOGGER.error("Invalid --stuck-limit: %s", exc)
            return 1

    accepted = 0
    total_solved = 0
    total_attempts = 0

    for game_index in range(args.games):
        if game_index == 0 and args.seed is not None:
            seed = args.seed & 0xFFFFFFFF
        else:
            seed = master_rng.randrange(0, 2**32)

        report = search_deal(args.mode, random.Random(seed), strict=args.strict)
        result = run_simulation(report.state, profile)
        total_solved += result.solved_count
        total_attempts += report.attempts
        if profile.accepts(result.solved_count):
            accepted += 1

        if not args.quiet:
            print(
                f"Game {game_index + 1}: seed={seed} tier={report.tier.value} "
                f"attempts={report.attempts} solved={result.solved_count} "
                f"moves={result.moves} cycles={result.stock_cycles} stop={result.stop_reason.value}"
            )

    acceptance = accepted / args.games * 100
    print(
        "Summary: "
        f"games={args.games} accepted={accepted} ({acceptance:.1f}%) "
        f"avg_solved={total_solved / args.games:.1f} avg_attempts={total_attempts / args.games:.1f}"
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
