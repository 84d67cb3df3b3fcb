#!/usr/bin/env python3
"""Benchmark the deal generator across modes.

Each generated deal contributes one row (mode, strict, tier, attempts,
solved_count, score, elapsed_ms) to a pandas frame.  The frame can be written
to CSV or Parquet and is summarised per mode with solved-count and latency
percentiles.
"""
from __future__ import annotations

import argparse
import importlib.util
import json
import logging
import random
import time
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from klondike.generator import search_deal
from klondike.rules import FLEXIBLE, STRICT
from klondike.simulator import simulate_solvability
from klondike.state import DealMode

LOGGER = logging.getLogger("benchmark")

COLUMNS = ["mode", "strict", "tier", "attempts", "solved_count", "score", "elapsed_ms"]
DEFAULT_MODES = ("solvable", "strict", "random", "unsolvable")


class BenchmarkError(RuntimeError):
    """Raised when the benchmark cannot be run or its output written."""


def _parse_modes(raw: str) -> list[tuple[DealMode, bool]]:
    """Turn ``"solvable,strict"`` into ``(DealMode, strict)`` pairs.

    ``strict`` is shorthand for a solvable deal in the first-game regime.
    """

    selected: list[tuple[DealMode, bool]] = []
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        if token == "strict":
            selected.append((DealMode.SOLVABLE, True))
            continue
        try:
            selected.append((DealMode.parse(token), False))
        except ValueError as exc:
            raise BenchmarkError(f"Unknown mode: {token!r}") from exc
    if not selected:
        raise BenchmarkError("--modes must name at least one mode")
    return selected


def collect_samples(
    games: int,
    modes: Sequence[tuple[DealMode, bool]],
    rng: random.Random,
) -> pd.DataFrame:
    rows = []
    for mode, strict in modes:
        profile = STRICT if strict else FLEXIBLE
        for _ in range(games):
            started = time.perf_counter()
            report = search_deal(mode, rng, strict=strict)
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            solved = report.solved_count
            if solved is None:
                solved = simulate_solvability(report.state, profile=profile)
            rows.append(
                {
                    "mode": mode.value,
                    "strict": strict,
                    "tier": report.tier.value,
                    "attempts": report.attempts,
                    "solved_count": solved,
                    "score": report.score,
                    "elapsed_ms": elapsed_ms,
                }
            )
            LOGGER.debug("%s strict=%s tier=%s solved=%d", mode.value, strict, report.tier.value, solved)
    return pd.DataFrame(rows, columns=COLUMNS)


def summarise(frame: pd.DataFrame) -> list[dict[str, object]]:
    """Return one summary mapping per (mode, strict) group."""

    summaries: list[dict[str, object]] = []
    if frame.empty:
        return summaries

    for (mode, strict), group in frame.groupby(["mode", "strict"], sort=False):
        solved = group["solved_count"].to_numpy(dtype=float)
        elapsed = group["elapsed_ms"].to_numpy(dtype=float)
        summaries.append(
            {
                "mode": mode,
                "strict": bool(strict),
                "games": int(len(group)),
                "solved_p10": float(np.percentile(solved, 10)),
                "solved_p50": float(np.percentile(solved, 50)),
                "solved_p90": float(np.percentile(solved, 90)),
                "won_rate": float(np.mean(solved == 52)),
                "attempts_mean": float(group["attempts"].mean()),
                "elapsed_p50_ms": float(np.percentile(elapsed, 50)),
                "elapsed_p95_ms": float(np.percentile(elapsed, 95)),
                "tiers": {str(k): int(v) for k, v in group["tier"].value_counts().sort_index().items()},
            }
        )
    return summaries


def _pyarrow_available() -> bool:
    return importlib.util.find_spec("pyarrow") is not None


def write_frame(frame: pd.DataFrame, path: Path) -> None:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(path, index=False)
        return
    if suffix == ".parquet":
        if not _pyarrow_available():
            raise BenchmarkError(
                f"{path}: Writing Parquet files requires the 'pyarrow' package to be installed"
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_parquet(path, index=False)
        return
    raise BenchmarkError(f"{path}: Unsupported output format '{path.suffix}'")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--games",
        type=int,
        default=10,
        help="Deals to generate per mode (default: 10)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the shared random generator",
    )
    parser.add_argument(
        "--modes",
        default=",".join(DEFAULT_MODES),
        help="Comma separated modes: solvable, strict, random, unsolvable",
    )
    parser.add_argument(
        "--output",
        help="Optional .csv or .parquet path for the raw samples",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the per-mode summary as JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.games < 1:
            raise BenchmarkError("--games must be at least 1")
        modes = _parse_modes(args.modes)
        frame = collect_samples(args.games, modes, random.Random(args.seed))
        if args.output:
            write_frame(frame, Path(args.output))
    except BenchmarkError as exc:
        LOGGER.error("%s", exc)
        return 1

    summaries = summarise(frame)
    if args.json:
        print(json.dumps(summaries, indent=2, sort_keys=True))
    else:
        for entry in summaries:
            label = f"{entry['mode']}{' (strict)' if entry['strict'] else ''}"
            print(
                f"{label}: games={entry['games']} "
                f"solved p10/p50/p90={entry['solved_p10']:.0f}/{entry['solved_p50']:.0f}/{entry['solved_p90']:.0f} "
                f"won={entry['won_rate'] * 100:.1f}% attempts={entry['attempts_mean']:.1f} "
                f"p50={entry['elapsed_p50_ms']:.1f}ms p95={entry['elapsed_p95_ms']:.1f}ms"
            )
    if args.output:
        LOGGER.info("Wrote %s rows to %s", f"{len(frame):,}", args.output)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
