"""Simulation profiles for the solvability playout."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping

from klondike.cards import DECK_SIZE

CYCLE_LIMITS = {
    "none": 0,
    "one": 1,
    "three": 3,
}


def _normalise_limit(value: Any, name: str, named: Mapping[str, int] | None = None) -> int:
    """Convert *value* into a strict non-negative integer limit.

    Profiles are often loaded from JSON or command-line input, so numeric
    strings, whole floats and (for stock cycles) names such as ``"three"`` are
    accepted.  ``ValueError`` flags recognised but invalid content and
    ``TypeError`` flags unsupported types.
    """

    if isinstance(value, bool):
        raise TypeError(f"Boolean values are not valid for {name}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{name} must be non-negative")
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value) or not value.is_integer():
            raise ValueError(f"{name} must be a whole number, got {value!r}")
        return _normalise_limit(int(value), name)
    if isinstance(value, str):
        token = value.strip().lower()
        if named and token in named:
            return named[token]
        try:
            parsed = int(token, 10)
        except ValueError as exc:
            raise ValueError(f"Unknown {name} value: {value!r}") from exc
        return _normalise_limit(parsed, name)
    raise TypeError(f"Unsupported {name} type: {type(value).__name__}")


@dataclass(frozen=True)
class SimulationProfile:
    """Caps and acceptance threshold for one simulator operating mode."""

    name: str
    max_moves: int
    max_stock_cycles: int | str
    stuck_limit: int
    accept_threshold: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_moves", _normalise_limit(self.max_moves, "max_moves"))
        object.__setattr__(
            self,
            "max_stock_cycles",
            _normalise_limit(self.max_stock_cycles, "max_stock_cycles", CYCLE_LIMITS),
        )
        object.__setattr__(self, "stuck_limit", _normalise_limit(self.stuck_limit, "stuck_limit"))
        threshold = _normalise_limit(self.accept_threshold, "accept_threshold")
        if threshold > DECK_SIZE:
            raise ValueError(f"accept_threshold cannot exceed {DECK_SIZE}")
        object.__setattr__(self, "accept_threshold", threshold)

    def accepts(self, solved_count: int) -> bool:
        return solved_count >= self.accept_threshold

    def with_overrides(self, **changes: Any) -> "SimulationProfile":
        """Copy the profile with some caps replaced; values are validated again."""
        return replace(self, **changes)

    def with_threshold(self, accept_threshold: int) -> "SimulationProfile":
        return self.with_overrides(accept_threshold=accept_threshold)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "max_moves": self.max_moves,
            "max_stock_cycles": self.max_stock_cycles,
            "stuck_limit": self.stuck_limit,
            "accept_threshold": self.accept_threshold,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationProfile":
        """Build a profile from a mapping; unrelated keys are ignored, missing ones are errors."""
        if not isinstance(data, Mapping):
            raise TypeError(f"Profile data must be a mapping, got {type(data).__name__}")
        names = [field.name for field in fields(cls)]
        missing = [name for name in names if name not in data]
        if missing:
            raise ValueError(f"Profile is missing: {', '.join(missing)}")
        return cls(**{name: data[name] for name in names})

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, payload: str) -> "SimulationProfile":
        return cls.from_dict(json.loads(payload))


STRICT = SimulationProfile(
    name="strict",
    max_moves=3000,
    max_stock_cycles=8,
    stuck_limit=200,
    accept_threshold=DECK_SIZE,
)

FLEXIBLE = SimulationProfile(
    name="flexible",
    max_moves=500,
    max_stock_cycles="three",
    stuck_limit=50,
    accept_threshold=48,
)

PROFILES = {profile.name: profile for profile in (STRICT, FLEXIBLE)}


__all__ = [
    "SimulationProfile",
    "STRICT",
    "FLEXIBLE",
    "PROFILES",
]
