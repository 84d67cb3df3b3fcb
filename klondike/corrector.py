"""Keep a game in progress from drifting into practical unsolvability.

After a move reveals a card, :func:`ensure_solvability` re-grades the live
board.  When the playout falls below the acceptance threshold, the cards the
player has not seen yet (face-down tableau cards and the stock) are shuffled
back into the same slots until a better arrangement turns up.  Nothing face-up
ever changes.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

from klondike.cards import Card
from klondike.rules import FLEXIBLE, SimulationProfile
from klondike.simulator import simulate_solvability
from klondike.state import DealMode, GameState

LOGGER = logging.getLogger(__name__)

Slot = Tuple[int, int]


@dataclass(frozen=True)
class CorrectorConfig:
    cooldown_seconds: float = 3.0
    min_hidden_cards: int = 3
    max_attempts: int = 50
    accept_threshold: int = 44
    target_threshold: int = 50
    profile: SimulationProfile = FLEXIBLE

    def __post_init__(self) -> None:
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be non-negative")
        if self.min_hidden_cards < 0 or self.max_attempts < 0:
            raise ValueError("min_hidden_cards and max_attempts must be non-negative")
        if not 0 <= self.accept_threshold <= self.target_threshold <= 52:
            raise ValueError("Thresholds must satisfy 0 <= accept <= target <= 52")


@dataclass(frozen=True)
class CorrectionReport:
    state: GameState
    changed: bool
    reason: str
    before: Optional[int] = None
    after: Optional[int] = None
    attempts: int = 0


def hidden_slots(state: GameState) -> List[Slot]:
    """Return ``(column, row)`` for every face-down tableau card."""

    return [
        (column_index, row)
        for column_index, column in enumerate(state.tableau)
        for row, card in enumerate(column)
        if not card.face_up
    ]


def _skip_reason(state: GameState, config: CorrectorConfig) -> Optional[str]:
    if state.is_won:
        return "won"
    if state.deal_mode is DealMode.UNSOLVABLE:
        return "unsolvable_mode"
    if state.hidden_count < config.min_hidden_cards:
        return "too_few_hidden"
    return None


def _reassign(state: GameState, slots: List[Slot], pool: List[Card]) -> GameState:
    tableau = [list(column) for column in state.tableau]
    for (column, row), card in zip(slots, pool):
        tableau[column][row] = card.turned(False)
    stock = tuple(card.turned(False) for card in pool[len(slots) :])
    return state.with_changes(tableau=tuple(tuple(column) for column in tableau), stock=stock)


def rearrange_hidden_cards(
    state: GameState,
    rng: Optional[random.Random] = None,
    config: Optional[CorrectorConfig] = None,
) -> CorrectionReport:
    """Re-grade *state* and reshuffle its hidden cards when that helps.

    The returned state differs from *state* only in the order of face-down
    tableau cards and stock cards, and only when the playout improves.
    """

    config = config or CorrectorConfig()
    reason = _skip_reason(state, config)
    if reason is not None:
        return CorrectionReport(state=state, changed=False, reason=reason)

    profile = config.profile
    current = simulate_solvability(state, profile=profile)
    if current >= config.accept_threshold:
        return CorrectionReport(state=state, changed=False, reason="healthy", before=current, after=current)

    rng = rng if rng is not None else random.Random()
    slots = hidden_slots(state)
    pool = [state.tableau[column][row] for column, row in slots] + list(state.stock)

    best_state: Optional[GameState] = None
    best_count = current
    attempts = 0
    for attempts in range(1, config.max_attempts + 1):
        rng.shuffle(pool)
        candidate = _reassign(state, slots, pool)
        solved = simulate_solvability(candidate, profile=profile)
        if solved > best_count:
            best_state, best_count = candidate, solved
        if best_count >= config.target_threshold:
            break

    if best_state is None:
        LOGGER.debug(
            "No better hidden-card order found in %d attempts (solved=%d/52)", attempts, current
        )
        return CorrectionReport(
            state=state,
            changed=False,
            reason="no_improvement",
            before=current,
            after=current,
            attempts=attempts,
        )

    LOGGER.info(
        "Rearranged %d hidden cards: solved %d/52 -> %d/52 after %d attempts",
        len(pool),
        current,
        best_count,
        attempts,
    )
    return CorrectionReport(
        state=best_state,
        changed=True,
        reason="rearranged",
        before=current,
        after=best_count,
        attempts=attempts,
    )


def ensure_solvability(
    state: GameState,
    now: float,
    last_correction: Optional[float],
    *,
    rng: Optional[random.Random] = None,
    config: Optional[CorrectorConfig] = None,
) -> tuple[GameState, Optional[float]]:
    """Run the corrector unless it ran within the cooldown window.

    Returns the (possibly rearranged) state and the timestamp the caller must
    pass back on the next call.  The timestamp only advances when the board
    was actually re-graded.
    """

    config = config or CorrectorConfig()
    if last_correction is not None and now - last_correction < config.cooldown_seconds:
        LOGGER.debug("Correction skipped: cooldown active")
        return state, last_correction

    reason = _skip_reason(state, config)
    if reason is not None:
        LOGGER.debug("Correction skipped: %s", reason)
        return state, last_correction

    report = rearrange_hidden_cards(state, rng, config)
    return report.state, now
