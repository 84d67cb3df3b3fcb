"""Greedy solvability playout used to grade deals.

The playout sees every card, including face-down ones, and follows a fixed
priority list until nothing applies.  It is a heuristic oracle: a low count
does not prove a deal unwinnable, and a high count does not prove it winnable
for a human who cannot see the hidden cards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from klondike.cards import (
    KING,
    SUITS,
    Card,
    DECK_SIZE,
    can_place_on_foundation,
    can_place_on_tableau,
    opposite_suits,
)
from klondike.rules import FLEXIBLE, STRICT, SimulationProfile
from klondike.state import GameState


class SimulationMode(str, Enum):
    STRICT = "strict"
    FLEXIBLE = "flexible"

    @property
    def profile(self) -> SimulationProfile:
        return STRICT if self is SimulationMode.STRICT else FLEXIBLE


class StopReason(str, Enum):
    WON = "won"
    MOVE_CAP = "move_cap"
    CYCLE_CAP = "cycle_cap"
    STUCK = "stuck"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class SimulationResult:
    solved_count: int
    moves: int
    stock_cycles: int
    stop_reason: StopReason

    @property
    def won(self) -> bool:
        return self.solved_count == DECK_SIZE


class GreedyPlayout:
    """Mutable working copy of a :class:`GameState` driven by the greedy policy."""

    def __init__(self, state: GameState, profile: SimulationProfile) -> None:
        self.profile = profile
        self.tableau: List[List[Card]] = [list(column) for column in state.tableau]
        # Face-down cards always form a prefix of their column.
        self.face_down: List[int] = [
            sum(1 for card in column if not card.face_up) for column in state.tableau
        ]
        self.stock: List[Card] = list(state.stock)
        self.waste: List[Card] = list(state.waste)
        self.foundations = {suit: list(state.foundation(suit)) for suit in SUITS}
        self.moves = 0
        self.stock_cycles = 0

    # ------------------------------------------------------------------
    # Board helpers
    # ------------------------------------------------------------------
    def foundation_count(self) -> int:
        return sum(len(pile) for pile in self.foundations.values())

    def is_won(self) -> bool:
        return self.foundation_count() == DECK_SIZE

    def top_card(self, index: int) -> Optional[Card]:
        column = self.tableau[index]
        if len(column) > self.face_down[index]:
            return column[-1]
        return None

    def flip_if_needed(self, index: int) -> None:
        column = self.tableau[index]
        if column and len(column) == self.face_down[index]:
            self.face_down[index] -= 1

    def can_move_to_foundation(self, card: Card) -> bool:
        return can_place_on_foundation(self.foundations[card.suit], card)

    def is_safe_foundation_move(self, card: Card) -> bool:
        if card.rank <= 2:
            return True
        lowest_opposite = min(len(self.foundations[suit]) for suit in opposite_suits(card.color))
        return card.rank <= lowest_opposite + 2

    def accepts_on_tableau(self, card: Card, index: int) -> bool:
        column = self.tableau[index]
        if not column:
            return card.rank == KING
        top = self.top_card(index)
        return top is not None and can_place_on_tableau(top, card)

    # ------------------------------------------------------------------
    # Greedy strategies
    # ------------------------------------------------------------------
    def try_promote(self, *, safe_only: bool) -> bool:
        for index in range(len(self.tableau)):
            card = self.top_card(index)
            if card is None or not self.can_move_to_foundation(card):
                continue
            if safe_only and not self.is_safe_foundation_move(card):
                continue
            self.foundations[card.suit].append(self.tableau[index].pop())
            self.flip_if_needed(index)
            return True

        if not self.waste:
            return False
        card = self.waste[-1]
        if not self.can_move_to_foundation(card):
            return False
        if safe_only and not self.is_safe_foundation_move(card):
            return False
        self.foundations[card.suit].append(self.waste.pop())
        return True

    def try_reveal(self) -> bool:
        for src_index, column in enumerate(self.tableau):
            start = self.face_down[src_index]
            if start == 0 or start >= len(column):
                continue
            leading = column[start]
            for dest_index, dest_column in enumerate(self.tableau):
                if dest_index == src_index:
                    continue
                if not dest_column and leading.rank != KING:
                    continue
                if not self.accepts_on_tableau(leading, dest_index):
                    continue
                dest_column.extend(column[start:])
                del column[start:]
                self.flip_if_needed(src_index)
                return True
        return False

    def try_waste_to_tableau(self) -> bool:
        if not self.waste:
            return False
        card = self.waste[-1]
        for index in range(len(self.tableau)):
            if self.accepts_on_tableau(card, index):
                self.tableau[index].append(self.waste.pop())
                return True
        return False

    def draw_from_stock(self) -> bool:
        if not self.stock:
            return False
        self.waste.append(self.stock.pop())
        return True

    def recycle_stock(self) -> bool:
        if not self.waste or self.stock_cycles >= self.profile.max_stock_cycles:
            return False
        self.stock.extend(reversed(self.waste))
        self.waste.clear()
        self.stock_cycles += 1
        return True

    # ------------------------------------------------------------------
    # Game loop
    # ------------------------------------------------------------------
    def play(self) -> SimulationResult:
        stuck = 0
        last_count = self.foundation_count()
        reason = StopReason.MOVE_CAP

        while self.moves < self.profile.max_moves:
            if self.is_won():
                reason = StopReason.WON
                break
            self.moves += 1

            if (
                self.try_promote(safe_only=True)
                or self.try_reveal()
                or self.try_waste_to_tableau()
                or self.try_promote(safe_only=False)
            ):
                stuck = 0
                continue

            if not self.draw_from_stock():
                if self.waste and self.stock_cycles >= self.profile.max_stock_cycles:
                    reason = StopReason.CYCLE_CAP
                    break
                if not self.recycle_stock():
                    reason = StopReason.EXHAUSTED
                    break

            count = self.foundation_count()
            if count == last_count:
                stuck += 1
                if stuck > self.profile.stuck_limit:
                    reason = StopReason.STUCK
                    break
            else:
                stuck = 0
                last_count = count
        else:
            if self.is_won():
                reason = StopReason.WON

        return SimulationResult(
            solved_count=self.foundation_count(),
            moves=self.moves,
            stock_cycles=self.stock_cycles,
            stop_reason=reason,
        )


def _resolve_profile(
    mode: Union[SimulationMode, str], profile: Optional[SimulationProfile]
) -> SimulationProfile:
    if profile is not None:
        return profile
    return SimulationMode(mode).profile


def run_simulation(
    state: GameState,
    profile: SimulationProfile = FLEXIBLE,
) -> SimulationResult:
    """Play *state* out under *profile* and report how far the playout got."""

    return GreedyPlayout(state, profile).play()


def simulate_solvability(
    state: GameState,
    mode: Union[SimulationMode, str] = SimulationMode.FLEXIBLE,
    *,
    profile: Optional[SimulationProfile] = None,
) -> int:
    """Return how many of the 52 cards the greedy playout retires (0-52).

    The input state is never modified and the result depends only on it.
    """

    return run_simulation(state, _resolve_profile(mode, profile)).solved_count


def is_acceptable(
    solved_count: int,
    mode: Union[SimulationMode, str, SimulationProfile] = SimulationMode.FLEXIBLE,
) -> bool:
    if isinstance(mode, SimulationProfile):
        return mode.accepts(solved_count)
    return SimulationMode(mode).profile.accepts(solved_count)
