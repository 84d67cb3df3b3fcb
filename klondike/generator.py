"""Deal generation biased toward solvable, ordinary-looking layouts.

Three modes are supported:

``SOLVABLE``
    Searches shuffles that seed a few low cards into the face-up slots, grades
    each with the greedy playout and keeps the best scoring one.  When nothing
    passes, it degrades to checked uniform deals and finally to an unchecked
    random deal.
``UNSOLVABLE``
    Buries every ace under a King-topped column so the playout cannot start a
    foundation.  Used for practice games.
``RANDOM``
    A plain uniform shuffle.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

from klondike.cards import ACE, KING, Card, build_deck
from klondike.rules import FLEXIBLE, STRICT, SimulationProfile
from klondike.scoring import CandidateSelector, score_candidate
from klondike.simulator import simulate_solvability
from klondike.state import TABLEAU_COLUMNS, DealMode, GameState

LOGGER = logging.getLogger(__name__)

ACE_WEIGHTS = ((1, 40), (2, 45), (3, 15))


class DealTier(str, Enum):
    """Which step of the generation chain produced a deal."""

    BIASED = "biased"
    BASIC = "basic"
    RANDOM = "random"
    UNSOLVABLE = "unsolvable"


@dataclass(frozen=True)
class GeneratorConfig:
    """Weights and budgets for the biased deal search."""

    ace_weights: tuple[tuple[int, int], ...] = ACE_WEIGHTS
    twos_range: tuple[int, int] = (2, 3)
    threes_range: tuple[int, int] = (1, 2)
    max_attempts: int = 300
    strict_max_attempts: int = 500
    basic_attempts: int = 100
    excellent_score: int = 585
    stock_swap_chance: float = 0.3
    stock_swap_span: int = 4

    def __post_init__(self) -> None:
        if not self.ace_weights:
            raise ValueError("ace_weights must not be empty")
        for count, weight in self.ace_weights:
            if not 0 <= count <= 3:
                raise ValueError("Between 0 and 3 aces may be seeded face-up")
            if weight < 0:
                raise ValueError("ace_weights must be non-negative")
        for name in ("twos_range", "threes_range"):
            low, high = getattr(self, name)
            if not 0 <= low <= high <= 4:
                raise ValueError(f"{name} must satisfy 0 <= low <= high <= 4")
        if min(self.max_attempts, self.strict_max_attempts, self.basic_attempts) < 0:
            raise ValueError("Attempt budgets must be non-negative")
        if not 0.0 <= self.stock_swap_chance <= 1.0:
            raise ValueError("stock_swap_chance must be between 0 and 1")
        if self.stock_swap_span < 0:
            raise ValueError("stock_swap_span must be non-negative")


@dataclass(frozen=True)
class DealReport:
    state: GameState
    tier: DealTier
    attempts: int
    solved_count: Optional[int] = None
    score: Optional[int] = None


# ----------------------------------------------------------------------
# Layout builders
# ----------------------------------------------------------------------
def deal_from_deck(
    deck: Sequence[Card], *, deal_mode: DealMode = DealMode.RANDOM
) -> GameState:
    """Deal *deck* the standard way: column ``n`` gets ``n + 1`` cards."""

    if len(deck) != 52:
        raise ValueError(f"A deal needs 52 cards, got {len(deck)}")
    tableau: List[List[Card]] = [[] for _ in range(TABLEAU_COLUMNS)]
    index = 0
    for column in range(TABLEAU_COLUMNS):
        for row in range(column + 1):
            tableau[column].append(deck[index].turned(row == column))
            index += 1
    return GameState.new(tableau, deck[index:], deal_mode=deal_mode)


def _shuffled_deal(rng: random.Random, deal_mode: DealMode) -> GameState:
    deck = build_deck()
    rng.shuffle(deck)
    return deal_from_deck(deck, deal_mode=deal_mode)


def _order_stock(cards: List[Card], rng: random.Random, config: GeneratorConfig) -> List[Card]:
    # The last element is drawn first, so low ranks go to the end.
    ordered = sorted(cards, key=lambda card: -card.rank)
    last = len(ordered) - 1
    for index in range(len(ordered)):
        if rng.random() < config.stock_swap_chance:
            other = min(last, index + rng.randint(0, config.stock_swap_span))
            ordered[index], ordered[other] = ordered[other], ordered[index]
    return ordered


def _biased_candidate(rng: random.Random, config: GeneratorConfig) -> GameState:
    deck = build_deck()
    aces = [card for card in deck if card.rank == ACE]
    twos = [card for card in deck if card.rank == 2]
    threes = [card for card in deck if card.rank == 3]
    low = [card for card in deck if 4 <= card.rank <= 6]
    rest = [card for card in deck if card.rank >= 7]
    for tier in (aces, twos, threes, low, rest):
        rng.shuffle(tier)

    counts, weights = zip(*config.ace_weights)
    visible_aces = rng.choices(counts, weights=weights)[0]
    visible_twos = rng.randint(*config.twos_range)
    visible_threes = rng.randint(*config.threes_range)

    pool = aces[:visible_aces] + twos[:visible_twos] + threes[:visible_threes]
    pool = pool[:TABLEAU_COLUMNS]
    seeded = {card.key for card in pool}
    low_fill = [card for card in low if card.key not in seeded][: TABLEAU_COLUMNS - len(pool)]
    pool += low_fill
    seeded.update(card.key for card in low_fill)
    rng.shuffle(pool)

    remaining = [card for card in aces + twos + threes + low + rest if card.key not in seeded]
    rng.shuffle(remaining)

    tableau: List[List[Card]] = []
    index = 0
    for column in range(TABLEAU_COLUMNS):
        hidden = [card.turned(False) for card in remaining[index : index + column]]
        index += column
        tableau.append(hidden + [pool[column].turned(True)])

    stock = _order_stock(remaining[index:], rng, config)
    return GameState.new(tableau, stock, deal_mode=DealMode.SOLVABLE)


def _unsolvable_deal(rng: random.Random) -> GameState:
    deck = build_deck()
    aces = [card for card in deck if card.rank == ACE]
    twos = [card for card in deck if card.rank == 2]
    threes = [card for card in deck if card.rank == 3]
    courts = [card for card in deck if card.rank in (11, 12)]
    kings = [card for card in deck if card.rank == KING]
    mids = [card for card in deck if 4 <= card.rank <= 10]
    for tier in (aces, twos, threes, courts, kings, mids):
        rng.shuffle(tier)

    # Columns 3-6 read bottom to top: ace, two, court cards, King.
    burial_columns = range(3, TABLEAU_COLUMNS)
    extra = sum(column - 2 for column in burial_columns) - len(courts)
    fillers = courts + mids[:extra]
    mids = mids[extra:]

    tableau: List[List[Card]] = []
    for column in range(3):
        tableau.append([mids.pop() for _ in range(column + 1)])
    for column, ace, two, king in zip(burial_columns, aces, twos, kings):
        middle = [fillers.pop(0) for _ in range(column - 2)]
        tableau.append([ace, two] + middle + [king])

    tableau = [
        [card.turned(row == len(column) - 1) for row, card in enumerate(column)]
        for column in tableau
    ]
    # Threes sit at the bottom of the stock so they are drawn last.
    stock = threes + mids
    return GameState.new(tableau, stock, deal_mode=DealMode.UNSOLVABLE)


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------
def search_deal(
    mode: Union[DealMode, str] = DealMode.SOLVABLE,
    rng: Optional[random.Random] = None,
    *,
    strict: bool = False,
    config: Optional[GeneratorConfig] = None,
    profile: Optional[SimulationProfile] = None,
) -> DealReport:
    """Generate a deal and report how it was obtained.

    *strict* selects the first-game regime: every accepted candidate must be
    fully cleared by the playout.  *profile* overrides the simulation profile
    chosen by *strict*.
    """

    mode = DealMode.parse(mode)
    rng = rng if rng is not None else random.Random()
    config = config or GeneratorConfig()

    if mode is DealMode.UNSOLVABLE:
        return DealReport(state=_unsolvable_deal(rng), tier=DealTier.UNSOLVABLE, attempts=1)
    if mode is DealMode.RANDOM:
        return DealReport(state=_shuffled_deal(rng, DealMode.RANDOM), tier=DealTier.RANDOM, attempts=1)

    if profile is None:
        profile = STRICT if strict else FLEXIBLE
    budget = config.strict_max_attempts if strict else config.max_attempts

    selector = CandidateSelector(profile.accept_threshold, config.excellent_score)
    for _ in range(budget):
        candidate = _biased_candidate(rng, config)
        solved = simulate_solvability(candidate, profile=profile)
        if selector.offer(candidate, solved):
            LOGGER.debug(
                "Attempt %d: new best candidate score=%d solved=%d/52",
                selector.attempts,
                selector.best.score.total,
                solved,
            )
        if selector.satisfied:
            break

    best = selector.best
    if best is not None:
        LOGGER.info(
            "Using %s deal from attempt %d of %d (score=%d solved=%d/52)",
            profile.name,
            best.attempt,
            selector.attempts,
            best.score.total,
            best.score.solved_count,
        )
        return DealReport(
            state=best.state,
            tier=DealTier.BIASED,
            attempts=selector.attempts,
            solved_count=best.score.solved_count,
            score=best.score.total,
        )

    LOGGER.info(
        "No biased candidate reached %d/52 in %d attempts; trying basic deals",
        profile.accept_threshold,
        selector.attempts,
    )
    for attempt in range(1, config.basic_attempts + 1):
        candidate = _shuffled_deal(rng, DealMode.SOLVABLE)
        solved = simulate_solvability(candidate, profile=profile)
        if profile.accepts(solved):
            LOGGER.info("Basic deal accepted after %d attempts (solved=%d/52)", attempt, solved)
            return DealReport(
                state=candidate,
                tier=DealTier.BASIC,
                attempts=selector.attempts + attempt,
                solved_count=solved,
                score=score_candidate(candidate, solved).total,
            )

    LOGGER.warning(
        "No deal reached %d/52 after %d attempts; dealing an unchecked random game",
        profile.accept_threshold,
        selector.attempts + config.basic_attempts,
    )
    return DealReport(
        state=_shuffled_deal(rng, DealMode.SOLVABLE),
        tier=DealTier.RANDOM,
        attempts=selector.attempts + config.basic_attempts + 1,
    )


def generate_deal(
    mode: Union[DealMode, str] = DealMode.SOLVABLE,
    rng: Optional[random.Random] = None,
    *,
    strict: bool = False,
    config: Optional[GeneratorConfig] = None,
) -> GameState:
    """Return a freshly dealt :class:`GameState` for *mode*."""

    return search_deal(mode, rng, strict=strict, config=config).state
