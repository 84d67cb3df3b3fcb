"""Candidate scoring and best-of selection for the deal search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from klondike.cards import ACE
from klondike.state import GameState

SOLVED_WEIGHT = 10
VISIBLE_ACES_BONUS = 40
SINGLE_ACE_BONUS = 15
ALL_ACES_PENALTY = 80
RANK_VARIETY_BONUS = 5
EARLY_STOCK_BONUS = 3
EARLY_STOCK_WINDOW = 10


@dataclass(frozen=True)
class CandidateScore:
    solved_count: int
    naturalness: int

    @property
    def total(self) -> int:
        return self.solved_count * SOLVED_WEIGHT + self.naturalness


def naturalness_score(state: GameState) -> int:
    """Score how ordinary a fresh layout looks.

    Two or three visible aces read as a lucky deal; four read as rigged.
    Varied top ranks and a few low cards among the next stock draws are
    rewarded mildly.
    """

    tops = state.top_cards()
    visible_aces = sum(1 for card in tops if card.rank == ACE)

    score = 0
    if visible_aces == 4:
        score -= ALL_ACES_PENALTY
    elif visible_aces >= 2:
        score += VISIBLE_ACES_BONUS
    elif visible_aces == 1:
        score += SINGLE_ACE_BONUS

    score += RANK_VARIETY_BONUS * len({card.rank for card in tops})

    upcoming = state.stock[-EARLY_STOCK_WINDOW:]
    score += EARLY_STOCK_BONUS * sum(1 for card in upcoming if card.rank <= 2)
    return score


def score_candidate(state: GameState, solved_count: int) -> CandidateScore:
    return CandidateScore(solved_count=solved_count, naturalness=naturalness_score(state))


@dataclass
class Candidate:
    state: GameState
    score: CandidateScore
    attempt: int


@dataclass
class CandidateSelector:
    """Keep the best accepted candidate seen so far.

    Only candidates whose solved count reaches ``accept_threshold`` are
    eligible.  Ties keep the earlier candidate.
    """

    accept_threshold: int
    excellent_score: Optional[int] = None
    attempts: int = 0
    accepted: int = 0
    best: Optional[Candidate] = field(default=None)

    def offer(self, state: GameState, solved_count: int) -> bool:
        """Record one attempt; return ``True`` when it became the best."""

        self.attempts += 1
        if solved_count < self.accept_threshold:
            return False
        self.accepted += 1
        score = score_candidate(state, solved_count)
        if self.best is not None and score.total <= self.best.score.total:
            return False
        self.best = Candidate(state=state, score=score, attempt=self.attempts)
        return True

    @property
    def satisfied(self) -> bool:
        if self.best is None or self.excellent_score is None:
            return False
        return self.best.score.total >= self.excellent_score
