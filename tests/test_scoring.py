import pytest

from klondike.cards import Card, build_deck
from klondike.generator import deal_from_deck
from klondike.scoring import (
    ALL_ACES_PENALTY,
    EARLY_STOCK_BONUS,
    RANK_VARIETY_BONUS,
    SINGLE_ACE_BONUS,
    VISIBLE_ACES_BONUS,
    CandidateSelector,
    naturalness_score,
    score_candidate,
)

# Deck positions that end up as the face-up top of each column.
TOP_POSITIONS = (0, 2, 5, 9, 14, 20, 27)


def _deal_with_tops(top_labels, stock_top=()):
    """Deal a deck whose column tops are *top_labels*.

    *stock_top* lists the next cards to be drawn, first draw first.
    """

    tops = [Card.parse(label, face_up=False) for label in top_labels]
    upcoming = [Card.parse(label, face_up=False) for label in stock_top]
    reserved = {card.key for card in tops + upcoming}
    filler = [card for card in build_deck() if card.key not in reserved]
    # Low ranks fill the earliest positions so they stay out of the stock top.
    filler.sort(key=lambda card: card.rank > 2)

    deck = [None] * 52
    for position, card in zip(TOP_POSITIONS, tops):
        deck[position] = card
    for offset, card in enumerate(upcoming):
        deck[51 - offset] = card
    slots = iter(filler)
    for position in range(52):
        if deck[position] is None:
            deck[position] = next(slots)
    return deal_from_deck(deck)


@pytest.mark.parametrize(
    "tops,ace_term",
    [
        (("AH", "AS", "5C", "6D", "7H", "8S", "9C"), VISIBLE_ACES_BONUS),
        (("AH", "AS", "AD", "6D", "7H", "8S", "9C"), VISIBLE_ACES_BONUS),
        (("AH", "4S", "5C", "6D", "7H", "8S", "9C"), SINGLE_ACE_BONUS),
        (("10H", "4S", "5C", "6D", "7H", "8S", "9C"), 0),
        (("AH", "AS", "AD", "AC", "7H", "8S", "9C"), -ALL_ACES_PENALTY),
    ],
)
def test_visible_ace_terms(tops, ace_term):
    state = _deal_with_tops(tops)
    distinct = len({Card.parse(label).rank for label in tops})
    expected = ace_term + RANK_VARIETY_BONUS * distinct
    upcoming_low = sum(1 for card in state.stock[-10:] if card.rank <= 2)
    assert upcoming_low == 0
    assert naturalness_score(state) == expected


def test_early_low_stock_cards_are_rewarded():
    tops = ("10H", "4S", "5C", "6D", "7H", "8S", "9C")
    plain = _deal_with_tops(tops)
    seeded = _deal_with_tops(tops, stock_top=("2H", "AC", "2S"))
    assert naturalness_score(seeded) - naturalness_score(plain) == 3 * EARLY_STOCK_BONUS


def test_score_candidate_weights_solved_count():
    state = _deal_with_tops(("10H", "4S", "5C", "6D", "7H", "8S", "9C"))
    score = score_candidate(state, 50)
    assert score.solved_count == 50
    assert score.total == 500 + naturalness_score(state)


def test_selector_ignores_candidates_below_threshold():
    state = _deal_with_tops(("AH", "AS", "5C", "6D", "7H", "8S", "9C"))
    selector = CandidateSelector(accept_threshold=48)
    assert selector.offer(state, 47) is False
    assert selector.best is None
    assert selector.attempts == 1
    assert selector.accepted == 0


def test_selector_keeps_the_earliest_of_equal_scores():
    first = _deal_with_tops(("AH", "AS", "5C", "6D", "7H", "8S", "9C"))
    twin = _deal_with_tops(("AD", "AC", "5S", "6H", "7S", "8H", "9D"))
    selector = CandidateSelector(accept_threshold=48)
    assert selector.offer(first, 50)
    assert not selector.offer(twin, 50)
    assert selector.best.state is first
    assert selector.best.attempt == 1
    assert selector.offer(twin, 52)
    assert selector.best.attempt == 3


def test_selector_is_satisfied_by_an_excellent_candidate():
    state = _deal_with_tops(("AH", "AS", "5C", "6D", "7H", "8S", "9C"))
    total = score_candidate(state, 52).total
    selector = CandidateSelector(accept_threshold=48, excellent_score=total)
    assert not selector.satisfied
    selector.offer(state, 51)
    assert not selector.satisfied
    selector.offer(state, 52)
    assert selector.satisfied
    assert not CandidateSelector(accept_threshold=0).satisfied
