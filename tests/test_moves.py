import random

import pytest

from klondike.cards import RANKS, SUITS, Card, build_deck
from klondike.generator import generate_deal
from klondike.moves import (
    DrawStock,
    MoveToFoundation,
    MoveToTableau,
    PileRef,
    RejectReason,
    apply_move,
    has_legal_moves,
    legal_moves,
    move_from_dict,
    move_to_dict,
    movable_run,
)
from klondike.state import DealMode, GameState, StateError


def _card(label):
    face_up = not label.startswith("?")
    return Card.parse(label.lstrip("?"), face_up=face_up)


def _board(columns, foundations=None, waste=()):
    """Build a complete state; cards not placed anywhere go to the stock.

    Labels prefixed with ``?`` are face-down.
    """

    tableau = [[_card(label) for label in column] for column in columns]
    tableau += [[] for _ in range(7 - len(tableau))]
    piles = []
    for suit in SUITS:
        top = (foundations or {}).get(suit, 0)
        piles.append(tuple(Card(suit, rank, True) for rank in range(1, top + 1)))
    waste_cards = tuple(_card(label) for label in waste)
    placed = {card.key for column in tableau for card in column}
    placed.update(card.key for pile in piles for card in pile)
    placed.update(card.key for card in waste_cards)
    stock = tuple(card for card in build_deck() if card.key not in placed)
    return GameState(
        tableau=tuple(tuple(column) for column in tableau),
        foundations=tuple(piles),
        stock=stock,
        waste=waste_cards,
    )


def test_board_helper_builds_valid_states():
    state = _board([["KS"], ["?5H", "QH"]], foundations={"clubs": 3}, waste=["9D"])
    assert state.check_invariants() == []


def test_draw_moves_top_stock_card_to_waste():
    state = _board([["KS"]])
    result = apply_move(state, DrawStock())
    assert result.accepted
    assert result.state.waste == (state.stock[-1].turned(True),)
    assert result.state.stock == state.stock[:-1]
    assert result.state.moves == 1
    assert result.state.check_invariants() == []


def test_draw_recycles_waste_when_stock_is_empty():
    state = _board([["KS"]])
    waste = tuple(card.turned(True) for card in state.stock)
    emptied = state.with_changes(stock=(), waste=waste)

    result = apply_move(emptied, DrawStock())

    assert result.accepted
    assert result.state.stock_passes == 1
    # The first waste card is drawn again first after a recycle.
    assert result.state.waste == (waste[0],)
    assert len(result.state.stock) == len(waste) - 1
    assert result.state.check_invariants() == []


def test_draw_with_nothing_left_is_rejected():
    state = _board([["KS"]], foundations={"hearts": 13, "diamonds": 13, "clubs": 13, "spades": 12})
    assert state.stock == ()
    result = apply_move(state, DrawStock())
    assert result.rejected.reason is RejectReason.EMPTY_STOCK
    assert result.state is state


def test_illegal_tableau_move_leaves_state_untouched():
    state = _board([["7H"], ["8D"]])
    before = state.to_dict()

    result = apply_move(state, MoveToTableau(PileRef.tableau(0), 1))

    assert not result.accepted
    assert result.rejected.reason is RejectReason.ILLEGAL_PLACEMENT
    assert result.state is state
    assert state.to_dict() == before


def test_moving_a_run_reveals_the_card_underneath():
    state = _board([["?3C", "8H", "7S"], ["9C"]])
    assert movable_run(state.tableau[0]) == (Card.parse("8H"), Card.parse("7S"))

    result = apply_move(state, MoveToTableau(PileRef.tableau(0), 1, count=2))

    assert result.accepted
    assert result.revealed == Card.parse("3C")
    assert result.state.tableau[0] == (Card.parse("3C"),)
    assert [card.label() for card in result.state.tableau[1]] == ["9C", "8H", "7S"]
    assert result.state.check_invariants() == []


def test_run_longer_than_movable_run_is_rejected():
    state = _board([["?3C", "8H", "7S"], ["9C"]])
    result = apply_move(state, MoveToTableau(PileRef.tableau(0), 1, count=3))
    assert result.rejected.reason is RejectReason.INVALID_COUNT


def test_only_kings_fill_empty_columns():
    state = _board([["?2D", "QH"], ["?4D", "KS"]])
    rejected = apply_move(state, MoveToTableau(PileRef.tableau(0), 5))
    assert rejected.rejected.reason is RejectReason.ILLEGAL_PLACEMENT

    accepted = apply_move(state, MoveToTableau(PileRef.tableau(1), 5))
    assert accepted.accepted
    assert accepted.state.tableau[5] == (Card.parse("KS"),)
    assert accepted.revealed == Card.parse("4D")


def test_foundation_move_checks_suit_and_order():
    state = _board([["AH"], ["3H"], ["2D"]])
    wrong_suit = apply_move(state, MoveToFoundation(PileRef.tableau(0), "spades"))
    assert wrong_suit.rejected.reason is RejectReason.WRONG_SUIT

    out_of_order = apply_move(state, MoveToFoundation(PileRef.tableau(1), "hearts"))
    assert out_of_order.rejected.reason is RejectReason.ILLEGAL_PLACEMENT

    result = apply_move(state, MoveToFoundation(PileRef.tableau(0), "hearts"))
    assert result.accepted
    assert result.state.foundation("hearts") == (Card.parse("AH"),)
    assert result.state.tableau[0] == ()


def test_waste_to_tableau_and_foundation_takeback():
    state = _board([["8S"]], foundations={"hearts": 7}, waste=["7D"])
    result = apply_move(state, MoveToTableau(PileRef.waste(), 0))
    assert result.accepted
    assert result.state.waste == ()

    takeback = apply_move(state, MoveToTableau(PileRef.foundation("hearts"), 0))
    assert takeback.accepted
    assert takeback.state.foundation("hearts")[-1].rank == 6
    assert takeback.state.tableau[0][-1] == Card.parse("7H")


def test_foundation_cards_cannot_hop_between_foundations():
    state = _board([], foundations={"hearts": 1})
    result = apply_move(state, MoveToFoundation(PileRef.foundation("hearts"), "hearts"))
    assert result.rejected.reason is RejectReason.INVALID_SOURCE


@pytest.mark.parametrize(
    "move,reason",
    [
        (MoveToTableau(PileRef.tableau(9), 0), RejectReason.INVALID_SOURCE),
        (MoveToTableau(PileRef.tableau(0), 7), RejectReason.INVALID_TARGET),
        (MoveToTableau(PileRef.tableau(0), 0), RejectReason.INVALID_TARGET),
        (MoveToTableau(PileRef.tableau(3), 0), RejectReason.EMPTY_SOURCE),
        (MoveToTableau(PileRef.waste(), 0), RejectReason.EMPTY_SOURCE),
        (MoveToTableau(PileRef.tableau(1), 0, count=0), RejectReason.INVALID_COUNT),
        (MoveToFoundation(PileRef.tableau(0), "stars"), RejectReason.INVALID_TARGET),
        ("not a move", RejectReason.UNKNOWN_MOVE),
    ],
)
def test_rejections_carry_a_reason(move, reason):
    state = _board([["KS"], ["QH"]])
    result = apply_move(state, move)
    assert result.rejected is not None
    assert result.rejected.reason is reason
    assert result.rejected.message
    assert result.state is state


def test_random_legal_play_preserves_every_invariant():
    rng = random.Random(2024)
    state = generate_deal(DealMode.RANDOM, random.Random(5))
    for _ in range(300):
        moves = legal_moves(state, include_takebacks=True)
        if not moves:
            break
        result = apply_move(state, rng.choice(moves))
        assert result.accepted
        state = result.state
        assert state.check_invariants() == []
        assert sorted(card.key for card in state.all_cards()) == sorted(
            (suit, rank) for suit in SUITS for rank in RANKS
        )


def test_legal_moves_are_all_accepted_and_skip_pointless_king_shuffles():
    state = _board([["KS"], ["QH"]])
    moves = legal_moves(state)
    assert all(apply_move(state, move).accepted for move in moves)
    assert MoveToTableau(PileRef.tableau(0), 2) not in moves
    assert MoveToTableau(PileRef.tableau(1), 0) in moves


# Red tops everywhere, with the aces and the low black cards buried beneath them.
LOCKED_COLUMNS = [
    ["?AH", "2H"],
    ["?AD", "2D"],
    ["?AC", "3H"],
    ["?AS", "3D"],
    ["?2C", "?2S", "4H"],
    ["?3C", "?3S", "4D"],
    ["?4C", "?4S", "5H"],
]


def test_drawing_through_dead_cards_is_not_a_productive_move():
    state = _board(LOCKED_COLUMNS)
    assert state.check_invariants() == []
    assert legal_moves(state) == [DrawStock()]
    assert has_legal_moves(state) is False

    drawn = apply_move(state, DrawStock()).state
    assert has_legal_moves(drawn) is False


def test_draw_counts_when_a_stock_card_fits_the_layout():
    columns = LOCKED_COLUMNS[:6] + [["?4C", "5H"]]
    state = _board(columns)
    assert Card.parse("4S", face_up=False) in state.stock
    assert legal_moves(state) == [DrawStock()]
    assert has_legal_moves(state) is True


def test_tableau_moves_are_productive():
    assert has_legal_moves(_board([["KS"], ["?5H", "QH"]])) is True


def test_move_serialisation():
    move = MoveToTableau(PileRef.foundation("clubs"), 4)
    assert move_from_dict(move_to_dict(move)) == move
    assert move_from_dict({"type": "draw"}) == DrawStock()
    assert move_from_dict(
        {"type": "foundation", "source": {"kind": "waste"}, "suit": "spades"}
    ) == MoveToFoundation(PileRef.waste(), "spades")


@pytest.mark.parametrize(
    "payload",
    [
        "draw",
        {"type": "teleport"},
        {"type": "tableau", "source": {"kind": "tableau"}, "target": 1},
        {"type": "tableau", "source": {"kind": "tableau", "index": 0}},
        {"type": "foundation", "source": {"kind": "foundation", "suit": "stars"}, "suit": "hearts"},
    ],
)
def test_move_from_dict_rejects_malformed_payloads(payload):
    with pytest.raises(StateError):
        move_from_dict(payload)
