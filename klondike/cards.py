"""Card values and the placement rules shared by play and simulation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Sequence


SUITS = ("hearts", "diamonds", "clubs", "spades")
SUIT_COLORS = {
    "hearts": "red",
    "diamonds": "red",
    "clubs": "black",
    "spades": "black",
}
RANKS = tuple(range(1, 14))

ACE = 1
KING = 13
DECK_SIZE = len(SUITS) * len(RANKS)

_RANK_LABELS = {
    1: "A",
    11: "J",
    12: "Q",
    13: "K",
}
_LABEL_RANKS = {label: rank for rank, label in _RANK_LABELS.items()}
_SUIT_INITIALS = {suit[0].upper(): suit for suit in SUITS}


def rank_label(rank: int) -> str:
    return _RANK_LABELS.get(rank, str(rank))


def opposite_suits(color: str) -> tuple[str, ...]:
    """Return the suits whose colour differs from *color*."""

    return tuple(suit for suit in SUITS if SUIT_COLORS[suit] != color)


@dataclass(frozen=True)
class Card:
    """An immutable playing card.

    Only the ``face_up`` flag differs between two values for the same card;
    use :attr:`key` or :attr:`id` when comparing identities.
    """

    suit: str
    rank: int
    face_up: bool = False

    def __post_init__(self) -> None:
        if self.suit not in SUIT_COLORS:
            raise ValueError(f"Unknown suit: {self.suit!r}")
        if self.rank not in RANKS:
            raise ValueError(f"Rank must be between 1 and 13, got {self.rank!r}")

    @property
    def color(self) -> str:
        return SUIT_COLORS[self.suit]

    @property
    def key(self) -> tuple[str, int]:
        return (self.suit, self.rank)

    @property
    def id(self) -> str:
        return f"{self.suit}-{rank_label(self.rank)}"

    def label(self) -> str:
        return f"{rank_label(self.rank)}{self.suit[0].upper()}"

    def turned(self, face_up: bool) -> "Card":
        if self.face_up == face_up:
            return self
        return replace(self, face_up=face_up)

    @classmethod
    def from_id(cls, card_id: str, *, face_up: bool = False) -> "Card":
        """Build a card from an identifier such as ``"hearts-Q"``."""

        suit, sep, label = card_id.partition("-")
        if not sep:
            raise ValueError(f"Malformed card id: {card_id!r}")
        return cls(suit, _parse_rank(label, card_id), face_up)

    @classmethod
    def parse(cls, text: str, *, face_up: bool = True) -> "Card":
        """Build a card from its short label, e.g. ``"10H"`` or ``"KS"``."""

        token = text.strip().upper()
        if len(token) < 2 or token[-1] not in _SUIT_INITIALS:
            raise ValueError(f"Malformed card label: {text!r}")
        return cls(_SUIT_INITIALS[token[-1]], _parse_rank(token[:-1], text), face_up)

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return self.label() if self.face_up else f"[{self.label()}]"


def _parse_rank(label: str, source: str) -> int:
    token = label.strip().upper()
    if token in _LABEL_RANKS:
        return _LABEL_RANKS[token]
    try:
        return int(token, 10)
    except ValueError as exc:
        raise ValueError(f"Unknown rank in {source!r}") from exc


def build_deck(*, face_up: bool = False) -> List[Card]:
    """Return the 52 cards in suit-major order."""

    return [Card(suit, rank, face_up) for suit in SUITS for rank in RANKS]


def can_place_on_tableau(bottom: Card, top: Card) -> bool:
    """Return ``True`` when *top* may rest on *bottom* in a tableau column."""

    return bottom.color != top.color and top.rank == bottom.rank - 1


def can_place_on_foundation(pile: Sequence[Card], card: Card) -> bool:
    """Return ``True`` when *card* may be added to the foundation *pile*."""

    if not pile:
        return card.rank == ACE
    top = pile[-1]
    return top.suit == card.suit and card.rank == top.rank + 1


def is_descending_run(cards: Sequence[Card]) -> bool:
    """Return ``True`` when *cards* form an alternating, descending run."""

    return all(
        can_place_on_tableau(lower, upper) for lower, upper in zip(cards, cards[1:])
    )
