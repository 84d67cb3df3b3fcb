"""Immutable Klondike game state and its serialisation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, MutableMapping, Sequence

from klondike.cards import DECK_SIZE, SUITS, Card, build_deck, is_descending_run

TABLEAU_COLUMNS = 7

Column = tuple[Card, ...]


class StateError(ValueError):
    """Raised when external data does not describe a well-formed game."""


class DealMode(str, Enum):
    """How a deal was produced."""

    SOLVABLE = "solvable"
    UNSOLVABLE = "unsolvable"
    RANDOM = "random"

    @classmethod
    def parse(cls, value: "DealMode | str") -> "DealMode":
        if isinstance(value, cls):
            return value
        token = str(value).strip().lower()
        try:
            return cls(token)
        except ValueError as exc:
            raise StateError(f"Unknown deal mode: {value!r}") from exc


def _empty_foundations() -> tuple[Column, ...]:
    return tuple(() for _ in SUITS)


@dataclass(frozen=True)
class GameState:
    """Snapshot of a Klondike game.

    Piles are tuples ordered bottom to top, so the last element of the stock
    is the next card drawn and the last element of a column is its top card.
    Foundations follow the order of :data:`klondike.cards.SUITS`.
    """

    tableau: tuple[Column, ...]
    foundations: tuple[Column, ...] = field(default_factory=_empty_foundations)
    stock: Column = ()
    waste: Column = ()
    moves: int = 0
    stock_passes: int = 0
    deal_mode: DealMode = DealMode.SOLVABLE

    @classmethod
    def new(
        cls,
        tableau: Iterable[Iterable[Card]],
        stock: Iterable[Card],
        *,
        deal_mode: DealMode = DealMode.SOLVABLE,
    ) -> "GameState":
        """Create a freshly dealt state with empty foundations and waste."""

        return cls(
            tableau=tuple(tuple(column) for column in tableau),
            stock=tuple(card.turned(False) for card in stock),
            deal_mode=deal_mode,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def foundation(self, suit: str) -> Column:
        return self.foundations[SUITS.index(suit)]

    @property
    def foundation_count(self) -> int:
        return sum(len(pile) for pile in self.foundations)

    @property
    def is_won(self) -> bool:
        return self.foundation_count == DECK_SIZE

    @property
    def hidden_cards(self) -> tuple[Card, ...]:
        """Face-down tableau cards followed by the whole stock."""

        buried = tuple(card for column in self.tableau for card in column if not card.face_up)
        return buried + self.stock

    @property
    def hidden_count(self) -> int:
        return len(self.hidden_cards)

    def all_cards(self) -> Iterator[Card]:
        for column in self.tableau:
            yield from column
        for pile in self.foundations:
            yield from pile
        yield from self.stock
        yield from self.waste

    def face_down_ids(self) -> frozenset[str]:
        return frozenset(card.id for card in self.all_cards() if not card.face_up)

    def face_up_ids(self) -> frozenset[str]:
        return frozenset(card.id for card in self.all_cards() if card.face_up)

    def top_cards(self) -> list[Card]:
        """Return the top card of every non-empty column."""

        return [column[-1] for column in self.tableau if column]

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    def with_changes(self, **changes: Any) -> "GameState":
        return replace(self, **changes)

    def with_column(self, index: int, column: Sequence[Card]) -> "GameState":
        tableau = list(self.tableau)
        tableau[index] = tuple(column)
        return replace(self, tableau=tuple(tableau))

    def with_foundation(self, suit: str, pile: Sequence[Card]) -> "GameState":
        foundations = list(self.foundations)
        foundations[SUITS.index(suit)] = tuple(pile)
        return replace(self, foundations=tuple(foundations))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def check_invariants(self) -> list[str]:
        """Return a description of every broken invariant (empty when valid)."""

        problems: list[str] = []
        if len(self.tableau) != TABLEAU_COLUMNS:
            problems.append(f"Expected {TABLEAU_COLUMNS} tableau columns, found {len(self.tableau)}")
        if len(self.foundations) != len(SUITS):
            problems.append(f"Expected {len(SUITS)} foundations, found {len(self.foundations)}")

        seen: dict[tuple[str, int], int] = {}
        for card in self.all_cards():
            seen[card.key] = seen.get(card.key, 0) + 1
        duplicates = sorted(key for key, count in seen.items() if count > 1)
        if duplicates:
            problems.append(
                "Duplicate cards: " + ", ".join(f"{suit}-{rank}" for suit, rank in duplicates)
            )
        missing = [card.id for card in build_deck() if card.key not in seen]
        if missing:
            problems.append("Missing cards: " + ", ".join(missing))

        for index, column in enumerate(self.tableau):
            first_up = next((i for i, card in enumerate(column) if card.face_up), len(column))
            if any(not card.face_up for card in column[first_up:]):
                problems.append(f"Column {index} has a face-down card above a face-up card")
            elif column and first_up == len(column):
                problems.append(f"Column {index} has a face-down top card")
            elif not is_descending_run(column[first_up:]):
                problems.append(f"Column {index} face-up cards do not form a run")

        for suit, pile in zip(SUITS, self.foundations):
            expected = list(range(1, len(pile) + 1))
            if [card.rank for card in pile] != expected or any(card.suit != suit for card in pile):
                problems.append(f"Foundation {suit} is not an ascending {suit} run from Ace")
            if any(not card.face_up for card in pile):
                problems.append(f"Foundation {suit} holds a face-down card")

        if any(card.face_up for card in self.stock):
            problems.append("Stock holds a face-up card")
        if any(not card.face_up for card in self.waste):
            problems.append("Waste holds a face-down card")
        if self.moves < 0 or self.stock_passes < 0:
            problems.append("Counters must be non-negative")
        return problems

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------
    def to_dict(self) -> MutableMapping[str, Any]:
        """Return the state as a JSON-serialisable mapping."""

        return {
            "tableau": [
                [{"id": card.id, "face_up": card.face_up} for card in column]
                for column in self.tableau
            ],
            "foundations": {
                suit: [card.id for card in pile] for suit, pile in zip(SUITS, self.foundations)
            },
            "stock": [card.id for card in self.stock],
            "waste": [card.id for card in self.waste],
            "moves": self.moves,
            "stock_passes": self.stock_passes,
            "deal_mode": self.deal_mode.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameState":
        """Rebuild a state from :meth:`to_dict` output, validating it fully."""

        if not isinstance(data, Mapping):
            raise StateError("Game state payload must be a mapping")
        try:
            tableau = tuple(
                tuple(
                    Card.from_id(str(entry["id"]), face_up=bool(entry.get("face_up", False)))
                    for entry in column
                )
                for column in data["tableau"]
            )
            raw_foundations = data.get("foundations") or {}
            foundations = tuple(
                tuple(Card.from_id(str(card_id), face_up=True) for card_id in raw_foundations.get(suit, ()))
                for suit in SUITS
            )
            stock = tuple(Card.from_id(str(card_id)) for card_id in data.get("stock", ()))
            waste = tuple(Card.from_id(str(card_id), face_up=True) for card_id in data.get("waste", ()))
            state = cls(
                tableau=tableau,
                foundations=foundations,
                stock=stock,
                waste=waste,
                moves=int(data.get("moves", 0)),
                stock_passes=int(data.get("stock_passes", 0)),
                deal_mode=DealMode.parse(data.get("deal_mode", DealMode.SOLVABLE)),
            )
        except StateError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StateError(f"Malformed game state: {exc}") from exc

        problems = state.check_invariants()
        if problems:
            raise StateError("; ".join(problems))
        return state

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> "GameState":
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise StateError(f"Game state is not valid JSON: {exc}") from exc
        return cls.from_dict(data)
