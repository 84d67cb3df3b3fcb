"""Validated move application for live play.

``apply_move`` never raises for an illegal move; it returns a
:class:`MoveResult` whose ``rejected`` field explains the refusal and whose
``state`` is the untouched input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, MutableMapping, Optional, Sequence, Union

from klondike.cards import KING, SUITS, Card, can_place_on_foundation, can_place_on_tableau
from klondike.state import GameState, StateError


class PileKind(str, Enum):
    TABLEAU = "tableau"
    WASTE = "waste"
    FOUNDATION = "foundation"


@dataclass(frozen=True)
class PileRef:
    """Reference to a move source: a column, the waste or a foundation."""

    kind: PileKind
    index: int = 0

    @classmethod
    def tableau(cls, column: int) -> "PileRef":
        return cls(PileKind.TABLEAU, column)

    @classmethod
    def waste(cls) -> "PileRef":
        return cls(PileKind.WASTE)

    @classmethod
    def foundation(cls, suit: str) -> "PileRef":
        return cls(PileKind.FOUNDATION, SUITS.index(suit))

    @property
    def suit(self) -> str:
        return SUITS[self.index]

    def to_dict(self) -> MutableMapping[str, Any]:
        if self.kind is PileKind.WASTE:
            return {"kind": self.kind.value}
        if self.kind is PileKind.FOUNDATION:
            return {"kind": self.kind.value, "suit": self.suit}
        return {"kind": self.kind.value, "index": self.index}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PileRef":
        try:
            kind = PileKind(str(data["kind"]).lower())
            if kind is PileKind.WASTE:
                return cls.waste()
            if kind is PileKind.FOUNDATION:
                return cls.foundation(str(data["suit"]))
            return cls.tableau(int(data["index"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise StateError(f"Malformed pile reference: {data!r}") from exc


@dataclass(frozen=True)
class DrawStock:
    """Turn the next stock card, recycling the waste when the stock is empty."""


@dataclass(frozen=True)
class MoveToTableau:
    source: PileRef
    target: int
    count: int = 1


@dataclass(frozen=True)
class MoveToFoundation:
    source: PileRef
    suit: str


Move = Union[DrawStock, MoveToTableau, MoveToFoundation]


class RejectReason(str, Enum):
    EMPTY_STOCK = "empty_stock"
    EMPTY_SOURCE = "empty_source"
    INVALID_SOURCE = "invalid_source"
    INVALID_TARGET = "invalid_target"
    INVALID_COUNT = "invalid_count"
    FACE_DOWN = "face_down"
    WRONG_SUIT = "wrong_suit"
    ILLEGAL_PLACEMENT = "illegal_placement"
    UNKNOWN_MOVE = "unknown_move"


@dataclass(frozen=True)
class MoveRejected:
    reason: RejectReason
    message: str


@dataclass(frozen=True)
class MoveResult:
    """Outcome of :func:`apply_move`."""

    state: GameState
    rejected: Optional[MoveRejected] = None
    revealed: Optional[Card] = None

    @property
    def accepted(self) -> bool:
        return self.rejected is None


def _reject(state: GameState, reason: RejectReason, message: str) -> MoveResult:
    return MoveResult(state=state, rejected=MoveRejected(reason, message))


def movable_run(column: Sequence[Card]) -> tuple[Card, ...]:
    """Return the longest face-up run at the top of *column* that may move together."""

    if not column or not column[-1].face_up:
        return ()
    start = len(column) - 1
    while start > 0:
        below = column[start - 1]
        if not below.face_up or not can_place_on_tableau(below, column[start]):
            break
        start -= 1
    return tuple(column[start:])


# ----------------------------------------------------------------------
# Move application
# ----------------------------------------------------------------------
def apply_move(state: GameState, move: Move) -> MoveResult:
    """Apply *move* to *state* and return the result."""

    if isinstance(move, DrawStock):
        return _draw(state)
    if isinstance(move, MoveToTableau):
        return _move_to_tableau(state, move)
    if isinstance(move, MoveToFoundation):
        return _move_to_foundation(state, move)
    return _reject(state, RejectReason.UNKNOWN_MOVE, f"Unsupported move: {move!r}")


def _draw(state: GameState) -> MoveResult:
    stock = list(state.stock)
    waste = list(state.waste)
    passes = state.stock_passes
    if not stock:
        if not waste:
            return _reject(state, RejectReason.EMPTY_STOCK, "Stock and waste are both empty")
        stock = [card.turned(False) for card in reversed(waste)]
        waste = []
        passes += 1
    waste.append(stock.pop().turned(True))
    return MoveResult(
        state=state.with_changes(
            stock=tuple(stock),
            waste=tuple(waste),
            stock_passes=passes,
            moves=state.moves + 1,
        )
    )


def _take(
    state: GameState, source: PileRef, count: int
) -> tuple[GameState, tuple[Card, ...], Optional[Card]] | MoveRejected:
    """Remove *count* cards from *source*; return the reduced state, cards and any flip."""

    if count < 1:
        return MoveRejected(RejectReason.INVALID_COUNT, "At least one card must move")

    if source.kind is PileKind.TABLEAU:
        if not 0 <= source.index < len(state.tableau):
            return MoveRejected(RejectReason.INVALID_SOURCE, f"No tableau column {source.index}")
        column = state.tableau[source.index]
        if not column:
            return MoveRejected(RejectReason.EMPTY_SOURCE, f"Column {source.index} is empty")
        if not column[-1].face_up:
            return MoveRejected(RejectReason.FACE_DOWN, f"Column {source.index} top is face-down")
        if count > len(movable_run(column)):
            return MoveRejected(
                RejectReason.INVALID_COUNT,
                f"Column {source.index} has no movable run of {count} cards",
            )
        rest = list(column[:-count])
        revealed: Optional[Card] = None
        if rest and not rest[-1].face_up:
            revealed = rest[-1].turned(True)
            rest[-1] = revealed
        return state.with_column(source.index, rest), tuple(column[-count:]), revealed

    if count != 1:
        return MoveRejected(RejectReason.INVALID_COUNT, f"Only one card may leave the {source.kind.value}")

    if source.kind is PileKind.WASTE:
        if not state.waste:
            return MoveRejected(RejectReason.EMPTY_SOURCE, "Waste is empty")
        return state.with_changes(waste=state.waste[:-1]), (state.waste[-1],), None

    if not 0 <= source.index < len(SUITS):
        return MoveRejected(RejectReason.INVALID_SOURCE, f"No foundation {source.index}")
    pile = state.foundations[source.index]
    if not pile:
        return MoveRejected(RejectReason.EMPTY_SOURCE, f"Foundation {source.suit} is empty")
    return state.with_foundation(source.suit, pile[:-1]), (pile[-1],), None


def _move_to_tableau(state: GameState, move: MoveToTableau) -> MoveResult:
    if not 0 <= move.target < len(state.tableau):
        return _reject(state, RejectReason.INVALID_TARGET, f"No tableau column {move.target}")
    if move.source.kind is PileKind.TABLEAU and move.source.index == move.target:
        return _reject(state, RejectReason.INVALID_TARGET, "Source and target are the same column")

    taken = _take(state, move.source, move.count)
    if isinstance(taken, MoveRejected):
        return MoveResult(state=state, rejected=taken)
    reduced, cards, revealed = taken

    target = state.tableau[move.target]
    if not target:
        if cards[0].rank != KING:
            return _reject(state, RejectReason.ILLEGAL_PLACEMENT, "Only a King may fill an empty column")
    elif not target[-1].face_up or not can_place_on_tableau(target[-1], cards[0]):
        return _reject(
            state,
            RejectReason.ILLEGAL_PLACEMENT,
            f"{cards[0].label()} cannot be placed on {target[-1].label()}",
        )

    placed = reduced.with_column(move.target, target + cards)
    return MoveResult(state=placed.with_changes(moves=state.moves + 1), revealed=revealed)


def _move_to_foundation(state: GameState, move: MoveToFoundation) -> MoveResult:
    if move.suit not in SUITS:
        return _reject(state, RejectReason.INVALID_TARGET, f"Unknown suit {move.suit!r}")
    if move.source.kind is PileKind.FOUNDATION:
        return _reject(state, RejectReason.INVALID_SOURCE, "Foundation cards cannot move between foundations")

    taken = _take(state, move.source, 1)
    if isinstance(taken, MoveRejected):
        return MoveResult(state=state, rejected=taken)
    reduced, (card,), revealed = taken

    if card.suit != move.suit:
        return _reject(state, RejectReason.WRONG_SUIT, f"{card.label()} does not belong on {move.suit}")
    pile = state.foundation(move.suit)
    if not can_place_on_foundation(pile, card):
        return _reject(
            state,
            RejectReason.ILLEGAL_PLACEMENT,
            f"{card.label()} cannot be placed on the {move.suit} foundation",
        )

    placed = reduced.with_foundation(move.suit, pile + (card,))
    return MoveResult(state=placed.with_changes(moves=state.moves + 1), revealed=revealed)


# ----------------------------------------------------------------------
# Move discovery
# ----------------------------------------------------------------------
def find_foundation_move(state: GameState, source: PileRef) -> Optional[MoveToFoundation]:
    """Return the foundation move for the top card of *source*, if any."""

    if source.kind is PileKind.WASTE:
        card = state.waste[-1] if state.waste else None
    elif source.kind is PileKind.TABLEAU and 0 <= source.index < len(state.tableau):
        column = state.tableau[source.index]
        card = column[-1] if column and column[-1].face_up else None
    else:
        card = None
    if card is None:
        return None
    if can_place_on_foundation(state.foundation(card.suit), card):
        return MoveToFoundation(source, card.suit)
    return None


def legal_moves(state: GameState, *, include_takebacks: bool = False) -> list[Move]:
    """Enumerate every move :func:`apply_move` would accept.

    Moving a whole column onto an empty column changes nothing and is left
    out. Foundation take-backs are only listed when *include_takebacks* is set.
    """

    candidates: list[Move] = []
    if state.stock or state.waste:
        candidates.append(DrawStock())

    sources = [PileRef.tableau(index) for index in range(len(state.tableau))]
    sources.append(PileRef.waste())
    for source in sources:
        found = find_foundation_move(state, source)
        if found is not None:
            candidates.append(found)

    for index, column in enumerate(state.tableau):
        run = movable_run(column)
        for count in range(1, len(run) + 1):
            whole_column = count == len(column)
            for target in range(len(state.tableau)):
                if target == index or (whole_column and not state.tableau[target]):
                    continue
                candidates.append(MoveToTableau(PileRef.tableau(index), target, count))

    if state.waste:
        candidates.extend(
            MoveToTableau(PileRef.waste(), target) for target in range(len(state.tableau))
        )
    if include_takebacks:
        for suit in SUITS:
            if state.foundation(suit):
                candidates.extend(
                    MoveToTableau(PileRef.foundation(suit), target)
                    for target in range(len(state.tableau))
                )

    return [move for move in candidates if apply_move(state, move).accepted]


def _fits_layout(state: GameState, card: Card) -> bool:
    if can_place_on_foundation(state.foundation(card.suit), card):
        return True
    for column in state.tableau:
        if not column:
            if card.rank == KING:
                return True
        elif column[-1].face_up and can_place_on_tableau(column[-1], card):
            return True
    return False


def has_legal_moves(state: GameState) -> bool:
    """Return ``True`` while the player still has a productive move.

    Cycling the stock only counts when some card in the stock or waste could
    be played onto the current layout once it is turned up. A board where
    the only legal move is drawing through cards that fit nowhere is stuck.
    """

    moves = legal_moves(state)
    if any(not isinstance(move, DrawStock) for move in moves):
        return True
    if not moves:
        return False
    return any(_fits_layout(state, card) for card in state.stock + state.waste)


# ----------------------------------------------------------------------
# Serialisation
# ----------------------------------------------------------------------
def move_to_dict(move: Move) -> MutableMapping[str, Any]:
    if isinstance(move, DrawStock):
        return {"type": "draw"}
    if isinstance(move, MoveToTableau):
        return {
            "type": "tableau",
            "source": move.source.to_dict(),
            "target": move.target,
            "count": move.count,
        }
    return {"type": "foundation", "source": move.source.to_dict(), "suit": move.suit}


def move_from_dict(data: Mapping[str, Any]) -> Move:
    """Parse a move produced by :func:`move_to_dict`."""

    if not isinstance(data, Mapping):
        raise StateError("Move payload must be a mapping")
    kind = str(data.get("type", "")).lower()
    if kind == "draw":
        return DrawStock()
    try:
        if kind == "tableau":
            return MoveToTableau(
                PileRef.from_dict(data["source"]),
                int(data["target"]),
                int(data.get("count", 1)),
            )
        if kind == "foundation":
            return MoveToFoundation(PileRef.from_dict(data["source"]), str(data["suit"]))
    except StateError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise StateError(f"Malformed move: {data!r}") from exc
    raise StateError(f"Unknown move type: {data.get('type')!r}")
