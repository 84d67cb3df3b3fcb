"""Klondike deal generation, solvability simulation and runtime correction."""

from klondike.cards import Card, build_deck, can_place_on_foundation, can_place_on_tableau
from klondike.corrector import CorrectorConfig, ensure_solvability, rearrange_hidden_cards
from klondike.generator import DealReport, DealTier, GeneratorConfig, generate_deal, search_deal
from klondike.moves import (
    DrawStock,
    MoveRejected,
    MoveResult,
    MoveToFoundation,
    MoveToTableau,
    PileRef,
    RejectReason,
    apply_move,
    legal_moves,
)
from klondike.rules import FLEXIBLE, STRICT, SimulationProfile
from klondike.session import GameSession
from klondike.simulator import SimulationMode, simulate_solvability
from klondike.state import DealMode, GameState, StateError

__all__ = [
    "Card",
    "CorrectorConfig",
    "DealMode",
    "DealReport",
    "DealTier",
    "DrawStock",
    "FLEXIBLE",
    "GameSession",
    "GameState",
    "GeneratorConfig",
    "MoveRejected",
    "MoveResult",
    "MoveToFoundation",
    "MoveToTableau",
    "PileRef",
    "RejectReason",
    "STRICT",
    "SimulationMode",
    "SimulationProfile",
    "StateError",
    "apply_move",
    "build_deck",
    "can_place_on_foundation",
    "can_place_on_tableau",
    "ensure_solvability",
    "generate_deal",
    "legal_moves",
    "rearrange_hidden_cards",
    "search_deal",
    "simulate_solvability",
]
