"""Minimal Flask API exposing deal generation, moves and solvability checks.

The server keeps no game state.  Every request carries the serialised
``GameState`` it operates on and every response returns the next one, so the
client stays responsible for persistence.
"""
from __future__ import annotations

import random
import time
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from klondike.corrector import ensure_solvability
from klondike.generator import search_deal
from klondike.moves import apply_move, has_legal_moves, move_from_dict
from klondike.rules import PROFILES
from klondike.simulator import run_simulation
from klondike.state import DealMode, GameState

app = Flask(__name__)


def _payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return payload


def _optional_number(payload: Dict[str, Any], field: str) -> Optional[float]:
    value = payload.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field} has invalid type: {type(value).__name__}")
    return float(value)


def _rng(payload: Dict[str, Any]) -> random.Random:
    seed = payload.get("seed")
    if seed is None:
        return random.Random()
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise ValueError(f"seed has invalid type: {type(seed).__name__}")
    return random.Random(seed)


def _state(payload: Dict[str, Any]) -> GameState:
    if "state" not in payload:
        raise ValueError("Missing field: state")
    return GameState.from_dict(payload["state"])


@app.post("/api/deal")
def deal():
    try:
        payload = _payload()
        mode = DealMode.parse(payload.get("mode", DealMode.SOLVABLE.value))
        strict = payload.get("strict", False)
        if not isinstance(strict, bool):
            raise ValueError(f"strict has invalid type: {type(strict).__name__}")
        rng = _rng(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    report = search_deal(mode, rng, strict=strict)
    return jsonify(
        {
            "state": report.state.to_dict(),
            "tier": report.tier.value,
            "attempts": report.attempts,
            "solved_count": report.solved_count,
        }
    )


@app.post("/api/move")
def move():
    try:
        payload = _payload()
        state = _state(payload)
        if "move" not in payload:
            raise ValueError("Missing field: move")
        requested = move_from_dict(payload["move"])
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    result = apply_move(state, requested)
    if result.rejected is not None:
        return (
            jsonify({"error": result.rejected.message, "reason": result.rejected.reason.value}),
            409,
        )
    return jsonify(
        {
            "state": result.state.to_dict(),
            "revealed": result.revealed.id if result.revealed is not None else None,
            "won": result.state.is_won,
            "has_moves": has_legal_moves(result.state),
        }
    )


@app.post("/api/simulate")
def simulate():
    try:
        payload = _payload()
        state = _state(payload)
        profile_name = str(payload.get("profile", "flexible")).strip().lower()
        if profile_name not in PROFILES:
            raise ValueError(f"Unknown profile: {profile_name!r}")
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    profile = PROFILES[profile_name]
    result = run_simulation(state, profile)
    return jsonify(
        {
            "solved_count": result.solved_count,
            "moves": result.moves,
            "stock_cycles": result.stock_cycles,
            "stop_reason": result.stop_reason.value,
            "acceptable": profile.accepts(result.solved_count),
        }
    )


@app.post("/api/ensure")
def ensure():
    try:
        payload = _payload()
        state = _state(payload)
        now = _optional_number(payload, "now")
        last_correction = _optional_number(payload, "last_correction")
        rng = _rng(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if now is None:
        now = time.time()
    corrected, stamp = ensure_solvability(
        state, now, last_correction, rng=rng, config=app.config.get("CORRECTOR_CONFIG")
    )
    return jsonify(
        {
            "state": corrected.to_dict(),
            "last_correction": stamp,
            "changed": corrected != state,
        }
    )


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    app.run(host="0.0.0.0", port=5000, debug=True)
