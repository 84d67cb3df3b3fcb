"""Caller-owned bookkeeping around a single player's games."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from klondike.corrector import CorrectorConfig, ensure_solvability
from klondike.generator import GeneratorConfig, generate_deal
from klondike.moves import Move, MoveResult, apply_move
from klondike.state import DealMode, GameState


@dataclass
class GameSession:
    """Ties the core operations together for one player.

    ``first_game`` stays set until the player wins once; while it is set every
    solvable deal uses the strict regime.  ``last_correction`` carries the
    corrector cooldown between moves.
    """

    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], float] = time.monotonic
    first_game: bool = True
    generator_config: Optional[GeneratorConfig] = None
    corrector_config: Optional[CorrectorConfig] = None
    state: Optional[GameState] = None
    last_correction: Optional[float] = None

    def new_game(self, mode: Union[DealMode, str] = DealMode.SOLVABLE) -> GameState:
        mode = DealMode.parse(mode)
        strict = self.first_game and mode is DealMode.SOLVABLE
        self.state = generate_deal(mode, self.rng, strict=strict, config=self.generator_config)
        self.last_correction = None
        return self.state

    def play(self, move: Move) -> MoveResult:
        """Apply *move* and re-check solvability when it uncovered a card."""

        if self.state is None:
            raise RuntimeError("No game in progress; call new_game() first")
        result = apply_move(self.state, move)
        if not result.accepted:
            return result

        state = result.state
        if result.revealed is not None:
            state, self.last_correction = ensure_solvability(
                state,
                self.clock(),
                self.last_correction,
                rng=self.rng,
                config=self.corrector_config,
            )
        self.state = state
        if state.is_won:
            self.first_game = False
        return MoveResult(state=state, revealed=result.revealed)
