"""Input handler: converts PyGame keyboard state to PlayerInputBatches.

The client samples the held keys once per frame and only sends a batch to
the host when the set of held keys changes.
"""

from __future__ import annotations

from typing import Sequence

import pygame

from duotris.networking.protocol import InputKey, PlayerInputBatch

KEY_BINDINGS: dict[InputKey, tuple[int, ...]] = {
    InputKey.MOVE_LEFT: (pygame.K_LEFT, pygame.K_a),
    InputKey.MOVE_RIGHT: (pygame.K_RIGHT, pygame.K_d),
    InputKey.ROTATE_CW: (pygame.K_UP, pygame.K_w),
    InputKey.ROTATE_CCW: (pygame.K_q, pygame.K_z),
    InputKey.SOFT_DROP: (pygame.K_DOWN, pygame.K_s),
    InputKey.HARD_DROP: (pygame.K_SPACE,),
    InputKey.HOLD: (pygame.K_c,),
    InputKey.PAUSE: (pygame.K_p,),
    InputKey.QUIT: (pygame.K_ESCAPE,),
}


class InputHandler:
    """Samples held keys into PlayerInputBatches and spots changes."""

    def __init__(self, bindings: dict[InputKey, tuple[int, ...]] | None = None) -> None:
        self._bindings = bindings if bindings is not None else KEY_BINDINGS
        self._last_keys: tuple[int, ...] | None = None

    def sample(self, pressed: Sequence[bool], timestamp: float) -> PlayerInputBatch:
        """Build a batch from a key-state lookup such as pygame.key.get_pressed()."""
        held = {
            key for key, codes in self._bindings.items()
            if any(pressed[code] for code in codes)
        }
        return PlayerInputBatch.from_pressed(held, timestamp)

    def poll(self, timestamp: float) -> PlayerInputBatch:
        return self.sample(pygame.key.get_pressed(), timestamp)

    def changed(self, batch: PlayerInputBatch) -> bool:
        """True the first time a given key set is seen after a different one."""
        if batch.keys == self._last_keys:
            return False
        self._last_keys = batch.keys
        return True

    def reset(self) -> None:
        self._last_keys = None
