"""Tests for keyboard sampling."""

from collections import defaultdict

import pygame

from duotris.input.handler import InputHandler
from duotris.networking.protocol import InputKey


def _pressed(*codes: int) -> defaultdict:
    state = defaultdict(bool)
    for code in codes:
        state[code] = True
    return state


class TestSample:
    def test_nothing_held(self):
        batch = InputHandler().sample(_pressed(), 1.0)
        assert not any(batch.keys)
        assert batch.timestamp == 1.0

    def test_primary_and_alternate_bindings(self):
        handler = InputHandler()
        assert handler.sample(_pressed(pygame.K_LEFT), 0).is_pressed(InputKey.MOVE_LEFT)
        assert handler.sample(_pressed(pygame.K_a), 0).is_pressed(InputKey.MOVE_LEFT)

    def test_several_keys(self):
        batch = InputHandler().sample(_pressed(pygame.K_SPACE, pygame.K_c), 0)
        assert batch.is_pressed(InputKey.HARD_DROP)
        assert batch.is_pressed(InputKey.HOLD)
        assert not batch.is_pressed(InputKey.PAUSE)

    def test_custom_bindings(self):
        handler = InputHandler({InputKey.QUIT: (pygame.K_x,)})
        assert handler.sample(_pressed(pygame.K_x), 0).is_pressed(InputKey.QUIT)
        assert not handler.sample(_pressed(pygame.K_ESCAPE), 0).is_pressed(InputKey.QUIT)


class TestChanged:
    def test_only_changes_reported(self):
        handler = InputHandler()
        idle = handler.sample(_pressed(), 0)
        left = handler.sample(_pressed(pygame.K_LEFT), 1)
        assert handler.changed(idle)
        assert not handler.changed(handler.sample(_pressed(), 2))
        assert handler.changed(left)
        assert handler.changed(idle)

    def test_reset(self):
        handler = InputHandler()
        idle = handler.sample(_pressed(), 0)
        handler.changed(idle)
        handler.reset()
        assert handler.changed(idle)
