"""Smoke tests for the pygame host shell.

These tests verify that the application's main loop can initialise, start a
trial and execute a handful of frames without crashing when the SDL dummy
video driver is used.  They do not check rendering correctness.
"""

from __future__ import annotations

import os

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless() -> None:
    """Ensure the application can start and run a few frames headlessly."""
    from aim_trainer.app import run

    exit_code = run(max_frames=3)
    assert exit_code == 0


def test_app_starts_trial_and_handles_mouse_motion_headless() -> None:
    import pygame

    from aim_trainer.app import run

    def inject(frame: int) -> None:
        if frame == 1:
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_SPACE, mod=0, unicode=" "))
        elif frame in (2, 3, 4):
            pygame.event.post(pygame.event.Event(pygame.MOUSEMOTION, rel=(12, -4), pos=(600, 400), buttons=(0, 0, 0)))
        elif frame == 6:
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_ESCAPE, mod=0, unicode=""))

    exit_code = run(max_frames=8, event_injector=inject)
    assert exit_code == 0
