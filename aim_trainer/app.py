"""Pygame host shell for the aim trainer.

A single trial screen: SPACE starts (or restarts) a 20 s tracking trial, the
mouse steers the view, the target is drawn with a simple perspective
projection, and the results block appears when the trial completes.

Deterministic timing/motion/analysis lives in aim_trainer/* (core modules).
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable
from typing import Protocol

import pygame

from .aim_core import FORWARD, Phase, SeededRng, Vec3
from .geometry import CameraBasis
from .mouse_look import LookSettings, MouseLook, vertical_fov_rad
from .results import format_hud_text, format_results_text, trial_result_from_session
from .session import FixedStepRunner, RealClock, TrialSession

logger = logging.getLogger(__name__)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


WINDOW_SIZE = (1200, 800)
TARGET_FPS = 144

CAMERA_POSITION = Vec3(0.0, 0.0, 10.0)
HIT_FLASH_MS = 80


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def update(self) -> None:
        if self._screens:
            self._screens[-1].update()

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _project(
    point: Vec3,
    *,
    camera: Vec3,
    forward: Vec3,
    size: tuple[int, int],
    vfov: float,
) -> tuple[float, float, float] | None:
    """Screen x, y and pixels-per-unit at ``point``; None when behind the camera."""

    local = CameraBasis.from_forward(forward).to_local(point - camera)
    if local.z <= 0.1:
        return None
    w, h = size
    focal = (h / 2.0) / math.tan(vfov / 2.0)
    scale = focal / local.z
    return (w / 2.0 + local.x * scale, h / 2.0 - local.y * scale, scale)


class TrialScreen:
    def __init__(self, app: App, *, seed: int, look: LookSettings | None = None) -> None:
        self._app = app
        self._look = MouseLook(look)
        self._session = TrialSession(rng=SeededRng(seed), on_hit=self._on_hit)
        self._runner = FixedStepRunner(self._session, clock=RealClock())
        self._flash_until_ms = 0
        self._results_text = ""

        self._small_font = pygame.font.Font(None, 24)

    @property
    def session(self) -> TrialSession:
        return self._session

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.MOUSEMOTION and self._session.running:
            dx, dy = event.rel
            self._session.set_crosshair_direction(self._look.apply_motion(dx, dy))
            return

        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_SPACE and not self._session.running:
            self._start()
        elif event.key == pygame.K_ESCAPE:
            if self._session.phase is Phase.IDLE:
                self._app.quit()
            else:
                self._session.reset()
                self._look.reset()
                self._results_text = ""
                self._set_grab(False)

    def update(self) -> None:
        was_running = self._session.running
        self._runner.update(CAMERA_POSITION)
        if was_running and self._session.completed:
            self._set_grab(False)
            self._results_text = format_results_text(trial_result_from_session(self._session))

    def render(self, surface: pygame.Surface) -> None:
        surface.fill((8, 22, 30))
        size = surface.get_size()
        aspect = size[0] / max(1, size[1])
        vfov = vertical_fov_rad(self._look.settings.fov_deg, aspect)

        if self._session.running:
            projected = _project(
                self._session.target_position,
                camera=CAMERA_POSITION,
                forward=self._look.direction(),
                size=size,
                vfov=vfov,
            )
            if projected is not None:
                sx, sy, scale = projected
                radius = max(2, int(self._session.config.target_radius * scale))
                pygame.draw.circle(surface, (230, 40, 40), (int(sx), int(sy)), radius)

        self._draw_crosshair(surface)

        if self._session.phase is Phase.RUNNING:
            text = format_hud_text(self._session.snapshot(self._runner.sim_now))
        elif self._session.phase is Phase.COMPLETED:
            text = self._results_text + "\n\n" + self._session.current_prompt()
        else:
            text = "MODERN REACTION TEST"
            hint = self._app.font.render(self._session.current_prompt(), True, (238, 245, 255))
            surface.blit(hint, hint.get_rect(center=(size[0] // 2, size[1] // 2 + 60)))

        y = 20
        for line in text.split("\n"):
            img = self._small_font.render(line, True, (226, 236, 255))
            surface.blit(img, (20, y))
            y += img.get_height() + 4

    def _draw_crosshair(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        cx, cy = w // 2, h // 2
        flashing = pygame.time.get_ticks() < self._flash_until_ms
        color = (255, 255, 255) if flashing else (255, 0, 0)
        half = 5
        pygame.draw.line(surface, color, (cx - half, cy), (cx + half, cy), 2)
        pygame.draw.line(surface, color, (cx, cy - half), (cx, cy + half), 2)

    def _start(self) -> None:
        self._look.reset()
        self._results_text = ""
        if self._runner.start(camera_position=CAMERA_POSITION, camera_forward=FORWARD):
            self._session.set_crosshair_direction(self._look.direction())
            self._set_grab(True)

    def _on_hit(self) -> None:
        self._flash_until_ms = pygame.time.get_ticks() + HIT_FLASH_MS

    def _set_grab(self, grabbed: bool) -> None:
        pygame.event.set_grab(grabbed)
        pygame.mouse.set_visible(not grabbed)


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("Aim Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    seed = _new_seed()
    logger.debug(f"Trial RNG seed {seed}")
    app.push(TrialScreen(app, seed=seed))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
