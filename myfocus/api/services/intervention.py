"""Cooldown-gated distraction interventions."""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from myfocus.model.models import (
    EncouragementFrequency,
    FocusState,
    InterventionSettings,
)
from myfocus.watchers.logger import logger

log = logger.getChild("intervention")

SEVERE_EXTRA_DISPLAY_SECONDS = 5

ENCOURAGEMENT_PROBABILITY = {
    EncouragementFrequency.LOW: 0.05,
    EncouragementFrequency.MEDIUM: 0.10,
    EncouragementFrequency.HIGH: 0.20,
}


class InterventionKind(str, Enum):
    LIGHT = "light"
    SEVERE = "severe"
    ENCOURAGEMENT = "encouragement"


@dataclass(frozen=True)
class InterventionAction:
    """What to show the user."""

    kind: InterventionKind
    title: str
    message: str
    urgent: bool
    display_seconds: int
    sound_enabled: bool


def _light_action(settings: InterventionSettings, task: str | None) -> InterventionAction:
    if task:
        message = f"Mild distraction detected. Current task: {task}. Try to refocus."
    else:
        message = "Mild distraction detected. Try to refocus."
    return InterventionAction(
        kind=InterventionKind.LIGHT,
        title="Focus reminder",
        message=message,
        urgent=False,
        display_seconds=settings.popup_duration_seconds,
        sound_enabled=settings.notification_sound,
    )


def _severe_action(settings: InterventionSettings, task: str | None) -> InterventionAction:
    if task:
        message = f"Severe distraction! Current task: {task}. Get back to work now!"
    else:
        message = "Severe distraction! Get back to work now!"
    return InterventionAction(
        kind=InterventionKind.SEVERE,
        title="Severe distraction warning",
        message=message,
        urgent=True,
        display_seconds=settings.popup_duration_seconds + SEVERE_EXTRA_DISPLAY_SECONDS,
        sound_enabled=settings.notification_sound,
    )


def _encouragement_action(
    settings: InterventionSettings, task: str | None
) -> InterventionAction:
    if task:
        message = f"Great focus! Keep it up on “{task}”."
    else:
        message = "Great focus! Keep it up."
    return InterventionAction(
        kind=InterventionKind.ENCOURAGEMENT,
        title="Keep going",
        message=message,
        urgent=False,
        display_seconds=settings.popup_duration_seconds,
        sound_enabled=settings.notification_sound,
    )


def in_cooldown(
    settings: InterventionSettings, last_intervention_at: float | None, now: float
) -> bool:
    if last_intervention_at is None:
        return False
    return now - last_intervention_at < settings.intervention_cooldown_minutes * 60


def decide_intervention(
    state: FocusState,
    settings: InterventionSettings,
    last_intervention_at: float | None,
    now: float,
    current_task: str | None = None,
    rng: random.Random | None = None,
) -> InterventionAction | None:
    """Pick the action for one classification, if any.

    ``last_intervention_at`` and ``now`` are monotonic seconds. The cooldown
    is shared by all action kinds.
    """
    if not settings.enabled:
        return None
    if in_cooldown(settings, last_intervention_at, now):
        return None

    if state is FocusState.DISTRACTED:
        if settings.light_distraction_notification:
            return _light_action(settings, current_task)
        return None

    if state is FocusState.SEVERELY_DISTRACTED:
        if settings.severe_distraction_popup:
            return _severe_action(settings, current_task)
        return None

    if state is FocusState.FOCUSED and settings.encouragement_enabled:
        probability = ENCOURAGEMENT_PROBABILITY[settings.encouragement_frequency]
        if (rng or random).random() < probability:
            return _encouragement_action(settings, current_task)
    return None


class InterventionPolicy:
    """Single writer of the last-intervention timestamp."""

    def __init__(
        self,
        settings: InterventionSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or InterventionSettings()
        self._clock = clock
        self._rng = rng or random.Random()
        self._last_intervention_at: float | None = None
        self._lock = threading.Lock()

    @property
    def settings(self) -> InterventionSettings:
        with self._lock:
            return self._settings

    def update_settings(self, settings: InterventionSettings) -> None:
        with self._lock:
            self._settings = settings

    def cooldown_remaining(self) -> float:
        """Seconds until the next action may fire (0 when ready)."""
        with self._lock:
            if self._last_intervention_at is None:
                return 0.0
            cooldown = self._settings.intervention_cooldown_minutes * 60
            elapsed = self._clock() - self._last_intervention_at
            return max(0.0, cooldown - elapsed)

    def evaluate(
        self, state: FocusState, current_task: str | None = None
    ) -> InterventionAction | None:
        """Decide and, when an action is taken, restart the cooldown."""
        with self._lock:
            now = self._clock()
            action = decide_intervention(
                state,
                self._settings,
                self._last_intervention_at,
                now,
                current_task,
                self._rng,
            )
            if action is not None:
                self._last_intervention_at = now
        if action is None:
            log.debug("No intervention for %s", state.value)
        else:
            log.info("Intervention %s: %s", action.kind.value, action.message)
        return action
