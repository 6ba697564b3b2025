"""Event sink: records monitor events and shows intervention toasts."""

import platform
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from myfocus.watchers.logger import logger

if sys.platform == "win32":
    from win10toast import ToastNotifier  # type: ignore[import-untyped, unused-ignore]

log = logger.getChild("notifications")

FOCUS_STATE_CHANGED = "focus_state_changed"
DISTRACTION_INTERVENTION = "distraction_intervention"


class EventSink(Protocol):
    def emit(self, event_name: str, payload: dict[str, Any]) -> None: ...


class NotificationLevel(Enum):
    """Notification severity levels used by the service."""

    INFO = "info"
    WARNING = "warning"
    URGENT = "urgent"


INTERVENTION_LEVELS = {
    "light": NotificationLevel.WARNING,
    "severe": NotificationLevel.URGENT,
    "encouragement": NotificationLevel.INFO,
}


@dataclass
class NotificationConfig:
    """Configuration for :class:`NotificationService`."""

    enable_toast: bool = True
    history_size: int = 100


class NotificationService:
    """Event sink with bounded history and Windows toasts for interventions."""

    def __init__(self, config: NotificationConfig | None = None) -> None:
        self.platform = platform.system()
        self.config = config or NotificationConfig()
        self._lock = threading.Lock()
        self._events: deque[dict[str, Any]] = deque(maxlen=self.config.history_size)
        self._history: deque[dict[str, Any]] = deque(maxlen=self.config.history_size)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Record an event; interventions are also shown to the user."""
        with self._lock:
            self._events.append({"event": event_name, "payload": dict(payload)})
        log.info("Event %s: %s", event_name, payload.get("state") or payload.get("type"))

        if event_name == DISTRACTION_INTERVENTION:
            level = INTERVENTION_LEVELS.get(payload.get("type", ""), NotificationLevel.INFO)
            self.notify(
                payload.get("title") or "My Focus",
                payload.get("message", ""),
                level,
                duration=int(payload.get("display_seconds", 10)),
                sound=bool(payload.get("sound_enabled", False)),
            )

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        *,
        duration: int = 10,
        sound: bool = False,
    ) -> bool:
        """Display a notification and record it.

        Toasts are only shown on Windows; elsewhere the notification is
        recorded and ``False`` is returned.
        """
        success = False
        if self.platform == "Windows" and self.config.enable_toast:
            try:
                notifier = ToastNotifier()
                notifier.show_toast(  # pyright: ignore[reportUnknownMemberType]
                    title, message, duration=duration, threaded=True
                )
                success = True
            except Exception:
                log.exception("Toast delivery failed")

        with self._lock:
            self._history.append(
                {
                    "title": title,
                    "message": message,
                    "level": level.value,
                    "sound": sound,
                    "duration": duration,
                    "timestamp": time.time(),
                    "delivered": success,
                },
            )
        return success

    # ------------------------------------------------------------------
    # Query helpers
    def get_capabilities(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "supports_toast": self.platform == "Windows",
        }

    def get_notification_history(self) -> list[dict[str, Any]]:
        """Return a copy of the notification history."""
        with self._lock:
            return list(self._history)

    def get_recent_events(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)
