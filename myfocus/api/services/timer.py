"""Session timer for manually started focus and break sessions."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime

from myfocus.model.errors import SessionAlreadyActiveError
from myfocus.model.models import (
    FocusSession,
    SessionStatus,
    SessionType,
    TimerState,
    TimerStatus,
    utcnow,
)
from myfocus.watchers.logger import logger

log = logger.getChild("timer")


class TimerService:
    """Stopped → Running ⇄ Paused → Stopped.

    Elapsed time is ``banked + (now - segment_start)`` on the monotonic
    ``clock``; ``wall_clock`` only stamps ``started_at`` and friends.
    At most one live session exists; starting another is rejected.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.Lock()
        self._session: FocusSession | None = None
        self._state = TimerState.STOPPED
        self._segment_start: float | None = None
        self._banked_seconds = 0.0

    def _elapsed_locked(self) -> float:
        if self._state is TimerState.RUNNING and self._segment_start is not None:
            return self._banked_seconds + (self._clock() - self._segment_start)
        return self._banked_seconds

    def _reset_locked(self) -> None:
        self._session = None
        self._state = TimerState.STOPPED
        self._segment_start = None
        self._banked_seconds = 0.0

    def start(
        self,
        session_type: SessionType = SessionType.FOCUS,
        duration_minutes: int = 25,
        task_id: str | None = None,
        notes: str | None = None,
    ) -> FocusSession:
        """Start a new session.

        Raises:
            SessionAlreadyActiveError: a session is running or paused.

        """
        with self._lock:
            if self._session is not None:
                msg = f"session {self._session.id} is already {self._state.value}"
                raise SessionAlreadyActiveError(msg)
            self._session = FocusSession(
                session_type=session_type,
                status=SessionStatus.ACTIVE,
                duration_minutes=duration_minutes,
                task_id=task_id,
                notes=notes,
                started_at=self._wall_clock(),
            )
            self._state = TimerState.RUNNING
            self._segment_start = self._clock()
            self._banked_seconds = 0.0
            session = self._session.model_copy()
        log.info(
            "Session started: %s (%s, %s min)",
            session.id,
            session_type.value,
            duration_minutes,
        )
        return session

    def pause(self) -> bool:
        """Pause a running session. Returns False when nothing was running."""
        with self._lock:
            if self._state is not TimerState.RUNNING or self._session is None:
                return False
            self._banked_seconds = self._elapsed_locked()
            self._segment_start = None
            self._state = TimerState.PAUSED
            self._session.status = SessionStatus.PAUSED
            self._session.paused_at = self._wall_clock()
            self._session.interruptions += 1
            self._session.elapsed_seconds = int(self._banked_seconds)
        log.info("Session paused")
        return True

    def resume(self) -> bool:
        """Resume a paused session. Returns False when nothing was paused."""
        with self._lock:
            if self._state is not TimerState.PAUSED or self._session is None:
                return False
            self._state = TimerState.RUNNING
            self._segment_start = self._clock()
            self._session.status = SessionStatus.ACTIVE
            self._session.paused_at = None
        log.info("Session resumed")
        return True

    def _finish(self, status: SessionStatus) -> FocusSession | None:
        with self._lock:
            if self._session is None:
                return None
            session = self._session
            session.elapsed_seconds = int(self._elapsed_locked())
            session.status = status
            session.completed_at = self._wall_clock()
            self._reset_locked()
        log.info(
            "Session %s: %s (%ss)", status.value, session.id, session.elapsed_seconds
        )
        return session

    def stop(self) -> FocusSession | None:
        """Finish the live session and hand it back for persistence."""
        return self._finish(SessionStatus.COMPLETED)

    def cancel(self) -> FocusSession | None:
        """Abandon the live session; it is returned marked cancelled."""
        return self._finish(SessionStatus.CANCELLED)

    def get_current_session(self) -> FocusSession | None:
        with self._lock:
            if self._session is None:
                return None
            session = self._session.model_copy()
            session.elapsed_seconds = int(self._elapsed_locked())
            return session

    def get_elapsed_seconds(self) -> int:
        with self._lock:
            return int(self._elapsed_locked())

    def get_remaining_seconds(self) -> int:
        with self._lock:
            if self._session is None:
                return 0
            total = self._session.duration_minutes * 60
            return max(0, total - int(self._elapsed_locked()))

    def get_state(self) -> TimerState:
        with self._lock:
            return self._state

    def get_status(self) -> TimerStatus:
        with self._lock:
            session = None
            remaining = 0
            elapsed = int(self._elapsed_locked())
            if self._session is not None:
                session = self._session.model_copy()
                session.elapsed_seconds = elapsed
                remaining = max(0, self._session.duration_minutes * 60 - elapsed)
            return TimerStatus(
                is_running=self._state is TimerState.RUNNING,
                state=self._state,
                session=session,
                elapsed_seconds=elapsed,
                remaining_seconds=remaining,
            )
