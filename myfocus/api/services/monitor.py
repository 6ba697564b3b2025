"""Monitoring scheduler: periodic capture → OCR → classify cycles."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

from myfocus.api.services.classifier import FocusClassifier
from myfocus.api.services.intervention import InterventionAction, InterventionPolicy
from myfocus.api.services.timer import TimerService
from myfocus.model.errors import ConfigValidationError, MonitorError, PersistenceError
from myfocus.model.models import (
    MAX_INTERVAL_MINUTES,
    MIN_INTERVAL_MINUTES,
    CurrentActivity,
    FocusState,
    MonitoringConfig,
    MonitoringResult,
    Task,
    utcnow,
)
from myfocus.ui.notifications import (
    DISTRACTION_INTERVENTION,
    FOCUS_STATE_CHANGED,
    EventSink,
)
from myfocus.watchers.active_window import WindowInfo, get_active_app
from myfocus.watchers.logger import logger

log = logger.getChild("monitor")

DISABLED_BACKOFF_SEC = 10.0


class Capture(Protocol):
    def capture(self) -> bytes: ...


class TextExtractor(Protocol):
    def extract_text(self, image: bytes) -> str: ...


class ResultStore(Protocol):
    def append_result(self, result: MonitoringResult) -> None: ...

    def append_intervention_log(self, entry: dict[str, Any]) -> None: ...

    def load_tasks(self) -> list[Task]: ...


def focus_state_payload(result: MonitoringResult) -> dict[str, Any]:
    return {
        "state": result.focus_state.value,
        "confidence": result.confidence,
        "application_name": result.application_name,
        "window_title": result.window_title,
        "timestamp": result.timestamp.isoformat(),
        "ai_analysis": result.ai_analysis,
    }


def intervention_payload(
    action: InterventionAction, result: MonitoringResult
) -> dict[str, Any]:
    return {
        "type": action.kind.value,
        "title": action.title,
        "message": action.message,
        "timestamp": result.timestamp.isoformat(),
        "focus_state": result.focus_state.value,
        "confidence": result.confidence,
        "application_name": result.application_name,
        "window_title": result.window_title,
        "urgent": action.urgent,
        "display_seconds": action.display_seconds,
        "sound_enabled": action.sound_enabled,
    }


class MonitorService:
    """Stopped → Running → Stopped.

    The loop runs on one daemon thread and waits on a per-run stop event, so
    :meth:`stop` wakes a sleeping loop at once. A cycle already in flight is
    allowed to finish but does not touch the cleared state afterwards.
    Loop cycles hold ``_cycle_lock``, so a loop started right after a stop
    waits for the previous loop's cycle instead of overlapping it.
    :meth:`trigger_manual_check` runs on the caller's thread and may overlap
    with the loop's own cycle.
    """

    def __init__(
        self,
        capture: Capture,
        ocr: TextExtractor,
        classifier: FocusClassifier,
        policy: InterventionPolicy,
        *,
        probe: Callable[[], WindowInfo] = get_active_app,
        sink: EventSink | None = None,
        storage: ResultStore | None = None,
        timer: TimerService | None = None,
        config: MonitoringConfig | None = None,
        disabled_backoff: float = DISABLED_BACKOFF_SEC,
    ) -> None:
        self._capture = capture
        self._ocr = ocr
        self._classifier = classifier
        self._policy = policy
        self._probe = probe
        self._sink = sink
        self._storage = storage
        self._timer = timer
        self.disabled_backoff = disabled_backoff

        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._config = config or MonitoringConfig()
        self._running = False
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._current_activity: CurrentActivity | None = None
        self._last_result: MonitoringResult | None = None

    # ------------------------------------------------------------------
    # Configuration
    def get_config(self) -> MonitoringConfig:
        with self._lock:
            return self._config.model_copy(deep=True)

    def update_config(self, config: MonitoringConfig) -> None:
        """Replace the config; takes effect at the next tick.

        Raises:
            ConfigValidationError: interval outside the allowed range.

        """
        if not config.interval_is_valid():
            msg = (
                f"interval_minutes must be within "
                f"[{MIN_INTERVAL_MINUTES}, {MAX_INTERVAL_MINUTES}], "
                f"got {config.interval_minutes}"
            )
            raise ConfigValidationError(msg)
        with self._lock:
            self._config = config.model_copy(deep=True)
        log.info(
            "Config updated: enabled=%s interval=%smin whitelist=%s blacklist=%s",
            config.enabled,
            config.interval_minutes,
            len(config.whitelist),
            len(config.blacklist),
        )

    def update_interval(self, minutes: int) -> MonitoringConfig:
        config = self.get_config().model_copy(update={"interval_minutes": minutes})
        self.update_config(config)
        return config

    # ------------------------------------------------------------------
    # Lifecycle
    def is_monitoring(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> bool:
        """Launch the loop; a no-op when it is already running."""
        with self._lock:
            if self._running:
                log.info("Monitoring already running, skip start")
                return True
            self._running = True
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="myfocus-monitor",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            config = self._config
            thread.start()
        log.info(
            "Monitoring started: enabled=%s interval=%smin api=%s %s",
            config.enabled,
            config.interval_minutes,
            config.ai_config.api_type,
            config.ai_config.api_url,
        )
        return True

    def stop(self, wait: float | None = None) -> bool:
        """Stop the loop and clear cached state; a no-op when stopped.

        Args:
            wait: seconds to wait for the loop thread to exit (None: don't wait)

        """
        with self._lock:
            if not self._running:
                log.info("Monitoring already stopped")
                return True
            self._running = False
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
            if stop_event is not None:
                stop_event.set()
            self._current_activity = None
            self._last_result = None

        if wait is not None and thread is not None and thread is not threading.current_thread():
            thread.join(wait)
            if thread.is_alive():
                log.warning("Monitor loop still finishing its current cycle")
        log.info("Monitoring stopped")
        return True

    def _run_loop(self, stop_event: threading.Event) -> None:
        iteration = 0
        loop_start = time.monotonic()
        log.info("Monitor loop started")

        while not stop_event.is_set():
            config = self.get_config()
            if not config.enabled:
                log.debug("Monitoring disabled, re-check in %ss", self.disabled_backoff)
                stop_event.wait(self.disabled_backoff)
                continue

            with self._cycle_lock:
                if stop_event.is_set():
                    break
                iteration += 1
                started = time.monotonic()
                try:
                    self.run_cycle(config, stop_event)
                except MonitorError as e:
                    log.warning("Cycle %s abandoned: %s", iteration, e)
                except Exception:
                    log.exception("Cycle %s failed", iteration)
                else:
                    log.info(
                        "Cycle %s done in %.2fs",
                        iteration,
                        time.monotonic() - started,
                    )

            stop_event.wait(config.interval_minutes * 60)

        log.info(
            "Monitor loop finished after %s cycles (%.0fs)",
            iteration,
            time.monotonic() - loop_start,
        )

    # ------------------------------------------------------------------
    # Classification cycle
    def trigger_manual_check(self) -> MonitoringResult:
        """Run one cycle now, on the calling thread, and return its result."""
        log.info("Manual check (loop running: %s)", self.is_monitoring())
        return self.run_cycle(self.get_config())

    def run_cycle(
        self,
        config: MonitoringConfig,
        stop_event: threading.Event | None = None,
    ) -> MonitoringResult:
        """probe → capture → OCR → classify → publish.

        Raises:
            ProbeError: the foreground window could not be read.
            CaptureError: the screen could not be captured.

        """
        window = self._probe()
        image = self._capture.capture()
        ocr_text = self._ocr.extract_text(image) or None
        task = self.current_task_name()

        state, confidence, raw = self._classifier.classify(window, ocr_text, config, task)
        result = MonitoringResult(
            timestamp=utcnow(),
            focus_state=state,
            application_name=window.application_name,
            window_title=window.window_title,
            ocr_text=ocr_text,
            ai_analysis=raw,
            confidence=confidence,
        )

        self._publish(result, task, stop_event)
        return result

    def _publish(
        self,
        result: MonitoringResult,
        task: str | None,
        stop_event: threading.Event | None = None,
    ) -> None:
        activity = CurrentActivity(
            application_name=result.application_name,
            window_title=result.window_title,
            is_productive=result.focus_state is FocusState.FOCUSED,
            timestamp=result.timestamp,
        )
        # stop() sets the event under the same lock
        with self._lock:
            stopped = stop_event is not None and stop_event.is_set()
            if not stopped:
                self._current_activity = activity
                self._last_result = result
        if stopped:
            log.info("Monitoring stopped mid-cycle, result not published")
            self._persist(result)
            return

        self._emit(FOCUS_STATE_CHANGED, focus_state_payload(result))

        action = self._policy.evaluate(result.focus_state, task)
        payload = None
        if action is not None:
            payload = intervention_payload(action, result)
            self._emit(DISTRACTION_INTERVENTION, payload)

        self._persist(result)
        if payload is not None:
            self._log_intervention(payload, result)

    def _emit(self, event_name: str, payload: dict[str, Any]) -> None:
        if self._sink is None:
            return
        try:
            self._sink.emit(event_name, payload)
        except Exception:
            log.exception("Failed to emit %s", event_name)

    def _persist(self, result: MonitoringResult) -> None:
        if self._storage is None:
            return
        try:
            self._storage.append_result(result)
        except PersistenceError as e:
            log.warning("Failed to save monitoring result: %s", e)

    def _log_intervention(self, payload: dict[str, Any], result: MonitoringResult) -> None:
        if self._storage is None:
            return
        entry = {**payload, "ai_analysis": result.ai_analysis}
        try:
            self._storage.append_intervention_log(entry)
        except PersistenceError as e:
            log.warning("Failed to save intervention log: %s", e)

    def current_task_name(self) -> str | None:
        """Title of the timer's task, else of the first unfinished task."""
        if self._storage is None:
            return None
        try:
            tasks = self._storage.load_tasks()
        except PersistenceError as e:
            log.warning("Failed to load tasks: %s", e)
            return None

        if self._timer is not None:
            session = self._timer.get_current_session()
            if session is not None and session.task_id:
                for task in tasks:
                    if task.id == session.task_id:
                        return task.title

        for task in tasks:
            if not task.completed:
                return task.title
        return None

    # ------------------------------------------------------------------
    # Queries
    def get_current_activity(self) -> CurrentActivity | None:
        with self._lock:
            return self._current_activity

    def get_last_result(self) -> MonitoringResult | None:
        with self._lock:
            return self._last_result
