"""Data model shared by the monitoring core, the timer and storage."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "AIConfig",
    "CurrentActivity",
    "EncouragementFrequency",
    "FocusSession",
    "FocusState",
    "InterventionSettings",
    "MonitoringConfig",
    "MonitoringResult",
    "SessionStatus",
    "SessionType",
    "Task",
    "TimerState",
    "TimerStatus",
    "utcnow",
]

MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 10
DEFAULT_INTERVAL_MINUTES = 3


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class FocusState(str, Enum):
    """Classification of a single sample."""

    FOCUSED = "focused"
    DISTRACTED = "distracted"
    SEVERELY_DISTRACTED = "severely_distracted"
    UNKNOWN = "unknown"


class AIConfig(BaseModel):
    """Classification backend settings."""

    api_type: str = "openai"  # "openai", "ollama", "claude"
    api_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    detection_model: str = "gpt-3.5-turbo"
    report_model: str = "gpt-4-turbo-preview"


class MonitoringConfig(BaseModel):
    """Scheduler configuration, replaced wholesale on update.

    The interval bound is enforced by ``MonitorService.update_config`` so that
    an out-of-range value can be rejected without touching the current config.
    """

    enabled: bool = False
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    whitelist: list[str] = Field(default_factory=list)
    blacklist: list[str] = Field(default_factory=list)
    ai_config: AIConfig = Field(default_factory=AIConfig)

    def interval_is_valid(self) -> bool:
        return MIN_INTERVAL_MINUTES <= self.interval_minutes <= MAX_INTERVAL_MINUTES


class MonitoringResult(BaseModel):
    """Outcome of one classification cycle."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    focus_state: FocusState = FocusState.UNKNOWN
    application_name: str | None = None
    window_title: str | None = None
    ocr_text: str | None = None
    ai_analysis: str | None = None
    confidence: float = 0.5

    @field_validator("confidence")
    @classmethod
    def confidence_in_unit_range(cls, v: float) -> float:
        """Confidence must lie in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            msg = f"confidence must be within [0, 1], got {v}"
            raise ValueError(msg)
        return v


class CurrentActivity(BaseModel):
    """Cached view of the latest sample for cheap polling."""

    application_name: str | None = None
    window_title: str | None = None
    is_productive: bool | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class EncouragementFrequency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InterventionSettings(BaseModel):
    """User toggles for distraction interventions."""

    enabled: bool = True
    light_distraction_notification: bool = True
    severe_distraction_popup: bool = True
    encouragement_enabled: bool = True
    intervention_cooldown_minutes: int = 5
    notification_sound: bool = True
    popup_duration_seconds: int = 10
    encouragement_frequency: EncouragementFrequency = EncouragementFrequency.MEDIUM


class SessionType(str, Enum):
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


class SessionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FocusSession(BaseModel):
    """A manually started focus or break session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_type: SessionType = SessionType.FOCUS
    status: SessionStatus = SessionStatus.PENDING
    duration_minutes: int = 25
    elapsed_seconds: int = 0
    task_id: str | None = None
    started_at: datetime | None = None
    paused_at: datetime | None = None
    completed_at: datetime | None = None
    interruptions: int = 0
    notes: str | None = None


class Task(BaseModel):
    """Read-only view of a stored task; only what the monitor needs."""

    id: str
    title: str = Field(validation_alias=AliasChoices("title", "text"))
    completed: bool = False


class TimerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class TimerStatus(BaseModel):
    is_running: bool
    state: TimerState
    session: FocusSession | None = None
    elapsed_seconds: int = 0
    remaining_seconds: int = 0
