"""Focus-state classification: prompt building and reply parsing."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from myfocus.api.services.llm import LLMService
from myfocus.model.errors import BackendError
from myfocus.model.models import AIConfig, FocusState, MonitoringConfig, utcnow
from myfocus.watchers.active_window import WindowInfo
from myfocus.watchers.logger import logger

log = logger.getChild("classifier")

OCR_PROMPT_LIMIT = 1000

# Contains no state keyword, so it parses to (UNKNOWN, 0.5).
FALLBACK_REPLY = (
    "Status: unknown\n"
    "Analysis: classification unavailable, the analysis backend could not be "
    "reached. Check the network connection and API settings."
)

# Checked in this order: a severe signal must never be masked by the broader
# "distracted" keyword that it contains.
STATUS_LINES: tuple[tuple[FocusState, float, tuple[str, ...]], ...] = (
    (
        FocusState.SEVERELY_DISTRACTED,
        0.95,
        (
            "status: severely distracted",
            "status: severely-distracted",
            "status: severely_distracted",
            "status:severely distracted",
            "状态: 严重分心",
            "状态:严重分心",
            "状态：严重分心",
        ),
    ),
    (
        FocusState.DISTRACTED,
        0.90,
        ("status: distracted", "status:distracted", "状态: 分心", "状态:分心", "状态：分心"),
    ),
    (
        FocusState.FOCUSED,
        0.90,
        ("status: focused", "status:focused", "状态: 专注", "状态:专注", "状态：专注"),
    ),
)

KEYWORDS: tuple[tuple[FocusState, float, tuple[str, ...]], ...] = (
    (
        FocusState.SEVERELY_DISTRACTED,
        0.85,
        ("severely distracted", "severely-distracted", "severely_distracted", "严重分心"),
    ),
    (FocusState.DISTRACTED, 0.75, ("distracted", "分心")),
    (FocusState.FOCUSED, 0.70, ("focused", "专注")),
)


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    # English phrases match whole words only ("unfocused" is not "focused")
    escaped = re.escape(phrase)
    if phrase.isascii():
        return re.compile(rf"(?<![a-z]){escaped}(?![a-z])")
    return re.compile(escaped)


_PATTERNS = tuple(
    tuple(
        (state, confidence, tuple(_phrase_pattern(p) for p in phrases))
        for state, confidence, phrases in table
    )
    for table in (STATUS_LINES, KEYWORDS)
)


def parse_classifier_output(text: str) -> tuple[FocusState, float]:
    """Map a backend reply to ``(state, confidence)``.

    Explicit status lines win over bare keywords; within each table the
    scan runs from most to least severe. Negations are not understood:
    "not distracted" still counts as distracted.
    """
    lowered = text.lower()
    for table in _PATTERNS:
        for state, confidence, patterns in table:
            if any(p.search(lowered) for p in patterns):
                return state, confidence
    return FocusState.UNKNOWN, 0.5


def truncate_ocr_text(text: str, limit: int = OCR_PROMPT_LIMIT) -> str:
    if len(text) > limit:
        return f"{text[:limit]}..."
    return text


def build_analysis_prompt(
    config: MonitoringConfig,
    activity: WindowInfo,
    ocr_text: str | None,
    current_task: str | None = None,
    now: datetime | None = None,
) -> str:
    """Assemble the classification prompt from one observation."""
    lines = ["Analyze the user's current focus state and progress on their task.", ""]

    if current_task:
        lines.append(f"**Current task**: {current_task}")
    else:
        lines.append("**Current task**: no explicit task set")
    lines.append("")

    if config.whitelist or config.blacklist:
        lines.append("**Application rules**:")
        if config.whitelist:
            lines.append(
                "Whitelisted apps (usually help focus): " + ", ".join(config.whitelist)
            )
        if config.blacklist:
            lines.append(
                "Blacklisted apps (usually distracting): " + ", ".join(config.blacklist)
            )
        lines.append("")

    screen = truncate_ocr_text(ocr_text) if ocr_text else "no text content"
    timestamp = (now or utcnow()).strftime("%Y-%m-%d %H:%M:%S")
    lines += [
        "**Current activity**:",
        f"- Application: {activity.application_name or 'unknown application'}",
        f"- Window title: {activity.window_title or 'untitled'}",
        f"- Screen content: {screen}",
        f"Current time: {timestamp}",
        "",
        "Judge the user's focus state from the information above and answer "
        "in exactly this format:",
        "",
        "Status: [Focused/Distracted/Severely Distracted]",
        "Analysis: [reasons for the judgement]",
        "",
        "Criteria:",
    ]
    if current_task:
        lines += [
            "- Focused: the activity relates to the task or uses tools that help "
            "complete it",
            "- Distracted: the activity is unrelated to the task but harmless",
            "- Severely Distracted: a long stretch of activity entirely unrelated "
            "to the task",
        ]
    else:
        lines += [
            "- Focused: using whitelisted apps or doing self-improvement work",
            "- Distracted: using blacklisted apps or entertainment",
            "- Severely Distracted: prolonged entertainment that hurts productivity",
        ]
    return "\n".join(lines)


class Backend(Protocol):
    def analyze(self, prompt: str, role: str = "detection") -> str: ...


class FocusClassifier:
    """Prompt → backend → parsed focus state.

    A backend is built per distinct :class:`AIConfig` via ``backend_factory``
    and reused while the config stays the same.
    """

    def __init__(
        self,
        backend_factory: Callable[[AIConfig], Backend] = LLMService,
    ) -> None:
        self.backend_factory = backend_factory
        self._backend: Backend | None = None
        self._backend_config: AIConfig | None = None

    def _backend_for(self, ai_config: AIConfig) -> Backend:
        if self._backend is None or self._backend_config != ai_config:
            self._backend = self.backend_factory(ai_config)
            self._backend_config = ai_config
        return self._backend

    def call_backend(self, ai_config: AIConfig, prompt: str) -> str:
        """Backend reply, or :data:`FALLBACK_REPLY` when the backend fails."""
        try:
            return self._backend_for(ai_config).analyze(prompt, "detection")
        except BackendError as e:
            log.warning("Backend unavailable, using fallback reply: %s", e)
            return FALLBACK_REPLY

    def classify(
        self,
        activity: WindowInfo,
        ocr_text: str | None,
        config: MonitoringConfig,
        current_task: str | None = None,
    ) -> tuple[FocusState, float, str]:
        prompt = build_analysis_prompt(config, activity, ocr_text, current_task)
        log.debug("Analysis prompt (%s chars):\n%s", len(prompt), prompt)
        raw = self.call_backend(config.ai_config, prompt)
        state, confidence = parse_classifier_output(raw)
        log.info("Classified %s (confidence %.2f)", state.value, confidence)
        return state, confidence, raw
