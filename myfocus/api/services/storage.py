"""JSON file storage for configuration, results, sessions and tasks."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from myfocus.model.errors import PersistenceError
from myfocus.model.models import (
    FocusSession,
    InterventionSettings,
    MonitoringConfig,
    MonitoringResult,
    Task,
    utcnow,
)
from myfocus.watchers.logger import logger

log = logger.getChild("storage")

CONFIG_FILE = "monitoring_config.json"
RESULTS_FILE = "monitoring_results.json"
SESSIONS_FILE = "focus_sessions.json"
TASKS_FILE = "tasks.json"
INTERVENTION_SETTINGS_FILE = "intervention_settings.json"


class JsonStorage:
    """Last-write-wins JSON files under ``data_dir``.

    Missing files read as defaults or empty lists. Every failure is raised
    as :class:`PersistenceError`.
    """

    def __init__(self, data_dir: str | os.PathLike[str]) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Low-level helpers
    def _path(self, name: str) -> Path:
        return self.data_dir / name

    def _read_json(self, name: str) -> Any:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            msg = f"failed to read {path}: {e}"
            raise PersistenceError(msg) from e

    def _write_json(self, name: str, data: Any) -> None:
        path = self._path(name)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            msg = f"failed to write {path}: {e}"
            raise PersistenceError(msg) from e

    def _read_list(self, name: str) -> list[Any]:
        raw = self._read_json(name)
        if raw is None:
            return []
        if not isinstance(raw, list):
            msg = f"corrupt {name}: expected a list, got {type(raw).__name__}"
            raise PersistenceError(msg)
        return raw

    def _load_list(self, name: str, model: type[BaseModel]) -> list[Any]:
        raw = self._read_list(name)
        try:
            return [model.model_validate(item) for item in raw]
        except (ValidationError, TypeError) as e:
            msg = f"corrupt records in {name}: {e}"
            raise PersistenceError(msg) from e

    def _load_one(
        self, name: str, model: type[BaseModel], default: BaseModel | None = None
    ) -> Any:
        raw = self._read_json(name)
        if raw is None:
            return default if default is not None else model()
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            msg = f"corrupt {name}: {e}"
            raise PersistenceError(msg) from e

    # ------------------------------------------------------------------
    # Monitoring configuration
    def load_config(self, default: MonitoringConfig | None = None) -> MonitoringConfig:
        """Persisted config, or ``default`` when nothing was saved yet."""
        with self._lock:
            return self._load_one(CONFIG_FILE, MonitoringConfig, default)

    def save_config(self, config: MonitoringConfig) -> None:
        with self._lock:
            self._write_json(CONFIG_FILE, config.model_dump(mode="json"))

    def load_intervention_settings(self) -> InterventionSettings:
        with self._lock:
            return self._load_one(INTERVENTION_SETTINGS_FILE, InterventionSettings)

    def save_intervention_settings(self, settings: InterventionSettings) -> None:
        with self._lock:
            self._write_json(INTERVENTION_SETTINGS_FILE, settings.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Monitoring results
    def append_result(self, result: MonitoringResult) -> None:
        with self._lock:
            raw = self._read_list(RESULTS_FILE)
            raw.append(result.model_dump(mode="json"))
            self._write_json(RESULTS_FILE, raw)

    def load_results(self) -> list[MonitoringResult]:
        with self._lock:
            return self._load_list(RESULTS_FILE, MonitoringResult)

    def append_intervention_log(self, entry: dict[str, Any]) -> None:
        """Append one JSON line to today's intervention log."""
        name = f"intervention_logs_{utcnow():%Y%m%d}.jsonl"
        path = self._path(name)
        with self._lock:
            try:
                self.data_dir.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            except OSError as e:
                msg = f"failed to append to {path}: {e}"
                raise PersistenceError(msg) from e

    # ------------------------------------------------------------------
    # Sessions and tasks
    def save_session(self, session: FocusSession) -> None:
        """Insert or replace the session with the same id."""
        with self._lock:
            raw = self._read_list(SESSIONS_FILE)
            if not all(isinstance(item, dict) for item in raw):
                msg = f"corrupt records in {SESSIONS_FILE}"
                raise PersistenceError(msg)
            raw = [item for item in raw if item.get("id") != session.id]
            raw.append(session.model_dump(mode="json"))
            self._write_json(SESSIONS_FILE, raw)

    def load_sessions(self) -> list[FocusSession]:
        with self._lock:
            return self._load_list(SESSIONS_FILE, FocusSession)

    def load_tasks(self) -> list[Task]:
        with self._lock:
            return self._load_list(TASKS_FILE, Task)
