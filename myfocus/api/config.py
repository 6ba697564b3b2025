"""Environment configuration for the application root."""

import os
from pathlib import Path

from dotenv import load_dotenv

from myfocus.api.services.llm import ai_config_from_env
from myfocus.model.models import MonitoringConfig

REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_DATA_DIR = Path("./data")


def load_local_env(path: Path | None = None) -> None:
    """Load ``.env.local`` into the process environment (existing vars win)."""
    load_dotenv(dotenv_path=path or REPO_ROOT / ".env.local", override=False)


def data_dir() -> Path:
    """Directory holding the JSON storage files (``MYFOCUS_DATA_DIR``)."""
    return Path(os.getenv("MYFOCUS_DATA_DIR") or DEFAULT_DATA_DIR)


def default_monitoring_config() -> MonitoringConfig:
    """Monitoring defaults with the AI backend taken from the environment."""
    return MonitoringConfig(ai_config=ai_config_from_env())
