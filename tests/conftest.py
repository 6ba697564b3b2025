from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from myfocus.api.services.storage import JsonStorage
from myfocus.model.models import AIConfig, MonitoringConfig
from myfocus.watchers.active_window import WindowInfo


class FakeClock:
    """手動で進める単調時計"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """手動で設定するUTC時計"""

    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def jump(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_wall_clock():
    return FakeWallClock()


@pytest.fixture
def coding_window():
    """生産的なウィンドウ"""
    return WindowInfo(application_name="Code.exe", window_title="main.py - VSCode")


@pytest.fixture
def video_window():
    """脱線しているウィンドウ"""
    return WindowInfo(
        application_name="chrome.exe", window_title="YouTube - Google Chrome"
    )


@pytest.fixture
def monitoring_config():
    """有効化済みのテスト用監視設定"""
    return MonitoringConfig(
        enabled=True,
        interval_minutes=1,
        whitelist=["Code.exe"],
        blacklist=["chrome.exe"],
        ai_config=AIConfig(api_type="openai", api_url="http://localhost:1234/v1"),
    )


@pytest.fixture
def storage(tmp_path):
    return JsonStorage(tmp_path / "data")


@pytest.fixture
def mock_backend():
    """分類バックエンドのモック"""
    backend = Mock()
    backend.analyze = Mock(return_value="Status: Focused\nAnalysis: editing code")
    return backend
