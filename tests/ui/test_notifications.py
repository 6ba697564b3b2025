from unittest.mock import Mock, patch

import pytest

from myfocus.ui.notifications import (
    DISTRACTION_INTERVENTION,
    FOCUS_STATE_CHANGED,
    NotificationConfig,
    NotificationLevel,
    NotificationService,
)


class TestNotificationService:
    """通知サービスのテスト"""

    @pytest.fixture
    def notification_service(self):
        """テスト用の通知サービス"""
        with patch("platform.system", return_value="Linux"):
            return NotificationService(NotificationConfig(history_size=3))

    def test_initialization(self, notification_service):
        """初期化テスト"""
        assert notification_service.platform == "Linux"
        assert notification_service.config.enable_toast is True
        assert notification_service.get_notification_history() == []
        assert notification_service.get_recent_events() == []

    def test_capabilities(self, notification_service):
        assert notification_service.get_capabilities() == {
            "platform": "Linux",
            "supports_toast": False,
        }

    def test_focus_event_is_recorded_without_notification(self, notification_service):
        notification_service.emit(FOCUS_STATE_CHANGED, {"state": "focused"})

        events = notification_service.get_recent_events()
        assert events == [{"event": FOCUS_STATE_CHANGED, "payload": {"state": "focused"}}]
        assert notification_service.get_notification_history() == []

    def test_intervention_event_notifies(self, notification_service):
        """介入イベントは通知として記録される"""
        notification_service.emit(
            DISTRACTION_INTERVENTION,
            {
                "type": "severe",
                "title": "Severe distraction warning",
                "message": "Get back to work now!",
                "display_seconds": 15,
                "sound_enabled": True,
            },
        )

        history = notification_service.get_notification_history()
        assert len(history) == 1
        assert history[0]["title"] == "Severe distraction warning"
        assert history[0]["level"] == NotificationLevel.URGENT.value
        assert history[0]["duration"] == 15
        assert history[0]["sound"] is True
        assert history[0]["delivered"] is False

    def test_history_is_bounded(self, notification_service):
        for i in range(5):
            notification_service.notify(f"title {i}", "message")
        history = notification_service.get_notification_history()
        assert [h["title"] for h in history] == ["title 2", "title 3", "title 4"]

    def test_windows_toast(self):
        """Windowsではトーストを表示する"""
        notifier = Mock()
        with patch("platform.system", return_value="Windows"):
            service = NotificationService()
        with patch(
            "myfocus.ui.notifications.ToastNotifier",
            return_value=notifier,
            create=True,
        ):
            assert service.notify("Focus reminder", "refocus", duration=10) is True

        notifier.show_toast.assert_called_once_with(
            "Focus reminder", "refocus", duration=10, threaded=True
        )
        assert service.get_notification_history()[0]["delivered"] is True

    def test_windows_toast_failure(self):
        with patch("platform.system", return_value="Windows"):
            service = NotificationService()
        with patch(
            "myfocus.ui.notifications.ToastNotifier",
            side_effect=RuntimeError("no shell"),
            create=True,
        ):
            assert service.notify("t", "m") is False
        assert service.get_notification_history()[0]["delivered"] is False
