import pytest

from myfocus.api.services.timer import TimerService
from myfocus.model.errors import SessionAlreadyActiveError
from myfocus.model.models import SessionStatus, SessionType, TimerState


class TestTimerService:
    """セッションタイマーの状態遷移テスト"""

    @pytest.fixture
    def timer(self, fake_clock, fake_wall_clock):
        return TimerService(clock=fake_clock, wall_clock=fake_wall_clock)

    def test_initial_state(self, timer):
        status = timer.get_status()
        assert status.state is TimerState.STOPPED
        assert status.is_running is False
        assert status.session is None
        assert timer.get_remaining_seconds() == 0

    def test_start(self, timer, fake_wall_clock):
        session = timer.start(SessionType.FOCUS, 25, task_id="t1", notes="draft")
        assert session.status is SessionStatus.ACTIVE
        assert session.started_at == fake_wall_clock.now
        assert session.task_id == "t1"
        assert timer.get_state() is TimerState.RUNNING

    def test_start_while_active_is_rejected(self, timer):
        """セッション中の再開始は拒否"""
        first = timer.start()
        with pytest.raises(SessionAlreadyActiveError):
            timer.start()
        assert timer.get_current_session().id == first.id

    def test_start_while_paused_is_rejected(self, timer):
        timer.start()
        timer.pause()
        with pytest.raises(SessionAlreadyActiveError):
            timer.start(SessionType.SHORT_BREAK, 5)

    def test_elapsed_counts_running_time_only(self, timer, fake_clock, fake_wall_clock):
        """一時停止中の時間と壁時計のずれは経過時間に影響しない"""
        timer.start(duration_minutes=25)
        fake_clock.advance(120)

        assert timer.pause() is True
        fake_clock.advance(600)
        fake_wall_clock.jump(hours=-3)

        assert timer.resume() is True
        fake_clock.advance(60)
        fake_wall_clock.jump(days=2)

        session = timer.stop()
        assert session is not None
        assert session.elapsed_seconds == 180
        assert session.status is SessionStatus.COMPLETED
        assert session.interruptions == 1
        assert session.completed_at == fake_wall_clock.now
        assert timer.get_state() is TimerState.STOPPED

    def test_pause_resume_invalid_states(self, timer):
        assert timer.pause() is False
        assert timer.resume() is False
        timer.start()
        assert timer.resume() is False
        assert timer.pause() is True
        assert timer.pause() is False

    def test_pause_records_status(self, timer, fake_clock, fake_wall_clock):
        timer.start()
        fake_clock.advance(30)
        timer.pause()
        session = timer.get_current_session()
        assert session.status is SessionStatus.PAUSED
        assert session.paused_at == fake_wall_clock.now
        assert session.elapsed_seconds == 30

    def test_remaining_floor_at_zero(self, timer, fake_clock):
        timer.start(duration_minutes=1)
        fake_clock.advance(30)
        assert timer.get_remaining_seconds() == 30
        fake_clock.advance(120)
        assert timer.get_remaining_seconds() == 0
        assert timer.get_elapsed_seconds() == 150

    def test_stop_when_stopped(self, timer):
        assert timer.stop() is None
        assert timer.cancel() is None

    def test_cancel(self, timer, fake_clock):
        timer.start()
        fake_clock.advance(10)
        session = timer.cancel()
        assert session.status is SessionStatus.CANCELLED
        assert session.elapsed_seconds == 10
        assert timer.get_current_session() is None

    def test_restart_after_stop(self, timer):
        first = timer.start()
        timer.stop()
        second = timer.start(SessionType.LONG_BREAK, 15)
        assert second.id != first.id
        assert second.session_type is SessionType.LONG_BREAK

    def test_status_snapshot(self, timer, fake_clock):
        timer.start(duration_minutes=25)
        fake_clock.advance(100)
        status = timer.get_status()
        assert status.is_running is True
        assert status.elapsed_seconds == 100
        assert status.remaining_seconds == 25 * 60 - 100
        assert status.session.elapsed_seconds == 100
