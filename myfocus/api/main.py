"""監視とタイマーの操作を公開するFastAPIアプリ."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, field_validator

from myfocus.api.config import data_dir, default_monitoring_config, load_local_env
from myfocus.api.services.classifier import FocusClassifier
from myfocus.api.services.intervention import InterventionPolicy
from myfocus.api.services.monitor import MonitorService
from myfocus.api.services.storage import JsonStorage
from myfocus.api.services.timer import TimerService
from myfocus.model.errors import (
    ConfigValidationError,
    MonitorError,
    PersistenceError,
    SessionAlreadyActiveError,
)
from myfocus.model.models import (
    MAX_INTERVAL_MINUTES,
    MIN_INTERVAL_MINUTES,
    CurrentActivity,
    FocusSession,
    InterventionSettings,
    MonitoringConfig,
    MonitoringResult,
    SessionType,
    TimerStatus,
)
from myfocus.ui.notifications import NotificationService
from myfocus.watchers.logger import logger
from myfocus.watchers.ocr import OcrEngine
from myfocus.watchers.screen_capture import ScreenCapture

log = logger.getChild("api")

SHUTDOWN_WAIT_SEC = 5.0


@dataclass
class AppContext:
    """エンドポイント間で共有するサービス群."""

    storage: JsonStorage
    notifications: NotificationService
    policy: InterventionPolicy
    timer: TimerService
    monitor: MonitorService


def build_context(data_path: Path | None = None) -> AppContext:
    """環境変数と保存済み設定から本番用サービスを組み立てる."""
    load_local_env()
    storage = JsonStorage(data_path or data_dir())

    config = default_monitoring_config()
    settings = InterventionSettings()
    try:
        config = storage.load_config(config)
        settings = storage.load_intervention_settings()
    except PersistenceError as e:
        log.warning("Stored settings unreadable, using defaults: %s", e)

    notifications = NotificationService()
    policy = InterventionPolicy(settings)
    timer = TimerService()
    monitor = MonitorService(
        ScreenCapture(),
        OcrEngine(),
        FocusClassifier(),
        policy,
        sink=notifications,
        storage=storage,
        timer=timer,
        config=config,
    )
    return AppContext(storage, notifications, policy, timer, monitor)


# --- Pydanticモデル定義 ---


class IntervalUpdate(BaseModel):
    """監視間隔の更新リクエスト."""

    minutes: int

    @field_validator("minutes")
    @classmethod
    def minutes_in_range(cls, v: int) -> int:
        if not MIN_INTERVAL_MINUTES <= v <= MAX_INTERVAL_MINUTES:
            msg = (
                f"minutes must be within "
                f"[{MIN_INTERVAL_MINUTES}, {MAX_INTERVAL_MINUTES}]"
            )
            raise ValueError(msg)
        return v


class TimerStart(BaseModel):
    """セッション開始リクエスト."""

    session_type: SessionType = SessionType.FOCUS
    duration_minutes: int = 25
    task_id: str | None = None
    notes: str | None = None

    @field_validator("duration_minutes")
    @classmethod
    def duration_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            msg = "duration_minutes must be positive"
            raise ValueError(msg)
        return v


# --- アプリケーション ---


def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


def _save(action: str, fn: Any, *args: Any) -> None:
    try:
        fn(*args)
    except PersistenceError as e:
        log.exception("Failed to save %s", action)
        raise HTTPException(status_code=500, detail=str(e)) from e


def create_app(context: AppContext | None = None) -> FastAPI:
    """アプリを作成する. ``context`` が無ければ起動時に組み立てる."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "ctx", None) is None:
            app.state.ctx = build_context()
        log.info("My Focus API started")
        yield
        app.state.ctx.monitor.stop(wait=SHUTDOWN_WAIT_SEC)
        log.info("My Focus API stopped")

    app = FastAPI(
        title="My Focus",
        description="Screen activity monitoring and focus session API",
        lifespan=lifespan,
    )
    app.state.ctx = context

    @app.get("/status")
    def get_status(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        """監視とタイマーの現在状態."""
        return {
            "monitoring": ctx.monitor.is_monitoring(),
            "timer_state": ctx.timer.get_state().value,
            "last_result": ctx.monitor.get_last_result(),
            "intervention_cooldown_seconds": ctx.policy.cooldown_remaining(),
        }

    # --- モニタリング ---

    @app.post("/monitoring/start")
    def start_monitoring(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        try:
            config = ctx.storage.load_config(ctx.monitor.get_config())
            ctx.monitor.update_config(config)
        except PersistenceError as e:
            log.warning("Using in-memory config, stored one unreadable: %s", e)
        except ConfigValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        ctx.monitor.start()
        return {"ok": True, "monitoring": True}

    @app.post("/monitoring/stop")
    def stop_monitoring(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        ctx.monitor.stop()
        return {"ok": True, "monitoring": False}

    @app.get("/monitoring/activity")
    def get_activity(ctx: AppContext = Depends(get_ctx)) -> CurrentActivity | None:
        return ctx.monitor.get_current_activity()

    @app.get("/monitoring/state")
    def get_monitoring_state(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        return {
            "is_monitoring": ctx.monitor.is_monitoring(),
            "last_result": ctx.monitor.get_last_result(),
            "current_activity": ctx.monitor.get_current_activity(),
        }

    @app.get("/monitoring/config")
    def get_config(ctx: AppContext = Depends(get_ctx)) -> MonitoringConfig:
        return ctx.monitor.get_config()

    @app.put("/monitoring/config")
    def put_config(
        config: MonitoringConfig, ctx: AppContext = Depends(get_ctx)
    ) -> MonitoringConfig:
        try:
            ctx.monitor.update_config(config)
        except ConfigValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        _save("monitoring config", ctx.storage.save_config, config)
        return ctx.monitor.get_config()

    @app.post("/monitoring/interval")
    def update_interval(
        req: IntervalUpdate, ctx: AppContext = Depends(get_ctx)
    ) -> MonitoringConfig:
        config = ctx.monitor.update_interval(req.minutes)
        _save("monitoring config", ctx.storage.save_config, config)
        return config

    @app.post("/monitoring/check")
    def manual_check(ctx: AppContext = Depends(get_ctx)) -> MonitoringResult:
        """今すぐ1サイクル実行する."""
        try:
            return ctx.monitor.trigger_manual_check()
        except MonitorError as e:
            log.warning("Manual check failed: %s", e)
            raise HTTPException(status_code=503, detail=str(e)) from e

    @app.get("/interventions/settings")
    def get_intervention_settings(
        ctx: AppContext = Depends(get_ctx),
    ) -> InterventionSettings:
        return ctx.policy.settings

    @app.put("/interventions/settings")
    def put_intervention_settings(
        settings: InterventionSettings, ctx: AppContext = Depends(get_ctx)
    ) -> InterventionSettings:
        ctx.policy.update_settings(settings)
        _save("intervention settings", ctx.storage.save_intervention_settings, settings)
        return settings

    # --- タイマー ---

    @app.post("/timer/start")
    def start_timer(req: TimerStart, ctx: AppContext = Depends(get_ctx)) -> FocusSession:
        try:
            session = ctx.timer.start(
                req.session_type, req.duration_minutes, req.task_id, req.notes
            )
        except SessionAlreadyActiveError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return session

    @app.post("/timer/pause")
    def pause_timer(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        return {"ok": ctx.timer.pause(), "status": ctx.timer.get_status()}

    @app.post("/timer/resume")
    def resume_timer(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        return {"ok": ctx.timer.resume(), "status": ctx.timer.get_status()}

    @app.post("/timer/stop")
    def stop_timer(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        session = ctx.timer.stop()
        if session is not None:
            _save("session", ctx.storage.save_session, session)
        return {"ok": session is not None, "session": session}

    @app.post("/timer/cancel")
    def cancel_timer(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        session = ctx.timer.cancel()
        if session is not None:
            _save("session", ctx.storage.save_session, session)
        return {"ok": session is not None, "session": session}

    @app.get("/timer/status")
    def get_timer_status(ctx: AppContext = Depends(get_ctx)) -> TimerStatus:
        return ctx.timer.get_status()

    @app.get("/api/monitoring_data")
    def get_monitoring_data(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        """モニタリングUIに最新データを提供する."""
        return {
            "is_monitoring": ctx.monitor.is_monitoring(),
            "last_result": ctx.monitor.get_last_result(),
            "current_activity": ctx.monitor.get_current_activity(),
            "events": ctx.notifications.get_recent_events(),
            "notifications": ctx.notifications.get_notification_history(),
        }

    return app


app = create_app()


def run(host: str = "127.0.0.1", port: int = 5577) -> None:
    import uvicorn  # noqa: PLC0415

    uvicorn.run("myfocus.api.main:app", host=host, port=port)


if __name__ == "__main__":
    run()
