import sys
import time
from dataclasses import dataclass
from typing import Any, cast

import psutil

from myfocus.model.errors import ProbeError
from myfocus.watchers.logger import logger

if sys.platform == "win32":
    import pywintypes  # pyright: ignore[reportMissingImports]
    import win32gui  # pyright: ignore[reportMissingImports]
    import win32process  # pyright: ignore[reportMissingImports]
else:  # pragma: no cover
    pywintypes = cast("Any", None)
    win32gui = cast("Any", None)
    win32process = cast("Any", None)

log = logger.getChild("active_window")


@dataclass(frozen=True)
class WindowInfo:
    """Foreground application at the time of the probe."""

    application_name: str | None = None
    window_title: str | None = None


def get_active_app() -> WindowInfo:
    """Return the foreground application on Windows.

    No foreground window (or a non-Windows host) yields an empty
    :class:`WindowInfo`. OS-level failures raise :class:`ProbeError`.
    """
    if sys.platform != "win32":
        return WindowInfo()

    hwnd = win32gui.GetForegroundWindow()
    if not hwnd:
        log.warning("No foreground window")
        return WindowInfo()

    try:
        title = win32gui.GetWindowText(hwnd) or None
        _, pid = win32process.GetWindowThreadProcessId(hwnd)
    except pywintypes.error as e:
        msg = f"failed to query foreground window: {e}"
        raise ProbeError(msg) from e

    if not pid:
        return WindowInfo(window_title=title)

    try:
        process_name = psutil.Process(pid).name()
    except psutil.NoSuchProcess:
        # window still open, process already gone
        return WindowInfo(window_title=title)
    except psutil.AccessDenied as e:
        msg = f"access denied for pid {pid}"
        raise ProbeError(msg) from e
    return WindowInfo(application_name=process_name, window_title=title)


if __name__ == "__main__":  # pragma: no cover
    for _ in range(3):
        print(get_active_app())  # noqa: T201
        time.sleep(1)
