"""Screen capture built on top of mss and PIL.

Screenshots are re-encoded as JPEG to keep the OCR input small.
"""

import time
from io import BytesIO
from typing import cast

import mss  # pyright: ignore[reportMissingImports]
from PIL import Image  # pyright: ignore[reportMissingImports]

from myfocus.model.errors import CaptureError
from myfocus.watchers.logger import logger

log = logger.getChild("screen_capture")

JPEG_QUALITY = 85


class ScreenCapture:
    """Primary display screenshots as compressed bytes."""

    def __init__(
        self,
        bbox: dict[str, int] | None = None,
        quality: int = JPEG_QUALITY,
    ) -> None:
        """Set up the capture region.

        Args:
        bbox: capture region {"top": int, "left": int, "width": int, "height": int}
             None picks the primary monitor on the first capture
        quality: JPEG quality (1-95)

        """
        self.bbox = bbox
        self.quality = quality

    def _get_primary_monitor_bbox(self, sct: "mss.base.MSSBase") -> dict[str, int]:
        """Bounding box of the primary monitor."""
        monitors = sct.monitors
        if not monitors:
            msg = "no display available"
            raise CaptureError(msg)
        chosen = cast(
            "dict[str, int]",
            monitors[1] if len(monitors) > 1 else monitors[0],
        )
        log.info("Monitors detected: %s | chosen=%s", len(monitors) - 1, chosen)
        return chosen

    def capture(self) -> bytes:
        """Grab the screen and return it JPEG-encoded.

        Raises:
            CaptureError: the display could not be grabbed or encoded.

        """
        start = time.monotonic()
        try:
            with mss.mss() as sct:
                if self.bbox is None:
                    self.bbox = self._get_primary_monitor_bbox(sct)
                screenshot = sct.grab(self.bbox)
                image = Image.frombytes(
                    "RGB", screenshot.size, screenshot.bgra, "raw", "BGRX"
                )

            buffer = BytesIO()
            image.save(buffer, format="JPEG", quality=self.quality)
        except CaptureError:
            raise
        except Exception as e:
            log.exception("Screen capture failed | bbox=%s", self.bbox)
            msg = f"{type(e).__name__}: {e} | bbox={self.bbox}"
            raise CaptureError(msg) from e

        data = buffer.getvalue()
        log.info(
            "Captured %sx%s -> %s KB in %.2fs",
            image.width,
            image.height,
            len(data) // 1024,
            time.monotonic() - start,
        )
        return data
