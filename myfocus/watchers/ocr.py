"""Text extraction with Tesseract and a size-based heuristic fallback.

Each tier takes the image bytes and returns ``(text, ok)``. Tiers are tried
left to right and the first ``ok`` wins; the heuristic tier always succeeds,
so :meth:`OcrEngine.extract_text` never raises.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Callable, Sequence
from datetime import datetime
from io import BytesIO
from pathlib import Path

from PIL import Image  # pyright: ignore[reportMissingImports]

from myfocus.model.errors import OcrError
from myfocus.model.models import utcnow
from myfocus.watchers.logger import logger

log = logger.getChild("ocr")

Tier = Callable[[bytes], tuple[str, bool]]

PRIMARY_LANG = "chi_sim+eng"
FALLBACK_LANG = "eng"
PAGE_SEG_MODE = "6"  # single uniform block of text
ENGINE_MODE = "3"  # default engine
OCR_TIMEOUT_SEC = 30.0

_EXE_NAME = "tesseract.exe" if sys.platform == "win32" else "tesseract"
PORTABLE_DIRS = (
    Path("resources") / "tesseract",
    Path("tesseract"),
)

# (exclusive lower bound in KB, description); first match wins
SIZE_HINTS: tuple[tuple[int, str], ...] = (
    (
        1000,
        "High-resolution screen content with a lot of text; "
        "likely document editing or web browsing",
    ),
    (
        500,
        "Medium-resolution screen content with application UI and text; "
        "check which application is in use",
    ),
    (
        100,
        "Standard screen content with basic interface elements; "
        "likely a desktop application",
    ),
)
LOW_DETAIL_HINT = "Low-detail or highly compressed screen content; little text available"


def clean_ocr_text(raw: str) -> str:
    """Strip every line and drop the blank ones."""
    lines = (line.strip() for line in raw.splitlines())
    return "\n".join(line for line in lines if line)


def heuristic_description(image: bytes, now: datetime | None = None) -> str:
    """Coarse description derived only from the encoded image size."""
    size_kb = len(image) // 1024
    hint = next((desc for bound, desc in SIZE_HINTS if size_kb > bound), LOW_DETAIL_HINT)
    timestamp = (now or utcnow()).strftime("%Y-%m-%d %H:%M:%S")
    return (
        "Screen analysis (no OCR text available):\n"
        f"Content estimate: {hint}\n"
        f"Image size: {size_kb} KB\n"
        f"Analyzed at: {timestamp}"
    )


def heuristic_tier(image: bytes) -> tuple[str, bool]:
    return heuristic_description(image), True


def run_fallback_chain(image: bytes, tiers: Sequence[Tier]) -> str:
    """Run ``tiers`` in order and return the first successful text."""
    for tier in tiers:
        text, ok = tier(image)
        if ok:
            return text
    return ""


class OcrEngine:
    """Tesseract command-line wrapper."""

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        timeout: float = OCR_TIMEOUT_SEC,
        primary_lang: str = PRIMARY_LANG,
        fallback_lang: str = FALLBACK_LANG,
    ) -> None:
        self.tesseract_cmd = tesseract_cmd or os.getenv("TESSERACT_CMD") or None
        self.timeout = timeout
        self.primary_lang = primary_lang
        self.fallback_lang = fallback_lang

    def find_executable(self) -> str:
        """Locate Tesseract: explicit setting, portable copy, then PATH."""
        if self.tesseract_cmd:
            return self.tesseract_cmd

        for base in (Path.cwd(), Path(sys.executable).resolve().parent):
            for rel in PORTABLE_DIRS:
                candidate = base / rel / _EXE_NAME
                if candidate.exists():
                    return str(candidate)

        found = shutil.which("tesseract")
        if found:
            return found
        msg = (
            "Tesseract not found: set TESSERACT_CMD, copy it to "
            "resources/tesseract/, or install it on PATH"
        )
        raise OcrError(msg)

    def recognize(self, image: bytes, lang: str) -> str:
        """Run one Tesseract pass; empty output counts as a failure."""
        exe = self.find_executable()
        with tempfile.TemporaryDirectory(prefix="myfocus_ocr_") as tmp:
            input_path = Path(tmp) / "input.png"
            output_base = Path(tmp) / "output"
            try:
                Image.open(BytesIO(image)).convert("L").save(input_path, format="PNG")
            except OSError as e:
                msg = f"failed to decode screenshot: {e}"
                raise OcrError(msg) from e

            cmd = [
                exe,
                str(input_path),
                str(output_base),
                "-l",
                lang,
                "--psm",
                PAGE_SEG_MODE,
                "--oem",
                ENGINE_MODE,
            ]
            try:
                proc = subprocess.run(  # noqa: S603
                    cmd,
                    capture_output=True,
                    timeout=self.timeout,
                    check=False,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                msg = f"failed to run tesseract: {e}"
                raise OcrError(msg) from e

            if proc.returncode != 0:
                stderr = proc.stderr.decode("utf-8", errors="ignore").strip()
                msg = f"tesseract exited with {proc.returncode}: {stderr}"
                raise OcrError(msg)

            try:
                raw = output_base.with_suffix(".txt").read_text(
                    encoding="utf-8", errors="ignore"
                )
            except OSError as e:
                msg = f"failed to read OCR output: {e}"
                raise OcrError(msg) from e

        text = clean_ocr_text(raw)
        if not text:
            msg = f"empty OCR result (lang={lang})"
            raise OcrError(msg)
        return text

    def tesseract_tier(self, lang: str) -> Tier:
        def tier(image: bytes) -> tuple[str, bool]:
            try:
                text = self.recognize(image, lang)
            except OcrError as e:
                log.warning("OCR failed (lang=%s): %s", lang, e)
                return "", False
            log.info("OCR succeeded (lang=%s): %s chars", lang, len(text))
            return text, True

        return tier

    def tiers(self) -> list[Tier]:
        return [
            self.tesseract_tier(self.primary_lang),
            self.tesseract_tier(self.fallback_lang),
            heuristic_tier,
        ]

    def extract_text(self, image: bytes) -> str:
        return run_fallback_chain(image, self.tiers())
