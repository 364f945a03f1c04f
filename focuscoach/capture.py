from __future__ import annotations

import asyncio
from typing import Optional

from PIL import Image

from .config import CaptureSettings
from .utils import image_to_data_url


class CaptureSkipped(RuntimeError):
    pass


class WebcamCapture:
    """Grabs one still frame from a webcam per call and returns it as a JPEG data URL."""

    def __init__(self, camera_index: int, jpeg_quality: int, log):
        self._camera_index = camera_index
        self._jpeg_quality = jpeg_quality
        self._logger = log
        self._cap = None

    def start(self) -> None:
        if self._cap is not None:
            return

        import cv2

        cap = cv2.VideoCapture(self._camera_index)
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open camera at index {self._camera_index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, 640)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 480)
        self._cap = cap
        self._logger.info("Camera started: index=%s", self._camera_index)

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            self._logger.info("Camera stopped")

    async def capture(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._grab)
        except CaptureSkipped as exc:
            self._logger.info("Skipping capture: %s", exc)
            return None
        except Exception as exc:
            self._logger.warning("Failed to capture webcam frame: %s", exc)
            return None

    def _grab(self) -> str:
        if self._cap is None:
            raise CaptureSkipped("Camera is not started")

        import cv2

        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise CaptureSkipped("Camera returned no frame")
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return image_to_data_url(Image.fromarray(rgb), quality=self._jpeg_quality)


class ScreenCapture:
    def __init__(self, jpeg_quality: int, log):
        self._jpeg_quality = jpeg_quality
        self._logger = log

    def start(self) -> None:
        import pyautogui

        pyautogui.FAILSAFE = False
        self._logger.info("Screen capture ready")

    def stop(self) -> None:
        return None

    async def capture(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._grab)
        except Exception as exc:
            self._logger.warning("Failed to capture screenshot: %s", exc)
            return None

    def _grab(self) -> str:
        import pyautogui

        screenshot = pyautogui.screenshot()
        screenshot.thumbnail((1280, 1280))
        return image_to_data_url(screenshot, quality=self._jpeg_quality)


def build_capture(settings: CaptureSettings, log):
    if settings.source == "camera":
        return WebcamCapture(settings.camera_index, settings.jpeg_quality, log)
    if settings.source == "screen":
        return ScreenCapture(settings.jpeg_quality, log)
    raise ValueError(f"Unsupported CAPTURE_SOURCE '{settings.source}' (expected 'camera' or 'screen')")
