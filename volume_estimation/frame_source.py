"""
Frame acquisition for the measurement loop.

Responsibility:
    Read frames from a webcam, a video file or a single image and hold
    the most recent one, so DetectionScheduler can pull it through
    FrameSource.read when it decides to sample.

Non-goals:
    - No detection or output writing.
    - No directory batches. Measurements need a continuous scene.
    - No infinite retry on dead streams.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, Optional, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}
_VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv"}

# Consecutive failed webcam reads before giving up
_MAX_READ_FAILURES = 30


class FrameSource:
    """Iterates frames and remembers the latest one.

    The source type is auto-detected:
        - Integer or digit string   → webcam device index
        - File with image extension → single image (one frame)
        - File with video extension → video file

    Usage:
        source = FrameSource("0")
        for frame in source:
            scheduler.tick()         # scheduler reads source.read()
        source.release()
    """

    def __init__(
        self,
        source: Union[str, int],
        resize_width: Optional[int] = None,
    ) -> None:
        """Open and validate the source.

        Raises:
            FileNotFoundError: If a file source does not exist.
            ValueError: If the file type is not supported.
            RuntimeError: If a video/webcam source cannot be opened.
        """
        self._resize_width = resize_width
        self._cap: Optional[cv2.VideoCapture] = None
        self._image_path: Optional[str] = None
        self._latest: Optional[np.ndarray] = None

        source_str = str(source).strip()

        if source_str.isdigit():
            self._mode = "webcam"
            self._open_capture(int(source_str))
        elif os.path.isfile(source_str):
            ext = Path(source_str).suffix.lower()
            if ext in _IMAGE_EXTENSIONS:
                self._mode = "image"
                self._image_path = source_str
            elif ext in _VIDEO_EXTENSIONS:
                self._mode = "video"
                self._open_capture(source_str)
            else:
                raise ValueError(
                    f"Unrecognized file extension: '{ext}' for source '{source_str}'. "
                    f"Supported images: {_IMAGE_EXTENSIONS}. "
                    f"Supported videos: {_VIDEO_EXTENSIONS}."
                )
        else:
            raise FileNotFoundError(
                f"Input source not found: '{source_str}'. "
                f"Provide a valid image/video path or a device index."
            )

        logger.info("FrameSource initialized: mode=%s, source=%s", self._mode, source_str)

    @property
    def mode(self) -> str:
        return self._mode

    def _open_capture(self, source: Union[str, int]) -> None:
        self._cap = cv2.VideoCapture(source)
        if not self._cap.isOpened():
            desc = f"webcam device {source}" if isinstance(source, int) else f"video file '{source}'"
            raise RuntimeError(
                f"Failed to open {desc}. "
                f"Ensure the source exists and is accessible."
            )

    def read(self) -> Optional[np.ndarray]:
        """Return the most recent frame, or None before the first one."""
        return self._latest

    def __iter__(self) -> Iterator[np.ndarray]:
        """Yield frames until the source is exhausted.

        Each yielded frame also becomes the value returned by read().
        """
        if self._mode == "image":
            frame = cv2.imread(self._image_path)
            if frame is None:
                logger.warning("Unreadable image: %s", self._image_path)
                return
            self._latest = self._maybe_resize(frame)
            yield self._latest
            return

        failures = 0
        while self._cap is not None:
            ret, frame = self._cap.read()

            if not ret or frame is None:
                if self._mode == "video":
                    logger.info("End of video reached.")
                    break
                failures += 1
                if failures >= _MAX_READ_FAILURES:
                    logger.error(
                        "Webcam produced %d consecutive failed reads. Stopping.",
                        _MAX_READ_FAILURES,
                    )
                    break
                continue

            failures = 0
            self._latest = self._maybe_resize(frame)
            yield self._latest

    def _maybe_resize(self, frame: np.ndarray) -> np.ndarray:
        """Downscale to resize_width if configured, preserving aspect ratio."""
        if self._resize_width is None:
            return frame

        h, w = frame.shape[:2]
        if w <= self._resize_width:
            return frame

        new_h = int(h * self._resize_width / w)
        return cv2.resize(frame, (self._resize_width, new_h), interpolation=cv2.INTER_AREA)

    def release(self) -> None:
        """Release the capture handle, if any."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("VideoCapture released.")
        self._latest = None
