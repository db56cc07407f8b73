"""
Detector — OpenCV DNN detection source.

This module turns a BGR frame into RawDetection objects using an SSD
MobileNet COCO model. It is the default DetectionSource for
DetectionScheduler; any object with the same detect() signature can
replace it.

Public contract:
    Detector.detect(frame, min_score, max_results) -> list[RawDetection]

Constraints:
    - Input must be a BGR numpy array (as returned by OpenCV).
    - Thread-safety is not guaranteed (single-threaded design).

Non-goals:
    - No camera access or file I/O beyond model loading.
    - No normalization, calibration or measurement.
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from volume_estimation.config import AppConfig, load_config
from volume_estimation.detection import RawDetection
from volume_estimation.model_loader import load_labels, load_model
from volume_estimation.postprocessor import parse_ssd_output
from volume_estimation.preprocessor import preprocess

logger = logging.getLogger(__name__)


class Detector:
    """Multi-class object detector using SSD MobileNet via OpenCV DNN.

    Usage:
        detector = Detector()                      # Uses safe defaults
        detector = Detector(config=my_config)       # Custom config
        raw = detector.detect(frame, min_score=0.5, max_results=20)

    The constructor loads the model and label map once.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).

        Raises:
            FileNotFoundError: If model or label files are missing.
            RuntimeError: If the requested backend is unavailable.
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._net = load_model(config.model)
        self._labels: Dict[int, str] = load_labels(config.model)

        logger.info(
            "Detector initialized (backend=%s, classes=%d)",
            config.model.backend,
            len(self._labels),
        )

    def detect(
        self,
        frame: np.ndarray,
        min_score: float = 0.5,
        max_results: int = 20,
    ) -> List[RawDetection]:
        """Detect objects in a single BGR frame.

        Args:
            frame: A BGR image as a numpy array with shape (H, W, 3)
                   and dtype uint8.
            min_score: Minimum score to report.
            max_results: Maximum number of detections to report.

        Returns:
            RawDetection objects sorted by score (descending), possibly empty.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty.
        """
        self._validate_frame(frame)

        blob = preprocess(frame, self._config.model)

        self._net.setInput(blob)
        output = self._net.forward()

        h, w = frame.shape[:2]
        return parse_ssd_output(
            network_output=output,
            frame_width=w,
            frame_height=h,
            labels=self._labels,
            min_score=min_score,
            max_results=max_results,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def labels(self) -> Dict[int, str]:
        return dict(self._labels)

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use cv2.imread() or VideoCapture.read() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError(
                "Frame is empty (zero size). "
                "Ensure the input source is providing valid frames."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}. "
                f"Grayscale images must be converted to BGR first."
            )

        if frame.shape[2] != 3:
            raise ValueError(
                f"Expected 3 channels (BGR), got {frame.shape[2]} channels. "
                f"Input must be a BGR image as returned by OpenCV."
            )
