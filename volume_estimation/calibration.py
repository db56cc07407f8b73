"""
Scale calibration from reference objects.

Responsibility:
    Watch normalized detections for an object of known physical size
    and maintain a smoothed millimeters-per-pixel scale factor.

Non-goals:
    - No lens distortion or perspective correction. The scene is assumed
      to be viewed roughly fronto-parallel.
    - No combination of several reference objects in one frame.
    - No persistence across process restarts.
    - No automatic expiry. last_calibration_timestamp is recorded so a
      caller can decide staleness and call reset() itself.

Thread-safety:
    update(), get_status() and reset() share one lock, so a snapshot
    never observes a half-applied smoothing step.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

from volume_estimation.detection import Detection
from volume_estimation.objects import REFERENCE_OBJECTS, ReferenceObjectSpec

logger = logging.getLogger(__name__)

# Weight of a new sample in the exponential moving average
SMOOTHING_WEIGHT = 0.1


@dataclass(frozen=True)
class CalibrationState:
    """Read-only snapshot of the calibration.

    Attributes:
        mm_per_pixel: Smoothed scale factor, None until first calibration.
        is_calibrated: True once any reference object has been measured.
        calibration_object_class: Label of the last reference object used.
        last_calibration_timestamp: Monotonic time of the last update.
    """

    mm_per_pixel: Optional[float] = None
    is_calibrated: bool = False
    calibration_object_class: Optional[str] = None
    last_calibration_timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "mm_per_pixel": self.mm_per_pixel,
            "is_calibrated": self.is_calibrated,
            "calibration_object_class": self.calibration_object_class,
            "last_calibration_timestamp": self.last_calibration_timestamp,
        }


class CalibrationEngine:
    """Maintains the mm-per-pixel scale of the current measurement session.

    Usage:
        engine = CalibrationEngine()
        engine.update(detections)        # once per processed frame
        status = engine.get_status()
        engine.reset()                   # on demand
    """

    def __init__(
        self,
        reference_objects: Mapping[str, ReferenceObjectSpec] = REFERENCE_OBJECTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an uncalibrated engine.

        Args:
            reference_objects: Label -> known size lookup table.
            clock: Monotonic time source used for the calibration timestamp.
        """
        self._reference_objects = reference_objects
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CalibrationState()

    def update(self, detections: Sequence[Detection]) -> bool:
        """Calibrate from the first usable reference object in detections.

        Detections are scanned in the given order (confidence-descending
        when they come from the normalizer). A reference object with a
        zero-width or zero-height box is skipped.

        Args:
            detections: Normalized detections for one frame.

        Returns:
            True if a reference object was used, False otherwise (state
            is left unchanged).
        """
        for det in detections:
            ref = self._reference_objects.get(det.label)
            if ref is None:
                continue

            if det.bbox.width <= 0 or det.bbox.height <= 0:
                logger.debug(
                    "Skipping degenerate reference box for '%s': %dx%d",
                    det.label, det.bbox.width, det.bbox.height,
                )
                continue

            scale_from_width = ref.width_mm / det.bbox.width
            scale_from_height = ref.height_mm / det.bbox.height
            candidate = (scale_from_width + scale_from_height) / 2

            with self._lock:
                previous = self._state.mm_per_pixel
                if previous is not None:
                    mm_per_pixel = (
                        previous * (1 - SMOOTHING_WEIGHT) + candidate * SMOOTHING_WEIGHT
                    )
                else:
                    mm_per_pixel = candidate
                    logger.info(
                        "Calibrated from '%s': %.4f mm/px", ref.label, mm_per_pixel
                    )

                self._state = CalibrationState(
                    mm_per_pixel=mm_per_pixel,
                    is_calibrated=True,
                    calibration_object_class=ref.label,
                    last_calibration_timestamp=self._clock(),
                )

            logger.debug(
                "Calibration sample %.4f mm/px -> smoothed %.4f mm/px",
                candidate, mm_per_pixel,
            )
            return True

        return False

    def get_status(self) -> CalibrationState:
        """Return the current calibration snapshot."""
        with self._lock:
            return self._state

    def reset(self) -> None:
        """Forget the calibration. Safe to call repeatedly."""
        with self._lock:
            was_calibrated = self._state.is_calibrated
            self._state = CalibrationState()

        if was_calibrated:
            logger.info("Calibration reset.")

    @property
    def reference_objects(self) -> Mapping[str, ReferenceObjectSpec]:
        """Return the reference object table (read-only)."""
        return self._reference_objects
