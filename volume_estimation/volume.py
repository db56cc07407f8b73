"""
Volume estimation from a calibrated bounding box.

Responsibility:
    Convert the pixel bounding box of a recognized object into a
    real-world width, height and approximate volume, using the current
    calibration and the object's shape model.

Non-goals:
    - No segmentation. The full bounding box is taken as the object's
      silhouette.
    - No use of ShapeModel average dimensions.

"Not calibrated" and "unknown class" are ordinary outcomes reported in
VolumeEstimate.error. Nothing here raises for them.
"""

import enum
import math
from dataclasses import dataclass
from typing import Mapping, Optional

from volume_estimation.calibration import CalibrationState
from volume_estimation.detection import Detection
from volume_estimation.objects import SHAPE_MODELS, ShapeKind, ShapeModel


class VolumeError(str, enum.Enum):
    """Reason a VolumeEstimate carries no volume."""

    NOT_CALIBRATED = "not_calibrated"
    UNKNOWN_CLASS = "unknown_class"


@dataclass(frozen=True)
class VolumeEstimate:
    """Result of one volume estimate.

    Attributes:
        volume_cm3: Estimated volume in cubic centimeters (2 decimals).
        real_width_mm: Bounding box width in millimeters (2 decimals).
        real_height_mm: Bounding box height in millimeters (2 decimals).
        error: Why the numeric fields are None, or None on success.
    """

    volume_cm3: Optional[float] = None
    real_width_mm: Optional[float] = None
    real_height_mm: Optional[float] = None
    error: Optional[VolumeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "volume_cm3": self.volume_cm3,
            "real_width_mm": self.real_width_mm,
            "real_height_mm": self.real_height_mm,
            "error": self.error.value if self.error is not None else None,
        }


def shape_volume_cm3(
    shape: Optional[ShapeKind],
    width_cm: float,
    height_cm: float,
) -> float:
    """Volume of a shape fitted to a width x height silhouette (cm, cm3).

    Spheres and hemispheres take their radius from the width only.
    Any other shape falls back to a box whose depth is the mean of
    width and height.
    """
    radius = width_cm / 2

    if shape is ShapeKind.SPHERE:
        return (4 / 3) * math.pi * radius ** 3
    if shape is ShapeKind.CYLINDER:
        return math.pi * radius ** 2 * height_cm
    if shape is ShapeKind.HEMISPHERE:
        return (2 / 3) * math.pi * radius ** 3

    depth = (width_cm + height_cm) / 2
    return width_cm * height_cm * depth


def estimate_volume(
    detection: Detection,
    calibration: CalibrationState,
    shape_models: Mapping[str, ShapeModel] = SHAPE_MODELS,
) -> VolumeEstimate:
    """Estimate the physical size and volume of a detected object.

    Args:
        detection: A normalized detection.
        calibration: Current calibration snapshot.
        shape_models: Label -> ShapeModel lookup table.

    Returns:
        A VolumeEstimate. On success all numeric fields are set and
        error is None. Otherwise the numeric fields are None and error
        is NOT_CALIBRATED or UNKNOWN_CLASS (checked in that order).
    """
    if not calibration.is_calibrated or calibration.mm_per_pixel is None:
        return VolumeEstimate(error=VolumeError.NOT_CALIBRATED)

    model = shape_models.get(detection.label)
    if model is None:
        return VolumeEstimate(error=VolumeError.UNKNOWN_CLASS)

    real_width_mm = detection.bbox.width * calibration.mm_per_pixel
    real_height_mm = detection.bbox.height * calibration.mm_per_pixel

    volume = shape_volume_cm3(model.shape, real_width_mm / 10, real_height_mm / 10)

    return VolumeEstimate(
        volume_cm3=round(volume, 2),
        real_width_mm=round(real_width_mm, 2),
        real_height_mm=round(real_height_mm, 2),
    )
