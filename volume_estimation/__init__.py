"""
Volume Estimation — real-world object size and volume from detections.

A known reference object (a credit card by default) seen in the frame
gives the scene's mm-per-pixel scale; per-class shape models turn the
bounding boxes of other recognized objects into volume estimates.

Public API:
    - DetectionScheduler: rate-limited sampling loop publishing Snapshots.
    - CalibrationEngine / CalibrationState: smoothed scale calibration.
    - estimate_volume / VolumeEstimate / VolumeError: shape-based volume.
    - normalize: raw detection filtering and ranking.
    - RawDetection, Detection, BoundingBox: detection types.
    - REFERENCE_OBJECTS, SHAPE_MODELS: built-in object tables.

Usage:
    from volume_estimation import DetectionScheduler

    scheduler = DetectionScheduler(detector, frame_source.read)
    scheduler.set_snapshot_observer(print)
    scheduler.start()
"""

from volume_estimation.calibration import CalibrationEngine, CalibrationState
from volume_estimation.detection import BoundingBox, Detection, RawDetection
from volume_estimation.normalizer import normalize
from volume_estimation.objects import (
    REFERENCE_OBJECTS,
    SHAPE_MODELS,
    ReferenceObjectSpec,
    ShapeKind,
    ShapeModel,
)
from volume_estimation.scheduler import DetectionScheduler, DetectionStats, Snapshot
from volume_estimation.volume import VolumeError, VolumeEstimate, estimate_volume

__all__ = [
    "BoundingBox",
    "CalibrationEngine",
    "CalibrationState",
    "Detection",
    "DetectionScheduler",
    "DetectionStats",
    "REFERENCE_OBJECTS",
    "RawDetection",
    "ReferenceObjectSpec",
    "SHAPE_MODELS",
    "ShapeKind",
    "ShapeModel",
    "Snapshot",
    "VolumeError",
    "VolumeEstimate",
    "estimate_volume",
    "normalize",
]
