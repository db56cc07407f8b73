"""
Tests for the volume estimation module.
"""

import math

import pytest

from volume_estimation.calibration import CalibrationState
from volume_estimation.detection import BoundingBox, Detection
from volume_estimation.objects import ShapeKind, ShapeModel, make_table
from volume_estimation.volume import VolumeError, estimate_volume

_CALIBRATED = CalibrationState(
    mm_per_pixel=0.5,
    is_calibrated=True,
    calibration_object_class="credit card",
    last_calibration_timestamp=1.0,
)


def _det(label, width, height):
    return Detection(label=label, confidence=0.9, bbox=BoundingBox(0, 0, width, height))


def test_sphere():
    """Apple, 100px wide at 0.5 mm/px: r = 2.5 cm."""
    est = estimate_volume(_det("apple", 100, 100), _CALIBRATED)

    assert est.error is None
    assert est.ok
    assert est.real_width_mm == 50.0
    assert est.real_height_mm == 50.0
    assert est.volume_cm3 == pytest.approx(65.45, abs=0.01)


def test_cylinder():
    """Cup: radius from width, height from box height."""
    est = estimate_volume(_det("cup", 160, 200), _CALIBRATED)

    # r = 4 cm, h = 10 cm
    assert est.volume_cm3 == pytest.approx(round(math.pi * 16 * 10, 2))
    assert est.real_width_mm == 80.0
    assert est.real_height_mm == 100.0


def test_hemisphere():
    """Bowl: half of a sphere of the same width."""
    est = estimate_volume(_det("bowl", 300, 100), _CALIBRATED)

    # r = 7.5 cm
    assert est.volume_cm3 == pytest.approx(round((2 / 3) * math.pi * 7.5 ** 3, 2))


def test_unspecified_shape_falls_back_to_box():
    """A shape model without a shape uses the box approximation."""
    shapes = make_table(ShapeModel("parcel", shape=None))

    est = estimate_volume(_det("parcel", 40, 80), _CALIBRATED, shapes)

    # 2 cm x 4 cm x depth 3 cm
    assert est.volume_cm3 == pytest.approx(24.0)


def test_not_calibrated():
    """Uncalibrated input always yields NOT_CALIBRATED, known class or not."""
    for label in ("apple", "unicorn"):
        est = estimate_volume(_det(label, 100, 100), CalibrationState())
        assert est.error is VolumeError.NOT_CALIBRATED
        assert est.volume_cm3 is None
        assert est.real_width_mm is None
        assert est.real_height_mm is None


def test_unknown_class():
    """Classes missing from the shape table yield UNKNOWN_CLASS."""
    est = estimate_volume(_det("credit card", 200, 126), _CALIBRATED)

    assert est.error is VolumeError.UNKNOWN_CLASS
    assert est.volume_cm3 is None
    assert not est.ok


def test_average_dimensions_do_not_affect_volume():
    """Only the measured box drives the estimate."""
    small = make_table(ShapeModel("apple", ShapeKind.SPHERE, avg_diameter_mm=10))
    large = make_table(ShapeModel("apple", ShapeKind.SPHERE, avg_diameter_mm=500))

    det = _det("apple", 100, 100)
    assert estimate_volume(det, _CALIBRATED, small) == estimate_volume(det, _CALIBRATED, large)


def test_to_dict():
    """Serialized estimates use the error's string value."""
    est = estimate_volume(_det("apple", 100, 100), CalibrationState())
    assert est.to_dict() == {
        "volume_cm3": None,
        "real_width_mm": None,
        "real_height_mm": None,
        "error": "not_calibrated",
    }
