"""
Tests for the calibration module.
"""

import math

import pytest

from volume_estimation.calibration import CalibrationEngine, CalibrationState
from volume_estimation.detection import BoundingBox, Detection
from volume_estimation.objects import ReferenceObjectSpec, make_table


def _det(label, width, height, confidence=0.9):
    return Detection(label=label, confidence=confidence, bbox=BoundingBox(0, 0, width, height))


class _FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def test_no_reference_object():
    """update() returns False and leaves the state untouched."""
    engine = CalibrationEngine()

    assert engine.update([_det("cup", 100, 100), _det("apple", 50, 50)]) is False
    assert engine.get_status() == CalibrationState()


def test_first_calibration_unsmoothed():
    """The first sample is the mean of width and height scales."""
    clock = _FakeClock(42.0)
    engine = CalibrationEngine(clock=clock)

    assert engine.update([_det("credit card", 200, 126)]) is True

    status = engine.get_status()
    expected = (85.6 / 200 + 53.98 / 126) / 2
    assert status.mm_per_pixel == pytest.approx(expected)
    assert status.mm_per_pixel == pytest.approx(0.4282, abs=1e-4)
    assert status.is_calibrated is True
    assert status.calibration_object_class == "credit card"
    assert status.last_calibration_timestamp == 42.0


def test_smoothing():
    """Later samples are blended 0.9 old / 0.1 new."""
    table = make_table(ReferenceObjectSpec("tile", width_mm=40.0, height_mm=40.0))
    engine = CalibrationEngine(reference_objects=table)

    engine.update([_det("tile", 100, 100)])   # 0.40 mm/px
    engine.update([_det("tile", 80, 80)])     # candidate 0.50 mm/px

    assert engine.get_status().mm_per_pixel == pytest.approx(0.41)


def test_uses_first_reference_only():
    """Only the first reference detection in order is used per call."""
    table = make_table(
        ReferenceObjectSpec("tile", width_mm=40.0, height_mm=40.0),
        ReferenceObjectSpec("coin", width_mm=24.0, height_mm=24.0),
    )
    engine = CalibrationEngine(reference_objects=table)

    engine.update([_det("cup", 10, 10), _det("coin", 48, 48), _det("tile", 100, 100)])

    status = engine.get_status()
    assert status.calibration_object_class == "coin"
    assert status.mm_per_pixel == pytest.approx(0.5)


def test_zero_sized_reference_does_not_corrupt_scale():
    """A degenerate reference box is treated as not found."""
    engine = CalibrationEngine()
    engine.update([_det("credit card", 200, 126)])
    before = engine.get_status()

    assert engine.update([_det("credit card", 0, 126)]) is False
    assert engine.update([_det("credit card", 200, 0)]) is False

    after = engine.get_status()
    assert after == before
    assert math.isfinite(after.mm_per_pixel)


def test_zero_sized_reference_falls_through_to_next():
    """The scan continues past a degenerate reference box."""
    engine = CalibrationEngine()

    assert engine.update([_det("credit card", 0, 0), _det("credit card", 200, 126)]) is True
    assert engine.get_status().is_calibrated


def test_reset_idempotent():
    """reset() clears everything, twice is the same as once."""
    engine = CalibrationEngine()
    engine.update([_det("credit card", 200, 126)])

    engine.reset()
    once = engine.get_status()
    engine.reset()
    twice = engine.get_status()

    assert once == twice == CalibrationState()


def test_recalibrates_unsmoothed_after_reset():
    """After a reset the next sample is taken as-is again."""
    table = make_table(ReferenceObjectSpec("tile", width_mm=40.0, height_mm=40.0))
    engine = CalibrationEngine(reference_objects=table)

    engine.update([_det("tile", 100, 100)])
    engine.reset()
    engine.update([_det("tile", 80, 80)])

    assert engine.get_status().mm_per_pixel == pytest.approx(0.5)


def test_status_is_snapshot():
    """A status taken earlier does not change when the engine updates."""
    engine = CalibrationEngine()
    status = engine.get_status()

    engine.update([_det("credit card", 200, 126)])

    assert status.is_calibrated is False
    assert status.mm_per_pixel is None
