"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from volume_estimation.postprocessor import parse_ssd_output

_LABELS = {44: "bottle", 53: "apple", 81: "credit card"}


def _tensor(rows):
    return np.array([[rows]], dtype=np.float32)


def test_parse_valid_detection():
    """Test parsing a valid detection tensor into pixel geometry."""
    # [batch, class, conf, x1, y1, x2, y2]
    tensor = _tensor([[0, 53, 0.95, 0.0, 0.0, 0.5, 0.5]])

    detections = parse_ssd_output(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        labels=_LABELS,
        min_score=0.5,
        max_results=20,
    )

    assert len(detections) == 1
    det = detections[0]
    assert det.label == "apple"
    assert det.score == pytest.approx(0.95, abs=1e-5)
    assert det.left == 0
    assert det.top == 0
    assert det.width == pytest.approx(320)
    assert det.height == pytest.approx(240)


def test_parse_score_filtering():
    """Test that low-score detections are ignored."""
    tensor = _tensor([[0, 53, 0.4, 0.0, 0.0, 0.5, 0.5]])

    detections = parse_ssd_output(tensor, 640, 480, _LABELS, min_score=0.5, max_results=20)
    assert detections == []


def test_parse_unknown_class_id_dropped():
    """Rows whose class id is not in the label map are skipped."""
    tensor = _tensor([[0, 7, 0.9, 0.1, 0.1, 0.2, 0.2]])

    detections = parse_ssd_output(tensor, 100, 100, _LABELS, min_score=0.5, max_results=20)
    assert detections == []


def test_parse_out_of_frame_is_not_clamped():
    """Geometry is passed through unclamped for the normalizer."""
    tensor = _tensor([[0, 44, 0.9, -0.1, -0.1, 1.2, 1.2]])

    detections = parse_ssd_output(tensor, 100, 100, _LABELS, min_score=0.5, max_results=20)

    det = detections[0]
    assert det.left == pytest.approx(-10)
    assert det.top == pytest.approx(-10)
    assert det.width == pytest.approx(130)
    assert det.height == pytest.approx(130)


def test_parse_sorted_and_capped():
    """Results are ordered by score and cut at max_results."""
    tensor = _tensor([
        [0, 44, 0.6, 0.1, 0.1, 0.2, 0.2],
        [0, 81, 0.9, 0.3, 0.3, 0.5, 0.5],
        [0, 53, 0.7, 0.6, 0.6, 0.8, 0.8],
    ])

    detections = parse_ssd_output(tensor, 100, 100, _LABELS, min_score=0.5, max_results=2)

    assert [d.label for d in detections] == ["credit card", "apple"]
