"""
Tests for the preprocessing module.
"""

import numpy as np
import pytest

from volume_estimation.config import ModelConfig
from volume_estimation.preprocessor import preprocess


def test_preprocess_valid_input():
    """Test standard preprocessing on a valid frame."""
    config = ModelConfig(input_size=(300, 300))

    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    frame[:, :, 1] = 255

    blob = preprocess(frame, config)

    assert isinstance(blob, np.ndarray)
    assert blob.shape == (1, 3, 300, 300)
    assert blob.dtype == np.float32


def test_preprocess_scales_to_unit_range():
    """Default MobileNet scaling maps [0, 255] to [-1, 1]."""
    config = ModelConfig(input_size=(50, 50))

    frame = np.full((100, 100, 3), 255, dtype=np.uint8)
    blob = preprocess(frame, config)
    assert blob.max() == pytest.approx(1.0, abs=1e-3)

    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    blob = preprocess(frame, config)
    assert blob.min() == pytest.approx(-1.0, abs=1e-3)


def test_preprocess_empty_frame():
    """Test that preprocessing rejects empty frames."""
    with pytest.raises(ValueError):
        preprocess(np.array([]), ModelConfig())


def test_preprocess_none_frame():
    """Test that preprocessing rejects None."""
    with pytest.raises(ValueError):
        preprocess(None, ModelConfig())
