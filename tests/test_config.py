"""
Tests for the configuration module.
"""

import pytest

from volume_estimation.config import load_config, AppConfig
from volume_estimation.objects import ShapeKind


def test_load_defaults():
    """Test loading configuration without any file."""
    config = load_config(None)
    assert isinstance(config, AppConfig)
    assert config.model.backend == "cpu"
    assert config.detection.confidence_threshold == 0.5
    assert config.detection.detection_interval_ms == 100
    assert config.detection.max_detections == 20
    assert "credit card" in config.measurement.reference_objects
    assert config.measurement.shape_models["bowl"].shape is ShapeKind.HEMISPHERE


def test_validation_failure():
    """Test fail-fast validation."""
    from volume_estimation.config import _validate, ModelConfig, OutputConfig

    bad_config = AppConfig(model=ModelConfig(backend="invalid"))
    with pytest.raises(ValueError, match="backend"):
        _validate(bad_config)

    bad_config = AppConfig(output=OutputConfig(mode="log,display"))
    with pytest.raises(ValueError, match="output.mode"):
        _validate(bad_config)


def test_out_of_range_detection_values_are_not_rejected():
    """Sampling values are clamped by the scheduler, not rejected here."""
    from volume_estimation.config import _validate, DetectionConfig

    config = AppConfig(
        detection=DetectionConfig(
            confidence_threshold=1.5, detection_interval_ms=5, max_detections=500
        )
    )
    _validate(config)


def test_env_override(monkeypatch):
    """Test environment variable overrides."""
    monkeypatch.setenv("VOLUME_EST_DETECTION_CONFIDENCE_THRESHOLD", "0.9")
    monkeypatch.setenv("VOLUME_EST_DETECTION_INTERVAL_MS", "250")
    monkeypatch.setenv("VOLUME_EST_MODEL_BACKEND", "cuda")

    config = load_config(None)

    assert config.detection.confidence_threshold == 0.9
    assert config.detection.detection_interval_ms == 250.0
    assert config.model.backend == "cuda"


def test_yaml_extends_object_tables(tmp_path):
    """YAML entries are merged over the built-in tables."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "measurement:\n"
        "  reference_objects:\n"
        "    'a4 paper': {width_mm: 210, height_mm: 297}\n"
        "  shape_models:\n"
        "    mug: {shape: cylinder, avg_diameter_mm: 80, avg_height_mm: 95}\n"
        "    box: {}\n"
        "detection:\n"
        "  max_detections: 5\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    refs = config.measurement.reference_objects
    assert refs["a4 paper"].width_mm == 210.0
    assert "credit card" in refs

    shapes = config.measurement.shape_models
    assert shapes["mug"].shape is ShapeKind.CYLINDER
    assert shapes["box"].shape is None
    assert "apple" in shapes
    assert config.detection.max_detections == 5

    with pytest.raises(TypeError):
        shapes["pear"] = shapes["apple"]


def test_yaml_invalid_shape(tmp_path):
    """Unknown shape names fail early."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "measurement:\n  shape_models:\n    cube: {shape: cube}\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="Invalid shape"):
        load_config(str(path))


def test_yaml_invalid_reference_dimensions(tmp_path):
    """Reference objects need positive dimensions."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "measurement:\n  reference_objects:\n    coin: {width_mm: 0, height_mm: 24}\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="positive dimensions"):
        load_config(str(path))


def test_missing_config_file():
    """A config path that does not exist fails loudly."""
    with pytest.raises(FileNotFoundError):
        load_config("does/not/exist.yaml")


def test_example_config_loads():
    """The shipped example config is valid."""
    config = load_config("config.example.yaml")

    assert config.output.mode == "log,save_json"
    assert config.measurement.shape_models["mug"].avg_height_mm == 95.0
    assert config.input.resize_width is None
