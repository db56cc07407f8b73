"""
Configuration management for the volume estimation system.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - Detection rate and threshold values are NOT range-checked here;
      DetectionScheduler clamps them to their valid bounds.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No runtime mutation of the object tables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

import yaml

from volume_estimation.objects import (
    REFERENCE_OBJECTS,
    SHAPE_MODELS,
    ReferenceObjectSpec,
    ShapeKind,
    ShapeModel,
    make_table,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: volume_estimation/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Object detection model configuration.

    Attributes:
        model_path: Frozen TensorFlow graph (.pb), relative to project root.
        config_path: OpenCV text graph description (.pbtxt).
        labels_path: Label map, one class name per line, line N = class id N.
        backend: Compute backend, 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        mean_values: Per-channel mean subtraction values.
        scale_factor: Pixel value scale factor applied during blob creation.
        swap_rb: Whether to convert BGR frames to RGB for the network.
    """

    model_path: str = "models/ssd_mobilenet_v2_coco.pb"
    config_path: str = "models/ssd_mobilenet_v2_coco.pbtxt"
    labels_path: str = "models/coco_labels.txt"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (300, 300)
    mean_values: Tuple[float, float, float] = (127.5, 127.5, 127.5)
    scale_factor: float = 1.0 / 127.5
    swap_rb: bool = True


@dataclass(frozen=True)
class DetectionConfig:
    """Detection sampling settings.

    Attributes:
        confidence_threshold: Minimum confidence to accept a detection.
        detection_interval_ms: Minimum time between detection calls.
        max_detections: Result-count cap passed to the detection source.
    """

    confidence_threshold: float = 0.5
    detection_interval_ms: float = 100.0
    max_detections: int = 20


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Input source: image path, video path, or integer device
                index (as string or int).
        resize_width: Optional width to downscale input frames before detection.
                      None means no resizing.
    """

    source: str = "0"
    resize_width: Optional[int] = None


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'log', 'save_json', 'save_csv'.
              Example: "log,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "log"
    save_path: str = "output/"


@dataclass(frozen=True)
class MeasurementConfig:
    """Object tables used for calibration and volume estimation.

    Attributes:
        reference_objects: Label -> ReferenceObjectSpec.
        shape_models: Label -> ShapeModel.
    """

    reference_objects: Mapping[str, ReferenceObjectSpec] = field(
        default_factory=lambda: REFERENCE_OBJECTS
    )
    shape_models: Mapping[str, ShapeModel] = field(default_factory=lambda: SHAPE_MODELS)


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    measurement: MeasurementConfig = field(default_factory=MeasurementConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_OUTPUT_MODES = {"log", "save_json", "save_csv"}


def parse_output_modes(mode: str) -> set:
    """Split a comma-separated output mode string into a set."""
    return {m.strip() for m in mode.split(",") if m.strip()}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    invalid_modes = parse_output_modes(config.output.mode) - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    if config.input.resize_width is not None and config.input.resize_width <= 0:
        raise ValueError(
            f"input.resize_width must be positive or None, "
            f"got {config.input.resize_width}."
        )

    for ref in config.measurement.reference_objects.values():
        if ref.width_mm <= 0 or ref.height_mm <= 0:
            raise ValueError(
                f"Reference object '{ref.label}' must have positive dimensions, "
                f"got {ref.width_mm} x {ref.height_mm} mm."
            )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Accept YAML booleans and the usual string spellings from env vars."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("model_path", "config_path", "labels_path"):
        if key in raw:
            kwargs[key] = str(raw[key])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "swap_rb" in raw:
        kwargs["swap_rb"] = _parse_bool(raw["swap_rb"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "detection_interval_ms" in raw:
        kwargs["detection_interval_ms"] = float(raw["detection_interval_ms"])
    if "max_detections" in raw:
        kwargs["max_detections"] = int(raw["max_detections"])
    return DetectionConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    if "resize_width" in raw:
        val = raw["resize_width"]
        kwargs["resize_width"] = int(val) if val is not None else None
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _build_shape_model(label: str, raw: dict) -> ShapeModel:
    shape = raw.get("shape")
    if shape is not None:
        try:
            shape = ShapeKind(str(shape).lower())
        except ValueError:
            raise ValueError(
                f"Invalid shape '{shape}' for shape model '{label}'. "
                f"Must be one of {[k.value for k in ShapeKind]} or omitted."
            ) from None

    def _opt_float(key):
        return float(raw[key]) if raw.get(key) is not None else None

    return ShapeModel(
        label=label,
        shape=shape,
        avg_diameter_mm=_opt_float("avg_diameter_mm"),
        avg_height_mm=_opt_float("avg_height_mm"),
    )


def _build_measurement_config(raw: dict) -> MeasurementConfig:
    """Build MeasurementConfig, merging YAML entries over the built-in tables.

    Expected YAML layout:
        measurement:
          reference_objects:
            "credit card": {width_mm: 85.6, height_mm: 53.98}
          shape_models:
            mug: {shape: cylinder, avg_diameter_mm: 80, avg_height_mm: 95}
    """
    references = dict(REFERENCE_OBJECTS)
    for label, entry in (raw.get("reference_objects") or {}).items():
        references[str(label)] = ReferenceObjectSpec(
            label=str(label),
            width_mm=float(entry["width_mm"]),
            height_mm=float(entry["height_mm"]),
        )

    shapes = dict(SHAPE_MODELS)
    for label, entry in (raw.get("shape_models") or {}).items():
        shapes[str(label)] = _build_shape_model(str(label), entry or {})

    return MeasurementConfig(
        reference_objects=make_table(*references.values()),
        shape_models=make_table(*shapes.values()),
    )


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "VOLUME_EST_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        VOLUME_EST_MODEL_BACKEND=cuda
        VOLUME_EST_DETECTION_CONFIDENCE_THRESHOLD=0.7

    The section name follows the prefix, the rest is the key.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_SCALE_FACTOR": ("model", "scale_factor"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DETECTION_INTERVAL_MS": ("detection", "detection_interval_ms"),
        f"{_ENV_PREFIX}DETECTION_MAX_DETECTIONS": ("detection", "max_detections"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}INPUT_RESIZE_WIDTH": ("input", "resize_width"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
        measurement=_build_measurement_config(raw.get("measurement", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
