"""
Model loading for the volume estimation system.

Responsibility:
    Load the SSD MobileNet object detection graph and its label map from
    disk, configure the compute backend, and return a ready-to-infer
    cv2.dnn.Net object.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
"""

import logging
from pathlib import Path
from typing import Dict

import cv2

from volume_estimation.config import ModelConfig, get_project_root

logger = logging.getLogger(__name__)


def _resolve(path_str: str) -> Path:
    """Resolve a relative path against the project root."""
    path = Path(path_str)
    if not path.is_absolute():
        path = get_project_root() / path
    return path


def _require_file(path: Path, what: str, config_key: str) -> None:
    if not path.is_file():
        raise FileNotFoundError(
            f"{what} not found.\n"
            f"  Expected: {path}\n"
            f"  Provide the file or update 'model.{config_key}' in your config."
        )


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the SSD object detection model.

    Args:
        config: ModelConfig containing file paths and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If the graph or its text description is missing.
        RuntimeError: If the requested backend is unavailable.
    """
    model = _resolve(config.model_path)
    graph_config = _resolve(config.config_path)

    _require_file(model, "Model graph", "model_path")
    _require_file(graph_config, "Model graph description", "config_path")

    logger.info("Loading model: graph=%s, config=%s", model, graph_config)
    net = cv2.dnn.readNetFromTensorflow(str(model), str(graph_config))

    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support.\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net


def load_labels(config: ModelConfig) -> Dict[int, str]:
    """Load the class-id → label map.

    The file holds one label per line; line N (0-based) is class id N.
    Blank lines keep their id but are not mapped.

    Raises:
        FileNotFoundError: If the label file is missing.
        ValueError: If the file contains no labels.
    """
    path = _resolve(config.labels_path)
    _require_file(path, "Label map", "labels_path")

    with open(path, "r", encoding="utf-8") as f:
        labels = {
            idx: line.strip()
            for idx, line in enumerate(f)
            if line.strip()
        }

    if not labels:
        raise ValueError(f"Label map is empty: {path}")

    logger.info("Loaded %d class labels from %s", len(labels), path)
    return labels
