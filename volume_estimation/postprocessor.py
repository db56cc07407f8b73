"""
Postprocessing for the object detection model.

Responsibility:
    Parse the raw SSD network output tensor into RawDetection objects
    with class labels and pixel geometry.

Non-goals:
    - No rounding or clamping of geometry. Boxes may be fractional and
      extend past the frame; normalizer deals with that.
    - No model loading or inference.

Hard-coded:
    - SSD output tensor layout: [1, 1, N, 7] where each row is
      [batch_id, class_id, confidence, x1, y1, x2, y2] with
      coordinates normalized to [0, 1].
"""

from typing import List, Mapping

import numpy as np

from volume_estimation.detection import RawDetection


def parse_ssd_output(
    network_output: np.ndarray,
    frame_width: int,
    frame_height: int,
    labels: Mapping[int, str],
    min_score: float,
    max_results: int,
) -> List[RawDetection]:
    """Parse raw SSD output into a list of RawDetection objects.

    Args:
        network_output: Raw output from net.forward(), expected shape
                        (1, 1, N, 7).
        frame_width: Original frame width in pixels.
        frame_height: Original frame height in pixels.
        labels: Class id → label map. Rows with unmapped ids are dropped.
        min_score: Minimum score to report.
        max_results: Maximum number of detections to return.

    Returns:
        Up to max_results RawDetection objects, highest score first.
    """
    detections: List[RawDetection] = []

    raw = network_output[0, 0]  # Shape: (N, 7)

    for i in range(raw.shape[0]):
        score = float(raw[i, 2])
        if score < min_score:
            continue

        label = labels.get(int(raw[i, 1]))
        if label is None:
            continue

        left = float(raw[i, 3]) * frame_width
        top = float(raw[i, 4]) * frame_height
        right = float(raw[i, 5]) * frame_width
        bottom = float(raw[i, 6]) * frame_height

        detections.append(RawDetection(
            label=label,
            score=score,
            left=left,
            top=top,
            width=right - left,
            height=bottom - top,
        ))

    detections.sort(key=lambda d: d.score, reverse=True)

    return detections[:max_results]
