"""
Normalization of raw detections.

Responsibility:
    Turn the RawDetection list returned by a detection source into the
    canonical Detection list used by calibration and volume estimation:
    confidence thresholding, rounding, clamping, ranking.

Non-goals:
    - No model inference or tensor parsing (see postprocessor).
    - No calibration or measurement.

Rounding:
    Python's built-in round() is used for both confidence (2 decimals)
    and pixel geometry (integers). It rounds half to even on the binary
    value, so round(2.5) == 2 and round(0.125, 2) == 0.12.
"""

from typing import Iterable, List

from volume_estimation.detection import BoundingBox, Detection, RawDetection


def normalize(
    raw_detections: Iterable[RawDetection],
    confidence_threshold: float,
) -> List[Detection]:
    """Filter, round and rank raw detections.

    Args:
        raw_detections: Detections as returned by a detection source.
        confidence_threshold: Minimum score to keep a detection. The
                              caller is expected to have clamped it.

    Returns:
        List of Detection objects sorted by confidence (descending).
        Entries with equal confidence keep their input order.
    """
    detections: List[Detection] = []

    for raw in raw_detections:
        if raw.score < confidence_threshold:
            continue

        confidence = round(raw.score, 2)
        # A threshold finer than 2 decimals can round a kept score below it
        if confidence < confidence_threshold:
            continue

        bbox = BoundingBox(
            x=max(0, round(raw.left)),
            y=max(0, round(raw.top)),
            width=max(0, round(raw.width)),
            height=max(0, round(raw.height)),
        )
        detections.append(Detection(
            label=raw.label,
            confidence=confidence,
            bbox=bbox,
        ))

    # list.sort is stable, ties keep source order
    detections.sort(key=lambda d: d.confidence, reverse=True)

    return detections
