"""
Serialization of measurement snapshots.

Responsibility:
    Export published snapshots to JSON or CSV for offline analysis.

Non-goals:
    - No streaming output. Files are written whole on finalize.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List

from volume_estimation.scheduler import Snapshot

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "sample_id",
    "fps",
    "mm_per_pixel",
    "label",
    "confidence",
    "x",
    "y",
    "width",
    "height",
    "real_width_mm",
    "real_height_mm",
    "volume_cm3",
    "error",
]


def save_json(snapshots: Dict[int, Snapshot], output_path: str) -> None:
    """Export snapshots to a JSON file.

    Output schema:
        {
            "samples": [
                {"sample_id": 0, "fps": ..., "calibration": {...},
                 "detections": [{"label": ..., "bbox": {...}, "volume": {...}}]}
            ],
            "total_samples": N,
            "total_detections": M
        }

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    samples = []
    total_detections = 0
    for sample_id in sorted(snapshots):
        snapshot = snapshots[sample_id]
        total_detections += len(snapshot.detections)
        samples.append({"sample_id": sample_id, **snapshot.to_dict()})

    payload = {
        "samples": samples,
        "total_samples": len(samples),
        "total_detections": total_detections,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d samples, %d detections)",
        output_path, len(samples), total_detections,
    )


def snapshot_rows(sample_id: int, snapshot: Snapshot) -> List[dict]:
    """Flatten one snapshot into CSV rows, one per detection."""
    rows = []
    for det, est in zip(snapshot.detections, snapshot.volume_estimates):
        rows.append({
            "sample_id": sample_id,
            "fps": snapshot.fps,
            "mm_per_pixel": snapshot.calibration.mm_per_pixel,
            "label": det.label,
            "confidence": det.confidence,
            **det.bbox.to_dict(),
            "real_width_mm": est.real_width_mm,
            "real_height_mm": est.real_height_mm,
            "volume_cm3": est.volume_cm3,
            "error": est.error.value if est.error is not None else "",
        })
    return rows


def save_csv(snapshots: Dict[int, Snapshot], output_path: str) -> None:
    """Export snapshots to a CSV file, one row per detection.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    total = 0
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for sample_id in sorted(snapshots):
            rows = snapshot_rows(sample_id, snapshots[sample_id])
            writer.writerows(rows)
            total += len(rows)

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
