"""
Output handling for published snapshots.

Responsibility:
    Act as the DetectionScheduler snapshot observer and route each
    snapshot to the configured sinks: log lines, JSON, CSV.
    Multiple modes can be active at once.

Non-goals:
    - No overlay rendering or display windows.
    - No detection logic.
"""

import logging
from pathlib import Path
from typing import Dict, Set

from volume_estimation.config import AppConfig, get_project_root, parse_output_modes
from volume_estimation.scheduler import Snapshot
from volume_estimation.serializer import save_csv, save_json

logger = logging.getLogger(__name__)


def format_snapshot(snapshot: Snapshot) -> str:
    """One-line human readable summary of a snapshot."""
    if snapshot.calibration.is_calibrated:
        scale = (
            f"{snapshot.calibration.mm_per_pixel:.4f} mm/px "
            f"({snapshot.calibration.calibration_object_class})"
        )
    else:
        scale = "searching for reference object"

    parts = []
    for det, est in zip(snapshot.detections, snapshot.volume_estimates):
        if est.ok:
            parts.append(f"{det.label}={est.volume_cm3:.2f}cm3")
        else:
            parts.append(f"{det.label}({det.confidence:.2f})")

    objects = ", ".join(parts) if parts else "none"
    return f"fps={snapshot.fps} scale={scale} objects=[{objects}]"


class OutputHandler:
    """Routes snapshots to configured output sinks.

        - 'log': Log a one-line summary per snapshot.
        - 'save_json': Buffer snapshots, write measurements.json on finalize.
        - 'save_csv': Buffer snapshots, write measurements.csv on finalize.

    Usage:
        handler = OutputHandler(config)
        scheduler.set_snapshot_observer(handler.on_snapshot)
        ...
        handler.finalize()
    """

    def __init__(self, config: AppConfig) -> None:
        self._modes: Set[str] = parse_output_modes(config.output.mode)
        self._buffer: Dict[int, Snapshot] = {}
        self._next_id = 0

        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        if self._modes & {"save_json", "save_csv"}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    def on_snapshot(self, snapshot: Snapshot) -> None:
        """Snapshot observer callback."""
        sample_id = self._next_id
        self._next_id += 1

        if "log" in self._modes:
            logger.info("[%d] %s", sample_id, format_snapshot(snapshot))

        if self._modes & {"save_json", "save_csv"}:
            self._buffer[sample_id] = snapshot

    def finalize(self) -> None:
        """Flush buffered output. Call once after the loop ends."""
        if "save_json" in self._modes and self._buffer:
            save_json(self._buffer, str(self._save_path / "measurements.json"))

        if "save_csv" in self._modes and self._buffer:
            save_csv(self._buffer, str(self._save_path / "measurements.csv"))

        self._buffer.clear()
        logger.info("OutputHandler finalized.")
