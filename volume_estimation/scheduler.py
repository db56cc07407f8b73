"""
DetectionScheduler — drives sampling, calibration and volume estimation.

Responsibility:
    Decide on each tick whether to sample a new detection batch, keep
    the detections-per-second count, and run every sampled batch through
    normalizer → calibration → volume estimation before publishing a
    Snapshot to the registered observer.

States:
    Idle ──start()──▶ Running ──stop()──▶ Idle

Ticking:
    tick() is driven by the host, once per display/capture frame. Either
    the host calls tick() itself (see main.py), or a FramePacer is given
    and the scheduler re-requests a frame after every tick until stop().

Constraints:
    - Single-threaded and cooperative. The detection call is synchronous,
      so at most one is in flight and results are consumed in order.
    - A failing detection call, or a failure while processing its batch
      (normalizing, calibrating, measuring, the snapshot observer), is
      logged, reported to the error observer and skipped. The next
      interval retries and paced ticking continues.
    - The detection call has no timeout. A hung source blocks the tick
      that called it.

Non-goals:
    - No frame acquisition, model loading or rendering.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Protocol

from volume_estimation.calibration import CalibrationEngine, CalibrationState
from volume_estimation.config import DetectionConfig
from volume_estimation.detection import Detection, RawDetection
from volume_estimation.normalizer import normalize
from volume_estimation.objects import SHAPE_MODELS, ShapeModel
from volume_estimation.volume import VolumeEstimate, estimate_volume

logger = logging.getLogger(__name__)

MIN_DETECTION_INTERVAL_MS = 50.0
MIN_CONFIDENCE_THRESHOLD = 0.1
MAX_CONFIDENCE_THRESHOLD = 1.0
MIN_MAX_DETECTIONS = 1
MAX_MAX_DETECTIONS = 50

_FPS_WINDOW_MS = 1000.0


class DetectionSource(Protocol):
    """Anything that turns a frame into raw detections (e.g. Detector)."""

    def detect(self, frame: Any, min_score: float, max_results: int) -> List[RawDetection]:
        ...


class FramePacer(Protocol):
    """Schedules a callback for the next frame."""

    def request(self, callback: Callable[[], None]) -> Any:
        """Run callback before the next frame. Returns a cancel handle."""
        ...

    def cancel(self, handle: Any) -> None:
        ...


@dataclass(frozen=True)
class Snapshot:
    """Result bundle for one processed sampling tick.

    volume_estimates[i] belongs to detections[i].
    """

    detections: List[Detection]
    fps: int
    calibration: CalibrationState
    volume_estimates: List[VolumeEstimate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "fps": self.fps,
            "calibration": self.calibration.to_dict(),
            "detections": [
                {**det.to_dict(), "volume": est.to_dict()}
                for det, est in zip(self.detections, self.volume_estimates)
            ],
        }


@dataclass(frozen=True)
class DetectionStats:
    """Scheduler statistics, refreshed on every tick."""

    is_active: bool
    fps: int
    last_detection_count: int
    confidence_threshold: float
    detection_interval_ms: float
    max_detections: int


def _clamp(value, low, high):
    return max(low, min(high, value))


class DetectionScheduler:
    """Rate-limited detection loop with calibration and volume estimation.

    Usage:
        scheduler = DetectionScheduler(detector, frame_source.read)
        scheduler.set_snapshot_observer(on_snapshot)
        scheduler.start()
        for _ in frame_source:
            scheduler.tick()
        scheduler.stop()

    Dependencies are passed in explicitly; nothing here is a singleton.
    """

    def __init__(
        self,
        detection_source: DetectionSource,
        frame_provider: Callable[[], Any],
        config: Optional[DetectionConfig] = None,
        calibration: Optional[CalibrationEngine] = None,
        shape_models: Mapping[str, ShapeModel] = SHAPE_MODELS,
        pacer: Optional[FramePacer] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create an idle scheduler.

        Args:
            detection_source: Object with detect(frame, min_score, max_results).
            frame_provider: Returns the current frame, or None when no
                            frame is available yet.
            config: Sampling settings. Out-of-range values are clamped.
            calibration: Calibration engine to feed. A fresh one if None.
            shape_models: Label -> ShapeModel table for volume estimation.
            pacer: Optional frame pacer for self-rescheduling ticks.
            clock: Monotonic time source in seconds.
        """
        if config is None:
            config = DetectionConfig()

        self._source = detection_source
        self._frame_provider = frame_provider
        self._calibration = calibration if calibration is not None else CalibrationEngine()
        self._shape_models = shape_models
        self._pacer = pacer
        self._clock = clock

        self._detection_interval_ms = MIN_DETECTION_INTERVAL_MS
        self._confidence_threshold = MIN_CONFIDENCE_THRESHOLD
        self._max_detections = MIN_MAX_DETECTIONS
        self.set_detection_interval_ms(config.detection_interval_ms)
        self.set_confidence_threshold(config.confidence_threshold)
        self.set_max_detections(config.max_detections)

        self._running = False
        self._pending: Any = None
        self._detection_count = 0
        self._fps = 0
        self._fps_anchor_ms = 0.0
        self._last_detection_ms: Optional[float] = None
        self._current_detections: List[Detection] = []

        self._on_snapshot: Optional[Callable[[Snapshot], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Idle → Running. No-op if already running."""
        if self._running:
            return

        self._running = True
        self._detection_count = 0
        self._fps_anchor_ms = self._now_ms()
        # Sample on the first tick
        self._last_detection_ms = None

        logger.info(
            "Detection scheduler started (interval=%.0fms, threshold=%.2f, max=%d)",
            self._detection_interval_ms,
            self._confidence_threshold,
            self._max_detections,
        )

        if self._pacer is not None:
            self._pending = self._pacer.request(self._on_frame)

    def stop(self) -> None:
        """Running → Idle. Cancels a pending tick and clears detections."""
        was_running = self._running
        self._running = False

        if self._pending is not None and self._pacer is not None:
            self._pacer.cancel(self._pending)
        self._pending = None

        self._current_detections = []

        if was_running:
            logger.info("Detection scheduler stopped.")

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self) -> Optional[Snapshot]:
        """Run one scheduling step.

        Returns:
            The published Snapshot if this tick sampled and processed a
            detection batch, otherwise None.
        """
        if not self._running:
            return None

        now = self._now_ms()

        if now - self._fps_anchor_ms >= _FPS_WINDOW_MS:
            self._fps = self._detection_count
            self._detection_count = 0
            self._fps_anchor_ms = now

        if (
            self._last_detection_ms is not None
            and now - self._last_detection_ms < self._detection_interval_ms
        ):
            return None

        self._last_detection_ms = now
        self._detection_count += 1
        return self._sample()

    def _on_frame(self) -> None:
        """FramePacer callback: tick, then ask for the next frame."""
        self._pending = None
        if not self._running:
            return

        try:
            self.tick()
        finally:
            # An observer may have called stop(), or stop() then start(),
            # during the tick
            if self._running and self._pending is None and self._pacer is not None:
                self._pending = self._pacer.request(self._on_frame)

    def _sample(self) -> Optional[Snapshot]:
        """Fetch a detection batch and publish the resulting snapshot.

        Failures in detection or in processing the batch are logged and
        reported to the error observer. The next interval retries.
        """
        frame = self._frame_provider()
        if frame is None:
            logger.debug("No frame available, skipping detection.")
            return None

        try:
            raw = self._source.detect(
                frame,
                min_score=self._confidence_threshold,
                max_results=self._max_detections,
            )
            return self.process(raw)
        except Exception as e:
            logger.warning("Detection tick failed, will retry next interval: %s", e, exc_info=True)
            if self._on_error is not None:
                self._on_error(e)
            return None

    def process(self, raw_detections: List[RawDetection]) -> Snapshot:
        """Run one detection batch through the measurement pipeline.

        normalize → calibration update → one volume estimate per
        detection. The snapshot is published to the observer and
        returned.
        """
        detections = normalize(raw_detections, self._confidence_threshold)
        self._current_detections = detections

        self._calibration.update(detections)
        calibration = self._calibration.get_status()

        estimates = [
            estimate_volume(det, calibration, self._shape_models)
            for det in detections
        ]

        snapshot = Snapshot(
            detections=detections,
            fps=self._fps,
            calibration=calibration,
            volume_estimates=estimates,
        )

        logger.debug(
            "Processed %d detections (fps=%d, calibrated=%s)",
            len(detections), self._fps, calibration.is_calibrated,
        )

        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

        return snapshot

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_detection_interval_ms(self, interval_ms: float) -> None:
        """Set the sampling interval, at least 50 ms."""
        self._detection_interval_ms = max(MIN_DETECTION_INTERVAL_MS, float(interval_ms))

    def set_confidence_threshold(self, threshold: float) -> None:
        """Set the confidence threshold, clamped to [0.1, 1.0]."""
        self._confidence_threshold = _clamp(
            float(threshold), MIN_CONFIDENCE_THRESHOLD, MAX_CONFIDENCE_THRESHOLD
        )

    def set_max_detections(self, max_detections: int) -> None:
        """Set the result cap passed to the detection source, clamped to [1, 50]."""
        self._max_detections = _clamp(int(max_detections), MIN_MAX_DETECTIONS, MAX_MAX_DETECTIONS)

    def set_snapshot_observer(self, callback: Optional[Callable[[Snapshot], None]]) -> None:
        self._on_snapshot = callback

    def set_error_observer(self, callback: Optional[Callable[[Exception], None]]) -> None:
        self._on_error = callback

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_stats(self) -> DetectionStats:
        """Return current scheduler statistics."""
        return DetectionStats(
            is_active=self._running,
            fps=self._fps,
            last_detection_count=len(self._current_detections),
            confidence_threshold=self._confidence_threshold,
            detection_interval_ms=self._detection_interval_ms,
            max_detections=self._max_detections,
        )

    @property
    def calibration(self) -> CalibrationEngine:
        """Return the calibration engine fed by this scheduler."""
        return self._calibration

    @property
    def current_detections(self) -> List[Detection]:
        """Detections from the last processed batch."""
        return list(self._current_detections)

    def _now_ms(self) -> float:
        return self._clock() * 1000.0
