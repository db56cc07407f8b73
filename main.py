"""
Volume Estimation CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the detector, frame source, scheduler and output handler, and run the
    measurement loop.

Usage:
    python main.py --source 0                          # Webcam
    python main.py --source table.mp4 --output-mode log,save_csv
    python main.py --source snapshot.jpg --confidence 0.4
    python main.py --config my_config.yaml

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import dataclasses
import logging
import sys

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from volume_estimation.calibration import CalibrationEngine
from volume_estimation.config import load_config
from volume_estimation.detector import Detector
from volume_estimation.frame_source import FrameSource
from volume_estimation.output_handler import OutputHandler
from volume_estimation.scheduler import DetectionScheduler


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Reference-calibrated object volume estimation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: '0' for webcam, or path to an image/video file.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Detection confidence threshold (clamped to 0.1 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Milliseconds between detection calls (minimum 50). Overrides config.",
    )
    parser.add_argument(
        "--max-detections",
        type=int,
        help="Maximum detections per call (clamped to 1 - 50). Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: log, save_json, save_csv. "
             "Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    return parser.parse_args()


def apply_cli_overrides(config, args: argparse.Namespace):
    """Return a copy of config with CLI arguments applied."""
    if args.source is not None:
        config = dataclasses.replace(
            config, input=dataclasses.replace(config.input, source=args.source)
        )

    detection_overrides = {}
    if args.confidence is not None:
        detection_overrides["confidence_threshold"] = args.confidence
    if args.interval is not None:
        detection_overrides["detection_interval_ms"] = args.interval
    if args.max_detections is not None:
        detection_overrides["max_detections"] = args.max_detections
    if detection_overrides:
        config = dataclasses.replace(
            config, detection=dataclasses.replace(config.detection, **detection_overrides)
        )

    if args.backend is not None:
        config = dataclasses.replace(
            config, model=dataclasses.replace(config.model, backend=args.backend)
        )

    output_overrides = {}
    if args.output_mode is not None:
        output_overrides["mode"] = args.output_mode
    if args.output_path is not None:
        output_overrides["save_path"] = args.output_path
    if output_overrides:
        config = dataclasses.replace(
            config, output=dataclasses.replace(config.output, **output_overrides)
        )

    return config


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        detector = Detector(config)
        frame_source = FrameSource(
            source=config.input.source,
            resize_width=config.input.resize_width,
        )
        output_handler = OutputHandler(config)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    scheduler = DetectionScheduler(
        detection_source=detector,
        frame_provider=frame_source.read,
        config=config.detection,
        calibration=CalibrationEngine(config.measurement.reference_objects),
        shape_models=config.measurement.shape_models,
    )
    scheduler.set_snapshot_observer(output_handler.on_snapshot)
    scheduler.set_error_observer(
        lambda e: logger.error("Detection error: %s", e)
    )

    # 3. Measurement Loop: one scheduler tick per captured frame
    logger.info("Starting measurement loop. Press Ctrl+C to stop.")

    frame_count = 0
    scheduler.start()
    try:
        for _ in frame_source:
            frame_count += 1
            scheduler.tick()

            if frame_count % 30 == 0:
                stats = scheduler.get_stats()
                logger.info(
                    "Processed %d frames (detection fps=%d, objects=%d)",
                    frame_count, stats.fps, stats.last_detection_count,
                )

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        status = scheduler.calibration.get_status()
        scheduler.stop()
        frame_source.release()
        output_handler.finalize()

        if status.is_calibrated:
            logger.info(
                "Finished after %d frames. Final scale: %.4f mm/px (%s).",
                frame_count, status.mm_per_pixel, status.calibration_object_class,
            )
        else:
            logger.info(
                "Finished after %d frames. No reference object was found.",
                frame_count,
            )

    return 0


if __name__ == "__main__":
    sys.exit(main())
