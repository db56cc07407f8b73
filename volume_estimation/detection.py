"""
Detection data transfer objects.

Two shapes of detection cross this package:

    - RawDetection: what a detection source returns. Fractional pixel
      geometry (left, top, width, height) that may lie partly outside
      the frame, plus an unrounded score.
    - Detection: the canonical form produced by the normalizer. Integer,
      non-negative pixel geometry and a confidence rounded to 2 decimals.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No filtering or rounding (that belongs in normalizer).
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RawDetection:
    """A single unprocessed detection from a detection source.

    Attributes:
        label: Class label reported by the model (e.g. "cup").
        score: Confidence score in [0.0, 1.0].
        left: Left edge in source pixels.
        top: Top edge in source pixels.
        width: Box width in source pixels.
        height: Box height in source pixels.
    """

    label: str
    score: float
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Integer pixel bounding box (top-left origin)."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        """Bounding box area in pixels."""
        return self.width * self.height

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class Detection:
    """A normalized detection.

    Attributes:
        label: Class label.
        confidence: Score rounded to 2 decimal places, never below the
                    threshold it was filtered with.
        bbox: Integer pixel bounding box, every field >= 0.
    """

    label: str
    confidence: float
    bbox: BoundingBox

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "label": self.label,
            "confidence": self.confidence,
            "bbox": self.bbox.to_dict(),
        }
