"""
Static lookup tables of known objects.

Reference objects have a fixed physical size and are used to discover
the mm-per-pixel scale of the scene. Shape models tell the volume
estimator which geometric formula approximates a class.

Both tables are read-only mappings keyed by class label. They can be
extended (not mutated) through the ``measurement`` section of the YAML
config, see config.MeasurementConfig.

Note:
    ShapeModel.avg_diameter_mm / avg_height_mm are descriptive data.
    The volume estimator works from the measured bounding box and does
    not read them.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


class ShapeKind(str, enum.Enum):
    """Geometric primitive used to approximate an object's volume."""

    SPHERE = "sphere"
    CYLINDER = "cylinder"
    HEMISPHERE = "hemisphere"


@dataclass(frozen=True)
class ReferenceObjectSpec:
    """Known real-world size of a reference object.

    Attributes:
        label: Class label the detector reports for this object.
        width_mm: Physical width in millimeters.
        height_mm: Physical height in millimeters.
    """

    label: str
    width_mm: float
    height_mm: float

    @property
    def area_mm2(self) -> float:
        """Physical area in square millimeters (informational)."""
        return self.width_mm * self.height_mm


@dataclass(frozen=True)
class ShapeModel:
    """Shape rule for one object class.

    Attributes:
        label: Class label.
        shape: Geometric primitive. None selects the box fallback.
        avg_diameter_mm: Typical diameter (descriptive only).
        avg_height_mm: Typical height, cylinders only (descriptive only).
    """

    label: str
    shape: Optional[ShapeKind]
    avg_diameter_mm: Optional[float] = None
    avg_height_mm: Optional[float] = None


def make_table(*entries) -> Mapping:
    """Build a read-only label -> entry mapping."""
    return MappingProxyType({entry.label: entry for entry in entries})


# ID-1 card format (ISO/IEC 7810)
CREDIT_CARD = ReferenceObjectSpec(label="credit card", width_mm=85.6, height_mm=53.98)

REFERENCE_OBJECTS: Mapping[str, ReferenceObjectSpec] = make_table(CREDIT_CARD)

SHAPE_MODELS: Mapping[str, ShapeModel] = make_table(
    ShapeModel("cup", ShapeKind.CYLINDER, avg_diameter_mm=75, avg_height_mm=95),
    ShapeModel("bottle", ShapeKind.CYLINDER, avg_diameter_mm=65, avg_height_mm=230),
    ShapeModel("apple", ShapeKind.SPHERE, avg_diameter_mm=80),
    ShapeModel("orange", ShapeKind.SPHERE, avg_diameter_mm=75),
    ShapeModel("banana", ShapeKind.CYLINDER, avg_diameter_mm=35, avg_height_mm=180),
    ShapeModel("bowl", ShapeKind.HEMISPHERE, avg_diameter_mm=150),
)
