from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional
import datetime
import math

if TYPE_CHECKING:
    from .projection import CoordinateProjection


@dataclass(frozen=True)
class Pixel:
    """Zero-based image coordinates."""

    x: float
    y: float

    def distance_to(self, other: "Pixel") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass
class SolvedImage:
    width_px: int
    height_px: int
    timestamp_utc: datetime.datetime
    projection: Optional["CoordinateProjection"]
    metadata: Dict[str, Any] = field(default_factory=dict)
    data: Any = None  # File path or pixel array, for display only

    @property
    def center(self) -> Pixel:
        return Pixel(float(self.width_px // 2), float(self.height_px // 2))
