"""
Page geometry shared by OCR results and providers.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple


@dataclass
class BoundingBox:
    """Represents the position of a recognized text fragment on the page."""

    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        """Right edge of the bounding box."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom edge of the bounding box."""
        return self.y + self.height

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> "BoundingBox":
        """Build the smallest box enclosing a polygon's vertices."""
        points = list(points)
        if not points:
            return cls(0, 0, 0, 0)

        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        x, y = min(xs), min(ys)
        return cls(x, y, max(xs) - x, max(ys) - y)

    @classmethod
    def empty(cls) -> "BoundingBox":
        return cls(0, 0, 0, 0)

    def to_tuple(self) -> Tuple[float, float, float, float]:
        """Convert to tuple (x, y, width, height)."""
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
