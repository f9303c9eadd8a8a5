"""
Plain 2D value types in physics-world coordinates.

Vec2D and Polygon2D are mutable: the physics layer adjusts
vertices when it builds bodies. Anything that hands out a polygon it keeps
as a template (the collider index) must therefore give away copies, see
``Polygon2D.copy_at``.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class Vec2D:
    """Point or vector in physics-world space."""
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: 'Vec2D') -> 'Vec2D':
        return Vec2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other: 'Vec2D') -> 'Vec2D':
        return Vec2D(self.x - other.x, self.y - other.y)

    def copy(self) -> 'Vec2D':
        return Vec2D(self.x, self.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class Polygon2D:
    """
    Anchor plus ordered vertices, all in physics-world space.

    Whether ``points[0]`` coincides with ``anchor`` depends on who built
    the polygon:

    - barrier polygons: vertices are absolute, vertex 0 == anchor
    - placed tile colliders: anchor is the placement, vertices are
      offsets from the tile center
    - collider index templates: anchor is None
    """
    anchor: Optional[Vec2D] = None
    points: List[Vec2D] = field(default_factory=list)

    def copy_at(self, anchor: Optional[Vec2D]) -> 'Polygon2D':
        """New polygon at ``anchor`` with freshly allocated vertices."""
        return Polygon2D(
            anchor=anchor.copy() if anchor is not None else None,
            points=[p.copy() for p in self.points],
        )

    def __len__(self) -> int:
        return len(self.points)
