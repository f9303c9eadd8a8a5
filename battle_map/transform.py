r"""
Isometric object-layer space to physics-world space

=============================================================================
THE TWO SPACES
=============================================================================

Object layers of an isometric map are authored in "layer-local" pixels:
the editor lays the map out as a diamond, but object x/y run along the
diamond's edges, and y grows DOWN.

                    (0,0)
                     /\
               y   /    \   x
                 /        \
                 \        /
                   \    /
                     \/

The physics world is a flat cartesian plane with y growing UP.

=============================================================================
THE MATRIX
=============================================================================

For a tile of W x H pixels:

    L  = sqrt((W/2)^2 + (H/2)^2)     half-diagonal of the tile diamond
    s  = L / H                       layer pixel -> world scale
    c  = (W/2) / L                   cos of the diamond edge angle
    sn = (H/2) / L                   sin of the diamond edge angle

    M = [  s*c   -s*c  ]
        [ -s*sn  -s*sn ]

vector_transform(v) = M . v        (offsets, polyline points)
offset_transform(v) = M . v + (0, map_height / 2)   (absolute positions)

Every coordinate the server produces goes through one of these two
methods. Nothing else in the package does trigonometry.

=============================================================================
"""

import math
from typing import Iterable, Tuple

import numpy as np

from tmx_manager import InvalidDimensions, TiledMap
from .geometry import Vec2D


class CoordinateTransformer:
    """
    Converts layer-local vectors and positions into physics-world space.

    A pure function of the map's tile size and height; build one per map
    with ``CoordinateTransformer.from_map(tiled_map)``.
    """

    def __init__(self, tile_width: int, tile_height: int, map_height: float):
        if tile_width <= 0 or tile_height <= 0:
            raise InvalidDimensions(
                f"tile size must be positive, got {tile_width}x{tile_height}"
            )
        self.tile_width = tile_width
        self.tile_height = tile_height
        self.map_height = map_height

        half_w = tile_width * 0.5
        half_h = tile_height * 0.5
        unified_length = math.sqrt(half_w * half_w + half_h * half_h)
        scale = unified_length / tile_height
        cos_theta = half_w / unified_length
        sin_theta = half_h / unified_length

        self.matrix = np.array([
            [scale * cos_theta, -scale * cos_theta],
            [-scale * sin_theta, -scale * sin_theta],
        ], dtype=np.float64)
        self.layer_offset = np.array([0.0, map_height * 0.5], dtype=np.float64)

    @classmethod
    def from_map(cls, tiled_map: TiledMap) -> 'CoordinateTransformer':
        # map height is the grid height in tiles
        return cls(tiled_map.tilewidth, tiled_map.tileheight, tiled_map.height)

    def vector_transform(self, v: Vec2D) -> Vec2D:
        """Layer-local vector or offset -> world vector."""
        x, y = self.matrix @ np.array([v.x, v.y], dtype=np.float64)
        return Vec2D(float(x), float(y))

    def offset_transform(self, v: Vec2D) -> Vec2D:
        """Absolute layer-local position -> absolute world position."""
        x, y = self.matrix @ np.array([v.x, v.y], dtype=np.float64) + self.layer_offset
        return Vec2D(float(x), float(y))

    def transform_points(self, points: Iterable[Tuple[float, float]]) -> np.ndarray:
        """
        Batched ``vector_transform``.

        Returns an (N, 2) float64 array; an empty input gives shape (0, 2).
        """
        arr = np.asarray(list(points), dtype=np.float64).reshape(-1, 2)
        return arr @ self.matrix.T

    def __repr__(self) -> str:
        return (f"CoordinateTransformer(tile={self.tile_width}x{self.tile_height}, "
                f"map_height={self.map_height})")
