"""
Battle map loading: isometric TMX/TSX assets -> physics-world spawn points
and collider polygons.

Requirements:
    pip install numpy pyyaml
"""

from .config import ResolverConfig, load_config
from .geometry import Vec2D, Polygon2D
from .transform import CoordinateTransformer
from .tile_grid import TileGrid, DecodedTile, decode_layer, decode_gids
from .colliders import ColliderIndex, build_collider_index
from .resolver import GroupKind, GroupRoute, classify_group, resolve_object_groups
from .loader import BattleMap, build_battle_map, load_battle_map, load_battle_map_file

__version__ = "1.0.0"
__all__ = [
    "ResolverConfig",
    "load_config",
    "Vec2D",
    "Polygon2D",
    "CoordinateTransformer",
    "TileGrid",
    "DecodedTile",
    "decode_layer",
    "decode_gids",
    "ColliderIndex",
    "build_collider_index",
    "GroupKind",
    "GroupRoute",
    "classify_group",
    "resolve_object_groups",
    "BattleMap",
    "build_battle_map",
    "load_battle_map",
    "load_battle_map_file",
]
