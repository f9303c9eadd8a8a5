"""
Map object groups -> spawn points and placed colliders.

Each object group of the map is routed by its name to one kind of
handling:

    SPAWN_POINTS        every object position, offset_transform'ed
    BARRIER             polyline objects led by boundary_type=barrier
    INSTANCED_COLLIDER  tile objects; their tile's indexed outlines are
                        copied to the placement
    IGNORED             known markers with no collider (pickups)
    UNHANDLED           any other name

The route is decided once per group from the name; handling never looks
at the raw name again.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tmx_manager import MapObject, ObjectGroup, TiledMap, first_property
from .colliders import ColliderIndex
from .config import DEFAULT_CONFIG, ResolverConfig
from .geometry import Polygon2D, Vec2D
from .tile_grid import GID_MASK
from .transform import CoordinateTransformer

logger = logging.getLogger(__name__)


class GroupKind(enum.Enum):
    SPAWN_POINTS = "spawn_points"
    BARRIER = "barrier"
    INSTANCED_COLLIDER = "instanced_collider"
    IGNORED = "ignored"
    UNHANDLED = "unhandled"


@dataclass(frozen=True)
class GroupRoute:
    name: str
    kind: GroupKind
    # Collider type label looked up in the index (instanced groups only)
    label: Optional[str] = None


def classify_group(name: str, config: ResolverConfig = DEFAULT_CONFIG) -> GroupRoute:
    if name in config.spawn_groups:
        return GroupRoute(name, GroupKind.SPAWN_POINTS)
    if name in config.barrier_groups:
        return GroupRoute(name, GroupKind.BARRIER)
    if name in config.instanced_collider_groups:
        return GroupRoute(name, GroupKind.INSTANCED_COLLIDER, label=name)
    if name in config.ignored_groups:
        return GroupRoute(name, GroupKind.IGNORED)
    return GroupRoute(name, GroupKind.UNHANDLED)


@dataclass
class ResolvedGroups:
    """
    Output tables consumed by the rest of the server.

    spawn_points : group name -> world positions
    colliders    : group name -> world polygons
    routes       : how every object group of the map was handled
    """
    spawn_points: Dict[str, List[Vec2D]] = field(default_factory=dict)
    colliders: Dict[str, List[Polygon2D]] = field(default_factory=dict)
    routes: List[GroupRoute] = field(default_factory=list)


# =============================================================================
# PER-KIND HANDLERS
# =============================================================================

def _spawn_points(group: ObjectGroup, transformer: CoordinateTransformer) -> List[Vec2D]:
    return [transformer.offset_transform(Vec2D(obj.x, obj.y)) for obj in group.objects]


def _is_barrier(obj: MapObject, config: ResolverConfig) -> bool:
    leading = first_property(obj.properties)
    if leading is None:
        return False
    name, value = config.barrier_property
    return leading.name == name and leading.value == value


def barrier_polygon(obj: MapObject, transformer: CoordinateTransformer) -> Polygon2D:
    """
    World polygon for a barrier polyline.

    Vertices are absolute: anchor + vector_transform(point). Polylines
    start at 0,0, so vertex 0 is the anchor.
    """
    anchor = transformer.offset_transform(Vec2D(obj.x, obj.y))
    offsets = transformer.transform_points(obj.polyline.points)
    return Polygon2D(
        anchor=anchor,
        points=[Vec2D(anchor.x + float(dx), anchor.y + float(dy)) for dx, dy in offsets],
    )


def _barriers(group: ObjectGroup, transformer: CoordinateTransformer,
              config: ResolverConfig) -> List[Polygon2D]:
    polygons = []
    for obj in group.objects:
        if obj.polyline is None:
            continue
        if not _is_barrier(obj, config):
            logger.debug("group %r object %d: polyline without barrier annotation",
                         group.name, obj.id)
            continue
        polygons.append(barrier_polygon(obj, transformer))
    return polygons


def _instanced_colliders(group: ObjectGroup, label: str, index: ColliderIndex,
                         transformer: CoordinateTransformer) -> List[Polygon2D]:
    polygons = []
    for obj in group.objects:
        if obj.gid is None:
            continue
        # Tile objects may carry flip bits in their gid
        gid = obj.gid & GID_MASK
        templates = index.get(gid, label)
        if not templates:
            logger.debug("group %r object %d: no %r colliders indexed for gid %d",
                         group.name, obj.id, label, gid)
            continue
        anchor = transformer.offset_transform(Vec2D(obj.x, obj.y))
        polygons.extend(template.copy_at(anchor) for template in templates)
    return polygons


# =============================================================================
# ENTRY POINT
# =============================================================================

def resolve_object_groups(tiled_map: TiledMap, index: ColliderIndex,
                          transformer: CoordinateTransformer,
                          config: ResolverConfig = DEFAULT_CONFIG) -> ResolvedGroups:
    """
    Walk the map's object groups and build the output tables.

    Phase 1 routes every group and creates its output key; phase 2 fills
    the lists. A spawn/barrier/instanced group with no usable object still
    has an (empty) entry.
    """
    resolved = ResolvedGroups()

    # -----------------------------------------------------------------
    # PHASE 1: ROUTE GROUPS, SIZE THE TABLES
    # -----------------------------------------------------------------
    routed = [(group, classify_group(group.name, config)) for group in tiled_map.object_groups]
    for group, route in routed:
        resolved.routes.append(route)
        if route.kind is GroupKind.SPAWN_POINTS:
            resolved.spawn_points[route.name] = []
        elif route.kind in (GroupKind.BARRIER, GroupKind.INSTANCED_COLLIDER):
            resolved.colliders[route.name] = []

    # -----------------------------------------------------------------
    # PHASE 2: POPULATE
    # -----------------------------------------------------------------
    for group, route in routed:
        if route.kind is GroupKind.SPAWN_POINTS:
            resolved.spawn_points[route.name].extend(_spawn_points(group, transformer))
        elif route.kind is GroupKind.BARRIER:
            resolved.colliders[route.name].extend(_barriers(group, transformer, config))
        elif route.kind is GroupKind.INSTANCED_COLLIDER:
            resolved.colliders[route.name].extend(
                _instanced_colliders(group, route.label, index, transformer))
        elif route.kind is GroupKind.UNHANDLED:
            logger.debug("object group %r not handled", group.name)

    return resolved
