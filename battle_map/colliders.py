"""
Collider outlines attached to tile definitions

=============================================================================
WHERE THEY COME FROM
=============================================================================

A tileset may give any tile an object group. Each polyline object in it,
labelled by a leading ``type`` property, is one collider outline:

    <tile id="13">
        <objectgroup draworder="index">
            <object id="1" x="-154" y="-159">
                <properties>
                    <property name="type" value="GuardTower"/>
                </properties>
                <polyline points="0,0 -95,179 18,407 361,434 458,168 333,-7"/>
            </object>
        </objectgroup>
    </tile>

=============================================================================
FROM TILE PIXELS TO WORLD OFFSETS
=============================================================================

Polyline points are relative to the object, the object is relative to the
top-left corner of the tile image, and y grows down. The outline is first
re-expressed around the tile center with y flipped:

    cx = (px + obj.x) - W/2
    cy = H/2 - (py + obj.y)

(W, H = the tileset's tile size), then pushed through vector_transform.
The result has no anchor: it becomes a placed collider only when a map
object puts that tile somewhere.

=============================================================================
THE INDEX
=============================================================================

    gid -> type label -> (Polygon2D, ...)

Built once per load and read-only afterwards. Placements must copy the
polygons (Polygon2D.copy_at), never hand out the templates themselves.

=============================================================================
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

from tmx_manager import (
    InconsistentColliderAnnotation,
    MapObject,
    Tileset,
    first_property,
    get_property,
)
from .config import DEFAULT_CONFIG, ResolverConfig
from .geometry import Polygon2D, Vec2D
from .transform import CoordinateTransformer

logger = logging.getLogger(__name__)


ColliderEntry = Tuple[int, str, Polygon2D]


def tile_center_offsets(obj: MapObject, tileset: Tileset) -> List[Vec2D]:
    """Polyline points of ``obj`` relative to the tile center, y up, untransformed."""
    half_w = 0.5 * tileset.tilewidth
    half_h = 0.5 * tileset.tileheight
    return [
        Vec2D((px + obj.x) - half_w, half_h - (py + obj.y))
        for px, py in obj.polyline.points
    ]


def polyline_to_tile_collider(obj: MapObject, tileset: Tileset,
                              transformer: CoordinateTransformer) -> Polygon2D:
    offsets = tile_center_offsets(obj, tileset)
    world = transformer.transform_points(v.as_tuple() for v in offsets)
    return Polygon2D(
        anchor=None,
        points=[Vec2D(float(x), float(y)) for x, y in world],
    )


def _annotation_mismatch(message: str, config: ResolverConfig) -> None:
    if config.strict_annotations:
        raise InconsistentColliderAnnotation(message)
    logger.warning("skipping tile collider: %s", message)


def extract_tileset_colliders(tileset: Tileset, transformer: CoordinateTransformer,
                              config: ResolverConfig = DEFAULT_CONFIG) -> Iterator[ColliderEntry]:
    """Yield (gid, type label, polygon) for every labelled outline in ``tileset``."""
    type_name = config.collider_type_property

    for tile in tileset.tiles.values():
        if tile.object_group is None:
            continue
        gid = tileset.global_id(tile.id)

        for obj in tile.object_group.objects:
            leading = first_property(obj.properties)

            if obj.polyline is None:
                if get_property(obj.properties, type_name) is not None:
                    _annotation_mismatch(
                        f"gid {gid} object {obj.id} has a '{type_name}' property "
                        f"but no polyline", config)
                else:
                    logger.debug("gid %d object %d has no polyline", gid, obj.id)
                continue

            if leading is None or leading.name != type_name:
                _annotation_mismatch(
                    f"gid {gid} object {obj.id} has a polyline but its first "
                    f"property is not '{type_name}'", config)
                continue

            yield gid, leading.value, polyline_to_tile_collider(obj, tileset, transformer)


class ColliderIndex:
    """
    Read-only ``gid -> label -> tuple of Polygon2D`` lookup.

    Construction is two-phase: the key space is enumerated from all
    entries first, then every bucket is filled. Nothing is inserted after
    ``from_entries`` returns.
    """

    def __init__(self, table: Mapping[int, Mapping[str, Tuple[Polygon2D, ...]]]):
        self._table = MappingProxyType({
            gid: MappingProxyType(dict(by_label)) for gid, by_label in table.items()
        })

    @classmethod
    def from_entries(cls, entries: Iterable[ColliderEntry]) -> 'ColliderIndex':
        entries = list(entries)

        # Phase 1: key space
        buckets: Dict[int, Dict[str, List[Polygon2D]]] = {
            gid: {} for gid, _, _ in entries
        }
        for gid, label, _ in entries:
            buckets[gid].setdefault(label, [])

        # Phase 2: populate, preserving document order
        for gid, label, polygon in entries:
            buckets[gid][label].append(polygon)

        return cls({
            gid: {label: tuple(polys) for label, polys in by_label.items()}
            for gid, by_label in buckets.items()
        })

    def get(self, gid: int, label: str) -> Tuple[Polygon2D, ...]:
        by_label = self._table.get(gid)
        if by_label is None:
            return ()
        return by_label.get(label, ())

    def labels(self, gid: int) -> Tuple[str, ...]:
        return tuple(self._table.get(gid, ()))

    def gids(self) -> Tuple[int, ...]:
        return tuple(self._table)

    def as_mapping(self) -> Mapping[int, Mapping[str, Tuple[Polygon2D, ...]]]:
        return self._table

    def merged(self, other: 'ColliderIndex') -> 'ColliderIndex':
        def entries(index):
            for gid, by_label in index.as_mapping().items():
                for label, polygons in by_label.items():
                    for polygon in polygons:
                        yield gid, label, polygon
        return ColliderIndex.from_entries(list(entries(self)) + list(entries(other)))

    def __contains__(self, gid: object) -> bool:
        return gid in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        count = sum(len(p) for by_label in self._table.values() for p in by_label.values())
        return f"ColliderIndex({len(self._table)} gids, {count} polygons)"


def build_collider_index(tilesets: Iterable[Tileset], transformer: CoordinateTransformer,
                         config: ResolverConfig = DEFAULT_CONFIG) -> ColliderIndex:
    """Index the collider outlines of every (fully parsed) tileset."""
    entries: List[ColliderEntry] = []
    for tileset in tilesets:
        found = list(extract_tileset_colliders(tileset, transformer, config))
        logger.debug("tileset %r (firstgid %d): %d collider outlines",
                     tileset.name, tileset.firstgid, len(found))
        entries.extend(found)
    return ColliderIndex.from_entries(entries)
