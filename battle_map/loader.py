"""
Map asset load pipeline.

    tileset documents --> Tileset --+--> ColliderIndex --+
                                    |                    |
    map document ------> TiledMap --+--> transformer ----+--> resolve_object_groups
                                    |
                                    +--> decode_layer (per tile layer)

Single pass, synchronous. The returned BattleMap is meant to be loaded
once per map asset and shared read-only between game sessions.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from tmx_manager import MissingTileset, TiledMap, Tileset
from .colliders import ColliderIndex, build_collider_index
from .config import DEFAULT_CONFIG, ResolverConfig
from .geometry import Polygon2D, Vec2D
from .resolver import GroupRoute, resolve_object_groups
from .tile_grid import TileGrid, decode_layer
from .transform import CoordinateTransformer

logger = logging.getLogger(__name__)

Document = Union[str, bytes]


@dataclass
class BattleMap:
    tiled_map: TiledMap
    transformer: CoordinateTransformer
    collider_index: ColliderIndex
    spawn_points: Dict[str, List[Vec2D]]
    colliders: Dict[str, List[Polygon2D]]
    routes: List[GroupRoute] = field(default_factory=list)
    tile_grids: Dict[str, TileGrid] = field(default_factory=dict)


def _resolve_tilesets(tiled_map: TiledMap,
                      tileset_documents: Mapping[str, Document]) -> List[Tileset]:
    tilesets = []
    for tileset in tiled_map.tilesets:
        if tileset.is_external:
            text = tileset_documents.get(tileset.source)
            if text is None:
                raise MissingTileset(
                    f"no document supplied for external tileset {tileset.source!r}"
                )
            tileset = Tileset.from_string(text, tileset.firstgid, source=tileset.source)
        tilesets.append(tileset)
    return tilesets


def build_battle_map(tiled_map: TiledMap, config: ResolverConfig = DEFAULT_CONFIG,
                     decode_layers: bool = True) -> BattleMap:
    """Run the pipeline on a map whose tilesets are all fully parsed."""
    if tiled_map.orientation != 'isometric':
        logger.warning("map orientation is %r; coordinates assume an isometric map",
                       tiled_map.orientation)

    transformer = CoordinateTransformer.from_map(tiled_map)
    index = build_collider_index(tiled_map.tilesets, transformer, config)
    resolved = resolve_object_groups(tiled_map, index, transformer, config)

    tile_grids = {}
    if decode_layers:
        for layer in tiled_map.layers:
            tile_grids[layer.name] = decode_layer(layer, tiled_map.tilesets)

    logger.info(
        "battle map loaded: %d spawn groups (%d points), %d collider groups "
        "(%d polygons), %d indexed gids, %d tile layers",
        len(resolved.spawn_points),
        sum(len(v) for v in resolved.spawn_points.values()),
        len(resolved.colliders),
        sum(len(v) for v in resolved.colliders.values()),
        len(index),
        len(tile_grids),
    )

    return BattleMap(
        tiled_map=tiled_map,
        transformer=transformer,
        collider_index=index,
        spawn_points=resolved.spawn_points,
        colliders=resolved.colliders,
        routes=resolved.routes,
        tile_grids=tile_grids,
    )


def load_battle_map(tmx_text: Document,
                    tileset_documents: Optional[Mapping[str, Document]] = None,
                    config: ResolverConfig = DEFAULT_CONFIG,
                    decode_layers: bool = True) -> BattleMap:
    """
    Load a battle map from in-memory documents.

    Parameters:
    -----------
    tmx_text : str or bytes
        The map document
    tileset_documents : mapping, optional
        TSX documents keyed by the ``source`` attribute the map uses to
        reference them
    config : ResolverConfig
        Group vocabulary and annotation rules
    decode_layers : bool
        Also decode the tile layers into TileGrids

    Raises:
    -------
    TmxError (any subclass) : the asset is malformed; nothing is returned
    """
    tiled_map = TiledMap.from_string(tmx_text)
    tilesets = _resolve_tilesets(tiled_map, tileset_documents or {})
    return build_battle_map(tiled_map.with_tilesets(tilesets), config, decode_layers)


def load_battle_map_file(filepath: Union[str, Path],
                         config: ResolverConfig = DEFAULT_CONFIG,
                         decode_layers: bool = True) -> BattleMap:
    """Load a battle map from a TMX file; TSX files are read next to it."""
    return build_battle_map(TiledMap.load(filepath), config, decode_layers)
