#!/usr/bin/env python3

"""
Module for reading TMX maps and TSX tilesets (Tiled Map Format) into typed
structures used by the battle server.

=============================================================================
WHAT IS READ
=============================================================================

Two related XML dialects are handled:

    <map version="1.2" orientation="isometric" width="64" height="64"
         tilewidth="64" tileheight="32">
        <tileset firstgid="1" source="tile_1.tsx"/>
        <layer name="Tile Layer 1" width="64" height="64">
            <data encoding="base64" compression="zlib">
                eJzt0DEBAAAAwqD1T20ND6IAAAAAAAAAAAAAAAAAAAAA...
            </data>
        </layer>
        <objectgroup name="Barrier" draworder="index">
            <object id="7" x="120" y="300">
                <properties>
                    <property name="boundary_type" value="barrier"/>
                </properties>
                <polyline points="0,0 -95,179 18,407"/>
            </object>
        </objectgroup>
    </map>

and the tileset document, whose per-tile object groups carry collider
outlines:

    <tileset name="tile_1" tilewidth="64" tileheight="32" tilecount="16">
        <image source="tile_1.png" width="256" height="128"/>
        <tile id="13">
            <objectgroup draworder="index">
                <object id="1" x="-154" y="-159">
                    <properties>
                        <property name="type" value="GuardTower"/>
                    </properties>
                    <polyline points="0,0 -95,179 18,407 361,434"/>
                </object>
            </objectgroup>
        </tile>
    </tileset>

Only the attributes the server needs are modelled; unknown elements and
attributes are ignored.

=============================================================================
PARSE FAILURES
=============================================================================

A malformed map asset is a deployment defect, not a runtime condition.
Any structural problem (bad XML, a required attribute missing, a numeric
attribute that does not parse) raises ParseError and aborts the load.

=============================================================================
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union


# =============================================================================
# ERRORS
# =============================================================================

class TmxError(Exception):
    """Base class for every failure raised while loading a map asset."""


class ParseError(TmxError):
    """Document is not well-formed, or a required attribute is missing/malformed."""


DocumentMalformed = ParseError


class UnsupportedEncoding(TmxError):
    """Layer data uses an encoding other than base64 or csv."""


class UnsupportedCompression(TmxError):
    """Base64 layer data uses a compression other than zlib."""


class CorruptLayerData(TmxError):
    """Layer payload cannot be decoded or does not match the layer size."""


class InvalidDimensions(TmxError):
    """A layer (or tile size) declares a zero width or height."""


class MissingTileset(TmxError):
    """An external tileset is referenced but its document was not supplied."""


class InconsistentColliderAnnotation(TmxError):
    """A tile object has a polyline without a type property, or vice versa."""


# =============================================================================
# ATTRIBUTE HELPERS
# =============================================================================

_MISSING = object()


def _numeric_attr(elem: ET.Element, name: str, convert, default=_MISSING):
    """
    Read a numeric attribute.

    A missing attribute falls back to ``default``; with no default it is a
    ParseError. A present but malformed value is always a ParseError.
    """
    raw = elem.get(name)
    if raw is None:
        if default is _MISSING:
            raise ParseError(f"<{elem.tag}> is missing required attribute '{name}'")
        return default
    try:
        return convert(raw)
    except ValueError as e:
        raise ParseError(
            f"<{elem.tag}> attribute '{name}' is not a valid number: {raw!r}"
        ) from e


def _int_attr(elem: ET.Element, name: str, default=_MISSING) -> int:
    return _numeric_attr(elem, name, int, default)


def _float_attr(elem: ET.Element, name: str, default=_MISSING) -> float:
    return _numeric_attr(elem, name, float, default)


def _parse_root(text: Union[str, bytes]) -> ET.Element:
    try:
        return ET.fromstring(text)
    except ET.ParseError as e:
        raise ParseError(f"document is not well-formed XML: {e}") from e


# =============================================================================
# PROPERTY CLASS
# =============================================================================

@dataclass
class Property:
    """
    Custom name/value pair attached to an object or a tile.

    Values are kept as strings: the server compares them literally
    (``type="GuardTower"``, ``boundary_type="barrier"``).

    Property sets are stored as ORDERED lists, not dicts. The collider
    rules look at the first property of an object, so source order is
    part of the contract.
    """
    name: str
    value: str = ""
    type: str = "string"

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        name = elem.get('name')
        if name is None:
            raise ParseError("<property> is missing required attribute 'name'")
        # Multi-line string properties put the value in the element text
        value = elem.get('value')
        if value is None:
            value = elem.text or ''
        return cls(name=name, value=value, type=elem.get('type', 'string'))


def parse_properties(elem: ET.Element) -> List[Property]:
    """Parse the ``<properties>`` child of ``elem`` (empty list when absent)."""
    props_elem = elem.find('properties')
    if props_elem is None:
        return []
    return [Property.from_xml(p) for p in props_elem.findall('property')]


def first_property(properties: List[Property]) -> Optional[Property]:
    return properties[0] if properties else None


def get_property(properties: List[Property], name: str) -> Optional[Property]:
    for prop in properties:
        if prop.name == name:
            return prop
    return None


# =============================================================================
# POLYLINE CLASS
# =============================================================================

@dataclass
class Polyline:
    """
    Ordered (x, y) points authored relative to the owning object's position.

    The document stores them as one string of space separated pairs:

        points="0,0 -95,179 18,407"

    Every token must be exactly one ``x,y`` pair of decimal numbers.
    """
    raw: str
    points: List[Tuple[float, float]] = field(default_factory=list)

    @classmethod
    def parse(cls, raw: str) -> 'Polyline':
        points = []
        for token in raw.split():
            coords = token.split(',')
            if len(coords) != 2:
                raise ParseError(f"polyline point {token!r} is not an 'x,y' pair")
            try:
                points.append((float(coords[0]), float(coords[1])))
            except ValueError as e:
                raise ParseError(f"polyline point {token!r} is not numeric") from e
        return cls(raw=raw, points=points)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Polyline':
        raw = elem.get('points')
        if raw is None:
            raise ParseError("<polyline> is missing required attribute 'points'")
        return cls.parse(raw)

    def __len__(self) -> int:
        return len(self.points)


# =============================================================================
# MAP OBJECT CLASS
# =============================================================================

@dataclass
class MapObject:
    """
    Object placed in an object group (of the map, or of a tile definition).

    ==========================================================================
    KINDS OF OBJECTS USED BY THE SERVER
    ==========================================================================

    Point (spawn position):
        Only x, y matter.

    Polyline object (barrier, or tile collider outline):
        x, y is the anchor; polyline points are relative to it.

    Tile object (treasure, guard tower):
        Has a gid. Its collider outlines come from the tile definition in
        the tileset, placed at x, y.

    ==========================================================================
    """
    id: int = 0
    x: float = 0.0
    y: float = 0.0
    gid: Optional[int] = None                        # Only set for tile objects
    name: str = ""
    type: str = ""
    width: float = 0.0
    height: float = 0.0
    properties: List[Property] = field(default_factory=list)
    polyline: Optional[Polyline] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'MapObject':
        obj = cls(
            id=_int_attr(elem, 'id', 0),
            x=_float_attr(elem, 'x', 0.0),
            y=_float_attr(elem, 'y', 0.0),
            gid=_int_attr(elem, 'gid', None),
            name=elem.get('name', ''),
            # Tiled 1.9 renamed "type" to "class"
            type=elem.get('type', elem.get('class', '')),
            width=_float_attr(elem, 'width', 0.0),
            height=_float_attr(elem, 'height', 0.0),
            properties=parse_properties(elem),
        )

        polyline_elem = elem.find('polyline')
        if polyline_elem is not None:
            obj.polyline = Polyline.from_xml(polyline_elem)

        return obj

    @property
    def is_tile_object(self) -> bool:
        return self.gid is not None


# =============================================================================
# OBJECT GROUP CLASS
# =============================================================================

@dataclass
class ObjectGroup:
    """
    Named collection of objects.

    In the map the name is a semantic discriminator ("Barrier",
    "GuardTower", ...), not just a display label.
    """
    name: str = ""
    draworder: str = "topdown"
    id: int = 0
    properties: List[Property] = field(default_factory=list)
    objects: List[MapObject] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ObjectGroup':
        return cls(
            name=elem.get('name', ''),
            draworder=elem.get('draworder', 'topdown'),
            id=_int_attr(elem, 'id', 0),
            properties=parse_properties(elem),
            objects=[MapObject.from_xml(o) for o in elem.findall('object')],
        )


# =============================================================================
# IMAGE CLASS
# =============================================================================

@dataclass
class Image:
    """Image reference of a tileset or of a single tile."""
    source: str
    width: Optional[int] = None
    height: Optional[int] = None
    trans: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        return cls(
            source=elem.get('source', ''),
            width=_int_attr(elem, 'width', None),
            height=_int_attr(elem, 'height', None),
            trans=elem.get('trans'),
        )


# =============================================================================
# TILE CLASS
# =============================================================================

@dataclass
class Tile:
    """
    Definition of one tile inside a tileset.

    The 'id' is LOCAL to the tileset. The global id is
    ``tileset.firstgid + tile.id``.

    Tiles only appear in the document when they carry extra data; for the
    server that is the collision object group.
    """
    id: int
    properties: List[Property] = field(default_factory=list)
    object_group: Optional[ObjectGroup] = None
    image: Optional[Image] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tile':
        tile = cls(id=_int_attr(elem, 'id'), properties=parse_properties(elem))

        group_elem = elem.find('objectgroup')
        if group_elem is not None:
            tile.object_group = ObjectGroup.from_xml(group_elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tile.image = Image.from_xml(img_elem)

        return tile


# =============================================================================
# TILESET CLASS
# =============================================================================

@dataclass
class Tileset:
    """
    Tileset - a contiguous range of global ids starting at ``firstgid``.

    ==========================================================================
    EMBEDDED vs EXTERNAL TILESETS
    ==========================================================================

    EMBEDDED: the full definition sits inside the TMX file
        <tileset firstgid="1" name="terrain" tilewidth="64" ...>

    EXTERNAL (TSX): the TMX only holds a reference
        <tileset firstgid="1" source="tile_1.tsx"/>

    An external reference parses to a Tileset with ``source`` set and no
    tile data (``is_external``). The real definition is parsed from the TSX
    document with ``Tileset.from_string(text, firstgid)``, using the
    firstgid declared by the map.

    ==========================================================================
    """
    firstgid: int
    name: str = ""
    tilewidth: int = 0
    tileheight: int = 0
    tilecount: int = 0
    columns: int = 0
    image: Optional[Image] = None
    tiles: Dict[int, Tile] = field(default_factory=dict)
    source: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element, firstgid: int) -> 'Tileset':
        """
        Parse tileset from XML element.

        Parameters:
        -----------
        elem : ET.Element
            A <tileset> element, either embedded in a map or the root of a
            TSX document
        firstgid : int
            First global id (always from the map, never from the TSX)
        """
        if elem.tag != 'tileset':
            raise ParseError(f"expected <tileset> element, got <{elem.tag}>")

        source = elem.get('source')
        if source is not None and elem.get('tilewidth') is None:
            # External reference: nothing else to read here
            return cls(firstgid=firstgid, name=Path(source).stem, source=source)

        tileset = cls(
            firstgid=firstgid,
            name=elem.get('name', ''),
            tilewidth=_int_attr(elem, 'tilewidth'),
            tileheight=_int_attr(elem, 'tileheight'),
            tilecount=_int_attr(elem, 'tilecount', 0),
            columns=_int_attr(elem, 'columns', 0),
            source=source,
        )

        img_elem = elem.find('image')
        if img_elem is not None:
            tileset.image = Image.from_xml(img_elem)

        for tile_elem in elem.findall('tile'):
            tile = Tile.from_xml(tile_elem)
            tileset.tiles[tile.id] = tile

        return tileset

    @classmethod
    def from_string(cls, text: Union[str, bytes], firstgid: int,
                    source: Optional[str] = None) -> 'Tileset':
        """Parse a standalone TSX document."""
        tileset = cls.from_xml(_parse_root(text), firstgid)
        if source is not None:
            tileset.source = source
        return tileset

    @property
    def is_external(self) -> bool:
        return self.source is not None and not self.tilewidth

    def global_id(self, local_id: int) -> int:
        return self.firstgid + local_id


def find_tileset_for_gid(tilesets: Iterable[Tileset], gid: int) -> Optional[Tileset]:
    """
    Find which tileset contains a given GID.

    A GID belongs to the tileset with the largest firstgid <= gid.

    Example:
        Tileset A: firstgid=1
        Tileset B: firstgid=101

        GID 50:  50 >= 1, 50 < 101  -> Tileset A
        GID 150: 150 >= 101         -> Tileset B
        GID 0:   empty tile         -> None
    """
    if gid <= 0:
        return None
    found = None
    for tileset in tilesets:
        if tileset.firstgid <= gid and (found is None or tileset.firstgid > found.firstgid):
            found = tileset
    return found


# =============================================================================
# LAYER CLASSES
# =============================================================================

@dataclass
class LayerData:
    """
    Encoded tile data of a layer, kept exactly as found in the document.

    Decoding (base64, zlib, flag bits) lives in ``battle_map.tile_grid``.
    """
    encoding: Optional[str] = None      # base64, csv, or None (XML)
    compression: Optional[str] = None   # zlib, gzip, zstd, or None
    payload: str = ""

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerData':
        return cls(
            encoding=elem.get('encoding'),
            compression=elem.get('compression'),
            payload=elem.text or '',
        )


@dataclass
class TileLayer:
    """Tile layer: one global tile id per grid cell, row-major."""
    name: str
    width: int
    height: int
    id: int = 0
    data: LayerData = field(default_factory=LayerData)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileLayer':
        layer = cls(
            name=elem.get('name', ''),
            width=_int_attr(elem, 'width'),
            height=_int_attr(elem, 'height'),
            id=_int_attr(elem, 'id', 0),
        )
        data_elem = elem.find('data')
        if data_elem is not None:
            layer.data = LayerData.from_xml(data_elem)
        return layer


# =============================================================================
# TILED MAP CLASS (Main Entry Point)
# =============================================================================

@dataclass
class TiledMap:
    """
    Complete Tiled map - the root object for TMX files.

    ==========================================================================
    USAGE
    ==========================================================================

    From memory (the server usually ships assets with the build):
        tmx_map = TiledMap.from_string(tmx_text)

    From disk, with external tilesets read from next to the map:
        tmx_map = TiledMap.load("treasurehunter.tmx")

    ==========================================================================
    """
    version: str = "1.0"
    orientation: str = "orthogonal"
    width: int = 0                                   # Map width in tiles
    height: int = 0                                  # Map height in tiles
    tilewidth: int = 0                               # Tile width in pixels
    tileheight: int = 0                              # Tile height in pixels
    properties: List[Property] = field(default_factory=list)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[TileLayer] = field(default_factory=list)
    object_groups: List[ObjectGroup] = field(default_factory=list)

    @classmethod
    def from_xml(cls, root: ET.Element) -> 'TiledMap':
        if root.tag != 'map':
            raise ParseError(f"expected <map> root element, got <{root.tag}>")

        map_obj = cls(
            version=root.get('version', '1.0'),
            orientation=root.get('orientation', 'orthogonal'),
            width=_int_attr(root, 'width'),
            height=_int_attr(root, 'height'),
            tilewidth=_int_attr(root, 'tilewidth'),
            tileheight=_int_attr(root, 'tileheight'),
            properties=parse_properties(root),
        )

        for tileset_elem in root.findall('tileset'):
            firstgid = _int_attr(tileset_elem, 'firstgid')
            map_obj.tilesets.append(Tileset.from_xml(tileset_elem, firstgid))

        # Keep document order of layers and object groups
        for elem in root:
            if elem.tag == 'layer':
                map_obj.layers.append(TileLayer.from_xml(elem))
            elif elem.tag == 'objectgroup':
                map_obj.object_groups.append(ObjectGroup.from_xml(elem))

        return map_obj

    @classmethod
    def from_string(cls, text: Union[str, bytes]) -> 'TiledMap':
        return cls.from_xml(_parse_root(text))

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'TiledMap':
        """
        Load a TMX file from disk, resolving external tilesets.

        TSX paths are resolved relative to the TMX file.

        Raises:
        -------
        FileNotFoundError : If the TMX file doesn't exist
        MissingTileset : If a referenced TSX file doesn't exist
        ParseError : If either document is malformed
        """
        filepath = Path(filepath)
        map_obj = cls.from_string(filepath.read_bytes())

        resolved = []
        for tileset in map_obj.tilesets:
            if tileset.is_external:
                tsx_path = filepath.parent / tileset.source
                if not tsx_path.is_file():
                    raise MissingTileset(f"external tileset not found: {tsx_path}")
                tileset = Tileset.from_string(
                    tsx_path.read_bytes(), tileset.firstgid, source=tileset.source
                )
            resolved.append(tileset)

        return map_obj.with_tilesets(resolved)

    def with_tilesets(self, tilesets: Iterable[Tileset]) -> 'TiledMap':
        """Copy of this map with its tileset list replaced."""
        return replace(self, tilesets=sorted(tilesets, key=lambda t: t.firstgid))

    def get_tileset_for_gid(self, gid: int) -> Optional[Tileset]:
        return find_tileset_for_gid(self.tilesets, gid)

    def get_layer_by_name(self, name: str) -> Optional[TileLayer]:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None

    def get_object_group(self, name: str) -> Optional[ObjectGroup]:
        for group in self.object_groups:
            if group.name == name:
                return group
        return None
