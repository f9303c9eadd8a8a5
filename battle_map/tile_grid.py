"""
Tile layer decoding: packed payload -> grid of tile ids and flip flags.

=============================================================================
PAYLOAD FORMAT
=============================================================================

    <data encoding="base64" compression="zlib">
        eJxjYGBgYGRgYGBgYGBgYGBgYGBgYGBgYGBgYGBgYGBgAAAJ6QCx
    </data>

base64 text -> zlib stream -> width * height little-endian uint32 values,
row-major. CSV data (``encoding="csv"``) is also accepted.

=============================================================================
FLAG BITS
=============================================================================

Each 32-bit value packs the global tile id in its low 29 bits and the
orientation of that cell in the top three:

    bit 31  flip horizontally
    bit 30  flip vertically
    bit 29  flip diagonally (swap x/y, used with the others for rotation)

    0xA0000001 -> gid 1, flipped horizontally and diagonally

=============================================================================
"""

import base64
import binascii
import logging
import zlib
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from tmx_manager import (
    CorruptLayerData,
    InvalidDimensions,
    LayerData,
    TileLayer,
    Tileset,
    UnsupportedCompression,
    UnsupportedEncoding,
    find_tileset_for_gid,
)

logger = logging.getLogger(__name__)


FLIPPED_HORIZONTALLY_FLAG = 0x80000000
FLIPPED_VERTICALLY_FLAG = 0x40000000
FLIPPED_DIAGONALLY_FLAG = 0x20000000
FLIP_FLAGS_MASK = (FLIPPED_HORIZONTALLY_FLAG | FLIPPED_VERTICALLY_FLAG
                   | FLIPPED_DIAGONALLY_FLAG)
GID_MASK = ~FLIP_FLAGS_MASK & 0xFFFFFFFF

_BYTES_PER_CELL = 4


def split_gid(raw: int) -> Tuple[int, bool, bool, bool]:
    """Split a packed value into (gid, flip_h, flip_v, flip_d)."""
    return (
        raw & GID_MASK,
        bool(raw & FLIPPED_HORIZONTALLY_FLAG),
        bool(raw & FLIPPED_VERTICALLY_FLAG),
        bool(raw & FLIPPED_DIAGONALLY_FLAG),
    )


def pack_gid(gid: int, flip_h: bool = False, flip_v: bool = False,
             flip_d: bool = False) -> int:
    raw = gid & GID_MASK
    if flip_h:
        raw |= FLIPPED_HORIZONTALLY_FLAG
    if flip_v:
        raw |= FLIPPED_VERTICALLY_FLAG
    if flip_d:
        raw |= FLIPPED_DIAGONALLY_FLAG
    return raw


# =============================================================================
# DECODING
# =============================================================================

def decode_gids(data: LayerData, width: int, height: int) -> np.ndarray:
    """
    Decode a layer payload into a flat uint32 array of raw (flagged) values.

    Raises:
    -------
    UnsupportedEncoding : encoding is neither base64 nor csv
    UnsupportedCompression : base64 data not compressed with zlib
    InvalidDimensions : width or height is zero or negative
    CorruptLayerData : base64/zlib failure, value outside uint32, or cell
                       count mismatch

    Dimensions are checked before the payload is inflated, so an empty
    layer with a corrupt payload reports InvalidDimensions.
    """
    encoding = data.encoding
    if encoding == 'base64':
        if data.compression != 'zlib':
            logger.error("tmx data decode invalid compression: encoding=%s compression=%s",
                         encoding, data.compression)
            raise UnsupportedCompression(
                f"unsupported layer compression: {data.compression!r}"
            )
    elif encoding != 'csv':
        raise UnsupportedEncoding(f"unsupported layer encoding: {encoding!r}")

    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"non-positive width or height: {width}x{height}")

    if encoding == 'csv':
        gids = _decode_csv(data.payload)
    else:
        gids = _decode_base64_zlib(data.payload)

    if gids.size != width * height:
        logger.error("tmx layer data has %d cells, expected %dx%d",
                     gids.size, width, height)
        raise CorruptLayerData(
            f"data length error: {gids.size} cells for a {width}x{height} layer"
        )
    return gids


def _decode_base64_zlib(payload: str) -> np.ndarray:
    try:
        compressed = base64.b64decode(payload.strip())
        raw = zlib.decompress(compressed)
    except (binascii.Error, zlib.error) as e:
        raise CorruptLayerData(f"cannot decode layer payload: {e}") from e

    if len(raw) % _BYTES_PER_CELL:
        raise CorruptLayerData(
            f"decoded payload of {len(raw)} bytes is not a whole number of cells"
        )
    # '<u4' pins little-endian regardless of host byte order
    return np.frombuffer(raw, dtype='<u4').astype(np.uint32)


def _decode_csv(payload: str) -> np.ndarray:
    try:
        values = [int(x) for x in payload.replace('\n', '').split(',') if x.strip()]
    except ValueError as e:
        raise CorruptLayerData(f"non-numeric csv layer data: {e}") from e
    for value in values:
        if not 0 <= value <= 0xFFFFFFFF:
            raise CorruptLayerData(f"csv layer value {value} does not fit in 32 bits")
    return np.array(values, dtype=np.uint32)


def encode_gids(raw_gids: Sequence[int]) -> str:
    """Pack raw (flagged) values back into base64(zlib(uint32 LE))."""
    raw = np.asarray(raw_gids, dtype='<u4').tobytes()
    return base64.b64encode(zlib.compress(raw)).decode('ascii')


# =============================================================================
# DECODED GRID
# =============================================================================

class DecodedTile(NamedTuple):
    gid: int
    tileset: Optional[Tileset]
    flip_horizontal: bool
    flip_vertical: bool
    flip_diagonal: bool


class TileGrid:
    """
    Decoded tile layer.

    Arrays are indexed [y, x] (row-major, like the payload):

        gids    uint32  base tile id (0 = empty)
        flip_h  bool
        flip_v  bool
        flip_d  bool
    """

    def __init__(self, name: str, raw: np.ndarray, width: int, height: int,
                 tilesets: Sequence[Tileset] = ()):
        self.name = name
        self.width = width
        self.height = height
        self.tilesets = list(tilesets)

        grid = raw.reshape(height, width)
        self.gids = grid & np.uint32(GID_MASK)
        self.flip_h = (grid & np.uint32(FLIPPED_HORIZONTALLY_FLAG)) != 0
        self.flip_v = (grid & np.uint32(FLIPPED_VERTICALLY_FLAG)) != 0
        self.flip_d = (grid & np.uint32(FLIPPED_DIAGONALLY_FLAG)) != 0

    def __len__(self) -> int:
        return self.width * self.height

    def tile_at(self, x: int, y: int) -> DecodedTile:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"cell ({x}, {y}) outside {self.width}x{self.height} layer")
        gid = int(self.gids[y, x])
        return DecodedTile(
            gid=gid,
            tileset=find_tileset_for_gid(self.tilesets, gid),
            flip_horizontal=bool(self.flip_h[y, x]),
            flip_vertical=bool(self.flip_v[y, x]),
            flip_diagonal=bool(self.flip_d[y, x]),
        )

    def rows(self) -> List[List[DecodedTile]]:
        return [[self.tile_at(x, y) for x in range(self.width)]
                for y in range(self.height)]

    def __iter__(self) -> Iterator[DecodedTile]:
        for y in range(self.height):
            for x in range(self.width):
                yield self.tile_at(x, y)

    def to_raw(self) -> np.ndarray:
        """Re-pack ids and flags into the flat uint32 payload order."""
        raw = self.gids.astype(np.uint32)
        raw = raw | np.where(self.flip_h, np.uint32(FLIPPED_HORIZONTALLY_FLAG), np.uint32(0))
        raw = raw | np.where(self.flip_v, np.uint32(FLIPPED_VERTICALLY_FLAG), np.uint32(0))
        raw = raw | np.where(self.flip_d, np.uint32(FLIPPED_DIAGONALLY_FLAG), np.uint32(0))
        return raw.astype(np.uint32).reshape(-1)

    def encode(self) -> str:
        return encode_gids(self.to_raw())

    def __repr__(self) -> str:
        return f"TileGrid({self.name!r}, {self.width}x{self.height})"


def decode_layer(layer: TileLayer, tilesets: Sequence[Tileset] = ()) -> TileGrid:
    raw = decode_gids(layer.data, layer.width, layer.height)
    return TileGrid(layer.name, raw, layer.width, layer.height, tilesets)
