"""Shared fixtures: a small isometric battle map and its external tileset.

Also puts the project root on sys.path so ``tmx_manager`` and
``battle_map`` import without installation.
"""
import base64
import os
import struct
import sys
import zlib

import pytest

PACKAGE_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PACKAGE_ROOT not in sys.path:
    sys.path.insert(0, PACKAGE_ROOT)

from tmx_manager import TiledMap, Tileset  # noqa: E402
from battle_map.transform import CoordinateTransformer  # noqa: E402


GROUND_GIDS = [
    1, 2, 0, 0xA0000001,
    0x40000002, 0, 0, 1,
    0, 0, 2, 0,
    0x80000001, 0, 0, 0,
]


def pack_payload(values, compress=zlib.compress):
    raw = struct.pack('<%dI' % len(values), *values)
    return base64.b64encode(compress(raw)).decode('ascii')


TSX_TEXT = """<?xml version="1.0" encoding="UTF-8"?>
<tileset version="1.2" tiledversion="1.2.3" name="tile_1" tilewidth="64" tileheight="32" tilecount="4" columns="2">
 <image source="tile_1.png" width="128" height="64"/>
 <tile id="0">
  <objectgroup draworder="index">
   <object id="1" x="0" y="0">
    <properties>
     <property name="type" value="GuardTower"/>
    </properties>
    <polyline points="0,0 -95,179 18,407 361,434"/>
   </object>
   <object id="2" x="10" y="-5">
    <properties>
     <property name="type" value="GuardTower"/>
    </properties>
    <polyline points="0,0 10,0 20,10 20,20 10,30 0,20"/>
   </object>
  </objectgroup>
 </tile>
 <tile id="1">
  <objectgroup draworder="index">
   <object id="1" x="0" y="0">
    <properties>
     <property name="type" value="LowScoreTreasure"/>
    </properties>
    <polyline points="0,0 8,0 8,8"/>
   </object>
   <object id="2" x="0" y="0">
    <properties>
     <property name="note" value="misordered"/>
     <property name="type" value="LowScoreTreasure"/>
    </properties>
    <polyline points="0,0 1,1"/>
   </object>
   <object id="3" x="0" y="0">
    <properties>
     <property name="type" value="LowScoreTreasure"/>
    </properties>
   </object>
   <object id="4" x="3" y="3" width="5" height="5"/>
  </objectgroup>
 </tile>
 <tile id="3">
  <properties>
   <property name="solid" value="true"/>
  </properties>
 </tile>
</tileset>
"""


def make_tmx(payload=None, compression="zlib", layer_width=4, layer_height=4,
             orientation="isometric"):
    if payload is None:
        payload = pack_payload(GROUND_GIDS)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.2" tiledversion="1.2.3" orientation="{orientation}" renderorder="right-down" width="4" height="4" tilewidth="64" tileheight="32" infinite="0">
 <tileset firstgid="1" source="tile_1.tsx"/>
 <layer id="1" name="Ground" width="{layer_width}" height="{layer_height}">
  <data encoding="base64" compression="{compression}">
   {payload}
  </data>
 </layer>
 <objectgroup id="2" name="ControlledPlayerStartingPos" draworder="index">
  <object id="1" x="0" y="0"/>
  <object id="2" x="64" y="32"/>
 </objectgroup>
 <objectgroup id="3" name="Barrier" draworder="index">
  <object id="3" x="100" y="40">
   <properties>
    <property name="boundary_type" value="barrier"/>
   </properties>
   <polyline points="0,0 10,0 0,10"/>
  </object>
  <object id="4" x="10" y="10">
   <properties>
    <property name="boundary_type" value="decoration"/>
   </properties>
   <polyline points="0,0 5,5"/>
  </object>
  <object id="5" x="10" y="10" width="4" height="4"/>
 </objectgroup>
 <objectgroup id="4" name="GuardTower" draworder="index">
  <object id="6" gid="1" x="64" y="32" width="64" height="32"/>
  <object id="7" gid="2" x="0" y="0" width="64" height="32"/>
 </objectgroup>
 <objectgroup id="5" name="LowScoreTreasure" draworder="index">
  <object id="8" gid="2147483650" x="16" y="16" width="64" height="32"/>
 </objectgroup>
 <objectgroup id="6" name="Pumpkin" draworder="index">
  <object id="9" gid="3" x="5" y="5"/>
 </objectgroup>
 <objectgroup id="7" name="Decorations" draworder="index">
  <object id="10" x="1" y="1"/>
 </objectgroup>
</map>
"""


@pytest.fixture
def tsx_text():
    return TSX_TEXT


@pytest.fixture
def tmx_text():
    return make_tmx()


@pytest.fixture
def tileset():
    return Tileset.from_string(TSX_TEXT, firstgid=1, source="tile_1.tsx")


@pytest.fixture
def tiled_map(tmx_text, tileset):
    return TiledMap.from_string(tmx_text).with_tilesets([tileset])


@pytest.fixture
def transformer(tiled_map):
    return CoordinateTransformer.from_map(tiled_map)
