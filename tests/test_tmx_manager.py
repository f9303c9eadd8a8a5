"""Parsing of TMX/TSX documents into the typed map model."""
import pytest

from tmx_manager import (
    DocumentMalformed,
    MissingTileset,
    ParseError,
    Polyline,
    TiledMap,
    Tileset,
    find_tileset_for_gid,
    first_property,
    get_property,
)


def test_map_attributes_and_external_tileset_reference(tmx_text):
    tmx = TiledMap.from_string(tmx_text)

    assert tmx.orientation == "isometric"
    assert (tmx.width, tmx.height) == (4, 4)
    assert (tmx.tilewidth, tmx.tileheight) == (64, 32)
    assert len(tmx.tilesets) == 1
    ref = tmx.tilesets[0]
    assert ref.firstgid == 1
    assert ref.source == "tile_1.tsx"
    assert ref.is_external
    assert ref.tiles == {}


def test_object_groups_keep_document_order(tmx_text):
    tmx = TiledMap.from_string(tmx_text)

    names = [g.name for g in tmx.object_groups]
    assert names == [
        "ControlledPlayerStartingPos", "Barrier", "GuardTower",
        "LowScoreTreasure", "Pumpkin", "Decorations",
    ]
    assert tmx.get_object_group("Barrier").draworder == "index"
    assert tmx.get_object_group("Nope") is None


def test_objects_polylines_and_gids(tmx_text):
    tmx = TiledMap.from_string(tmx_text)

    barrier = tmx.get_object_group("Barrier").objects[0]
    assert (barrier.x, barrier.y) == (100.0, 40.0)
    assert barrier.gid is None
    assert barrier.polyline.points == [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0)]
    assert first_property(barrier.properties).name == "boundary_type"

    tower = tmx.get_object_group("GuardTower").objects[0]
    assert tower.is_tile_object
    assert tower.gid == 1
    assert tower.polyline is None

    flagged = tmx.get_object_group("LowScoreTreasure").objects[0]
    assert flagged.gid == 0x80000002


def test_layer_keeps_encoded_payload(tmx_text):
    layer = TiledMap.from_string(tmx_text).get_layer_by_name("Ground")

    assert (layer.width, layer.height) == (4, 4)
    assert layer.data.encoding == "base64"
    assert layer.data.compression == "zlib"
    assert layer.data.payload.strip()


def test_tileset_document(tileset):
    assert tileset.name == "tile_1"
    assert (tileset.tilewidth, tileset.tileheight) == (64, 32)
    assert tileset.tilecount == 4
    assert tileset.image.source == "tile_1.png"
    assert list(tileset.tiles) == [0, 1, 3]
    assert not tileset.is_external
    assert tileset.global_id(3) == 4

    tile0 = tileset.tiles[0]
    assert len(tile0.object_group.objects) == 2
    assert tile0.object_group.objects[1].x == 10.0
    assert tile0.object_group.objects[1].y == -5.0

    assert tileset.tiles[3].object_group is None
    assert get_property(tileset.tiles[3].properties, "solid").value == "true"


def test_property_order_is_preserved(tileset):
    obj = tileset.tiles[1].object_group.objects[1]
    assert [p.name for p in obj.properties] == ["note", "type"]
    assert first_property(obj.properties).name == "note"
    assert get_property(obj.properties, "type").value == "LowScoreTreasure"
    assert first_property([]) is None


def test_polyline_parse_rejects_non_numeric():
    with pytest.raises(ParseError):
        Polyline.parse("0,0 a,4")
    with pytest.raises(ParseError):
        Polyline.parse("0,0 1,2,3")
    assert Polyline.parse("  0,0   1.5,-2  ").points == [(0.0, 0.0), (1.5, -2.0)]


@pytest.mark.parametrize("document", [
    "<map width='4'",
    "<map width='4' height='4' tilewidth='64'/>",
    "<map width='four' height='4' tilewidth='64' tileheight='32'/>",
    "<map width='4' height='4' tilewidth='64' tileheight='32'><tileset source='a.tsx'/></map>",
    "<map width='4' height='4' tilewidth='64' tileheight='32'>"
    "<objectgroup name='G'><object id='1' x='1,5' y='0'/></objectgroup></map>",
    "<map width='4' height='4' tilewidth='64' tileheight='32'>"
    "<objectgroup name='G'><object id='1' x='1' y='0'><polyline points='0,0 x,1'/>"
    "</object></objectgroup></map>",
    "<tileset name='t' tilewidth='64' tileheight='32'/>",
])
def test_malformed_map_documents(document):
    with pytest.raises(DocumentMalformed):
        TiledMap.from_string(document)


def test_malformed_tileset_documents():
    with pytest.raises(ParseError):
        Tileset.from_string("<tileset name='t' tilewidth='64'/>", firstgid=1)
    with pytest.raises(ParseError):
        Tileset.from_string("<tileset name='t' tilewidth='64' tileheight='32'>"
                            "<tile/></tileset>", firstgid=1)


def test_find_tileset_for_gid():
    a = Tileset(firstgid=1, name="a", tilewidth=64, tileheight=32)
    b = Tileset(firstgid=101, name="b", tilewidth=64, tileheight=32)

    assert find_tileset_for_gid([b, a], 50) is a
    assert find_tileset_for_gid([a, b], 150) is b
    assert find_tileset_for_gid([a, b], 0) is None


def test_load_from_disk_resolves_tsx(tmp_path, tmx_text, tsx_text):
    (tmp_path / "map.tmx").write_text(tmx_text, encoding="utf-8")
    (tmp_path / "tile_1.tsx").write_text(tsx_text, encoding="utf-8")

    tmx = TiledMap.load(tmp_path / "map.tmx")

    assert tmx.tilesets[0].name == "tile_1"
    assert tmx.tilesets[0].source == "tile_1.tsx"
    assert not tmx.tilesets[0].is_external
    assert 0 in tmx.tilesets[0].tiles


def test_load_from_disk_missing_tsx(tmp_path, tmx_text):
    (tmp_path / "map.tmx").write_text(tmx_text, encoding="utf-8")

    with pytest.raises(MissingTileset):
        TiledMap.load(tmp_path / "map.tmx")
