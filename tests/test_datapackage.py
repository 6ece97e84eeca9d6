"""
Tests for data package tables and their lazy id-to-name indexes.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from archipelago_client.datapackage import DataPackageObject, GameData


@pytest.fixture
def game():
    return GameData({"Sword": 42, "Shield": 43}, {"Chest": 10}, checksum="abc123")


class TestGameData:
    def test_inverse_maps(self, game):
        assert dict(game.item_id_to_name()) == {42: "Sword", 43: "Shield"}
        assert dict(game.location_id_to_name()) == {10: "Chest"}

    def test_inverse_map_built_once(self, game):
        assert game.item_id_to_name() is game.item_id_to_name()
        assert game.location_id_to_name() is game.location_id_to_name()

    def test_maps_are_read_only(self, game):
        with pytest.raises(TypeError):
            game.item_name_to_id["Bow"] = 44  # type: ignore[index]
        with pytest.raises(TypeError):
            game.item_id_to_name()[44] = "Bow"  # type: ignore[index]

    def test_forward_map_copied_on_construction(self):
        items = {"Sword": 42}
        game = GameData(items, {})
        items["Bow"] = 44
        assert "Bow" not in game.item_name_to_id

    def test_concurrent_first_use(self):
        game = GameData({f"item {i}": i for i in range(5000)}, {})
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: game.item_id_to_name(), range(32)))
        assert len({id(r) for r in results}) == 1
        assert results[0][4999] == "item 4999"

    def test_from_dict_rejects_non_int_ids(self):
        with pytest.raises(TypeError):
            GameData.from_dict({"item_name_to_id": {"Sword": "42"}, "location_name_to_id": {}})

    def test_checksum_optional(self):
        game = GameData.from_dict({"item_name_to_id": {}, "location_name_to_id": {}})
        assert game.checksum == ""


class TestDataPackageObject:
    def test_lookup(self, data_package):
        assert data_package.item_name("Test Game", 42) == "Sword"
        assert data_package.location_name("Test Game", 11) == "Cave"
        assert data_package.item_name("Test Game", 7) is None
        assert data_package.item_name("Missing Game", 42) is None

    def test_equality_ignores_built_indexes(self, data_package, data_package_msg):
        other = DataPackageObject.from_dict(data_package_msg["data"])
        data_package.game("Test Game").item_id_to_name()
        assert data_package == other

    def test_games_required(self):
        with pytest.raises(ValueError):
            DataPackageObject.from_dict({})

    def test_to_dict(self, data_package, data_package_msg):
        assert data_package.to_dict() == data_package_msg["data"]
