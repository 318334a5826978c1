"""Tests for serialising edit sets and replaying them onto a fresh baseline."""

import logging

import pytest

from carbontrace.carbon_tree import CarbonTree
from carbontrace.exceptions import CorruptedToken
from carbontrace.models import ConnectionStatus, SimulationChanges


@pytest.fixture
def bike(bike_record):
    return CarbonTree.from_record(bike_record)


def _ids(tree):
    return sorted(tree.connections)


class TestSerializeChanges:
    """Tests for serialize_changes."""

    def test_unchanged_tree_serializes_to_none(self, bike):
        assert bike.serialize_changes() is None
        assert bike.stringify_changes() == ""

    def test_forced_inclusion(self, bike):
        snapshot = bike.serialize_changes(force_inclusion=True)

        assert isinstance(snapshot, SimulationChanges)
        assert snapshot.asset.id == "urn:bike"
        assert snapshot.connections == {"urn:frame": None, "urn:wheel": None, "urn:bell": None}
        assert snapshot.original_connections is None

    def test_unchanged_children_are_none(self, bike):
        bike.connections["urn:wheel"].connections["urn:tire"].bulk_count = 4
        snapshot = bike.serialize_changes()

        assert snapshot.connections["urn:frame"] is None
        wheel = snapshot.connections["urn:wheel"]
        assert wheel.bulk_count is None
        assert wheel.connections["urn:tire"].bulk_count == 4

    def test_added_subtree_is_stored_in_full(self, bike, make_record):
        bike.add_connection(make_record("urn:light", product=7, children=[
            make_record("urn:bulb", product=1, bulk=2),
        ]))
        light = bike.serialize_changes().connections["urn:light"]

        assert light.connections["urn:bulb"] is not None
        assert set(light.original_connections) == {"urn:bulb"}

    def test_deleted_child_is_only_in_status(self, bike):
        bike.delete_connection("urn:bell")
        snapshot = bike.serialize_changes()

        assert "urn:bell" not in snapshot.connections
        assert snapshot.connection_status["urn:bell"].status is ConnectionStatus.DELETED


class TestReplay:
    """Tests for replaying tokens onto a freshly built baseline."""

    def test_round_trip_of_all_edits(self, bike, bike_record, make_record, carbon_frame_record):
        bike.add_connection(make_record("urn:light", product=7, bulk=2))
        bike.delete_connection("urn:bell")
        bike.swap_connection("urn:frame", carbon_frame_record)
        wheel = bike.connections["urn:wheel"]
        wheel.bulk_count = 3
        wheel.connections["urn:tire"].bulk_count = 4

        token = bike.stringify_changes()
        replayed = CarbonTree.replay(bike_record, token)

        assert _ids(replayed) == _ids(bike) == ["urn:carbon-frame", "urn:light", "urn:wheel"]
        assert set(replayed.original_connections) == {"urn:frame", "urn:wheel", "urn:bell"}
        assert replayed.connection_status == bike.connection_status
        assert replayed.product_co2eq == bike.product_co2eq == 132
        assert replayed.original_product_co2eq == 100
        assert replayed.total_co2eq == bike.total_co2eq
        assert replayed.all_components_count == bike.all_components_count
        assert replayed.connections["urn:wheel"].bulk_count == 3
        assert replayed.connections["urn:wheel"].original_bulk_count == 2
        assert replayed.connections["urn:wheel"].connections["urn:tire"].bulk_count == 4
        assert replayed.has_changes

    def test_replayed_edits_can_be_reset(self, bike, bike_record, carbon_frame_record):
        bike.swap_connection("urn:frame", carbon_frame_record)
        bike.delete_connection("urn:bell")
        replayed = CarbonTree.replay(bike_record, bike.stringify_changes())

        replayed.reset_connection("urn:carbon-frame")
        replayed.reset_connection("urn:bell")

        assert not replayed.has_changes
        assert replayed.product_co2eq == 100

    def test_introduced_trees_are_simulations(self, bike, bike_record, carbon_frame_record):
        bike.swap_connection("urn:frame", carbon_frame_record)
        replayed = CarbonTree.replay(bike_record, bike.stringify_changes())

        assert replayed.connections["urn:carbon-frame"].is_simulation
        assert not replayed.connections["urn:wheel"].is_simulation
        assert replayed.connections["urn:carbon-frame"].parent is replayed

    def test_modified_child_with_same_id(self, bike, bike_record, make_record):
        bike.modify_connection("urn:frame", make_record("urn:frame", product=30, transport=2, bulk=1))
        replayed = CarbonTree.replay(bike_record, bike.stringify_changes())

        assert replayed.product_co2eq == 90
        assert replayed.original_product_co2eq == 100
        assert replayed.original_connections["urn:frame"].product_co2eq == 40
        assert replayed.connections["urn:frame"].product_co2eq == 30

        replayed.reset_connection("urn:frame")
        assert replayed.connections["urn:frame"].product_co2eq == 40

    def test_edits_inside_added_subtree(self, bike, bike_record, make_record):
        light = bike.add_connection(make_record("urn:light", product=7, children=[
            make_record("urn:bulb", product=1, bulk=2),
        ]))
        light.connections["urn:bulb"].bulk_count = 5

        replayed = CarbonTree.replay(bike_record, bike.stringify_changes())
        bulb = replayed.connections["urn:light"].connections["urn:bulb"]

        assert bulb.bulk_count == 5
        assert bulb.original_bulk_count == 2
        assert replayed.product_co2eq == bike.product_co2eq

    def test_re_added_deleted_id(self, bike, bike_record, make_record):
        bike.delete_connection("urn:bell")
        bike.add_connection(make_record("urn:bell", product=6, bulk=1))
        replayed = CarbonTree.replay(bike_record, bike.stringify_changes())

        assert replayed.connections["urn:bell"].product_co2eq == 6
        assert replayed.original_connections["urn:bell"].product_co2eq == 4
        assert replayed.product_co2eq == bike.product_co2eq == 102

    def test_snapshot_object_is_accepted(self, bike, bike_record):
        bike.delete_connection("urn:bell")
        replayed = CarbonTree.replay(bike_record, bike.serialize_changes())
        assert "urn:bell" not in replayed.connections

    def test_empty_token_gives_baseline(self, bike_record):
        replayed = CarbonTree.replay(bike_record, "")
        assert not replayed.has_changes

    def test_changes_for_other_root_are_ignored(self, bike, carbon_frame_record, caplog):
        bike.delete_connection("urn:bell")
        token = bike.stringify_changes()

        with caplog.at_level(logging.WARNING, logger="carbontrace.carbon_tree"):
            replayed = CarbonTree.replay(carbon_frame_record, token)

        assert not replayed.has_changes
        assert "Ignoring simulation changes" in caplog.text

    def test_corrupted_token_raises(self, bike_record):
        with pytest.raises(CorruptedToken):
            CarbonTree.replay(bike_record, "definitely not a token")

    def test_parse_changes(self, bike):
        bike.connections["urn:wheel"].bulk_count = 3
        snapshot = CarbonTree.parse_changes(bike.stringify_changes())
        assert snapshot.connections["urn:wheel"].bulk_count == 3
        assert CarbonTree.parse_changes("") is None
