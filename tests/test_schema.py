"""
Test the schema bootstrap.
"""

import pytest
from unittest.mock import Mock

from transit_topo.data.errors import GenericWriteError, LabelConflict
from transit_topo.data.models import ObjectType, PropertyDataType, StringClaim
from transit_topo.ingest.known_entities import SCHEMA_ITEMS, SCHEMA_PROPERTIES, TOPO_ID_LABEL
from transit_topo.ingest.schema import (
    ensure_topo_id_property, get_or_create, get_or_create_item, initialize_schema,
)


class TestInitializeSchema:

    def test_creates_every_known_entity(self, store):
        known_entities = initialize_schema(store)

        assert len(store.entities) == 1 + len(SCHEMA_PROPERTIES) + len(SCHEMA_ITEMS)
        assert store.entities[known_entities.properties.topo_id_id]["label"] == TOPO_ID_LABEL

    def test_entities_are_tagged_with_their_topo_id(self, store):
        known_entities = initialize_schema(store)
        topo_id_id = known_entities.properties.topo_id_id

        assert store.values(known_entities.properties.gtfs_id, topo_id_id) == ["gtfs_id"]
        assert store.values(known_entities.items.stop_area, topo_id_id) == ["stop_area"]

    def test_property_datatypes(self, store):
        initialize_schema(store)

        kinds = {e["label"]: e["kind"] for e in store.entities.values()}
        assert kinds["coordinate location"] == "property"
        assert kinds["physical mode"] == "item"

    def test_physical_modes_are_instances_of_physical_mode(self, store):
        known_entities = initialize_schema(store)
        props, items = known_entities.properties, known_entities.items

        assert store.values(items.tramway, props.instance_of) == [items.physical_mode]
        assert store.values(items.producer, props.instance_of) == []

    def test_running_twice_yields_the_same_ids(self, store):
        first = initialize_schema(store)
        count = len(store.entities)

        second = initialize_schema(store)

        assert second == first
        assert len(store.entities) == count

    def test_default_producer(self, store):
        known_entities = initialize_schema(store, create_default_producer=True)
        producers = store.instances_of(known_entities.properties.instance_of, known_entities.items.producer)

        assert [store.entities[p]["label"] for p in producers] == ["bob the bus mapper"]

        initialize_schema(store, create_default_producer=True)
        assert len(store.instances_of(known_entities.properties.instance_of, known_entities.items.producer)) == 1


class TestGetOrCreate:

    def test_returns_created_id(self):
        api = Mock()
        api.create_object.return_value = "Q7"

        assert get_or_create(api, ObjectType.item(), "bus") == "Q7"

    def test_returns_id_of_conflicting_entity(self):
        api = Mock()
        api.create_object.side_effect = LabelConflict("bus", "Q3")

        assert get_or_create(api, ObjectType.item(), "bus") == "Q3"

    def test_other_write_errors_propagate(self):
        api = Mock()
        api.create_object.side_effect = GenericWriteError("boom")

        with pytest.raises(GenericWriteError):
            get_or_create(api, ObjectType.item(), "bus")

    def test_topo_id_property_found_by_label(self):
        api = Mock()
        api.find_entity_id.return_value = "P9"

        assert ensure_topo_id_property(api) == "P9"
        api.create_object.assert_not_called()

    def test_topo_id_property_created(self):
        api = Mock()
        api.find_entity_id.return_value = None
        api.create_object.return_value = "P1"

        assert ensure_topo_id_property(api) == "P1"
        api.create_object.assert_called_once_with(
            ObjectType.property_of(PropertyDataType.STRING), TOPO_ID_LABEL, ())

    def test_item_found_by_label(self):
        api = Mock()
        api.find_entity_id.return_value = "Q4"

        assert get_or_create_item(api, "bus", [StringClaim("P1", "bus")]) == "Q4"
        api.find_entity_id.assert_called_once_with(ObjectType.item(), "bus")
        api.create_object.assert_not_called()

    def test_item_created_when_label_is_unknown(self):
        api = Mock()
        api.find_entity_id.return_value = None
        api.create_object.return_value = "Q8"

        assert get_or_create_item(api, "bus", [StringClaim("P1", "bus")]) == "Q8"
        api.create_object.assert_called_once_with(ObjectType.item(), "bus", [StringClaim("P1", "bus")])

    def test_existing_items_are_not_created_again(self):
        api = Mock()
        api.find_entity_id.side_effect = lambda object_type, label: f"E{label}"

        initialize_schema(api, create_default_producer=True)

        assert all(call.args[0].is_property for call in api.create_object.call_args_list)

    def test_marker_claim(self, store):
        known_entities = initialize_schema(store)
        source = store.entities[known_entities.properties.source]

        assert StringClaim(known_entities.properties.topo_id_id, "source") in source["claims"]
