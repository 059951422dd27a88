"""
Shared fixtures: an in-memory Wikibase standing in for both remote services.
"""

import pytest

from transit_topo.data.errors import EntityNotFound, LabelConflict, TooManyEntities
from transit_topo.data.gtfs.gtfs_reader import (
    GtfsFeed, LocationType, Route, RouteType, Stop, StopTime, Trip,
)
from transit_topo.data.models import Entity, ItemClaim, ObjectType, StringClaim, compact_claims
from transit_topo.ingest.schema import initialize_schema


class FakeWikibase:
    """Write API surface of ApiClient, with Wikibase label uniqueness rules."""

    def __init__(self):
        self.entities = {}
        self.next_property = 1
        self.next_item = 1
        self.calls = []

    def create_object(self, object_type, label, claims=(), description=None):
        self.calls.append(("create", str(object_type), label))
        for entity_id, entity in self.entities.items():
            if entity["kind"] != str(object_type) or entity["label"] != label:
                continue
            if object_type.is_property or (description and entity["description"] == description):
                raise LabelConflict(label, entity_id)

        if object_type.is_property:
            entity_id = f"P{self.next_property}"
            self.next_property += 1
        else:
            entity_id = f"Q{self.next_item}"
            self.next_item += 1
        self.entities[entity_id] = {
            "kind": str(object_type),
            "label": label,
            "description": description,
            "claims": compact_claims(claims),
        }
        return entity_id

    def create_item(self, label, claims=(), description=None):
        return self.create_object(ObjectType.item(), label, claims, description)

    def find_entity_id(self, object_type, label, exact=True):
        ids = [i for i, e in self.entities.items() if e["kind"] == str(object_type) and e["label"] == label]
        if len(ids) > 1:
            raise TooManyEntities(f"label {label}", ids)
        return ids[0] if ids else None

    def add_claims(self, entity_id, claims):
        self.calls.append(("add_claims", entity_id, len(claims)))
        self._get(entity_id)["claims"].extend(compact_claims(claims))

    def override_claims(self, entity_id, claims, label=None, description=None):
        self.calls.append(("override", entity_id))
        entity = self._get(entity_id)
        entity["claims"] = compact_claims(claims)
        entity["label"] = label
        entity["description"] = description

    def get_entity(self, entity_id):
        stored = self._get(entity_id)
        entity = Entity(id=entity_id, label=stored["label"])
        for claim in stored["claims"]:
            entity.add(claim)
        return entity

    # test helpers

    def values(self, entity_id, property_id):
        values = []
        for claim in self._get(entity_id)["claims"]:
            if claim.property != property_id:
                continue
            if isinstance(claim, StringClaim):
                values.append(claim.value)
            elif isinstance(claim, ItemClaim):
                values.append(claim.item_id)
        return values

    def instances_of(self, instance_of, class_id):
        return [i for i in self.entities if class_id in self.values(i, instance_of)]

    def _get(self, entity_id):
        if entity_id not in self.entities:
            raise EntityNotFound(entity_id)
        return self.entities[entity_id]


class FakeTopoQuery:
    """TopoQuery answered from the FakeWikibase content instead of SPARQL."""

    def __init__(self, store, known_entities):
        self.store = store
        self.known_entities = known_entities

    def find_route(self, producer_id, gtfs_id):
        return self._find(self.known_entities.items.route, producer_id, gtfs_id)

    def find_stop(self, producer_id, stop):
        return self._find(self.known_entities.location_type(stop), producer_id, stop.id)

    def get_producer_label(self, producer_id):
        props, items = self.known_entities.properties, self.known_entities.items
        if producer_id in self.store.entities and items.producer in self.store.values(producer_id, props.instance_of):
            return self.store.entities[producer_id]["label"]
        return None

    def find_producer(self, name):
        props, items = self.known_entities.properties, self.known_entities.items
        return [i for i in self.store.instances_of(props.instance_of, items.producer)
                if self.store.entities[i]["label"] == name]

    def _find(self, class_id, producer_id, gtfs_id):
        props = self.known_entities.properties
        found = []
        for entity_id in self.store.instances_of(props.instance_of, class_id):
            if gtfs_id not in self.store.values(entity_id, props.gtfs_id):
                continue
            sources = self.store.values(entity_id, props.data_source)
            if any(producer_id in self.store.values(ds, props.produced_by) for ds in sources):
                found.append(entity_id)
        return found


@pytest.fixture
def store():
    return FakeWikibase()


@pytest.fixture
def known_entities(store):
    return initialize_schema(store)


@pytest.fixture
def producer_id(store, known_entities):
    return store.create_item(
        "bob the bus mapper",
        [ItemClaim(known_entities.properties.instance_of, known_entities.items.producer)],
    )


@pytest.fixture
def fake_query(store, known_entities):
    return FakeTopoQuery(store, known_entities)


@pytest.fixture
def sample_feed():
    """Two routes sharing a station made of two platforms."""
    return GtfsFeed(
        path="/data/sample.zip",
        routes=(
            Route("AB", "AB", "Airport - Bullfrog", RouteType.BUS),
            Route("M1", "M1", "", RouteType.SUBWAY),
        ),
        stops=(
            Stop("STA", "Central", LocationType.STOP_AREA),
            Stop("P1", "Central", LocationType.STOP_POINT, parent_station="STA", latitude=48.85, longitude=2.35),
            Stop("P2", "Central", LocationType.STOP_POINT, parent_station="STA"),
            Stop("AIR", "Airport", LocationType.STOP_POINT),
        ),
        trips=(
            Trip("t1", "AB", "week"),
            Trip("t2", "M1", "week"),
        ),
        stop_times=(
            StopTime("t1", "AIR", 1),
            StopTime("t1", "P1", 2),
            StopTime("t2", "P2", 1),
            StopTime("t2", "P1", 2),
        ),
        sha256="abc123",
    )
