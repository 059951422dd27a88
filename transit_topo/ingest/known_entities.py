"""
Known Entities

The fixed vocabulary of properties and items the importer relies on. Each of
them carries a "topo tools id" claim whose value is its symbolic name, so a
new session can rediscover their store-assigned ids with one query per name
instead of hardcoding them.
"""

import logging
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from tqdm import tqdm

from transit_topo.data.errors import AmbiguousSchema, MalformedResponse, SchemaNotFound
from transit_topo.data.gtfs.gtfs_reader import LocationType, Route, RouteType, Stop
from transit_topo.data.models import ObjectType, PropertyDataType
from transit_topo.data.wikibase.api_client import ApiClient
from transit_topo.data.wikibase.identifiers import property_term, read_id_from_url, sparql_literal
from transit_topo.data.wikibase.sparql_client import SparqlClient

logger = logging.getLogger(__name__)

TOPO_ID_LABEL = "topo tools id"

# symbolic name -> (label, datatype)
SCHEMA_PROPERTIES: Dict[str, Tuple[str, PropertyDataType]] = {
    "produced_by": ("produced by", PropertyDataType.ITEM),
    "instance_of": ("instance of", PropertyDataType.ITEM),
    "gtfs_id": ("gtfs id", PropertyDataType.STRING),
    "gtfs_short_name": ("gtfs short name", PropertyDataType.STRING),
    "gtfs_long_name": ("gtfs long name", PropertyDataType.STRING),
    "gtfs_name": ("gtfs name", PropertyDataType.STRING),
    "data_source": ("data source", PropertyDataType.ITEM),
    "first_seen_in": ("first seen in", PropertyDataType.ITEM),
    "source": ("source", PropertyDataType.STRING),
    "file_format": ("file format", PropertyDataType.STRING),
    "sha_256": ("sha-256", PropertyDataType.STRING),
    "has_physical_mode": ("has physical mode", PropertyDataType.ITEM),
    "tool_version": ("tool version", PropertyDataType.STRING),
    "part_of": ("part of", PropertyDataType.ITEM),
    "connecting_line": ("connecting line", PropertyDataType.ITEM),
    "coordinate_location": ("coordinate location", PropertyDataType.COORD),
}

# symbolic name -> (label, symbolic name of the class it is an instance of)
SCHEMA_ITEMS: Dict[str, Tuple[str, Optional[str]]] = {
    "physical_mode": ("physical mode", None),
    "tramway": ("tramway", "physical_mode"),
    "subway": ("subway", "physical_mode"),
    "railway": ("railway", "physical_mode"),
    "bus": ("bus", "physical_mode"),
    "ferry": ("ferry", "physical_mode"),
    "cable_car": ("cable car", "physical_mode"),
    "gondola": ("gondola", "physical_mode"),
    "funicular": ("funicular", "physical_mode"),
    "producer": ("producer", None),
    "route": ("route", None),
    "stop_point": ("stop point", None),
    "stop_area": ("stop area", None),
    "stop_entrance": ("stop entrance", None),
    "stop_generic_node": ("stop generic node", None),
    "stop_boarding_area": ("stop boarding area", None),
}


@dataclass(frozen=True)
class Properties:
    """Property ids. `source` is the path of the imported file, `sha_256` its checksum."""

    topo_id_id: str
    produced_by: str
    instance_of: str
    gtfs_id: str
    gtfs_short_name: str
    gtfs_long_name: str
    gtfs_name: str
    data_source: str
    first_seen_in: str
    source: str
    file_format: str
    sha_256: str
    has_physical_mode: str
    tool_version: str
    part_of: str
    connecting_line: str
    coordinate_location: str


@dataclass(frozen=True)
class Items:
    physical_mode: str
    tramway: str
    subway: str
    railway: str
    bus: str
    ferry: str
    cable_car: str
    gondola: str
    funicular: str
    producer: str
    route: str
    stop_point: str
    stop_area: str
    stop_entrance: str
    stop_generic_node: str
    stop_boarding_area: str


@dataclass(frozen=True)
class KnownEntities:
    properties: Properties
    items: Items

    def lookup(self, name: str) -> Tuple[str, str]:
        """
        Resolve a symbolic name.

        Returns:
            ('property' or 'item', id)
        """
        if name in _field_names(Properties):
            return "property", getattr(self.properties, name)
        if name in _field_names(Items):
            return "item", getattr(self.items, name)
        raise SchemaNotFound(name)

    def physical_mode(self, route: Route) -> str:
        modes = {
            RouteType.TRAMWAY: self.items.tramway,
            RouteType.SUBWAY: self.items.subway,
            RouteType.RAIL: self.items.railway,
            RouteType.BUS: self.items.bus,
            RouteType.FERRY: self.items.ferry,
            RouteType.CABLE_CAR: self.items.cable_car,
            RouteType.GONDOLA: self.items.gondola,
            RouteType.FUNICULAR: self.items.funicular,
        }
        return modes.get(route.route_type, self.items.bus)

    def location_type(self, stop: Stop) -> str:
        types = {
            LocationType.STOP_POINT: self.items.stop_point,
            LocationType.STOP_AREA: self.items.stop_area,
            LocationType.STATION_ENTRANCE: self.items.stop_entrance,
            LocationType.GENERIC_NODE: self.items.stop_generic_node,
            LocationType.BOARDING_AREA: self.items.stop_boarding_area,
        }
        return types.get(stop.location_type, self.items.stop_generic_node)

    @classmethod
    def from_ids(cls, topo_id_id: str, ids: Dict[str, str]) -> "KnownEntities":
        """Build from a name -> id mapping covering the whole catalogue."""
        missing = [n for n in list(SCHEMA_PROPERTIES) + list(SCHEMA_ITEMS) if n not in ids]
        if missing:
            raise SchemaNotFound(missing[0])
        return cls(
            properties=Properties(topo_id_id=topo_id_id, **{n: ids[n] for n in SCHEMA_PROPERTIES}),
            items=Items(**{n: ids[n] for n in SCHEMA_ITEMS}),
        )


def _field_names(cls) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(cls))


# ============================================================================
# DISCOVERY
# ============================================================================

def find_entity_by_topo_id(sparql: SparqlClient, topo_name: str, topo_id_id: str) -> str:
    """
    Find the id of the entity tagged with a given topo id.

    Fails if no entity, or strictly more than one, carries it.
    """
    rows = sparql.sparql(
        ["?item_id"],
        f"?item_id {property_term(topo_id_id)} {sparql_literal(topo_name)}.",
    )
    if not rows:
        raise SchemaNotFound(topo_name)
    urls = [row.get("item_id", "") for row in rows]
    if len(urls) > 1:
        raise AmbiguousSchema(topo_name, [read_id_from_url(u) or u for u in urls])

    entity_id = read_id_from_url(urls[0])
    if not entity_id:
        raise MalformedResponse(f"invalid id '{urls[0]}' for topo id '{topo_name}'")
    return entity_id


def discover_known_entities(sparql: SparqlClient, topo_id_id: str) -> KnownEntities:
    """Resolve every known entity up front so a missing one fails immediately."""
    logger.info(f"Discovering known entities through topo id property {topo_id_id}")
    names = list(SCHEMA_PROPERTIES) + list(SCHEMA_ITEMS)
    ids = {
        name: find_entity_by_topo_id(sparql, name, topo_id_id)
        for name in tqdm(names, desc="Discovering known entities", unit="entity", leave=False)
    }
    return KnownEntities.from_ids(topo_id_id, ids)


def find_topo_id_property(api: ApiClient) -> str:
    """Id of the topo id property, found by its exact label."""
    topo_id_id = api.find_entity_id(ObjectType.property_of(PropertyDataType.STRING), TOPO_ID_LABEL)
    if topo_id_id is None:
        raise SchemaNotFound("topo_id_id")
    return topo_id_id
