"""
GTFS Import Orchestrator

Synchronizes one GTFS feed of one producer into the Wikibase:

    1. a new Data Source item recording the import
    2. routes, found or created
    3. stops, found, created or (optionally) refreshed
    4. containment links (stop part of its parent station)
    5. service links (stop served by a route, from trips and stop times)

A route or stop is identified by (producer, gtfs id, type). Finding it more
than once aborts the import; a link whose end could not be resolved is
logged and skipped.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tqdm import tqdm

from transit_topo.config.config_main import import_config, wikibase_config
from transit_topo.data.errors import DuplicateEntity, InvalidProducer
from transit_topo.data.gtfs.gtfs_reader import GtfsFeed, Route, Stop, StopTime, Trip, read_gtfs
from transit_topo.data.models import Claim, Entity, item_claim
from transit_topo.data.wikibase.api_client import ApiClient
from transit_topo.data.wikibase.identifiers import is_entity_id
from transit_topo.data.wikibase.sparql_client import SparqlClient

from .known_entities import KnownEntities, discover_known_entities, find_topo_id_property
from .topo_query import TopoQuery
from .topo_writer import TopoWriter, route_label, stop_label

logger = logging.getLogger(__name__)


class EntityState(Enum):
    NOT_SEARCHED = "not searched"
    SEARCHED = "searched"
    CREATED = "created"
    FOUND = "found"
    UPDATED = "updated"
    LINKED = "linked"


@dataclass
class ImportReport:
    """What an import did, per entity family."""

    data_source_id: Optional[str] = None
    routes: Dict[str, EntityState] = field(default_factory=dict)
    stops: Dict[str, EntityState] = field(default_factory=dict)
    linked_stops: Set[str] = field(default_factory=set)
    links_added: int = 0
    links_existing: int = 0
    links_skipped: int = 0

    def count(self, family: str, state: EntityState) -> int:
        return sum(1 for s in getattr(self, family).values() if s == state)

    def stop_state(self, gtfs_id: str) -> EntityState:
        if gtfs_id in self.linked_stops:
            return EntityState.LINKED
        return self.stops.get(gtfs_id, EntityState.NOT_SEARCHED)


class GtfsImporter:
    """Find-or-create driver for routes and stops of a feed."""

    def __init__(self, query: TopoQuery, writer: TopoWriter, override_existing: bool = False):
        self.query = query
        self.writer = writer
        self.override_existing = override_existing
        self.known_entities = query.known_entities
        # claims known to be on the entities touched during this run
        self._entities: Dict[str, Entity] = {}

    def import_gtfs(self, feed: GtfsFeed, producer_id: str, producer_name: str) -> ImportReport:
        """
        Import a whole feed.

        Args:
            feed: GTFS records
            producer_id: Id of the producer item
            producer_name: Label of the producer, used in route labels

        Returns:
            ImportReport of the run
        """
        logger.info(f"import gtfs version {self.writer.tool_version}")
        report = ImportReport()
        report.data_source_id = self.writer.insert_data_source(feed.sha256, producer_id, feed.path)

        route_mapping = self.import_routes(feed.routes, report.data_source_id, producer_id, producer_name, report)
        stop_mapping = self.import_stops(feed.stops, report.data_source_id, producer_id, producer_name, report)
        self.insert_stop_relations(feed.stops, stop_mapping, report)
        self.insert_stop_route_relations(feed.trips, feed.stop_times, stop_mapping, route_mapping, report)
        return report

    # ========================================================================
    # ENTITIES
    # ========================================================================

    def import_routes(self, routes: Iterable[Route], data_source_id: str, producer_id: str,
                      producer_name: str, report: ImportReport = None) -> Dict[str, str]:
        """
        Find or create every route.

        Returns:
            Dictionary mapping gtfs route id -> wikibase id
        """
        report = report or ImportReport()
        route_mapping: Dict[str, str] = {}

        for route in tqdm(routes, desc="Importing routes", unit="route"):
            if route.id in route_mapping:
                logger.warning(f"Route {route.id} appears twice in the feed, keeping {route_mapping[route.id]}")
                continue
            report.routes[route.id] = EntityState.NOT_SEARCHED

            found = self.query.find_route(producer_id, route.id)
            report.routes[route.id] = EntityState.SEARCHED

            if not found:
                logger.info(f"Route “{route.long_name}” ({route.short_name}) does not exist, inserting")
                route_id = self.writer.insert_route(route, data_source_id, producer_name)
                self._remember(route_id, route_label(route, producer_name),
                               self.writer.route_claims(route, data_source_id))
                report.routes[route.id] = EntityState.CREATED
                logger.info(f"Ok, new route id: {route_id}")
            elif len(found) == 1:
                route_id = found[0]
                logger.info(f"Route “{route.long_name}” ({route.short_name}) already exists with id {route_id}, skipping")
                report.routes[route.id] = EntityState.FOUND
            else:
                raise DuplicateEntity(f"Route “{route.long_name}” ({route.short_name})", found)

            route_mapping[route.id] = route_id

        return route_mapping

    def import_stops(self, stops: Iterable[Stop], data_source_id: str, producer_id: str,
                     producer_name: str, report: ImportReport = None) -> Dict[str, str]:
        """
        Find, create or refresh every stop.

        Returns:
            Dictionary mapping gtfs stop id -> wikibase id
        """
        report = report or ImportReport()
        stop_mapping: Dict[str, str] = {}

        for stop in tqdm(stops, desc="Importing stops", unit="stop"):
            if stop.id in stop_mapping:
                logger.warning(f"Stop {stop.id} appears twice in the feed, keeping {stop_mapping[stop.id]}")
                continue
            report.stops[stop.id] = EntityState.NOT_SEARCHED

            found = self.query.find_stop(producer_id, stop)
            report.stops[stop.id] = EntityState.SEARCHED

            if not found:
                logger.info(f"Stop “{stop.name}” ({stop.id}) does not exist, inserting")
                stop_id = self.writer.insert_stop(stop, data_source_id, producer_name)
                self._remember(stop_id, stop_label(stop), self.writer.stop_claims(stop, data_source_id))
                report.stops[stop.id] = EntityState.CREATED
            elif len(found) == 1:
                stop_id = found[0]
                if self.override_existing:
                    logger.info(f"Stop “{stop.name}” ({stop.id}) already exists with id {stop_id}, updating")
                    self.writer.update_stop(stop_id, stop, data_source_id, producer_name)
                    self._remember(stop_id, stop_label(stop), self.writer.stop_claims(stop, data_source_id))
                    report.stops[stop.id] = EntityState.UPDATED
                else:
                    logger.info(f"Stop “{stop.name}” ({stop.id}) already exists with id {stop_id}, skipping")
                    report.stops[stop.id] = EntityState.FOUND
            else:
                raise DuplicateEntity(f"Stop “{stop.name}” ({stop.id})", found)

            stop_mapping[stop.id] = stop_id

        return stop_mapping

    # ========================================================================
    # RELATIONS
    # ========================================================================

    def insert_stop_relations(self, stops: Iterable[Stop], stop_mapping: Dict[str, str],
                              report: ImportReport = None):
        """Link each stop to its parent station with a `part of` claim."""
        report = report or ImportReport()
        part_of = self.known_entities.properties.part_of

        for stop in tqdm(stops, desc="Linking parent stations", unit="stop"):
            if not stop.parent_station:
                continue
            parent_id = stop_mapping.get(stop.parent_station)
            if parent_id is None:
                logger.warning(f"Could not find wikibase id for gtfs id: {stop.parent_station}")
                report.links_skipped += 1
                continue
            child_id = stop_mapping.get(stop.id)
            if child_id is None:
                logger.warning(f"Could not find wikibase id for gtfs id: {stop.id}")
                report.links_skipped += 1
                continue

            self._link(child_id, [item_claim(part_of, parent_id)], report)
            report.linked_stops.add(stop.id)

    def insert_stop_route_relations(self, trips: Iterable[Trip], stop_times: Iterable[StopTime],
                                    stop_mapping: Dict[str, str], route_mapping: Dict[str, str],
                                    report: ImportReport = None):
        """Link each stop to the routes serving it with `connecting line` claims."""
        report = report or ImportReport()
        connecting_line = self.known_entities.properties.connecting_line
        pending: Dict[str, List[Claim]] = defaultdict(list)
        pending_gtfs: Dict[str, str] = {}

        served = stops_by_route(trips, stop_times)
        for route_gtfs_id, route_id in route_mapping.items():
            for stop_gtfs_id in sorted(served.get(route_gtfs_id, ())):
                stop_id = stop_mapping.get(stop_gtfs_id)
                if stop_id is None:
                    logger.warning(f"Could not find wikibase id for gtfs id: {stop_gtfs_id}")
                    report.links_skipped += 1
                    continue
                pending[stop_id].append(item_claim(connecting_line, route_id))
                pending_gtfs[stop_id] = stop_gtfs_id

        for stop_id, claims in tqdm(pending.items(), desc="Linking routes", unit="stop"):
            self._link(stop_id, claims, report)
            report.linked_stops.add(pending_gtfs[stop_id])

    def _link(self, entity_id: str, claims: List[Claim], report: ImportReport):
        """Add the claims the entity does not carry yet."""
        entity = self._entity(entity_id)
        missing = []
        for claim in claims:
            if entity.has_claim(claim) or claim in missing:
                report.links_existing += 1
            else:
                missing.append(claim)
        if not missing:
            return

        self.writer.add_claims(entity_id, missing)
        for claim in missing:
            entity.add(claim)
        report.links_added += len(missing)

    def _entity(self, entity_id: str) -> Entity:
        if entity_id not in self._entities:
            self._entities[entity_id] = self.writer.client.get_entity(entity_id)
        return self._entities[entity_id]

    def _remember(self, entity_id: str, label: str, claims: List[Claim]):
        entity = Entity(id=entity_id, label=label)
        for claim in claims:
            entity.add(claim)
        self._entities[entity_id] = entity


def stops_by_route(trips: Iterable[Trip], stop_times: Iterable[StopTime]) -> Dict[str, Set[str]]:
    """Distinct stop ids visited by the trips of each route."""
    route_of_trip = {trip.id: trip.route_id for trip in trips}
    result: Dict[str, Set[str]] = defaultdict(set)
    for stop_time in stop_times:
        route_id = route_of_trip.get(stop_time.trip_id)
        if route_id is not None:
            result[route_id].add(stop_time.stop_id)
    return dict(result)


def stops_of_route(route_id: str, trips: Iterable[Trip], stop_times: Iterable[StopTime]) -> Set[str]:
    return stops_by_route(trips, stop_times).get(route_id, set())


# ============================================================================
# WIRING
# ============================================================================

def connect(api_endpoint: str = None, sparql_endpoint: str = None,
            topo_id_id: str = None) -> Tuple[ApiClient, SparqlClient, KnownEntities]:
    """Build both clients and discover the known entities."""
    api = ApiClient(api_endpoint or wikibase_config.api_endpoint, timeout=wikibase_config.timeout)
    sparql = SparqlClient(sparql_endpoint or wikibase_config.sparql_endpoint, timeout=wikibase_config.timeout)

    topo_id_id = topo_id_id or wikibase_config.topo_id_id
    if not topo_id_id:
        topo_id_id = find_topo_id_property(api)
        logger.info(f"Found the topo id property: {topo_id_id}")
    return api, sparql, discover_known_entities(sparql, topo_id_id)


def resolve_producer(query: TopoQuery, producer: str) -> Tuple[str, str]:
    """
    Turn the producer given by the user into (id, label).

    Args:
        producer: Either an item id (Qxxx) or the label of a producer
    """
    if is_entity_id(producer) and producer.startswith("Q"):
        logger.info("Searching the producer by id")
        label = query.get_producer_label(producer)
        if label is None:
            raise InvalidProducer(f"{producer} is not a valid producer id")
        logger.info(f"Found the producer “{label}”")
        return producer, label

    logger.info("Searching the producer by name")
    ids = query.find_producer(producer)
    if not ids:
        raise InvalidProducer(f"We found no producer with the name {producer}")
    if len(ids) > 1:
        raise DuplicateEntity(f"producer {producer}", ids)
    logger.info(f"The producer “{producer}” has id {ids[0]}")
    return ids[0], producer


def run_import(
    gtfs_filename: str,
    producer: str,
    api_endpoint: str = None,
    sparql_endpoint: str = None,
    topo_id_id: str = None,
    override_existing: bool = None,
) -> ImportReport:
    """
    Execute a complete GTFS import.

    Args:
        gtfs_filename: GTFS zip archive or directory
        producer: Producer id (Qxxx) or label
        api_endpoint: Wikibase API endpoint (default from env)
        sparql_endpoint: SPARQL endpoint (default from env)
        topo_id_id: Id of the topo id property (default from env, else found by label)
        override_existing: Refresh the claims of stops already imported
    """
    if override_existing is None:
        override_existing = import_config.override_existing

    print(f"\n{'#'*70}")
    print(f"# TRANSIT TOPO - GTFS IMPORT")
    print(f"# Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"{'#'*70}\n")
    overall_start = datetime.now()

    api, sparql, known_entities = connect(api_endpoint, sparql_endpoint, topo_id_id)
    query = TopoQuery(sparql, known_entities)
    writer = TopoWriter(api, known_entities)

    producer_id, producer_name = resolve_producer(query, producer)
    feed = read_gtfs(gtfs_filename)

    importer = GtfsImporter(query, writer, override_existing=override_existing)
    report = importer.import_gtfs(feed, producer_id, producer_name)

    duration = (datetime.now() - overall_start).total_seconds()
    print(f"\n{'='*70}")
    print("IMPORT COMPLETE")
    print(f"{'='*70}")
    print(f"  ✓ data source {report.data_source_id}")
    print(f"  ✓ {report.count('routes', EntityState.CREATED)} routes created, "
          f"{report.count('routes', EntityState.FOUND)} already there")
    print(f"  ✓ {report.count('stops', EntityState.CREATED)} stops created, "
          f"{report.count('stops', EntityState.FOUND)} already there, "
          f"{report.count('stops', EntityState.UPDATED)} updated")
    print(f"  ✓ {report.links_added} links added, {report.links_existing} already there, "
          f"{report.links_skipped} skipped")
    print(f"  Duration: {duration:.2f} seconds")
    print(f"{'='*70}\n")
    return report
