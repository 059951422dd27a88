import logging
from datetime import datetime, timezone
from typing import List, Optional

from transit_topo.config.config_main import import_config
from transit_topo.data.gtfs.gtfs_reader import Route, Stop
from transit_topo.data.models import (
    Claim, compact_claims, coordinate_claim, item_claim, string_claim,
)
from transit_topo.data.wikibase.api_client import ApiClient

from .known_entities import KnownEntities

logger = logging.getLogger(__name__)


def route_label(route: Route, producer_name: str) -> str:
    route_name = route.long_name if route.long_name.strip() else route.short_name
    return f"{route.route_type.value} {route_name} ({producer_name})"


def stop_label(stop: Stop) -> str:
    return stop.name.strip() or stop.id


# Item labels need not be unique, label + description must
def route_description(route: Route, producer_name: str) -> str:
    return f"gtfs route {route.id} of {producer_name}"


def stop_description(stop: Stop, producer_name: str) -> str:
    kind = stop.location_type.name.lower().replace("_", " ")
    return f"gtfs {kind} {stop.id} of {producer_name}"


class TopoWriter:
    """Domain writes on top of the Wikibase API client."""

    def __init__(self, client: ApiClient, known_entities: KnownEntities,
                 tool_version: str = None):
        self.client = client
        self.known_entities = known_entities
        self.tool_version = tool_version or import_config.tool_version

    def insert_data_source(self, sha_256: Optional[str], producer_id: str, path: str) -> str:
        """Create the item recording this import. A new one is made on every run."""
        props = self.known_entities.properties
        label = f"Data source for {producer_id} - imported {datetime.now(timezone.utc)}"
        claims = [
            item_claim(props.produced_by, producer_id),
            string_claim(props.source, path),
            string_claim(props.file_format, import_config.file_format),
            string_claim(props.tool_version, self.tool_version),
        ]
        if sha_256:
            claims.append(string_claim(props.sha_256, sha_256))

        data_source_id = self.client.create_item(label, claims)
        logger.info(f"Created data source {data_source_id} for {path}")
        return data_source_id

    def route_claims(self, route: Route, data_source_id: str) -> List[Claim]:
        props = self.known_entities.properties
        return compact_claims([
            item_claim(props.instance_of, self.known_entities.items.route),
            string_claim(props.gtfs_id, route.id),
            item_claim(props.data_source, data_source_id),
            string_claim(props.gtfs_short_name, route.short_name),
            string_claim(props.gtfs_long_name, route.long_name),
            item_claim(props.has_physical_mode, self.known_entities.physical_mode(route)),
        ])

    def insert_route(self, route: Route, data_source_id: str, producer_name: str) -> str:
        return self.client.create_item(
            route_label(route, producer_name),
            self.route_claims(route, data_source_id),
            description=route_description(route, producer_name),
        )

    def stop_claims(self, stop: Stop, data_source_id: str) -> List[Claim]:
        props = self.known_entities.properties
        return compact_claims([
            item_claim(props.instance_of, self.known_entities.location_type(stop)),
            string_claim(props.gtfs_id, stop.id),
            item_claim(props.data_source, data_source_id),
            string_claim(props.gtfs_name, stop.name),
            coordinate_claim(props.coordinate_location, stop.latitude, stop.longitude),
        ])

    def insert_stop(self, stop: Stop, data_source_id: str, producer_name: str) -> str:
        return self.client.create_item(
            stop_label(stop),
            self.stop_claims(stop, data_source_id),
            description=stop_description(stop, producer_name),
        )

    def update_stop(self, stop_id: str, stop: Stop, data_source_id: str, producer_name: str):
        """Replace all the claims of an already imported stop."""
        self.client.override_claims(
            stop_id,
            self.stop_claims(stop, data_source_id),
            label=stop_label(stop),
            description=stop_description(stop, producer_name),
        )

    def add_claims(self, entity_id: str, claims: List[Claim]):
        self.client.add_claims(entity_id, claims)
