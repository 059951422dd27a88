import logging
from typing import Iterable, List, Optional

from transit_topo.data.errors import ClaimExpressionError, DuplicateEntity
from transit_topo.data.gtfs.gtfs_reader import Stop
from transit_topo.data.models import Claim, CoordinateClaim, ItemClaim, StringClaim
from transit_topo.data.wikibase.identifiers import (
    entity_term, property_term, read_id_from_url, sparql_literal,
)
from transit_topo.data.wikibase.sparql_client import SparqlClient

from .known_entities import KnownEntities

logger = logging.getLogger(__name__)


class TopoQuery:
    """Domain queries on top of the SPARQL client."""

    def __init__(self, client: SparqlClient, known_entities: KnownEntities):
        self.client = client
        self.known_entities = known_entities

    def find_route(self, producer_id: str, gtfs_id: str) -> List[str]:
        """
        Ids of the routes with this gtfs id imported from a data source of the producer.

        An empty list means the route does not exist yet.
        """
        logger.debug(f"Finding route {gtfs_id} of producer {producer_id}")
        props = self.known_entities.properties
        return self._entity_ids("route", f"""
            ?route {property_term(props.instance_of)} {entity_term(self.known_entities.items.route)}.
            ?route {property_term(props.gtfs_id)} {sparql_literal(gtfs_id)}.
            ?route {property_term(props.data_source)} ?data_source.
            ?data_source {property_term(props.produced_by)} {entity_term(producer_id)}.
        """)

    def find_stop(self, producer_id: str, stop: Stop) -> List[str]:
        """Ids of the stops of the same taxonomy type with this gtfs id, for the producer."""
        logger.debug(f"Finding stop {stop.name} {stop.id} of producer {producer_id}")
        props = self.known_entities.properties
        stop_type = self.known_entities.location_type(stop)
        return self._entity_ids("stop", f"""
            ?stop {property_term(props.instance_of)} {entity_term(stop_type)}.
            ?stop {property_term(props.gtfs_id)} {sparql_literal(stop.id)}.
            ?stop {property_term(props.data_source)} ?data_source.
            ?data_source {property_term(props.produced_by)} {entity_term(producer_id)}.
        """)

    def get_producer_label(self, producer_id: str) -> Optional[str]:
        """English label of the producer, or None if the entity is not a producer."""
        rows = self.client.sparql(["?label"], f"""
            {entity_term(producer_id)} {property_term(self.known_entities.properties.instance_of)} {entity_term(self.known_entities.items.producer)};
                rdfs:label ?label.
            FILTER(LANG(?label) = "en")
        """, distinct=True)
        if not rows:
            return None
        if len(rows) > 1:
            raise DuplicateEntity(f"producer {producer_id}")
        return rows[0].get("label")

    def find_producer(self, name: str) -> List[str]:
        """Ids of the producers with this english label."""
        return self._entity_ids("producer", f"""
            ?producer {property_term(self.known_entities.properties.instance_of)} {entity_term(self.known_entities.items.producer)};
                rdfs:label {sparql_literal(name)}@en.
        """)

    def search(self, claims: Iterable[Claim], label: str = None) -> List[str]:
        """Ids of the entities carrying all the given claims (and label, if any)."""
        patterns = [claim_pattern(c) for c in claims]
        if label is not None:
            patterns.append(f"rdfs:label {sparql_literal(label)}@en")
        if not patterns:
            raise ClaimExpressionError("no claims provided, cannot find anything")
        return self._entity_ids("item", f"?item {'; '.join(patterns)}.")

    def _entity_ids(self, variable: str, where_clause: str) -> List[str]:
        rows = self.client.sparql([f"?{variable}"], where_clause, distinct=True)
        ids = []
        for row in rows:
            entity_id = read_id_from_url(row.get(variable, ""))
            if entity_id and entity_id not in ids:
                ids.append(entity_id)
        return ids


def claim_pattern(claim: Claim) -> str:
    """Predicate-object part of a triple pattern matching a claim."""
    if isinstance(claim, StringClaim):
        return f"{property_term(claim.property)} {sparql_literal(claim.value)}"
    if isinstance(claim, ItemClaim):
        return f"{property_term(claim.property)} {entity_term(claim.item_id)}"
    if isinstance(claim, CoordinateClaim):
        raise ClaimExpressionError("coordinates cannot be used to search entities")
    raise TypeError(f"unsupported claim type: {type(claim).__name__}")
