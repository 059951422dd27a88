"""
Transit Topo Import Module

Synchronizes GTFS transit topology into a Wikibase knowledge graph.

Entry Point:
    python -m transit_topo.ingest import --producer <id or name> -i <gtfs>

Components:
    - known_entities: Vocabulary of properties/items, discovered by topo id
    - schema: Idempotent bootstrap of that vocabulary
    - topo_query / topo_writer: Domain reads (SPARQL) and writes (API)
    - orchestrator: Find-or-create of routes and stops, then links
    - claim_expressions / cli: Command line
"""

from .schema import initialize_schema
from .known_entities import KnownEntities, discover_known_entities
from .orchestrator import GtfsImporter, ImportReport, run_import

__all__ = [
    'initialize_schema',
    'KnownEntities',
    'discover_known_entities',
    'GtfsImporter',
    'ImportReport',
    'run_import',
]
