"""
Command line of the importer.

    transit-topo prepopulate --default-producer
    transit-topo import --producer "bob the bus mapper" -i gtfs.zip
    transit-topo producer create "My network" --claim "P42=some value"
    transit-topo entities search --claim "@instance_of=@route" --claim "@gtfs_id=AB"
    transit-topo entities create "metro" -t item --unique-claim "@instance_of=@physical_mode"
"""

import argparse
import logging
import sys
from typing import List

from transit_topo.config.config_main import log_config, wikibase_config
from transit_topo.data.errors import DuplicateEntity, TopoError
from transit_topo.data.models import ObjectType, PropertyDataType, item_claim
from transit_topo.data.wikibase.api_client import ApiClient

from .claim_expressions import parse_claims
from .orchestrator import connect, run_import
from .schema import initialize_schema
from .topo_query import TopoQuery

logger = logging.getLogger(__name__)

OBJECT_TYPES = {
    "item": ObjectType.item(),
    "string-property": ObjectType.property_of(PropertyDataType.STRING),
    "item-property": ObjectType.property_of(PropertyDataType.ITEM),
    "url-property": ObjectType.property_of(PropertyDataType.URL),
    "coordinate-property": ObjectType.property_of(PropertyDataType.COORD),
}


# ============================================================================
# COMMANDS
# ============================================================================

def prepopulate(args) -> int:
    api = ApiClient(args.api or wikibase_config.api_endpoint, timeout=wikibase_config.timeout)
    known_entities = initialize_schema(api, create_default_producer=args.default_producer)
    print(known_entities.properties.topo_id_id)
    return 0


def import_feed(args) -> int:
    run_import(
        gtfs_filename=args.input_gtfs,
        producer=args.producer,
        api_endpoint=args.api,
        sparql_endpoint=args.sparql,
        topo_id_id=args.topo_id_id,
        override_existing=True if args.override_existing else None,
    )
    return 0


def create_producer(args) -> int:
    api, sparql, known_entities = connect(args.api, args.sparql, args.topo_id_id)
    query = TopoQuery(sparql, known_entities)
    claims = parse_claims(args.claim, known_entities, allow_label=False).claims

    ids = query.find_producer(args.label)
    if len(ids) > 1:
        raise DuplicateEntity(f"producer {args.label}", ids)
    if ids:
        logger.info(f"Producer “{args.label}” already exists with id {ids[0]}")
        print(ids[0])
        return 0

    claims.insert(0, item_claim(known_entities.properties.instance_of, known_entities.items.producer))
    producer_id = api.create_item(args.label, claims)
    logger.info(f"Created producer “{args.label}” with id {producer_id}")
    print(producer_id)
    return 0


def search_entities(args) -> int:
    _, sparql, known_entities = connect(args.api, args.sparql, args.topo_id_id)
    parsed = parse_claims(args.claim, known_entities)
    for entity_id in TopoQuery(sparql, known_entities).search(parsed.claims, label=parsed.label):
        print(entity_id)
    return 0


def create_entity(args) -> int:
    """Create an entity unless one with this label and the unique claims exists."""
    api, sparql, known_entities = connect(args.api, args.sparql, args.topo_id_id)
    unique_claims = parse_claims(args.unique_claim, known_entities, allow_label=False).claims
    other_claims = parse_claims(args.claim, known_entities, allow_label=False).claims

    ids = TopoQuery(sparql, known_entities).search(unique_claims, label=args.label)
    if len(ids) > 1:
        raise DuplicateEntity(f"{args.type} {args.label}", ids)
    if ids:
        logger.info(f"{args.type} “{args.label}” already exists with id {ids[0]}")
        print(ids[0])
        return 0

    entity_id = api.create_object(OBJECT_TYPES[args.type], args.label, unique_claims + other_claims)
    logger.info(f"Created {args.type} “{args.label}” with id {entity_id}")
    print(entity_id)
    return 0


# ============================================================================
# PARSER
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transit-topo",
        description="Import GTFS transit topology into a Wikibase",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the known properties and items, and a sample producer
  transit-topo prepopulate --default-producer

  # Import a feed for a producer given by name or id
  transit-topo import --producer "bob the bus mapper" -i gtfs.zip

  # Refresh the claims of the stops already imported
  transit-topo import --producer Q12 -i gtfs/ --override-existing
        """
    )

    endpoints = argparse.ArgumentParser(add_help=False)
    endpoints.add_argument(
        '--api',
        default=None,
        help='Wikibase API endpoint (default: WIKIBASE_API_ENDPOINT env var)'
    )
    endpoints.add_argument(
        '--sparql',
        default=None,
        help='SPARQL endpoint (default: WIKIBASE_SPARQL_ENDPOINT env var)'
    )
    endpoints.add_argument(
        '--topo-id-id',
        default=None,
        help='Id of the "topo tools id" property (default: TOPO_ID_ID env var, else found by label)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    populate = subparsers.add_parser('prepopulate', help='Create the known properties and items')
    populate.add_argument('--api', default=None, help='Wikibase API endpoint')
    populate.add_argument(
        '--default-producer',
        action='store_true',
        help='Also create a sample producer'
    )
    populate.set_defaults(func=prepopulate)

    importer = subparsers.add_parser('import', parents=[endpoints], help='Import a GTFS feed')
    importer.add_argument('--producer', required=True, help='Producer id (Qxxx) or label')
    importer.add_argument('-i', '--input-gtfs', required=True, help='GTFS zip archive or directory')
    importer.add_argument(
        '--override-existing',
        action='store_true',
        help='Replace the claims of stops already imported (default: TOPO_OVERRIDE_EXISTING env var)'
    )
    importer.set_defaults(func=import_feed)

    producer = subparsers.add_parser('producer', help='Manage producers')
    producer_commands = producer.add_subparsers(dest='producer_command', required=True)
    producer_create = producer_commands.add_parser('create', parents=[endpoints], help='Find or create a producer')
    producer_create.add_argument('label')
    producer_create.add_argument('--claim', action='append', default=[], help='Extra claim, prop=value')
    producer_create.set_defaults(func=create_producer)

    entities = subparsers.add_parser('entities', help='Search or create entities')
    entity_commands = entities.add_subparsers(dest='entities_command', required=True)

    search = entity_commands.add_parser('search', parents=[endpoints], help='Print the ids matching the claims')
    search.add_argument('--claim', action='append', default=[], required=True, help='Claim, prop=value')
    search.set_defaults(func=search_entities)

    create = entity_commands.add_parser('create', parents=[endpoints], help='Find or create an entity')
    create.add_argument('label')
    create.add_argument('-t', '--type', choices=sorted(OBJECT_TYPES), default='item')
    create.add_argument(
        '--unique-claim',
        action='append',
        default=[],
        help='Claim identifying the entity with its label, prop=value'
    )
    create.add_argument('--claim', action='append', default=[], help='Extra claim, prop=value')
    create.set_defaults(func=create_entity)

    return parser


def main(argv: List[str] = None):
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=log_config.level, format=log_config.format)

    try:
        code = args.func(args)
    except TopoError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
