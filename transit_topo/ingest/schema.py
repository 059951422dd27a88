"""
Schema Bootstrap

Creates the properties and items listed in known_entities, each tagged with
its topo id, unless they already exist. Safe to run on every start: a label
conflict hands back the id of the entity that already owns the label, so
repeated or concurrent runs converge on the same ids.
"""

import logging
from typing import Dict, List, Optional

from tqdm import tqdm

from transit_topo.config.config_main import import_config
from transit_topo.data.errors import LabelConflict
from transit_topo.data.models import Claim, ObjectType, PropertyDataType, item_claim, string_claim
from transit_topo.data.wikibase.api_client import ApiClient

from .known_entities import SCHEMA_ITEMS, SCHEMA_PROPERTIES, TOPO_ID_LABEL, KnownEntities

logger = logging.getLogger(__name__)


def get_or_create(api: ApiClient, object_type: ObjectType, label: str,
                  claims: List[Optional[Claim]] = ()) -> str:
    """Create an entity, or return the id of the one already holding the label."""
    try:
        entity_id = api.create_object(object_type, label, claims)
        logger.info(f"creating {object_type} \"{label}\" with id {entity_id}")
    except LabelConflict as conflict:
        entity_id = conflict.existing_id
        logger.info(f"{object_type} \"{label}\" already exists with id {entity_id}")
    return entity_id


def get_or_create_item(api: ApiClient, label: str, claims: List[Optional[Claim]] = ()) -> str:
    """
    Return the item with this exact label, creating it when there is none.

    Wikibase only refuses a duplicate item when label and description both
    match, and these items have no description, so the label is looked up
    first instead of relying on a conflict.
    """
    entity_id = api.find_entity_id(ObjectType.item(), label)
    if entity_id is not None:
        logger.info(f"item \"{label}\" already exists with id {entity_id}")
        return entity_id
    return get_or_create(api, ObjectType.item(), label, claims)


def ensure_topo_id_property(api: ApiClient) -> str:
    """
    Get or create the topo id property.

    It cannot be found through its own topo id, so it is looked up by exact label.
    """
    object_type = ObjectType.property_of(PropertyDataType.STRING)
    topo_id_id = api.find_entity_id(object_type, TOPO_ID_LABEL)
    if topo_id_id is not None:
        logger.info(f"property \"{TOPO_ID_LABEL}\" already exists with id {topo_id_id}")
        return topo_id_id
    return get_or_create(api, object_type, TOPO_ID_LABEL)


def initialize_schema(api: ApiClient, create_default_producer: bool = False) -> KnownEntities:
    """
    Make sure every known entity exists in the Wikibase.

    Args:
        api: Write API client
        create_default_producer: Also create a sample producer, handy for tests

    Returns:
        The ids of all known entities
    """
    topo_id_id = ensure_topo_id_property(api)
    ids: Dict[str, str] = {}

    for name, (label, datatype) in tqdm(SCHEMA_PROPERTIES.items(), desc="Creating properties", unit="property"):
        ids[name] = get_or_create(
            api,
            ObjectType.property_of(datatype),
            label,
            [string_claim(topo_id_id, name)],
        )

    # classes first, their instances reference them
    ordered_items = sorted(SCHEMA_ITEMS.items(), key=lambda entry: entry[1][1] is not None)
    for name, (label, parent) in tqdm(ordered_items, desc="Creating items", unit="item"):
        claims = [string_claim(topo_id_id, name)]
        if parent is not None:
            claims.append(item_claim(ids["instance_of"], ids[parent]))
        ids[name] = get_or_create_item(api, label, claims)

    known_entities = KnownEntities.from_ids(topo_id_id, ids)

    if create_default_producer:
        get_or_create_item(
            api,
            import_config.default_producer,
            [item_claim(known_entities.properties.instance_of, known_entities.items.producer)],
        )

    logger.info(f"✓ Schema initialized ({len(ids) + 1} known entities, topo id property {topo_id_id})")
    return known_entities
