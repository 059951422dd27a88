"""
Claim expressions of the command line.

    P42=foobar                    string claim
    P31=Q5 / P31=wd:Q5            item claim
    @instance_of=@producer        known entities, looked up by name
    @gtfs_id="Q5"                 quotes force a string value
    @coordinate_location=48.8,2.3 coordinates (latitude,longitude)
    rdfs:label=Some label         label constraint (search only)

Known names are resolved while parsing, so a typo fails before any request
is sent.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from transit_topo.data.errors import ClaimExpressionError, SchemaNotFound
from transit_topo.data.models import Claim, CoordinateClaim, ItemClaim, StringClaim

from .known_entities import KnownEntities

CLAIM_REGEX = re.compile(r"^([^=]+)=(.*)$")
PROPERTY_REGEX = re.compile(r"^(?:wdt:)?(P\d+)$")
ITEM_REGEX = re.compile(r"^(?:wd:)?(Q\d+)$")
COORDINATE_REGEX = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")
LABEL_PROPERTY = "rdfs:label"


@dataclass
class ParsedClaims:
    claims: List[Claim] = field(default_factory=list)
    label: Optional[str] = None


def parse_claims(expressions: Iterable[str], known_entities: KnownEntities,
                 allow_label: bool = True) -> ParsedClaims:
    parsed = ParsedClaims()
    for expression in expressions:
        match = CLAIM_REGEX.match(expression)
        if not match:
            raise ClaimExpressionError(f"Could not parse claim {expression}")
        prop, value = match.group(1).strip(), match.group(2).strip()

        if prop == LABEL_PROPERTY:
            if not allow_label:
                raise ClaimExpressionError(f"{LABEL_PROPERTY} cannot be used as a claim")
            parsed.label = _unquote(value)
            continue

        property_id = _property(prop, known_entities)
        parsed.claims.append(_claim(property_id, prop, value, known_entities))
    return parsed


def _property(prop: str, known_entities: KnownEntities) -> str:
    if prop.startswith("@"):
        kind, entity_id = _lookup(prop[1:], known_entities)
        if kind != "property":
            raise ClaimExpressionError(f"{prop} is an item, not a property")
        return entity_id

    match = PROPERTY_REGEX.match(prop)
    if not match:
        raise ClaimExpressionError(f"{prop} is not a property id")
    return match.group(1)


def _claim(property_id: str, prop: str, value: str, known_entities: KnownEntities) -> Claim:
    if value.startswith("@"):
        kind, entity_id = _lookup(value[1:], known_entities)
        if kind != "item":
            raise ClaimExpressionError(f"{value} is a property, not an item")
        return ItemClaim(property_id, entity_id)

    if property_id == known_entities.properties.coordinate_location:
        match = COORDINATE_REGEX.match(value)
        if not match:
            raise ClaimExpressionError(f"{prop} expects latitude,longitude, got {value}")
        return CoordinateClaim(property_id, float(match.group(1)), float(match.group(2)))

    match = ITEM_REGEX.match(value)
    if match:
        return ItemClaim(property_id, match.group(1))

    value = _unquote(value)
    if not value:
        raise ClaimExpressionError(f"empty value for {prop}")
    return StringClaim(property_id, value)


def _lookup(name: str, known_entities: KnownEntities):
    try:
        return known_entities.lookup(name)
    except SchemaNotFound:
        raise ClaimExpressionError(f"@{name} is not a known entity")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value
