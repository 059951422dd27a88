"""
Typed model of what we send to and read from Wikibase.

Claims are built as small frozen dataclasses and only turned into the
Wikibase statement JSON by `to_wikibase`, at the edge of the write client.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

# Earth, as expected by the globecoordinate datatype
WIKIDATA_GLOBE = "http://www.wikidata.org/entity/Q2"
COORDINATE_PRECISION = 0.000001


class PropertyDataType(Enum):
    STRING = "string"
    ITEM = "wikibase-item"
    URL = "url"
    COORD = "globe-coordinate"


@dataclass(frozen=True)
class ObjectType:
    """Kind of entity to create: an item, or a property with its datatype."""

    kind: str
    datatype: Optional[PropertyDataType] = None

    @classmethod
    def item(cls) -> "ObjectType":
        return cls("item")

    @classmethod
    def property_of(cls, datatype: PropertyDataType) -> "ObjectType":
        return cls("property", datatype)

    @property
    def is_property(self) -> bool:
        return self.kind == "property"

    def __str__(self):
        return self.kind


# ============================================================================
# CLAIMS
# ============================================================================

@dataclass(frozen=True)
class StringClaim:
    property: str
    value: str


@dataclass(frozen=True)
class ItemClaim:
    property: str
    item_id: str


@dataclass(frozen=True)
class CoordinateClaim:
    property: str
    latitude: float
    longitude: float


Claim = Union[StringClaim, ItemClaim, CoordinateClaim]


def string_claim(property_id: str, value: Optional[str]) -> Optional[StringClaim]:
    """Build a string claim, or None when the value is empty.

    Wikibase refuses empty string values, so such claims are never sent.
    """
    value = (value or "").strip()
    if not value:
        return None
    return StringClaim(property_id, value)


def item_claim(property_id: str, item_id: str) -> ItemClaim:
    return ItemClaim(property_id, item_id)


def coordinate_claim(property_id: str, latitude: Optional[float],
                     longitude: Optional[float]) -> Optional[CoordinateClaim]:
    if latitude is None or longitude is None:
        return None
    return CoordinateClaim(property_id, latitude, longitude)


def compact_claims(claims: Iterable[Optional[Claim]]) -> List[Claim]:
    """Drop the None placeholders left by empty values."""
    return [c for c in claims if c is not None]


def to_wikibase(claim: Claim) -> dict:
    """Encode a claim as a Wikibase statement."""
    if isinstance(claim, StringClaim):
        datavalue = {"value": claim.value, "type": "string"}
    elif isinstance(claim, ItemClaim):
        datavalue = {
            "value": {"entity-type": "item", "id": claim.item_id},
            "type": "wikibase-entityid",
        }
    elif isinstance(claim, CoordinateClaim):
        datavalue = {
            "value": {
                "latitude": claim.latitude,
                "longitude": claim.longitude,
                "precision": COORDINATE_PRECISION,
                "globe": WIKIDATA_GLOBE,
            },
            "type": "globecoordinate",
        }
    else:
        raise TypeError(f"unsupported claim type: {type(claim).__name__}")

    return {
        "mainsnak": {
            "snaktype": "value",
            "property": claim.property,
            "datavalue": datavalue,
        },
        "type": "statement",
        "rank": "normal",
    }


def claim_value(claim: Claim):
    """Value of a claim in the same shape as `Entity.claims` values."""
    if isinstance(claim, StringClaim):
        return claim.value
    if isinstance(claim, ItemClaim):
        return claim.item_id
    return (claim.latitude, claim.longitude)


# ============================================================================
# ENTITIES
# ============================================================================

ClaimValue = Union[str, Tuple[float, float]]


@dataclass
class Entity:
    """Simple representation of a Wikibase entity."""

    id: str
    label: str
    claims: Dict[str, List[ClaimValue]] = field(default_factory=dict)

    def values(self, property_id: str) -> List[ClaimValue]:
        return self.claims.get(property_id, [])

    def has_claim(self, claim: Claim) -> bool:
        return claim_value(claim) in self.values(claim.property)

    def add(self, claim: Claim):
        self.claims.setdefault(claim.property, []).append(claim_value(claim))

    @classmethod
    def from_wikibase(cls, data: dict) -> "Entity":
        """Decode one entry of a `wbgetentities` response."""
        label = (data.get("labels") or {}).get("en", {}).get("value", "")
        claims: Dict[str, List[ClaimValue]] = {}
        for property_id, statements in (data.get("claims") or {}).items():
            values = []
            for statement in statements:
                datavalue = statement.get("mainsnak", {}).get("datavalue")
                # novalue / somevalue snaks carry no datavalue
                if not datavalue:
                    continue
                value = datavalue.get("value")
                if datavalue.get("type") == "wikibase-entityid":
                    values.append(value["id"])
                elif datavalue.get("type") == "globecoordinate":
                    values.append((value["latitude"], value["longitude"]))
                else:
                    values.append(value)
            claims[property_id] = values
        return cls(id=data["id"], label=label, claims=claims)

    def __repr__(self):
        return f"<Entity(id='{self.id}', label='{self.label}', properties={len(self.claims)})>"
