"""
Test claims, their Wikibase encoding and entity decoding.
"""

from transit_topo.data.models import (
    CoordinateClaim, Entity, ItemClaim, ObjectType, PropertyDataType, StringClaim,
    compact_claims, coordinate_claim, string_claim, to_wikibase,
)
from transit_topo.data.wikibase.identifiers import (
    is_entity_id, read_id_from_url, sparql_literal,
)


class TestClaims:

    def test_empty_string_claim_is_dropped(self):
        assert string_claim("P1", "") is None
        assert string_claim("P1", "   ") is None
        assert string_claim("P1", None) is None
        assert string_claim("P1", " AB ") == StringClaim("P1", "AB")

    def test_missing_coordinates(self):
        assert coordinate_claim("P1", 48.8, None) is None
        assert coordinate_claim("P1", 48.8, 2.3) == CoordinateClaim("P1", 48.8, 2.3)

    def test_compact(self):
        claims = [string_claim("P1", ""), ItemClaim("P2", "Q1")]

        assert compact_claims(claims) == [ItemClaim("P2", "Q1")]

    def test_string_statement(self):
        statement = to_wikibase(StringClaim("P1", "AB"))

        assert statement["mainsnak"] == {
            "snaktype": "value",
            "property": "P1",
            "datavalue": {"value": "AB", "type": "string"},
        }
        assert statement["type"] == "statement"
        assert statement["rank"] == "normal"

    def test_item_statement(self):
        datavalue = to_wikibase(ItemClaim("P2", "Q7"))["mainsnak"]["datavalue"]

        assert datavalue == {"value": {"entity-type": "item", "id": "Q7"}, "type": "wikibase-entityid"}

    def test_coordinate_statement(self):
        datavalue = to_wikibase(CoordinateClaim("P3", 48.85, 2.35))["mainsnak"]["datavalue"]

        assert datavalue["type"] == "globecoordinate"
        assert datavalue["value"]["latitude"] == 48.85
        assert datavalue["value"]["longitude"] == 2.35
        assert datavalue["value"]["globe"] == "http://www.wikidata.org/entity/Q2"

    def test_object_type(self):
        assert str(ObjectType.item()) == "item"
        assert not ObjectType.item().is_property
        assert ObjectType.property_of(PropertyDataType.URL).is_property

    def test_property_factory(self):
        coordinates = ObjectType.property_of(PropertyDataType.COORD)

        assert coordinates.is_property
        assert coordinates.datatype == PropertyDataType.COORD
        assert str(coordinates) == "property"


class TestEntity:

    def test_from_wikibase(self):
        entity = Entity.from_wikibase({
            "id": "Q5",
            "labels": {"en": {"value": "Central"}},
            "claims": {
                "P1": [
                    {"mainsnak": {"datavalue": {"value": "x", "type": "string"}}},
                    {"mainsnak": {"snaktype": "novalue"}},
                ],
                "P4": [{"mainsnak": {"datavalue": {
                    "value": {"latitude": 1.5, "longitude": 2.5}, "type": "globecoordinate"}}}],
            },
        })

        assert entity.id == "Q5"
        assert entity.values("P1") == ["x"]
        assert entity.values("P4") == [(1.5, 2.5)]
        assert entity.values("P9") == []

    def test_no_label(self):
        assert Entity.from_wikibase({"id": "Q5"}).label == ""

    def test_has_claim(self):
        entity = Entity("Q5", "Central")
        entity.add(ItemClaim("P2", "Q9"))

        assert entity.has_claim(ItemClaim("P2", "Q9"))
        assert not entity.has_claim(ItemClaim("P2", "Q10"))
        assert not entity.has_claim(StringClaim("P3", "Q9"))


class TestIdentifiers:

    def test_read_id_from_url(self):
        assert read_id_from_url("http://wikibase.svc/entity/Q42") == "Q42"
        assert read_id_from_url("") is None

    def test_is_entity_id(self):
        assert is_entity_id("Q1")
        assert is_entity_id("P12")
        assert not is_entity_id("bob the bus mapper")
        assert not is_entity_id("Q")

    def test_sparql_literal_escapes(self):
        assert sparql_literal('say "hi"\n') == '"say \\"hi\\"\\n"'
