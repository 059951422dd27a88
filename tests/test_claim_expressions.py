"""
Test parsing of command line claim expressions.
"""

import pytest

from transit_topo.data.errors import ClaimExpressionError
from transit_topo.data.models import CoordinateClaim, ItemClaim, StringClaim
from transit_topo.ingest.claim_expressions import parse_claims


class TestParseClaims:

    def test_literal_ids(self, known_entities):
        parsed = parse_claims(["P42=foobar", "P31=Q5", "wdt:P31=wd:Q6"], known_entities)

        assert parsed.claims == [StringClaim("P42", "foobar"), ItemClaim("P31", "Q5"), ItemClaim("P31", "Q6")]
        assert parsed.label is None

    def test_known_names(self, known_entities):
        props, items = known_entities.properties, known_entities.items

        parsed = parse_claims(["@instance_of=@producer", "@gtfs_id=AB"], known_entities)

        assert parsed.claims == [ItemClaim(props.instance_of, items.producer), StringClaim(props.gtfs_id, "AB")]

    def test_quotes_force_a_string(self, known_entities):
        parsed = parse_claims(['@gtfs_id="Q5"', "P1='a=b'"], known_entities)

        assert parsed.claims == [StringClaim(known_entities.properties.gtfs_id, "Q5"), StringClaim("P1", "a=b")]

    def test_coordinates(self, known_entities):
        parsed = parse_claims(["@coordinate_location=48.85, 2.35"], known_entities)

        assert parsed.claims == [CoordinateClaim(known_entities.properties.coordinate_location, 48.85, 2.35)]

    def test_label(self, known_entities):
        parsed = parse_claims(["rdfs:label=Central station"], known_entities)

        assert parsed.label == "Central station"
        assert parsed.claims == []

    @pytest.mark.parametrize("expression", [
        "no equal sign",
        "@nope=foo",
        "@bus=foo",
        "P1=@gtfs_id",
        "Q1=foo",
        "P1=",
        "@coordinate_location=north",
    ])
    def test_invalid(self, known_entities, expression):
        with pytest.raises(ClaimExpressionError):
            parse_claims([expression], known_entities)

    def test_label_not_allowed(self, known_entities):
        with pytest.raises(ClaimExpressionError):
            parse_claims(["rdfs:label=x"], known_entities, allow_label=False)
