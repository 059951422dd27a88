"""
Test the SPARQL query client with a mocked HTTP session.
"""

import pytest
import requests
from unittest.mock import Mock

from transit_topo.data.errors import MalformedResponse, QueryTransportError
from transit_topo.data.wikibase.sparql_client import SparqlClient


def bindings(*rows):
    return {"results": {"bindings": [
        {name: {"type": "uri", "value": value} for name, value in row.items()} for row in rows
    ]}}


class TestSparqlClient:

    @pytest.fixture
    def session(self):
        return Mock()

    @pytest.fixture
    def client(self, session):
        return SparqlClient("http://wikibase/sparql", session=session, timeout=5)

    def answer(self, session, body):
        response = Mock()
        response.json.return_value = body
        response.text = str(body)
        session.get.return_value = response

    def test_rows_are_flattened(self, client, session):
        self.answer(session, bindings(
            {"route": "http://wikibase.svc/entity/Q1"},
            {"route": "http://wikibase.svc/entity/Q2"},
        ))

        rows = client.sparql(["?route"], "?route wdt:P1 wd:Q3.")

        assert rows == [
            {"route": "http://wikibase.svc/entity/Q1"},
            {"route": "http://wikibase.svc/entity/Q2"},
        ]

    def test_query_shape(self, client, session):
        self.answer(session, bindings())

        client.sparql(["?a", "?b"], "?a wdt:P1 ?b.", distinct=True)

        params = session.get.call_args[1]["params"]
        assert params["format"] == "json"
        assert params["query"].startswith("SELECT DISTINCT ?a ?b WHERE { ?a wdt:P1 ?b.")
        assert 'wikibase:language "en"' in params["query"]
        assert session.get.call_args[1]["timeout"] == 5

    def test_no_result(self, client, session):
        self.answer(session, bindings())

        assert client.sparql(["?a"], "?a wdt:P1 ?b.") == []

    def test_missing_bindings(self, client, session):
        self.answer(session, {"head": {"vars": ["a"]}})

        with pytest.raises(MalformedResponse):
            client.sparql(["?a"], "?a wdt:P1 ?b.")

    def test_bindings_not_a_list(self, client, session):
        self.answer(session, {"results": {"bindings": "nope"}})

        with pytest.raises(MalformedResponse):
            client.sparql(["?a"], "?a wdt:P1 ?b.")

    def test_http_error(self, client, session):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")
        session.get.return_value = response

        with pytest.raises(QueryTransportError):
            client.sparql(["?a"], "?a wdt:P1 ?b.")

    def test_connection_error(self, client, session):
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(QueryTransportError):
            client.sparql(["?a"], "?a wdt:P1 ?b.")

    def test_invalid_json(self, client, session):
        response = Mock()
        response.json.side_effect = ValueError("Expecting value")
        session.get.return_value = response

        with pytest.raises(MalformedResponse):
            client.sparql(["?a"], "?a wdt:P1 ?b.")
