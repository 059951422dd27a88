import logging
from typing import Dict, List, Sequence

import requests

from transit_topo.data.errors import MalformedResponse, QueryTransportError

logger = logging.getLogger(__name__)

LABEL_SERVICE = 'SERVICE wikibase:label { bd:serviceParam wikibase:language "en". }'


class SparqlClient:
    """Read-only client of the Wikibase query service."""

    def __init__(self, endpoint: str, session: requests.Session = None, timeout: int = 30):
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout

    def sparql(self, variables: Sequence[str], where_clause: str,
               distinct: bool = False) -> List[Dict[str, str]]:
        """
        Run a SELECT query and flatten its bindings.

        Args:
            variables: Projected variables, e.g. ['?route', '?routeLabel']
            where_clause: Graph pattern placed inside WHERE { ... }
            distinct: Use SELECT DISTINCT

        Returns:
            One dict per result row, variable name (without '?') -> value
        """
        select = "SELECT DISTINCT" if distinct else "SELECT"
        query = f"{select} {' '.join(variables)} WHERE {{ {where_clause} {LABEL_SERVICE} }}"
        response = self._execute_request(query)

        try:
            bindings = response["results"]["bindings"]
        except (KeyError, TypeError):
            raise MalformedResponse("invalid json, no bindings")
        if not isinstance(bindings, list):
            raise MalformedResponse("invalid json, bindings badly formatted")

        rows = []
        for binding in bindings:
            if not isinstance(binding, dict):
                raise MalformedResponse("invalid json, bindings badly formatted")
            rows.append({
                name: (value or {}).get("value", "")
                for name, value in binding.items()
            })
        return rows

    def _execute_request(self, query: str) -> dict:
        logger.debug(f"Sparql query: {query}")
        try:
            response = self.session.get(
                self.endpoint,
                params={"format": "json", "query": query},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise QueryTransportError(f"sparql query failed: {e}") from e

        logger.debug(f"Query response: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"query service returned invalid json: {e}") from e
