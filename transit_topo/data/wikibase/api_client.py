import json
import logging
import re
from typing import Iterable, List, Optional

import requests

from transit_topo.data.errors import (
    EntityNotFound, GenericWriteError, LabelConflict, MalformedResponse,
    TooManyEntities, WriteTransportError,
)
from transit_topo.data.models import Claim, Entity, ObjectType, compact_claims, to_wikibase

logger = logging.getLogger(__name__)

# Properties must have a unique label, items a unique label+description pair
LABEL_CONFLICT_MESSAGES = (
    "wikibase-validator-label-conflict",
    "wikibase-validator-label-with-description-conflict",
)

# the conflicting entity comes as "[[Property:P1|P1]]", we want "P1"
LABEL_CONFLICT_REGEX = re.compile(r"\[\[.+\|(.+)\]\]")

SEARCH_PAGE_SIZE = 50


def parse_conflict_id(parameters: List[str]) -> Optional[str]:
    """Extract the existing entity id from a label conflict message."""
    if not parameters:
        return None
    match = LABEL_CONFLICT_REGEX.search(str(parameters[-1]))
    return match.group(1) if match else None


class ApiClient:
    """Client of the Wikibase (MediaWiki) action API."""

    def __init__(self, endpoint: str, session: requests.Session = None, timeout: int = 30):
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout
        self._token = None

    # ========================================================================
    # READS
    # ========================================================================

    def find_entities(self, label: str, object_type: ObjectType) -> List[dict]:
        """
        Search all entities of a kind for a given english label.

        The search matches prefixes and is paged, every page is read so an
        exact match ranked far down is not missed.
        """
        entries: List[dict] = []
        offset = 0
        while offset is not None:
            response = self._get({
                "action": "wbsearchentities",
                "language": "en",
                "search": label,
                "type": str(object_type),
                "limit": SEARCH_PAGE_SIZE,
                "continue": offset,
            })
            try:
                entries.extend(response["search"])
            except (KeyError, TypeError):
                raise MalformedResponse(f"invalid search response for '{label}'")
            offset = response.get("search-continue")
        return entries

    def find_entity_id(self, object_type: ObjectType, label: str, exact: bool = True) -> Optional[str]:
        """
        Search an entity by its english label, and return its id if it is unique.

        Args:
            object_type: Kind of entity searched
            label: English label
            exact: Ignore prefix matches returned by the search

        Returns:
            The id, or None when nothing matches
        """
        entries = self.find_entities(label, object_type)
        if exact:
            entries = [e for e in entries if e.get("label") == label]

        if not entries:
            return None
        if len(entries) > 1:
            raise TooManyEntities(f"label {label}", [e.get("id", "") for e in entries])
        return entries[0]["id"]

    def get_entity(self, entity_id: str) -> Entity:
        response = self._get({"action": "wbgetentities", "ids": entity_id})
        if "error" in response:
            if response["error"].get("code") in ("no-such-entity", "invalid-entity-id"):
                raise EntityNotFound(entity_id)
            raise GenericWriteError(
                f"Api error '{response['error'].get('code')}': {response['error'].get('info')}",
                code=response["error"].get("code"),
            )

        # the id is always in the response, even when the entity does not exist
        try:
            data = response["entities"][entity_id]
        except (KeyError, TypeError):
            raise MalformedResponse("invalid response format, no id in response")
        if "missing" in data:
            raise EntityNotFound(entity_id)
        return Entity.from_wikibase(data)

    # ========================================================================
    # WRITES
    # ========================================================================

    def create_object(self, object_type: ObjectType, label: str,
                      claims: Iterable[Optional[Claim]] = (), description: str = None) -> str:
        """
        Create an item or a property.

        Raises:
            LabelConflict: another entity already has this label
                (this label and description, for items)
            GenericWriteError: any other rejection
        """
        data = _terms(label, description)
        data["claims"] = [to_wikibase(c) for c in compact_claims(claims)]
        if object_type.is_property:
            data["datatype"] = object_type.datatype.value

        response = self._post({"action": "wbeditentity", "new": str(object_type)}, data)

        if "error" in response:
            raise self._write_error(label, response["error"])
        try:
            return response["entity"]["id"]
        except (KeyError, TypeError):
            raise MalformedResponse(f"no entity id in creation response for '{label}'")

    def create_item(self, label: str, claims: Iterable[Optional[Claim]] = (),
                    description: str = None) -> str:
        return self.create_object(ObjectType.item(), label, claims, description)

    def add_claims(self, entity_id: str, claims: Iterable[Optional[Claim]]):
        self.update_object_claims(entity_id, claims, replace_existing=False)

    def override_claims(self, entity_id: str, claims: Iterable[Optional[Claim]],
                        label: str = None, description: str = None):
        self.update_object_claims(entity_id, claims, replace_existing=True,
                                  label=label, description=description)

    def update_object_claims(self, entity_id: str, claims: Iterable[Optional[Claim]],
                             replace_existing: bool = False, label: str = None,
                             description: str = None):
        """
        Write claims on an existing entity.

        When replace_existing is set the entity is cleared first; since that
        also clears its terms, label and description are sent again when given.
        """
        data = _terms(label, description)
        data["claims"] = [to_wikibase(c) for c in compact_claims(claims)]

        params = {"action": "wbeditentity", "id": entity_id}
        if replace_existing:
            params["clear"] = "true"

        response = self._post(params, data)
        if "error" in response:
            error = response["error"]
            logger.info(f"api error '{error.get('code')}': {error.get('info')}, messages: {error.get('messages')}")
            raise GenericWriteError(
                f"Api error '{error.get('code')}': {error.get('info')}",
                code=error.get("code"),
            )

    # ========================================================================
    # PLUMBING
    # ========================================================================

    def _write_error(self, label: str, error: dict) -> Exception:
        messages = error.get("messages") or []
        conflict = next((m for m in messages if m.get("name") in LABEL_CONFLICT_MESSAGES), None)

        if conflict is not None:
            existing_id = parse_conflict_id(conflict.get("parameters") or [])
            if existing_id:
                return LabelConflict(label, existing_id)
            logger.warning(f"impossible to parse conflict message: {conflict}")
            return GenericWriteError(f"conflict while inserting: {error.get('info')}", code=error.get("code"))

        logger.warning(f"Error inserting: {error}")
        return GenericWriteError(f"Error while inserting: {error.get('info')}", code=error.get("code"))

    def _get_token(self) -> str:
        if self._token is None:
            response = self._get({"action": "query", "meta": "tokens"})
            try:
                self._token = response["query"]["tokens"]["csrftoken"]
            except (KeyError, TypeError):
                raise MalformedResponse("no csrf token in api response")
        return self._token

    def _get(self, params: dict) -> dict:
        params = {**params, "format": "json"}
        try:
            response = self.session.get(self.endpoint, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise WriteTransportError(f"api request failed: {e}") from e
        return self._decode(response)

    def _post(self, params: dict, data: dict) -> dict:
        payload = json.dumps(data)
        logger.debug(f"claims: {payload}")
        form = {"token": self._get_token(), "data": payload}
        try:
            response = self.session.post(
                self.endpoint,
                params={**params, "format": "json"},
                data=form,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise GenericWriteError(f"api rejected the write: {e}") from e
        except requests.RequestException as e:
            raise WriteTransportError(f"api request failed: {e}") from e
        return self._decode(response)

    def _decode(self, response) -> dict:
        logger.debug(f"Response body: {response.text}")
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"api returned invalid json: {e}") from e
        if not isinstance(body, dict):
            raise MalformedResponse("api returned an unexpected json document")
        return body


def _terms(label: str = None, description: str = None) -> dict:
    data = {}
    if label:
        data["labels"] = {"en": {"language": "en", "value": label}}
    if description:
        data["descriptions"] = {"en": {"language": "en", "value": description}}
    return data
