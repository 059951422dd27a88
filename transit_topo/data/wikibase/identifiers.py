import re
from typing import Optional

ENTITY_ID_REGEX = re.compile(r"^[PQ]\d+$")


def read_id_from_url(url: str) -> Optional[str]:
    """Compact id of an entity URL returned by the query service.

    'http://wikibase.svc/entity/Q42' -> 'Q42'
    """
    if not url:
        return None
    entity_id = url.rstrip("/").split("/")[-1]
    return entity_id or None


def is_entity_id(value: str) -> bool:
    return bool(ENTITY_ID_REGEX.match(value or ""))


def entity_term(entity_id: str) -> str:
    return f"wd:{entity_id}"


def property_term(property_id: str) -> str:
    return f"wdt:{property_id}"


def sparql_literal(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'
