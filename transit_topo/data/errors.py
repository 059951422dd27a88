"""
Error taxonomy shared by the Wikibase clients and the importer.

Everything raised on purpose derives from TopoError so the command line can
report it and exit non-zero. Unresolved relationship endpoints are not
errors: the importer logs and counts them.
"""


class TopoError(RuntimeError):
    """Base class for all transit-topo failures."""


# ============================================================================
# TRANSPORT
# ============================================================================

class TransportError(TopoError):
    """Network or HTTP failure talking to a remote service."""


class QueryTransportError(TransportError):
    """The SPARQL query service could not be reached or answered non-2xx."""


class WriteTransportError(TransportError):
    """The Wikibase write API could not be reached."""


class MalformedResponse(TopoError):
    """A remote response could not be parsed into the expected shape."""


# ============================================================================
# SCHEMA
# ============================================================================

class SchemaError(TopoError):
    """A known entity could not be resolved."""


class SchemaNotFound(SchemaError):
    def __init__(self, name: str):
        super().__init__(f"no entity carries the topo id '{name}'")
        self.name = name


class AmbiguousSchema(SchemaError):
    def __init__(self, name: str, ids=None):
        ids = list(ids or [])
        detail = f": {', '.join(ids)}" if ids else ""
        super().__init__(f"several entities carry the topo id '{name}'{detail}")
        self.name = name
        self.ids = ids


# ============================================================================
# WRITES
# ============================================================================

class WriteError(TopoError):
    """The write API rejected a request."""


class LabelConflict(WriteError):
    """Another entity already owns the label we tried to create."""

    def __init__(self, label: str, existing_id: str):
        super().__init__(f"{label} already exists, id = {existing_id}")
        self.label = label
        self.existing_id = existing_id


class GenericWriteError(WriteError):
    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.code = code


# ============================================================================
# LOOKUPS
# ============================================================================

class DuplicateEntity(TopoError):
    """A search that must match at most once matched several entities."""

    def __init__(self, description: str, ids=None):
        ids = list(ids or [])
        detail = f" ({', '.join(ids)})" if ids else ""
        super().__init__(f"{description} exists many times{detail}. Something is not right")
        self.description = description
        self.ids = ids


class TooManyEntities(DuplicateEntity):
    """Several entities share a label on a label search."""


class EntityNotFound(TopoError):
    def __init__(self, entity_id: str):
        super().__init__(f"cannot find entity {entity_id}")
        self.entity_id = entity_id


class InvalidProducer(TopoError):
    """The producer given on the command line cannot be used."""


# ============================================================================
# INPUTS
# ============================================================================

class FeedError(TopoError):
    """The GTFS feed cannot be read."""


class ClaimExpressionError(TopoError):
    """A `prop=value` claim expression cannot be parsed."""
