from dotenv import load_dotenv
import os

load_dotenv()

TOOL_VERSION = "0.1.0"

class WikibaseConfig():
    api_endpoint: str = os.getenv("WIKIBASE_API_ENDPOINT", "http://localhost:8181/api.php")
    sparql_endpoint: str = os.getenv("WIKIBASE_SPARQL_ENDPOINT", "http://localhost:8989/bigdata/sparql")
    # Empty means "look the marker property up by its label"
    topo_id_id: str = os.getenv("TOPO_ID_ID", "")
    timeout: int = int(os.getenv("WIKIBASE_TIMEOUT", "30"))

wikibase_config = WikibaseConfig()

class ImportConfig():
    """Configuration for the GTFS import process."""
    tool_version: str = os.getenv("TOPO_TOOL_VERSION", TOOL_VERSION)
    override_existing: bool = os.getenv("TOPO_OVERRIDE_EXISTING", "false").lower() == "true"
    file_format: str = "GTFS"
    default_producer: str = os.getenv("TOPO_DEFAULT_PRODUCER", "bob the bus mapper")

import_config = ImportConfig()

class LogConfig():
    level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

log_config = LogConfig()
