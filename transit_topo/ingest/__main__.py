"""
Transit Topo Entry Point

Allows running the importer via:
    python -m transit_topo.ingest <command> [args]
"""

from .cli import main

if __name__ == "__main__":
    main()
