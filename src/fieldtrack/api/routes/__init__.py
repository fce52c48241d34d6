"""Route group exports."""

from . import fleet, health, ingest, representatives

__all__ = ["health", "ingest", "representatives", "fleet"]
