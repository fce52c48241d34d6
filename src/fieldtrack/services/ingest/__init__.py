"""Event ingest services."""

from .service import IngestService, infer_kind

__all__ = ["IngestService", "infer_kind"]
