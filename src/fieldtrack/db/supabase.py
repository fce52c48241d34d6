"""Supabase client for the event journal."""

import logging
from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client(url: Optional[str], key: Optional[str]) -> Client | None:
    """Cached client per (url, key); None when the journal is not configured.

    Creating the client does not touch the network; the first journal write or
    replay is what discovers an unreachable project.
    """
    if not url or not key:
        logger.info("Supabase credentials not configured; events are kept in memory only")
        return None

    try:
        return create_client(url, key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client for {url}: {e}")
        return None
