"""
Store client initialization and the query execution seam.

This module contains *only* the connection setup and the one place where
store failures are classified. Repositories receive a client object (either
the official Supabase client or the in-process InMemoryClient) and run every
query through `execute`, which converts transport and API failures into the
typed errors the services branch on:

- httpx transport failures (connection refused, DNS, timeouts) ->
  StoreUnavailableError
- PostgREST API errors or a response carrying `error` -> PersistenceError
"""

from __future__ import annotations

import logging
from typing import Any, List, Union

import httpx
from postgrest.exceptions import APIError

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from domain.errors import PersistenceError, StoreUnavailableError
from repositories.memory_client import InMemoryClient
from repositories.settings import STORE_MEMORY, Settings

logger = logging.getLogger(__name__)

StoreClient = Union[Client, InMemoryClient]


def create_store_client(settings: Settings) -> StoreClient:
    """
    Build the primary store client for `settings`.

    Returns an InMemoryClient for CONTRACTING_STORE=memory, otherwise the
    official Supabase client.
    """

    if settings.store_backend == STORE_MEMORY:
        logger.warning("Using in-process store (CONTRACTING_STORE=memory); data is not persisted")
        return InMemoryClient()

    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase store")

    return create_client(settings.supabase_url, settings.supabase_key)


def execute(query: Any, action: str) -> List[dict[str, Any]]:
    """
    Run a prepared query and return its rows.

    Args:
        query: A PostgREST (or InMemoryClient) builder, ready to `.execute()`
        action: Short description used in error messages ("create contract draft")

    Returns:
        List of row dicts (possibly empty)

    Raises:
        StoreUnavailableError: the store could not be reached
        PersistenceError: the store answered with an error
    """

    try:
        response = query.execute()
    except httpx.TransportError as e:
        logger.error(f"Store unreachable while trying to {action}: {e}")
        raise StoreUnavailableError(f"Store unavailable: failed to {action}") from e
    except APIError as e:
        logger.error(f"Store rejected request to {action}: {e}")
        raise PersistenceError(f"Failed to {action}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise PersistenceError(f"Failed to {action}: {error}")

    return getattr(response, "data", None) or []


__all__ = ["StoreClient", "create_store_client", "execute"]
