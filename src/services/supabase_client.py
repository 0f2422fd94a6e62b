"""Supabase client wrapper with async context manager support."""

import os
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from src.utils.errors import StoreUnavailableError
import logging

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not url or not key:
            raise StoreUnavailableError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        # Service-role key, no user session to refresh
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})

    return _client


def reset_supabase_client() -> None:
    """Drop the cached client (next call re-reads the environment)."""
    global _client
    if _client:
        _client = None
        logger.info("Supabase client reset")


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Optional[Client] = client

    async def __aenter__(self) -> Client:
        if self.client is None:
            self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False
