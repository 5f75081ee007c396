"""Supabase client construction."""

from __future__ import annotations

import logging

from supabase import Client, create_client

from ssp_fx.config import Settings

logger = logging.getLogger(__name__)


class SupabaseConfigurationError(RuntimeError):
    """Raised when Supabase credentials are missing or still placeholders."""


def supabase_configured(settings: Settings) -> bool:
    """Check that Supabase credentials look usable."""
    url = settings.supabase_url
    key = settings.supabase_key
    return bool(
        url
        and key
        and "YOUR_SUPABASE_URL" not in url
        and "YOUR_SUPABASE_KEY" not in key
    )


def create_supabase_client(settings: Settings) -> Client:
    if not supabase_configured(settings):
        raise SupabaseConfigurationError(
            "Supabase credentials not configured; set SUPABASE_URL and SUPABASE_KEY."
        )
    logger.info("Creating Supabase client for %s", settings.supabase_url)
    return create_client(settings.supabase_url, settings.supabase_key)
