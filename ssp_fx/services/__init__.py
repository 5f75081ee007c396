"""Service layer exports."""

from .rates_service import RatesService
from .supabase_client import SupabaseConfigurationError, supabase_configured

__all__ = ["RatesService", "SupabaseConfigurationError", "supabase_configured"]
