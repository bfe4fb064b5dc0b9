"""API clients and helpers for external services."""

from .glucose_repository import (
    SupabaseGlucoseRepository,
    convert_glucose_rows,
    convert_insulin_rows,
)
from .supabase_client import SupabaseRestClient

__all__ = [
    "SupabaseGlucoseRepository",
    "SupabaseRestClient",
    "convert_glucose_rows",
    "convert_insulin_rows",
]
