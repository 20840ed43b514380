"""Services package for external integrations."""

from .supabase_service import SlotConflictError, StoreError, SupabaseService
from .llm_service import BOOKING_TOOLS, LLMService, get_system_prompt

__all__ = [
    "SlotConflictError",
    "StoreError",
    "SupabaseService",
    "BOOKING_TOOLS",
    "LLMService",
    "get_system_prompt",
]
