"""Backend utilities"""
from .supabase_client import get_supabase_client, get_document_store
from .auth import get_current_user, get_optional_user, require_mentor

__all__ = [
    "get_supabase_client",
    "get_document_store",
    "get_current_user",
    "get_optional_user",
    "require_mentor",
]
