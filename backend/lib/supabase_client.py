"""
Supabase client and document store for backend operations
"""
import os
from supabase import create_client, Client
from dotenv import load_dotenv

from student_services.document_store import (
    DocumentStore,
    InMemoryDocumentStore,
    SupabaseDocumentStore,
)
from .logger import get_logger

# Load environment variables
load_dotenv()
load_dotenv('../.env')  # Also try parent directory

logger = get_logger("backend.store")

_supabase_client: Client = None
_document_store: DocumentStore = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton"""
    global _supabase_client

    if _supabase_client is None:
        url = os.getenv("SUPABASE_URL")
        # Use service role key in backend for admin operations
        key = os.getenv("SUPABASE_SERVICE_KEY")

        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment")

        _supabase_client = create_client(url, key)

    return _supabase_client


def get_document_store() -> DocumentStore:
    """
    Get or create the document store singleton

    Uses Supabase when credentials are configured, otherwise an in-memory
    store (data is lost on restart).
    """
    global _document_store

    if _document_store is None:
        if os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_KEY"):
            _document_store = SupabaseDocumentStore(get_supabase_client())
            logger.success("Using Supabase document store")
        else:
            _document_store = InMemoryDocumentStore()
            logger.warning("Supabase not configured, using in-memory document store")

    return _document_store
