"""
User Directory

Lookups against the `users` collection: single-user resolution (mentor names)
and the consultant listing shown on the booking pages.
"""

import logging
from typing import Any, Dict, List, Optional

from student_services.consultation_models import Consultant
from student_services.document_store import DocumentStore

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


class UserDirectory:
    """Read-only access to user profiles."""

    def __init__(self, store: DocumentStore, default_hourly_rate: float = 150.0):
        """
        Args:
            store: Document store holding the users collection
            default_hourly_rate: Rate assumed for consultants without one
        """
        self.store = store
        self.default_hourly_rate = default_hourly_rate

    async def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the user document or None when it does not exist. Store errors propagate."""
        return await self.store.get(USERS_COLLECTION, user_id)

    async def get_name(self, user_id: Optional[str]) -> Optional[str]:
        """
        Best-effort display name lookup.

        Any failure (missing user, store error) yields None so list views never
        fail because of one unresolved name.
        """
        if not user_id:
            return None
        try:
            user = await self.get_by_id(user_id)
        except Exception as e:
            logger.warning(f"⚠️ [UserDirectory] Could not resolve name for {user_id[:20]}: {e}")
            return None
        return user.get("name") if user else None

    async def list_consultants(self) -> List[Consultant]:
        """Return every user with the consultant role."""
        documents = await self.store.query(USERS_COLLECTION, {"role": "consultant"})
        consultants = [
            Consultant.from_user_document(doc_id, data, self.default_hourly_rate)
            for doc_id, data in documents
        ]
        logger.info(f"✅ [UserDirectory] Loaded {len(consultants)} consultants")
        return consultants
