"""
Consultation Manager

Owns the consultation list visible to one signed-in viewer and every write
against the `consultations` collection. After each successful write the visible
list is fully re-fetched from the store.

Fetches are numbered: only the most recently issued fetch may replace the
in-memory list or error, so an older request that resolves late is discarded.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from student_services.consultation_models import (
    Consultant,
    Consultation,
    ConsultationPatch,
    ConsultationRequest,
    ConsultationStatus,
    can_transition,
    parse_datetime,
)
from student_services.document_store import SERVER_TIMESTAMP, Document, DocumentStore
from student_services.errors import (
    AuthenticationRequired,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ServiceError,
    StoreFailure,
    ValidationError,
)
from student_services.user_directory import UserDirectory
from student_services.viewer import STUDENT_ROLE, Viewer

logger = logging.getLogger(__name__)

CONSULTATIONS_COLLECTION = "consultations"

TERMINAL_STATUSES = (ConsultationStatus.COMPLETED, ConsultationStatus.CANCELLED)


class ConsultationManager:
    """
    Consultation lifecycle operations for a single viewer.

    State mirrors what the pages render: `consultations`, `consultants`,
    `loading`, `submitting` and a user-facing `error` string.
    """

    def __init__(
        self,
        store: DocumentStore,
        directory: Optional[UserDirectory] = None,
        user: Optional[Viewer] = None,
    ):
        """
        Initialize ConsultationManager.

        Args:
            store: Document store holding the consultations collection
            directory: User directory for mentor names (defaults to one over the same store)
            user: Signed-in viewer, or None when nobody is signed in
        """
        self.store = store
        self.directory = directory or UserDirectory(store)
        self.user = user

        self.consultations: List[Consultation] = []
        self.consultants: List[Consultant] = []
        self.loading = False
        self.submitting = False
        self.error: Optional[str] = None

        self._generation = 0

    # ==================== Reads ====================

    async def _query_visible(self, user: Viewer) -> List[Document]:
        if user.role == STUDENT_ROLE:
            return await self.store.query(CONSULTATIONS_COLLECTION, {"student_id": user.id})

        if user.is_mentor:
            assigned = await self.store.query(CONSULTATIONS_COLLECTION, {"mentor_id": user.id})
            unassigned = await self.store.query(CONSULTATIONS_COLLECTION, {"mentor_id": None})
            seen = set()
            combined = []
            for doc_id, data in assigned + unassigned:
                if doc_id not in seen:
                    seen.add(doc_id)
                    combined.append((doc_id, data))
            return combined

        # Admins see everything
        return await self.store.query(CONSULTATIONS_COLLECTION)

    async def _with_mentor_names(self, documents: List[Document]) -> List[Consultation]:
        consultations = []
        for doc_id, data in documents:
            try:
                consultations.append(Consultation.from_document(doc_id, data))
            except ValidationError as e:
                # A malformed row is left out; the rest of the list still loads
                logger.warning(f"⚠️ [ConsultationManager] Skipping malformed consultation {doc_id}: {e}")
        names = await asyncio.gather(
            *(self.directory.get_name(consultation.mentor_id) for consultation in consultations)
        )
        for consultation, name in zip(consultations, names):
            consultation.mentor_name = name
        return consultations

    async def list_for_viewer(self, user: Viewer) -> List[Consultation]:
        """
        Return the consultations a viewer may see.

        Students see their own requests, teachers/consultants see their assigned
        consultations plus the unclaimed pool, admins see everything.

        Malformed rows are logged and left out.

        Raises:
            StoreFailure: If the query itself fails (mentor name lookups never fail the list)
        """
        try:
            documents = await self._query_visible(user)
        except Exception as e:
            raise StoreFailure(f"Listing consultations failed: {e}", cause=e)
        return await self._with_mentor_names(documents)

    async def fetch_consultations(self) -> List[Consultation]:
        """
        Refresh `consultations` for the current viewer.

        On failure the error is recorded and the previous list is kept. Results
        from a fetch that has been superseded by a newer one are dropped.
        """
        if self.user is None:
            return self.consultations

        self._generation += 1
        generation = self._generation
        self.loading = True
        self.error = None

        try:
            consultations = await self.list_for_viewer(self.user)
        except Exception as e:
            failure = e if isinstance(e, ServiceError) else StoreFailure(f"Listing consultations failed: {e}", cause=e)
            if generation == self._generation:
                self.error = failure.user_message
            logger.error(f"❌ [ConsultationManager] Error fetching consultations: {e}")
            return self.consultations
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.info(f"ℹ️ [ConsultationManager] Discarding stale fetch #{generation} (latest #{self._generation})")
            return self.consultations

        self.consultations = consultations
        return consultations

    async def fetch_consultants(self) -> List[Consultant]:
        """Load the consultant directory; failures are recorded and the previous list kept."""
        self.loading = True
        try:
            self.consultants = await self.directory.list_consultants()
        except Exception as e:
            logger.error(f"❌ [ConsultationManager] Error fetching consultants: {e}")
            self.error = StoreFailure.default_user_message
        finally:
            self.loading = False
        return self.consultants

    # ==================== Writes ====================

    def _require_user(self) -> Viewer:
        if self.user is None:
            raise AuthenticationRequired("No signed-in user for a consultation write")
        return self.user

    def _surface(self, action: str, error: Exception) -> ServiceError:
        """Record a write failure in `error` and return the typed error to raise."""
        if isinstance(error, ServiceError):
            failure = error
        else:
            failure = StoreFailure(f"{action} failed: {error}", cause=error)
        self.error = failure.user_message
        logger.error(f"❌ [ConsultationManager] Error during {action}: {failure}")
        return failure

    async def _load(self, consultation_id: str) -> Consultation:
        try:
            data = await self.store.get(CONSULTATIONS_COLLECTION, consultation_id)
        except Exception as e:
            raise StoreFailure(f"Loading consultation {consultation_id} failed: {e}", cause=e)
        if data is None:
            raise NotFound(f"Consultation {consultation_id} does not exist")
        try:
            return Consultation.from_document(consultation_id, data)
        except ValidationError as e:
            raise StoreFailure(f"Stored consultation {consultation_id} is malformed: {e}", cause=e)

    async def _write(self, consultation_id: str, update: Dict[str, Any]) -> None:
        try:
            await self.store.update(CONSULTATIONS_COLLECTION, consultation_id, update)
        except Exception as e:
            raise StoreFailure(f"Updating consultation {consultation_id} failed: {e}", cause=e)

    @staticmethod
    def check_patch(current: Consultation, patch: ConsultationPatch) -> None:
        """
        Validate a patch against the state machine and consultation invariants.

        Raises:
            InvalidTransition: If applying the patch would leave a valid state
        """
        target = patch.status or current.status
        if not can_transition(current.status, target):
            raise InvalidTransition(
                f"Cannot move consultation {current.id} from {current.status.value} to {target.value}"
            )

        if current.status in TERMINAL_STATUSES and (patch.scheduled_date or patch.mentor_id):
            raise InvalidTransition(
                f"Consultation {current.id} is {current.status.value} and can no longer be rescheduled or reassigned"
            )

        mentor_id = patch.mentor_id or current.mentor_id
        if target in (ConsultationStatus.SCHEDULED, ConsultationStatus.COMPLETED) and mentor_id is None:
            raise InvalidTransition(
                f"Consultation {current.id} needs a mentor before it can be {target.value}",
                "A consultant must accept this consultation first.",
            )

        if (patch.rating is not None or patch.feedback is not None) and target != ConsultationStatus.COMPLETED:
            raise InvalidTransition(
                f"Consultation {current.id} can only be rated once completed",
                "Only completed consultations can be rated.",
            )

    @staticmethod
    def check_party(user: Viewer, current: Consultation, patch: ConsultationPatch) -> None:
        """
        Only the requesting student, the assigned mentor or an admin may change
        a consultation, and only an admin may assign someone else as mentor.

        Raises:
            PermissionDenied: If the viewer is not allowed to apply the patch
        """
        if user.is_admin:
            return
        if user.id not in (current.student_id, current.mentor_id):
            raise PermissionDenied(f"User {user.id} is not a party to consultation {current.id}")
        if patch.mentor_id is not None and patch.mentor_id != user.id:
            raise PermissionDenied(
                f"User {user.id} cannot assign {patch.mentor_id} to consultation {current.id}",
                "Only an administrator can reassign a consultation.",
            )

    async def create(self, data: Union[ConsultationRequest, Dict[str, Any]]) -> Consultation:
        """
        Create a consultation requested by the current viewer.

        Args:
            data: ConsultationRequest or raw payload (topic, description, type, ...)

        Returns:
            The stored consultation

        Raises:
            AuthenticationRequired: If nobody is signed in
            ValidationError: If the payload is invalid
            StoreFailure: If the store rejects the write
        """
        user = self._require_user()
        self.submitting = True
        try:
            request = data if isinstance(data, ConsultationRequest) else ConsultationRequest.from_dict(data)
            document = request.to_document(user.id, SERVER_TIMESTAMP)
            try:
                consultation_id = await self.store.add(CONSULTATIONS_COLLECTION, document)
            except Exception as e:
                raise StoreFailure(f"Creating consultation failed: {e}", cause=e)
            created = await self._load(consultation_id)
        except Exception as e:
            raise self._surface("create", e)
        finally:
            self.submitting = False

        logger.info(f"✅ [ConsultationManager] Created consultation {created.id} for student {user.id[:20]}")
        await self.fetch_consultations()
        return created

    async def update(self, consultation_id: str,
                     patch: Union[ConsultationPatch, Dict[str, Any]]) -> Consultation:
        """
        Apply a whitelisted partial update and stamp `updated_at`.

        Only status, mentor_id, scheduled date, completed_at, rating and
        feedback are written; other keys in a raw dict are ignored.

        Raises:
            AuthenticationRequired: If nobody is signed in
            NotFound: If the consultation does not exist
            PermissionDenied: If the viewer is not a party to the consultation
            InvalidTransition: If the patch breaks the state machine
            StoreFailure: If the store rejects the write
        """
        user = self._require_user()
        self.submitting = True
        try:
            if not isinstance(patch, ConsultationPatch):
                patch = ConsultationPatch.from_dict(patch)
            current = await self._load(consultation_id)
            self.check_party(user, current, patch)
            self.check_patch(current, patch)

            update = patch.to_update()
            update["updated_at"] = SERVER_TIMESTAMP
            await self._write(consultation_id, update)
            updated = await self._load(consultation_id)
        except Exception as e:
            raise self._surface("update", e)
        finally:
            self.submitting = False

        if patch.status and patch.status != current.status:
            logger.info(
                f"✅ [ConsultationManager] Consultation {consultation_id} "
                f"{current.status.value} -> {patch.status.value}"
            )
        await self.fetch_consultations()
        return updated

    async def accept(self, consultation_id: str,
                     scheduled_date: Optional[Union[datetime, str]] = None) -> Consultation:
        """
        Claim a consultation for the current viewer.

        mentor_id, status and the optional scheduled date are written in one
        update, so no reader can observe a mentor without the scheduled status.
        There is no guard against two consultants accepting concurrently; the
        later write wins.

        Raises:
            AuthenticationRequired: If nobody is signed in
            NotFound: If the consultation does not exist
            InvalidTransition: If the consultation is already completed or cancelled
            StoreFailure: If the store rejects the write
        """
        user = self._require_user()
        self.submitting = True
        try:
            current = await self._load(consultation_id)
            if not can_transition(current.status, ConsultationStatus.SCHEDULED):
                raise InvalidTransition(
                    f"Cannot accept consultation {consultation_id} in status {current.status.value}",
                    "This consultation is no longer open.",
                )

            update: Dict[str, Any] = {
                "mentor_id": user.id,
                "status": ConsultationStatus.SCHEDULED.value,
                "updated_at": SERVER_TIMESTAMP,
            }
            when = parse_datetime(scheduled_date)
            if when is not None:
                update["scheduled_at"] = when
            await self._write(consultation_id, update)
            accepted = await self._load(consultation_id)
        except Exception as e:
            raise self._surface("accept", e)
        finally:
            self.submitting = False

        logger.info(f"✅ [ConsultationManager] Consultation {consultation_id} accepted by {user.id[:20]}")
        await self.fetch_consultations()
        return accepted

    async def cancel(self, consultation_id: str) -> Consultation:
        return await self.update(consultation_id, ConsultationPatch(status=ConsultationStatus.CANCELLED))

    async def complete(
        self,
        consultation_id: str,
        rating: Optional[int] = None,
        feedback: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> Consultation:
        """Mark a scheduled consultation completed, optionally rating it in the same update."""
        return await self.update(consultation_id, {
            "status": ConsultationStatus.COMPLETED.value,
            "completed_at": completed_at or datetime.now(timezone.utc),
            "rating": rating,
            "feedback": feedback,
        })

    async def reschedule(self, consultation_id: str, scheduled_date: Union[datetime, str]) -> Consultation:
        if scheduled_date is None or scheduled_date == "":
            raise self._surface("reschedule", ValidationError(
                f"Missing date for consultation {consultation_id}", "Please enter a valid date."
            ))
        return await self.update(consultation_id, {"scheduled_date": scheduled_date})
