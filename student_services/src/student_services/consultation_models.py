"""
Consultation Data Model

Dataclasses and enums for consultations, their typed create/patch payloads and
the read-only consultant directory entry. Documents in the `consultations`
collection use snake_case field names (`scheduled_at`, `preferred_date`,
`completed_at`, `created_at`, `updated_at`).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from student_services.errors import ValidationError


class ConsultationStatus(str, Enum):
    """Consultation lifecycle states."""
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConsultationType(str, Enum):
    TECHNICAL = "technical"
    ACADEMIC = "academic"
    CAREER = "career"
    PROJECT = "project"


class ConsultationMethod(str, Enum):
    VIDEO = "video"
    PHONE = "phone"
    CHAT = "chat"
    SCREEN_SHARE = "screen_share"


ALLOWED_DURATIONS = (30, 60, 90, 120)
DEFAULT_DURATION = 60

# completed and cancelled are terminal
ALLOWED_TRANSITIONS = {
    ConsultationStatus.PENDING: {ConsultationStatus.SCHEDULED, ConsultationStatus.CANCELLED},
    ConsultationStatus.SCHEDULED: {ConsultationStatus.COMPLETED, ConsultationStatus.CANCELLED},
    ConsultationStatus.COMPLETED: set(),
    ConsultationStatus.CANCELLED: set(),
}


def can_transition(current: ConsultationStatus, target: ConsultationStatus) -> bool:
    """Check whether the state machine allows moving from current to target."""
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, set())


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Accept datetimes or ISO-8601 strings (Supabase returns strings).

    Naive values are taken as UTC so every stored date compares cleanly.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}", "Please enter a valid date.")
    if not isinstance(value, datetime):
        raise ValidationError(f"Invalid date: {value!r}", "Please enter a valid date.")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_enum(enum_cls, value: Any, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {label} {value!r}; expected one of: {allowed}",
            f"Please choose a valid consultation {label}.",
        )


def _parse_rating(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ValidationError(f"Rating must be an integer, got {value!r}", "Please choose a rating.")
    rating = int(value)
    if not 1 <= rating <= 5:
        raise ValidationError(f"Rating must be between 1 and 5, got {rating}", "Please choose a rating.")
    return rating


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    """Return the first present key, so camelCase and snake_case payloads both work."""
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass
class Consultation:
    """A consultation request between a student and a mentor."""
    id: str
    student_id: str
    topic: str
    description: str
    type: str
    status: ConsultationStatus = ConsultationStatus.PENDING
    method: str = ConsultationMethod.VIDEO.value
    duration: int = DEFAULT_DURATION
    mentor_id: Optional[str] = None
    mentor_name: Optional[str] = None
    project_id: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    preferred_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @property
    def is_unassigned(self) -> bool:
        return self.status == ConsultationStatus.PENDING and self.mentor_id is None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Consultation":
        """Map a stored document onto a Consultation, filling the usual defaults."""
        return cls(
            id=doc_id,
            student_id=data.get("student_id"),
            topic=data.get("topic") or "",
            description=data.get("description") or "",
            type=data.get("type") or "",
            status=_parse_enum(ConsultationStatus, data.get("status") or ConsultationStatus.PENDING.value, "status"),
            method=data.get("method") or ConsultationMethod.VIDEO.value,
            duration=data.get("duration") or DEFAULT_DURATION,
            mentor_id=data.get("mentor_id") or None,
            project_id=data.get("project_id") or None,
            scheduled_date=parse_datetime(data.get("scheduled_at")),
            preferred_date=parse_datetime(data.get("preferred_date")),
            completed_at=parse_datetime(data.get("completed_at")),
            rating=data.get("rating"),
            feedback=data.get("feedback"),
            created_at=parse_datetime(data.get("created_at")) or datetime.now(timezone.utc),
            updated_at=parse_datetime(data.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation used by the API layer."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "mentor_id": self.mentor_id,
            "mentor_name": self.mentor_name,
            "project_id": self.project_id,
            "topic": self.topic,
            "description": self.description,
            "type": self.type,
            "status": self.status.value,
            "method": self.method,
            "duration": self.duration,
            "scheduledDate": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "preferredDate": self.preferred_date.isoformat() if self.preferred_date else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "rating": self.rating,
            "feedback": self.feedback,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class ConsultationRequest:
    """Validated payload for creating a consultation."""
    topic: str
    description: str
    type: ConsultationType
    method: ConsultationMethod = ConsultationMethod.VIDEO
    duration: int = DEFAULT_DURATION
    status: ConsultationStatus = ConsultationStatus.PENDING
    mentor_id: Optional[str] = None
    project_id: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    preferred_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsultationRequest":
        """
        Validate a raw create payload.

        Raises:
            ValidationError: On missing text fields, unknown enums, bad duration
                or a scheduled request without a mentor
        """
        topic = (data.get("topic") or "").strip()
        description = (data.get("description") or "").strip()
        if not topic or not description:
            raise ValidationError(
                "topic and description are required",
                "Please enter a topic and a description.",
            )

        duration = data.get("duration") or DEFAULT_DURATION
        if duration not in ALLOWED_DURATIONS:
            raise ValidationError(
                f"duration must be one of {ALLOWED_DURATIONS}, got {duration!r}",
                "Please choose a valid session length.",
            )

        status = _parse_enum(ConsultationStatus, data.get("status") or "pending", "status")
        mentor_id = data.get("mentor_id") or None
        if status not in (ConsultationStatus.PENDING, ConsultationStatus.SCHEDULED):
            raise ValidationError(
                f"new consultations cannot start as {status.value}",
                "A new consultation must be pending or scheduled.",
            )
        if status == ConsultationStatus.SCHEDULED and mentor_id is None:
            raise ValidationError(
                "a scheduled consultation needs a mentor",
                "Please choose a consultant to book.",
            )

        return cls(
            topic=topic,
            description=description,
            type=_parse_enum(ConsultationType, data.get("type"), "type"),
            method=_parse_enum(ConsultationMethod, data.get("method") or "video", "method"),
            duration=duration,
            status=status,
            mentor_id=mentor_id,
            project_id=data.get("project_id") or None,
            scheduled_date=parse_datetime(_pick(data, "scheduledDate", "scheduled_date")),
            preferred_date=parse_datetime(_pick(data, "preferredDate", "preferred_date")),
        )

    def to_document(self, student_id: str, created_at: Any) -> Dict[str, Any]:
        return {
            "student_id": student_id,
            "mentor_id": self.mentor_id,
            "project_id": self.project_id,
            "topic": self.topic,
            "description": self.description,
            "type": self.type.value,
            "status": self.status.value,
            "method": self.method.value,
            "duration": self.duration,
            "scheduled_at": self.scheduled_date,
            "preferred_date": self.preferred_date,
            "created_at": created_at,
        }


@dataclass
class ConsultationPatch:
    """
    Partial update limited to the updatable fields.

    A field left as None is not touched. Anything outside the whitelist is
    dropped by from_dict().
    """
    status: Optional[ConsultationStatus] = None
    mentor_id: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsultationPatch":
        status = data.get("status")
        rating = data.get("rating")
        return cls(
            status=_parse_enum(ConsultationStatus, status, "status") if status else None,
            mentor_id=data.get("mentor_id") or None,
            scheduled_date=parse_datetime(_pick(data, "scheduledDate", "scheduled_date")),
            completed_at=parse_datetime(_pick(data, "completedAt", "completed_at")),
            rating=_parse_rating(rating) if rating is not None else None,
            feedback=data.get("feedback") or None,
        )

    def __post_init__(self):
        if self.status is not None and not isinstance(self.status, ConsultationStatus):
            self.status = _parse_enum(ConsultationStatus, self.status, "status")
        if self.rating is not None:
            self.rating = _parse_rating(self.rating)

    def to_update(self) -> Dict[str, Any]:
        """Translate to stored field names (without the updated_at stamp)."""
        update: Dict[str, Any] = {}
        if self.status is not None:
            update["status"] = self.status.value
        if self.mentor_id is not None:
            update["mentor_id"] = self.mentor_id
        if self.scheduled_date is not None:
            update["scheduled_at"] = self.scheduled_date
        if self.completed_at is not None:
            update["completed_at"] = self.completed_at
        if self.rating is not None:
            update["rating"] = self.rating
        if self.feedback is not None:
            update["feedback"] = self.feedback
        return update


@dataclass
class Consultant:
    """Read-only consultant directory entry."""
    id: str
    name: str
    title: str
    specialties: List[str] = field(default_factory=list)
    rating: float = 5.0
    reviews: int = 0
    experience: str = "5+ years"
    hourly_rate: float = 150.0
    availability: str = "Available"
    languages: List[str] = field(default_factory=lambda: ["Arabic"])
    location: str = "Riyadh, Saudi Arabia"
    avatar: Optional[str] = None

    @classmethod
    def from_user_document(cls, doc_id: str, data: Dict[str, Any],
                           default_hourly_rate: float = 150.0) -> "Consultant":
        years = data.get("experience_years")
        return cls(
            id=doc_id,
            name=data.get("name") or "Consultant",
            title=data.get("subject") or "Consultant",
            specialties=list(data.get("specializations") or []),
            rating=data.get("rating") or 5.0,
            reviews=data.get("reviews_count") or 0,
            experience=f"{years} years" if years else "5+ years",
            hourly_rate=data.get("hourly_rate") or default_hourly_rate,
            languages=list(data.get("languages") or ["Arabic"]),
            location=data.get("location") or "Riyadh, Saudi Arabia",
            avatar=data.get("avatar_url"),
        )
