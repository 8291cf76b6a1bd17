"""
Authenticated viewer context shared by the consultation manager and checkout.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any


STUDENT_ROLE = "student"
MENTOR_ROLES = ("teacher", "consultant")
ADMIN_ROLE = "admin"


@dataclass
class Viewer:
    """The signed-in user as seen by the core services."""
    id: str
    role: str = STUDENT_ROLE
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_mentor(self) -> bool:
        return self.role in MENTOR_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_auth(cls, user: Dict[str, Any]) -> "Viewer":
        """Build from the dict returned by the backend auth dependency."""
        return cls(
            id=user["id"],
            role=user.get("role") or STUDENT_ROLE,
            name=user.get("full_name") or user.get("name"),
            email=user.get("email"),
            phone=user.get("phone"),
        )
