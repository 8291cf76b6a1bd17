"""
Authentication utilities for bearer-token validation
"""
import os
from typing import Optional
from fastapi import HTTPException, Header
from jose import JWTError, jwt
from dotenv import load_dotenv
from student_services.errors import AuthenticationRequired, PermissionDenied
from student_services.viewer import ADMIN_ROLE, MENTOR_ROLES

from .supabase_client import get_supabase_client, get_document_store
from .logger import get_logger

load_dotenv()
load_dotenv('../.env')

logger = get_logger("backend.auth")

# With the project JWT secret set, tokens are verified locally; otherwise via the Supabase auth API
JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

def _token_from_header(authorization: str) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    return authorization.replace("Bearer ", "", 1)


def _identity_from_token(token: str) -> dict:
    """Resolve {id, email} from an access token."""
    if JWT_SECRET:
        try:
            payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
        except JWTError as e:
            logger.warning("Rejected access token", data={"error": str(e)})
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return {"id": payload["sub"], "email": payload.get("email")}

    user_response = get_supabase_client().auth.get_user(token)
    if not user_response or not user_response.user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return {"id": user_response.user.id, "email": user_response.user.email}


async def get_current_user(authorization: Optional[str] = Header(None)):
    """
    Validate the bearer token and return the signed-in user

    Args:
        authorization: Bearer token from Authorization header

    Returns:
        dict: id, email, role, full_name, phone

    Raises:
        HTTPException: If the token is missing or invalid, or the user has no profile
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    token = _token_from_header(authorization)

    try:
        identity = _identity_from_token(token)

        # Role and contact details live in the users collection
        profile = await get_document_store().get("users", identity["id"])
        if not profile:
            raise HTTPException(status_code=404, detail="User profile not found")

        return {
            "id": identity["id"],
            "email": identity.get("email") or profile.get("email"),
            "role": profile.get("role", "student"),
            "full_name": profile.get("name"),
            "phone": profile.get("phone"),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Auth error", error=e)
        raise HTTPException(status_code=401, detail="Could not validate credentials")


async def get_optional_user(authorization: Optional[str] = Header(None)):
    """
    Like get_current_user, but returns None when no Authorization header is sent

    Lets consultation routes hand an anonymous caller to the service layer,
    which decides whether the operation needs a signed-in user.
    """
    if not authorization:
        return None
    return await get_current_user(authorization)


def require_mentor(user: Optional[dict]):
    """
    Check that the user is a teacher, consultant or admin

    Raises:
        AuthenticationRequired: If there is no signed-in user
        PermissionDenied: If the user has another role
    """
    if not user:
        raise AuthenticationRequired("Consultant route called without a signed-in user")
    if user.get("role") not in MENTOR_ROLES + (ADMIN_ROLE,):
        raise PermissionDenied(
            f"Role {user.get('role')!r} cannot use consultant routes",
            "Consultant access required.",
        )
