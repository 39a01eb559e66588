from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from internhub.core.config import settings
from internhub.core.errors import StoreError, TransientIOFailure
from internhub.models.auth import ApprovalStatus, CurrentUser, Role
from internhub.services.store import get_store
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Validates a token issued by the external auth provider."""
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError:
        logger.warning("Invalid or expired JWT token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def resolve_user(store, user_id: str) -> CurrentUser:
    """Looks up role and, for students, approval status."""
    try:
        roles = store.fetch("user_roles", {"user_id": user_id}, fields=["role"], limit=1)
        if not roles:
            logger.warning(f"No role assigned for user {user_id}")
            raise HTTPException(status_code=403, detail="Access denied")

        try:
            role = Role(roles[0]["role"])
        except ValueError:
            logger.warning(f"Unknown role {roles[0]['role']!r} for user {user_id}")
            raise HTTPException(status_code=403, detail="Access denied")

        approval_status = None
        if role == Role.STUDENT:
            profiles = store.fetch("student_profiles", {"user_id": user_id}, fields=["status"], limit=1)
            if profiles and profiles[0].get("status"):
                approval_status = ApprovalStatus(profiles[0]["status"])
            else:
                approval_status = ApprovalStatus.PENDING
    except StoreError as e:
        raise TransientIOFailure("Failed to load session. Please try again.") from e

    return CurrentUser(user_id=user_id, role=role, approval_status=approval_status)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    store=Depends(get_store),
) -> CurrentUser:
    """
    Dependency to extract and validate the current user from the bearer token.
    Returns the explicit session context handed to every service call.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    return resolve_user(store, user_id)


def require_role(current_user: CurrentUser, *roles: Role):
    if current_user.role not in roles:
        raise HTTPException(status_code=403, detail="Access denied")


def require_approved_student(current_user: CurrentUser):
    """Students get full portal features only after admin approval."""
    if current_user.role == Role.STUDENT and not current_user.is_approved_student:
        raise HTTPException(status_code=403, detail="Access denied")
