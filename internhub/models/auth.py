from enum import Enum
from pydantic import BaseModel
from typing import Optional

class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"

class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class CurrentUser(BaseModel):
    """Session context resolved from the bearer token, passed explicitly to services."""
    user_id: str
    role: Role
    approval_status: Optional[ApprovalStatus] = None  # students only

    @property
    def is_approved_student(self) -> bool:
        return self.role == Role.STUDENT and self.approval_status == ApprovalStatus.APPROVED
