from enum import Enum
from pydantic import BaseModel, Field
from datetime import date

class LeaveType(str, Enum):
    SICK = "sick"
    CASUAL = "casual"

class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class LeaveRequestCreate(BaseModel):
    leave_date: date
    leave_type: LeaveType = LeaveType.CASUAL
    reason: str = Field(..., min_length=10, max_length=500)

class LeaveDecision(BaseModel):
    approve: bool
