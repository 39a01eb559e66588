from pydantic import BaseModel, Field
from typing import Optional

from internhub.models.user import PHONE_PATTERN

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)

class MemberAdd(BaseModel):
    phone: str = Field(..., pattern=PHONE_PATTERN)
