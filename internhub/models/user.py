from enum import Enum
from pydantic import BaseModel, Field, HttpUrl
from typing import Optional


class InternshipTrack(str, Enum):
    VLSI = "vlsi"
    AI_ML = "ai-ml"
    MERN = "mern"
    JAVA = "java"

class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

# Locked once the student profile is approved
ACADEMIC_FIELDS = ("usn", "college_name", "branch", "internship_role", "skill_level", "batch_id")

PHONE_PATTERN = r"^[0-9]{10}$"

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    bio: Optional[str] = Field(None, max_length=500)
    linkedin_url: Optional[HttpUrl] = None

class StudentProfileUpdate(BaseModel):
    usn: Optional[str] = Field(None, min_length=3, max_length=20)
    college_name: Optional[str] = Field(None, min_length=3, max_length=100)
    branch: Optional[str] = None
    internship_role: Optional[InternshipTrack] = None
    skill_level: Optional[SkillLevel] = None
    batch_id: Optional[str] = None

class ProfileSaveRequest(BaseModel):
    profile: ProfileUpdate = Field(default_factory=ProfileUpdate)
    student_profile: Optional[StudentProfileUpdate] = None

class ApprovalDecision(BaseModel):
    approve: bool
