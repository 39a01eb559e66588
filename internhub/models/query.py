from enum import Enum
from pydantic import BaseModel, Field

class QueryCategory(str, Enum):
    COURSE = "course"
    FACULTY = "faculty"
    SCHEDULE = "schedule"
    WORK = "work"
    OTHER = "other"

class AdminQueryCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    category: QueryCategory = QueryCategory.OTHER
    description: str = Field(..., min_length=20, max_length=1000)

class QueryResolution(BaseModel):
    resolved: bool
