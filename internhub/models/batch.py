from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

class BatchStatus(str, Enum):
    YET_TO_START = "yet_to_start"
    ONGOING = "ongoing"
    COMPLETED = "completed"

class BatchCreate(BaseModel):
    name: str
    description: Optional[str] = None
    course_code: str = "01"
    start_date: date
    end_date: date                          # not checked against start_date
    batch_strength: Optional[int] = Field(None, ge=0)
    batch_timings: Optional[str] = None     # "Mon-Fri 10AM-1PM"
    assigned_faculty_id: Optional[str] = None

class BatchUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    course_code: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    batch_strength: Optional[int] = Field(None, ge=0)
    batch_timings: Optional[str] = None
    assigned_faculty_id: Optional[str] = None
