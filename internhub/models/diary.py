from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

class DiaryEntryCreate(BaseModel):
    entry_date: date
    title: Optional[str] = Field(None, max_length=200)
    work_description: str = Field(..., min_length=10, max_length=2000)
    work_summary: Optional[str] = None
    hours_worked: float = Field(..., ge=0, le=24)
    reference_links: Optional[str] = None   # free text, one link per line
    learning_outcome: Optional[str] = None
    skills_gained: Optional[str] = None

class DiaryEntryUpdate(BaseModel):
    entry_date: Optional[date] = None
    title: Optional[str] = Field(None, max_length=200)
    work_description: Optional[str] = Field(None, min_length=10, max_length=2000)
    work_summary: Optional[str] = None
    hours_worked: Optional[float] = Field(None, ge=0, le=24)
    reference_links: Optional[str] = None
    learning_outcome: Optional[str] = None
    skills_gained: Optional[str] = None
