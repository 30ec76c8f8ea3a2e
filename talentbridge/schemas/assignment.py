from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime


class AssignmentCreate(BaseModel):
    """Admin upsert of the recruiter/specialist pair for a job"""
    job_id: str
    recruiter_id: Optional[str] = None
    specialist_id: Optional[str] = None


class SpecialistStatusUpdate(BaseModel):
    status: Literal["in_progress", "completed"]


class AssignmentNotes(BaseModel):
    notes: str


class AssignmentResponse(BaseModel):
    id: str
    job_id: str
    recruiter_id: Optional[str] = None
    specialist_id: Optional[str] = None
    state: str
    recruiter_status: str
    specialist_status: str
    recruiter_notes: Optional[str] = None
    specialist_notes: Optional[str] = None
    follow_up_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

