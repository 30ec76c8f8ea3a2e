# ========================================
# talentbridge/schemas/job.py
# ========================================

from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime

# 1. Input: What the company sends
class JobCreate(BaseModel):
    title: str
    company: str
    location: str
    salary: str
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    job_type: str  # full-time, part-time, internship
    work_mode: str = "presential"  # remote, hybrid, presential
    description: str
    requirements: Optional[str] = None
    profile: Optional[str] = None
    seniority: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_confidential: bool = False
    publish_now: bool = False

# 2. Input: Update existing job (owner_id / credit_cost are never accepted)
class JobUpdate(BaseModel):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    job_type: Optional[str] = None
    work_mode: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    profile: Optional[str] = None
    seniority: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_confidential: Optional[bool] = None
    status: Optional[Literal["active", "paused", "closed"]] = None

# 3. Output
class JobResponse(BaseModel):
    id: str
    title: str
    company: str
    location: str
    salary: str
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    job_type: str
    work_mode: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    profile: Optional[str] = None
    seniority: Optional[str] = None
    owner_id: Optional[str] = None
    status: str = "draft"  # draft, active, paused, closed
    credit_cost: int = 0
    is_confidential: bool = False
    editable_until: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

# 4. Output: Detailed Response with Extra Info
class JobDetailResponse(JobResponse):
    application_count: Optional[int] = 0
    view_count: int = 0

# 5. Output: Edit result with credit adjustment
class CreditChange(BaseModel):
    original: int
    new: int
    difference: int

class JobUpdateResponse(BaseModel):
    message: str
    job: JobResponse
    credit_change: Optional[CreditChange] = None
