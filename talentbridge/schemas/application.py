# ========================================
# talentbridge/schemas/application.py
# ========================================

from pydantic import BaseModel, EmailStr
from typing import Optional, List, Literal
from datetime import datetime

# 1. Input: Public application form
class ApplicationCreate(BaseModel):
    job_id: str
    candidate_name: str
    candidate_email: EmailStr
    candidate_phone: Optional[str] = None
    cv_url: Optional[str] = None
    cover_letter: Optional[str] = None

# 2. Input: Status change by recruiter / specialist / company
class ApplicationStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None

# 3. Input: Discard with an optional reason kept in the assignment notes
class ApplicationDiscard(BaseModel):
    reason: Optional[str] = None

# 4. Status History Entry
class StatusHistoryEntry(BaseModel):
    status: str
    changed_at: datetime
    changed_by: Optional[str] = None
    changed_by_role: Optional[str] = None

# 5. Output
class ApplicationResponse(BaseModel):
    id: str
    job_id: str
    user_id: Optional[str] = None
    candidate_name: str
    candidate_email: str
    candidate_phone: Optional[str] = None
    cv_url: Optional[str] = None
    cover_letter: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    status_history: List[StatusHistoryEntry] = []

# 6. Output: Duplicate check
class ApplicationCheckResponse(BaseModel):
    has_applied: bool
    application_id: Optional[str] = None
    status: Optional[str] = None

# 7. Company decision
class CompanyDecision(BaseModel):
    status: Literal["interviewed", "accepted", "rejected"]
    notes: Optional[str] = None
    close_job: bool = False
