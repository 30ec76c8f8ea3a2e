# ========================================
# talentbridge/routes/company.py
# ========================================

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from bson import ObjectId
from datetime import datetime
from typing import Optional

from talentbridge.database import get_db
from talentbridge.schemas.application import ApplicationResponse, CompanyDecision
from talentbridge.services import lifecycle
from talentbridge.services.admission import admission_guard, TRANSITION_LIMIT
from talentbridge.services.notifications import queue_notifications
from talentbridge.utils.auth import require_roles
from talentbridge.utils.logger import get_logger
from talentbridge.utils.sanitize import sanitize_text

logger = get_logger(__name__)

router = APIRouter(prefix="/company", tags=["Company"])


# ✅ 1. CANDIDATES SENT TO MY JOBS
@router.get("/applications")
async def get_company_applications(
    job_id: Optional[str] = Query(None, description="Only this job"),
    current_user: dict = Depends(require_roles("company")),
):
    """Candidates a specialist forwarded to one of the company's jobs."""
    applications = await lifecycle.company_applications(get_db(), str(current_user["_id"]), job_id)
    return {
        "success": True,
        "data": [lifecycle.application_out(a) for a in applications],
        "total": len(applications),
    }


# ✅ 2. COMPANY DECISION
@router.patch("/applications/{application_id}", response_model=ApplicationResponse,
              dependencies=[Depends(admission_guard("company-decision", TRANSITION_LIMIT))])
async def decide_on_candidate(
    application_id: str,
    body: CompanyDecision,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_roles("company")),
):
    """Mark a candidate interviewed, accepted or rejected. Accepting may close the job."""
    db = get_db()
    notes = sanitize_text(body.notes, multiline=True) if body.notes else None
    transition = await lifecycle.change_application_status(db, application_id, current_user, body.status, notes)
    queue_notifications(background_tasks, db, transition.events)

    if body.close_job and body.status == "accepted":
        job_id = transition.entity["job_id"]
        result = await db.jobs.update_one(
            {"_id": ObjectId(job_id), "owner_id": str(current_user["_id"]), "status": {"$ne": "closed"}},
            {"$set": {"status": "closed", "closed_at": datetime.utcnow(), "updated_at": datetime.utcnow()}},
        )
        if result.modified_count:
            logger.info("Job %s closed after hiring %s", job_id, application_id)

    return lifecycle.application_out(transition.entity)
