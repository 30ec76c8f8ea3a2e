# ========================================
# talentbridge/routes/application.py
# ========================================

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import EmailStr
from typing import List, Optional

from talentbridge.database import get_db
from talentbridge.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationCheckResponse,
)
from talentbridge.services import lifecycle
from talentbridge.services.admission import admission_guard, APPLICATION_LIMIT, ADMIN_WRITE_LIMIT
from talentbridge.services.notifications import queue_notifications
from talentbridge.utils.auth import get_optional_user, require_roles
from talentbridge.utils.sanitize import sanitize_fields

router = APIRouter(tags=["Applications"])

# ===========================
# CANDIDATE ENDPOINTS
# ===========================

# ✅ 1. APPLY FOR JOB (Public, rate limited per IP)
@router.post("/applications", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(admission_guard("apply", APPLICATION_LIMIT))])
async def apply_job(
    application: ApplicationCreate,
    background_tasks: BackgroundTasks,
    current_user: Optional[dict] = Depends(get_optional_user),
):
    """Submit an application. One per email per job."""
    db = get_db()
    candidate = sanitize_fields(application.model_dump(exclude={"job_id"}), ("cover_letter",))
    user_id = str(current_user["_id"]) if current_user else None

    transition = await lifecycle.create_application(db, application.job_id, candidate, user_id=user_id)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 2. CHECK IF EMAIL ALREADY APPLIED (Public)
@router.get("/applications/check", response_model=ApplicationCheckResponse)
async def check_if_applied(
    job_id: str = Query(..., description="Job to check"),
    email: EmailStr = Query(..., description="Candidate email"),
):
    db = get_db()
    application = await db.applications.find_one({"job_id": job_id, "candidate_email": email.lower()})

    return {
        "has_applied": application is not None,
        "application_id": str(application["_id"]) if application else None,
        "status": application.get("status") if application else None,
    }


# ✅ 3. GET MY APPLICATIONS (Candidate)
@router.get("/my-applications", response_model=List[ApplicationResponse])
async def get_my_applications(
    status: Optional[str] = Query(None, description="Filter by status"),
    current_user: dict = Depends(require_roles("candidate")),
):
    """Applications sent by the current candidate, by account or by email."""
    db = get_db()

    query = {"$or": [
        {"user_id": str(current_user["_id"])},
        {"candidate_email": current_user["email"].lower()},
    ]}
    wanted = lifecycle.parse_status_filter(status)
    if wanted:
        query["status"] = wanted.value

    applications = await db.applications.find(query).sort("created_at", -1).to_list(100)
    return [lifecycle.application_out(app) for app in applications]


# ===========================
# ADMIN ENDPOINTS
# ===========================

# ✅ 4. INJECT A CANDIDATE (Admin)
@router.post("/admin/applications", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(admission_guard("admin-inject", ADMIN_WRITE_LIMIT))])
async def inject_candidate(
    application: ApplicationCreate,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_roles("admin")),
):
    """Add a candidate from the talent bank directly to a job's pipeline."""
    db = get_db()
    candidate = sanitize_fields(application.model_dump(exclude={"job_id"}), ("cover_letter",))

    transition = await lifecycle.create_application(db, application.job_id, candidate, injected=True)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 5. VIEW ALL APPLICATIONS (Admin)
@router.get("/admin/applications", response_model=List[ApplicationResponse])
async def get_all_applications(
    job_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    current_user: dict = Depends(require_roles("admin")),
):
    wanted = lifecycle.parse_status_filter(status)
    db = get_db()
    query = {}
    if job_id:
        query["job_id"] = job_id
    if wanted:
        query["status"] = wanted.value

    applications = await db.applications.find(query).sort("created_at", -1).to_list(500)
    return [lifecycle.application_out(app) for app in applications]
