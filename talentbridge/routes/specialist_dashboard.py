# ========================================
# talentbridge/routes/specialist_dashboard.py
# ========================================

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from bson import ObjectId
from typing import Optional

from talentbridge.database import get_db
from talentbridge.models.lifecycle import ApplicationStatus
from talentbridge.schemas.application import (
    ApplicationDiscard,
    ApplicationResponse,
    ApplicationStatusUpdate,
)
from talentbridge.schemas.assignment import AssignmentNotes, AssignmentResponse, SpecialistStatusUpdate
from talentbridge.services import lifecycle
from talentbridge.services.admission import admission_guard, TRANSITION_LIMIT
from talentbridge.services.notifications import queue_notifications
from talentbridge.utils.auth import require_roles
from talentbridge.utils.sanitize import sanitize_text

router = APIRouter(prefix="/specialist", tags=["Specialist Dashboard"])

specialist_only = require_roles("specialist", "admin")
transition_guard = Depends(admission_guard("specialist-transition", TRANSITION_LIMIT))


# ✅ 1. DASHBOARD: only jobs the recruiter released
@router.get("/dashboard")
async def get_specialist_dashboard(
    status: Optional[str] = Query(None, description="Filter by specialist status: pending, in_progress, completed"),
    current_user: dict = Depends(specialist_only),
):
    db = get_db()
    specialist_id = None if current_user["role"] == "admin" else str(current_user["_id"])
    assignments = await lifecycle.specialist_assignments(db, specialist_id, status)

    data = []
    for assignment in assignments:
        job = await db.jobs.find_one({"_id": ObjectId(assignment["job_id"])})
        applications = await lifecycle.specialist_applications(db, assignment["job_id"])

        item = lifecycle.assignment_out(assignment)
        item["job_title"] = job.get("title") if job else None
        item["applications"] = [lifecycle.application_out(a) for a in applications]
        data.append(item)

    stats = {
        "assigned_jobs": len(data),
        "pending": sum(1 for a in data if a["specialist_status"] == "pending"),
        "in_progress": sum(1 for a in data if a["specialist_status"] == "in_progress"),
        "completed": sum(1 for a in data if a["specialist_status"] == "completed"),
    }
    return {"success": True, "stats": stats, "data": data}


# ✅ 2. EVALUATE CANDIDATE
@router.put("/applications/{application_id}/status", response_model=ApplicationResponse,
            dependencies=[transition_guard])
async def update_application_status(
    application_id: str,
    body: ApplicationStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(specialist_only),
):
    db = get_db()
    notes = sanitize_text(body.notes, multiline=True) if body.notes else None
    transition = await lifecycle.change_application_status(db, application_id, current_user, body.status, notes)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 3. FORWARD TO COMPANY
@router.post("/applications/{application_id}/forward", response_model=ApplicationResponse,
             dependencies=[transition_guard])
async def forward_to_company(
    application_id: str,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(specialist_only),
):
    db = get_db()
    transition = await lifecycle.forward_application(
        db, application_id, current_user, ApplicationStatus.SENT_TO_COMPANY.value
    )
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 4. DISCARD CANDIDATE
@router.post("/applications/{application_id}/discard", response_model=ApplicationResponse,
             dependencies=[transition_guard])
async def discard_candidate(
    application_id: str,
    body: ApplicationDiscard,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(specialist_only),
):
    db = get_db()
    reason = sanitize_text(body.reason, multiline=True) if body.reason else None
    transition = await lifecycle.discard_application(db, application_id, current_user, reason)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 5. SPECIALIST PROGRESS ON A JOB
@router.put("/assignments/{assignment_id}/status", response_model=AssignmentResponse,
            dependencies=[transition_guard])
async def update_assignment_status(
    assignment_id: str,
    body: SpecialistStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(specialist_only),
):
    db = get_db()
    transition = await lifecycle.set_specialist_status(db, assignment_id, current_user, body.status)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.assignment_out(transition.entity)


# ✅ 6. SPECIALIST NOTES
@router.put("/assignments/{assignment_id}/notes", response_model=AssignmentResponse,
            dependencies=[transition_guard])
async def save_notes(
    assignment_id: str,
    body: AssignmentNotes,
    current_user: dict = Depends(require_roles("specialist")),
):
    updated = await lifecycle.save_assignment_notes(
        get_db(), assignment_id, current_user, sanitize_text(body.notes, multiline=True)
    )
    return lifecycle.assignment_out(updated)
