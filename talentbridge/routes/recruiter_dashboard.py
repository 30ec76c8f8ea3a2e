# ========================================
# talentbridge/routes/recruiter_dashboard.py
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
from talentbridge.schemas.assignment import AssignmentNotes, AssignmentResponse
from talentbridge.services import lifecycle
from talentbridge.services.admission import admission_guard, TRANSITION_LIMIT
from talentbridge.services.notifications import queue_notifications
from talentbridge.utils.auth import require_roles
from talentbridge.utils.sanitize import sanitize_text

router = APIRouter(prefix="/recruiter", tags=["Recruiter Dashboard"])

recruiter_only = require_roles("recruiter", "admin")
transition_guard = Depends(admission_guard("recruiter-transition", TRANSITION_LIMIT))


def _recruiter_filter(current_user: dict) -> Optional[str]:
    # Admins see every assignment
    if current_user["role"] == "admin":
        return None
    return str(current_user["_id"])


# ✅ 1. DASHBOARD: assigned jobs with their candidates
@router.get("/dashboard")
async def get_recruiter_dashboard(
    status: Optional[str] = Query(None, description="Filter candidates by application status"),
    current_user: dict = Depends(recruiter_only),
):
    """Jobs assigned to the current recruiter, each with its full candidate list."""
    db = get_db()
    assignments = await lifecycle.recruiter_assignments(db, _recruiter_filter(current_user))

    wanted = lifecycle.parse_status_filter(status)
    statuses = {wanted} if wanted else None

    data = []
    totals = {"assigned_jobs": len(assignments), "candidates": 0, "pending": 0, "sent_to_specialist": 0}
    for assignment in assignments:
        job = await db.jobs.find_one({"_id": ObjectId(assignment["job_id"])})
        applications = await lifecycle.applications_for_job(db, assignment["job_id"], statuses)

        totals["candidates"] += len(applications)
        totals["pending"] += sum(1 for a in applications if a["status"] in ("pending", "injected_by_admin"))
        totals["sent_to_specialist"] += sum(1 for a in applications if a["status"] == "sent_to_specialist")

        item = lifecycle.assignment_out(assignment)
        item["job_title"] = job.get("title") if job else None
        item["applications"] = [lifecycle.application_out(a) for a in applications]
        data.append(item)

    return {"success": True, "stats": totals, "data": data}


# ✅ 2. CHANGE APPLICATION STATUS
@router.put("/applications/{application_id}/status", response_model=ApplicationResponse,
            dependencies=[transition_guard])
async def update_application_status(
    application_id: str,
    body: ApplicationStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(recruiter_only),
):
    db = get_db()
    notes = sanitize_text(body.notes, multiline=True) if body.notes else None
    transition = await lifecycle.change_application_status(db, application_id, current_user, body.status, notes)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 3. FORWARD TO SPECIALIST
@router.post("/applications/{application_id}/forward", response_model=ApplicationResponse,
             dependencies=[transition_guard])
async def forward_to_specialist(
    application_id: str,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(recruiter_only),
):
    db = get_db()
    transition = await lifecycle.forward_application(
        db, application_id, current_user, ApplicationStatus.SENT_TO_SPECIALIST.value
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
    current_user: dict = Depends(recruiter_only),
):
    db = get_db()
    reason = sanitize_text(body.reason, multiline=True) if body.reason else None
    transition = await lifecycle.discard_application(db, application_id, current_user, reason)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.application_out(transition.entity)


# ✅ 5. RELEASE JOB TO SPECIALIST
@router.post("/assignments/{assignment_id}/release", response_model=AssignmentResponse,
             dependencies=[transition_guard])
async def release_assignment(
    assignment_id: str,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(recruiter_only),
):
    db = get_db()
    transition = await lifecycle.release_to_specialist(db, assignment_id, current_user)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.assignment_out(transition.entity)


# ✅ 6. RECALL JOB FROM SPECIALIST
@router.post("/assignments/{assignment_id}/recall", response_model=AssignmentResponse,
             dependencies=[transition_guard])
async def recall_assignment(
    assignment_id: str,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(recruiter_only),
):
    db = get_db()
    transition = await lifecycle.recall_from_specialist(db, assignment_id, current_user)
    queue_notifications(background_tasks, db, transition.events)
    return lifecycle.assignment_out(transition.entity)


# ✅ 7. RECRUITER NOTES
@router.put("/assignments/{assignment_id}/notes", response_model=AssignmentResponse,
            dependencies=[transition_guard])
async def save_notes(
    assignment_id: str,
    body: AssignmentNotes,
    current_user: dict = Depends(recruiter_only),
):
    updated = await lifecycle.save_assignment_notes(
        get_db(), assignment_id, current_user, sanitize_text(body.notes, multiline=True)
    )
    return lifecycle.assignment_out(updated)
