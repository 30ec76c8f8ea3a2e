# ========================================
# talentbridge/routes/admin_assignments.py
# ========================================

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from typing import Optional

from talentbridge.database import get_db
from talentbridge.schemas.assignment import AssignmentCreate
from talentbridge.services import lifecycle
from talentbridge.services.admission import admission_guard, ADMIN_WRITE_LIMIT
from talentbridge.services.notifications import queue_notifications
from talentbridge.utils.auth import require_roles

router = APIRouter(prefix="/admin", tags=["Admin - Assignments"])


# ✅ 1. LIST ASSIGNMENTS
@router.get("/assignments")
async def list_assignments(
    recruiter_id: Optional[str] = Query(None),
    specialist_id: Optional[str] = Query(None),
    current_user: dict = Depends(require_roles("admin")),
):
    db = get_db()
    query = {}
    if recruiter_id:
        query["recruiter_id"] = recruiter_id
    if specialist_id:
        query["specialist_id"] = specialist_id

    assignments = await db.job_assignments.find(query).sort("updated_at", -1).to_list(500)
    return {
        "success": True,
        "data": [lifecycle.assignment_out(a) for a in assignments],
        "total": len(assignments),
    }


# ✅ 2. ASSIGN RECRUITER / SPECIALIST TO A JOB (upsert)
@router.post("/assignments", dependencies=[Depends(admission_guard("admin-assign", ADMIN_WRITE_LIMIT))])
async def assign_job(
    body: AssignmentCreate,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_roles("admin")),
):
    """Create or replace the assignment of a job.

    A specialty mismatch is reported as a warning, never as an error.
    """
    db = get_db()
    transition = await lifecycle.assign_job(db, body.job_id, body.recruiter_id, body.specialist_id)
    queue_notifications(background_tasks, db, transition.events)

    response = {
        "success": True,
        "message": "Assignment saved",
        "data": lifecycle.assignment_out(transition.entity),
    }
    if transition.warning:
        response["warning"] = transition.warning
    return response
