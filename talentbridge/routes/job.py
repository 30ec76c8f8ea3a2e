# ========================================
# talentbridge/routes/job.py
# ========================================

from fastapi import APIRouter, Depends, Query, status
from bson import ObjectId
from datetime import datetime
from typing import List, Optional

from talentbridge.database import get_db
from talentbridge.schemas.job import (
    JobCreate,
    JobUpdate,
    JobResponse,
    JobDetailResponse,
    JobUpdateResponse,
)
from talentbridge.services import jobs as job_service
from talentbridge.services.admission import admission_guard, JOB_CREATE_LIMIT, JOB_EDIT_LIMIT
from talentbridge.utils.auth import get_optional_user, require_roles
from talentbridge.utils.errors import NotFound, ValidationError
from talentbridge.utils.sanitize import sanitize_fields

router = APIRouter()

MULTILINE_FIELDS = ("description", "requirements")

# ===========================
# PUBLIC ENDPOINTS
# ===========================

# ✅ 1. GET ALL JOBS WITH SEARCH AND FILTERS (Public)
@router.get("/jobs", response_model=List[JobResponse])
async def get_all_jobs(
    search: Optional[str] = Query(None, description="Search in title, company, or description"),
    location: Optional[str] = Query(None, description="Filter by location"),
    job_type: Optional[str] = Query(None, description="Filter by job type"),
    work_mode: Optional[str] = Query(None, description="Filter by work mode: remote, hybrid, presential"),
    profile: Optional[str] = Query(None, description="Filter by profile"),
    limit: int = Query(100, le=500, description="Maximum number of results"),
    current_user: Optional[dict] = Depends(get_optional_user),
):
    """Active, non-expired jobs. Confidential jobs hide the company from non-owners."""

    db = get_db()

    query = {
        "status": "active",
        "$or": [{"expires_at": None}, {"expires_at": {"$gt": datetime.utcnow()}}],
    }

    if search:
        query["$and"] = [{"$or": [
            {"title": {"$regex": search, "$options": "i"}},
            {"company": {"$regex": search, "$options": "i"}},
            {"description": {"$regex": search, "$options": "i"}},
        ]}]

    if location:
        query["location"] = {"$regex": location, "$options": "i"}
    if job_type:
        query["job_type"] = job_type
    if work_mode:
        query["work_mode"] = work_mode
    if profile:
        query["profile"] = profile

    jobs = await db.jobs.find(query).sort("created_at", -1).limit(limit).to_list(limit)

    viewer_id = str(current_user["_id"]) if current_user else None
    is_admin = bool(current_user) and current_user["role"] == "admin"
    return [job_service.job_out(job, is_admin or job.get("owner_id") == viewer_id) for job in jobs]


# ✅ 2. GET SINGLE JOB DETAILS (Public)
@router.get("/jobs/{job_id}", response_model=JobDetailResponse)
async def get_job_details(job_id: str, current_user: Optional[dict] = Depends(get_optional_user)):
    if not ObjectId.is_valid(job_id):
        raise ValidationError("Invalid job ID")

    db = get_db()
    job = await db.jobs.find_one({"_id": ObjectId(job_id)})
    if not job:
        raise NotFound(f"job {job_id}")

    is_owner = bool(current_user) and (
        current_user["role"] == "admin" or job.get("owner_id") == str(current_user["_id"])
    )
    if job.get("status") != "active" and not is_owner:
        raise NotFound(f"job {job_id} is {job.get('status')}")

    await db.jobs.update_one({"_id": job["_id"]}, {"$inc": {"view_count": 1}})

    data = job_service.job_out(job, is_owner)
    data["application_count"] = await db.applications.count_documents({"job_id": job_id})
    return data


# ===========================
# COMPANY ENDPOINTS
# ===========================

# ✅ 3. POST A JOB (Company/Admin)
@router.post("/jobs", response_model=JobResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(admission_guard("job-create", JOB_CREATE_LIMIT))])
async def create_job(job: JobCreate, current_user: dict = Depends(require_roles("company", "admin"))):
    """Create a job. With publish_now, companies pay the quoted credits up front."""
    data = job.model_dump()
    publish_now = data.pop("publish_now")
    data = sanitize_fields(data, MULTILINE_FIELDS)

    created = await job_service.create_job(get_db(), current_user, data, publish_now=publish_now)
    return job_service.job_out(created)


# ✅ 4. PUBLISH A DRAFT
@router.post("/jobs/{job_id}/publish", response_model=JobResponse,
             dependencies=[Depends(admission_guard("job-edit", JOB_EDIT_LIMIT))])
async def publish_job(job_id: str, current_user: dict = Depends(require_roles("company", "admin"))):
    published = await job_service.publish_job(get_db(), current_user, job_id)
    return job_service.job_out(published)


# ✅ 5. UPDATE/EDIT JOB
@router.put("/jobs/{job_id}", response_model=JobUpdateResponse,
            dependencies=[Depends(admission_guard("job-edit", JOB_EDIT_LIMIT))])
async def update_job(
    job_id: str,
    job_update: JobUpdate,
    current_user: dict = Depends(require_roles("company", "admin")),
):
    """Edit a job. Changing profile/seniority/work mode on a live job re-quotes it."""
    changes = sanitize_fields(job_update.model_dump(exclude_unset=True), MULTILINE_FIELDS)

    updated, credit_change = await job_service.update_job(get_db(), current_user, job_id, changes)

    message = "Job updated successfully"
    if credit_change and credit_change["difference"] > 0:
        message = f"Job updated. {credit_change['difference']} additional credits were charged."
    elif credit_change and credit_change["difference"] < 0:
        message = f"Job updated. {-credit_change['difference']} credits were refunded."

    return {
        "message": message,
        "job": job_service.job_out(updated),
        "credit_change": credit_change,
    }


# ✅ 6. DELETE JOB
@router.delete("/jobs/{job_id}",
               dependencies=[Depends(admission_guard("job-edit", JOB_EDIT_LIMIT))])
async def delete_job(job_id: str, current_user: dict = Depends(require_roles("company", "admin"))):
    """Delete a job with its applications and assignment."""
    counts = await job_service.delete_job(get_db(), current_user, job_id)
    return {"message": "Job deleted successfully", "job_id": job_id, **counts}
