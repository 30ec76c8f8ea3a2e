# ========================================
# talentbridge/services/jobs.py
# ========================================
"""Job postings and the credits they cost.

A job's `credit_cost` is quoted once when it is created. The pricing table
changing later never touches existing jobs; only editing the job's own
profile/seniority/work mode re-quotes it.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from talentbridge.config import JOB_EDIT_WINDOW_HOURS, MAX_SALARY_SPREAD
from talentbridge.models.lifecycle import Role
from talentbridge.services import credits
from talentbridge.services.pricing import minimum_salary, resolve_credit_cost
from talentbridge.utils.errors import (
    AlreadyProcessed,
    Forbidden,
    NotFound,
    PreconditionFailed,
    ValidationError,
    translate_storage_errors,
)
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("title", "company", "location", "salary", "job_type", "description")
PRICING_FIELDS = ("profile", "seniority", "work_mode")
JOB_STATUSES = ("draft", "active", "paused", "closed")

# Status moves allowed through a plain edit. draft -> active goes through
# publish_job so the posting is paid for; closed is final.
JOB_STATUS_MOVES = {
    "draft": ("closed",),
    "active": ("paused", "closed"),
    "paused": ("active", "closed"),
    "closed": (),
}


def job_out(job: Dict, viewer_is_owner: bool = True) -> Dict:
    data = {key: value for key, value in job.items() if key != "_id"}
    data["id"] = str(job["_id"])
    if job.get("is_confidential") and not viewer_is_owner:
        # Only keep the region part of "City, State"
        parts = (job.get("location") or "").split(",")
        data["company"] = "Confidential company"
        data["location"] = parts[1].strip() if len(parts) > 1 else "Undisclosed"
        data["owner_id"] = None
    return data


def _validate_salary(data: Dict):
    salary_min = data.get("salary_min")
    salary_max = data.get("salary_max")
    if salary_min is not None and salary_max is not None:
        if salary_min > salary_max:
            raise ValidationError("Minimum salary cannot be greater than maximum salary")
        if salary_max - salary_min > MAX_SALARY_SPREAD:
            raise ValidationError(f"Salary range cannot be wider than {MAX_SALARY_SPREAD}")


async def _validate_minimum_salary(db, data: Dict):
    if not all(data.get(f) for f in PRICING_FIELDS) or data.get("salary_min") is None:
        return
    required = await minimum_salary(db, data["profile"], data["seniority"], data["work_mode"])
    if required and data["salary_min"] < required:
        raise ValidationError(
            f"Offered minimum salary ({data['salary_min']}) is below the minimum "
            f"required for this profile ({required})"
        )


def _check_owner(actor: Dict, job: Dict):
    if actor.get("role") == Role.ADMIN.value:
        return
    if job.get("owner_id") != str(actor["_id"]):
        raise Forbidden(f"user {actor['_id']} does not own job {job['_id']}")


async def _load_job(db, job_id: str) -> Dict:
    if not ObjectId.is_valid(job_id):
        raise ValidationError("Invalid job ID")
    job = await db.jobs.find_one({"_id": ObjectId(job_id)})
    if not job:
        raise NotFound(f"job {job_id}")
    return job


@translate_storage_errors
async def create_job(db, owner: Dict, data: Dict, publish_now: bool = False) -> Dict:
    missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    _validate_salary(data)
    await _validate_minimum_salary(db, data)

    quote = await resolve_credit_cost(db, data.get("profile"), data.get("seniority"), data.get("work_mode"))

    job_id = ObjectId()
    now = datetime.utcnow()
    status = "active" if publish_now else "draft"

    job = {
        **data,
        "_id": job_id,
        "owner_id": str(owner["_id"]),
        "status": status,
        "credit_cost": quote.credits,
        "pricing_rule_id": quote.matched_rule_id,
        "editable_until": now + timedelta(hours=JOB_EDIT_WINDOW_HOURS) if status == "active" else None,
        "view_count": 0,
        "created_at": now,
        "published_at": now if status == "active" else None,
    }
    await db.jobs.insert_one(job)

    # Charge only once the job exists; take it back out if the charge fails
    if publish_now and owner.get("role") == Role.COMPANY.value:
        try:
            await credits.charge(db, owner, quote.credits, f"Job posting: {data['title']}", str(job_id))
        except Exception:
            await db.jobs.delete_one({"_id": job_id})
            raise

    logger.info("Job %s created by %s (%s, %s credits)", job_id, owner["_id"], status, quote.credits)
    return job


@translate_storage_errors
async def publish_job(db, actor: Dict, job_id: str) -> Dict:
    job = await _load_job(db, job_id)
    _check_owner(actor, job)

    if job.get("status") == "active":
        raise AlreadyProcessed(f"job {job_id} is already published")
    if job.get("status") != "draft":
        raise PreconditionFailed(f"job {job_id} is {job.get('status')}")

    now = datetime.utcnow()
    published = await db.jobs.find_one_and_update(
        {"_id": job["_id"], "status": "draft"},
        {"$set": {
            "status": "active",
            "published_at": now,
            "editable_until": now + timedelta(hours=JOB_EDIT_WINDOW_HOURS),
        }},
        return_document=ReturnDocument.AFTER,
    )
    if published is None:
        raise AlreadyProcessed(f"job {job_id} was published concurrently")

    owner = await db.users.find_one({"_id": ObjectId(job["owner_id"])})
    if owner and owner.get("role") == Role.COMPANY.value:
        try:
            await credits.charge(db, owner, job.get("credit_cost", 0), f"Job posting: {job['title']}", job_id)
        except Exception:
            await db.jobs.update_one(
                {"_id": job["_id"]},
                {"$set": {"status": "draft", "published_at": None, "editable_until": None}},
            )
            raise
    return published


@translate_storage_errors
async def update_job(db, actor: Dict, job_id: str, changes: Dict) -> Tuple[Dict, Optional[Dict]]:
    job = await _load_job(db, job_id)
    _check_owner(actor, job)

    if not changes:
        raise ValidationError("No fields to update")

    current_status = job.get("status", "draft")
    if "status" in changes:
        target_status = changes["status"]
        if target_status not in JOB_STATUSES:
            raise ValidationError(f"Invalid job status: {target_status}")
        if target_status == current_status:
            changes = {key: value for key, value in changes.items() if key != "status"}
            if not changes:
                raise AlreadyProcessed(f"job {job_id} is already {current_status}")
        elif current_status == "draft" and target_status == "active":
            raise PreconditionFailed(f"job {job_id} is a draft; publish it to make it active")
        elif target_status not in JOB_STATUS_MOVES.get(current_status, ()):
            raise PreconditionFailed(f"job {job_id} cannot move {current_status} -> {target_status}")

    now = datetime.utcnow()
    content_changes = [key for key in changes if key != "status"]
    editable_until = job.get("editable_until")
    if content_changes and editable_until and now > editable_until and actor.get("role") != Role.ADMIN.value:
        raise PreconditionFailed(f"edit window for job {job_id} closed at {editable_until}")

    merged = {**job, **changes}
    _validate_salary(merged)
    await _validate_minimum_salary(db, merged)

    pricing_changed = any(key in changes and changes[key] != job.get(key) for key in PRICING_FIELDS)
    credit_change = None
    update: Dict[str, Any] = {**changes, "updated_at": now}
    charged = 0
    refund_due = 0
    owner = None

    if pricing_changed:
        quote = await resolve_credit_cost(db, merged.get("profile"), merged.get("seniority"), merged.get("work_mode"))
        original = job.get("credit_cost", 0)
        update["credit_cost"] = quote.credits
        update["pricing_rule_id"] = quote.matched_rule_id

        if job.get("status") == "active":
            difference = quote.credits - original
            credit_change = {"original": original, "new": quote.credits, "difference": difference}
            owner = await db.users.find_one({"_id": ObjectId(job["owner_id"])})
            if owner and owner.get("role") == Role.COMPANY.value:
                if difference > 0:
                    await credits.charge(db, owner, difference, f"Edit adjustment: {job['title']}", job_id)
                    charged = difference
                elif difference < 0:
                    refund_due = -difference

    # Only apply on the status and credit_cost we checked against
    updated = await db.jobs.find_one_and_update(
        {"_id": job["_id"], "status": job.get("status"), "credit_cost": job.get("credit_cost", 0)},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        if charged:
            await credits.refund(db, owner, charged, f"Edit reverted: {job['title']}", job_id)
        raise AlreadyProcessed(f"job {job_id} was edited concurrently")

    if refund_due:
        await credits.refund(db, owner, refund_due, f"Edit adjustment: {job['title']}", job_id)

    return updated, credit_change


@translate_storage_errors
async def delete_job(db, actor: Dict, job_id: str) -> Dict[str, int]:
    job = await _load_job(db, job_id)
    _check_owner(actor, job)

    applications = await db.applications.delete_many({"job_id": job_id})
    assignments = await db.job_assignments.delete_many({"job_id": job_id})
    await db.jobs.delete_one({"_id": job["_id"]})
    logger.info("Job %s deleted with %d applications", job_id, applications.deleted_count)
    return {
        "applications_deleted": applications.deleted_count,
        "assignments_deleted": assignments.deleted_count,
    }
