# ========================================
# talentbridge/services/lifecycle.py
# ========================================
"""Application and JobAssignment lifecycle.

Every status change goes through a conditional `find_one_and_update` on the
current status, so two concurrent requests on the same entity cannot both
win. Accepted transitions return the notification to send; delivery is up to
the caller and happens after the change is stored.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from talentbridge.config import FOLLOW_UP_DAYS
from talentbridge.models.lifecycle import (
    ApplicationStatus,
    AssignmentState,
    COMPANY_VISIBLE_STATUSES,
    FORWARDS,
    NotificationKind,
    RELEASED_STATES,
    Role,
    SPECIALIST_MOVES,
    SPECIALIST_VISIBLE_STATUSES,
    STAGE_ORDER,
    SpecialistStatus,
    allowed_moves,
)
from talentbridge.services.notifications import NotificationEvent
from talentbridge.utils.errors import (
    AlreadyProcessed,
    DuplicateApplication,
    Forbidden,
    NotFound,
    PreconditionFailed,
    ValidationError,
    translate_storage_errors,
)
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Transition:
    entity: Dict[str, Any]
    events: List[NotificationEvent] = field(default_factory=list)
    warning: Optional[str] = None


# ===========================
# HELPERS
# ===========================

def actor_role(actor: Dict) -> Role:
    try:
        return Role(actor.get("role"))
    except ValueError:
        raise Forbidden(f"unknown role {actor.get('role')!r}")


def parse_status_filter(value: Optional[str]) -> Optional[ApplicationStatus]:
    """Turn a `?status=` query value into an ApplicationStatus, or None when absent."""
    if not value:
        return None
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}")


def _object_id(value: str, label: str) -> ObjectId:
    if not value or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label} ID")
    return ObjectId(value)


async def _load_job(db, job_id: str) -> Dict:
    job = await db.jobs.find_one({"_id": _object_id(job_id, "job")})
    if not job:
        raise NotFound(f"job {job_id}")
    return job


async def _load_application(db, application_id: str) -> Dict:
    application = await db.applications.find_one({"_id": _object_id(application_id, "application")})
    if not application:
        raise NotFound(f"application {application_id}")
    return application


async def _load_assignment(db, assignment_id: str) -> Dict:
    assignment = await db.job_assignments.find_one({"_id": _object_id(assignment_id, "assignment")})
    if not assignment:
        raise NotFound(f"assignment {assignment_id}")
    return assignment


async def _load_user_with_role(db, user_id: str, role: Role) -> Dict:
    user = await db.users.find_one({"_id": _object_id(user_id, role.value)})
    if not user or user.get("role") != role.value:
        raise ValidationError(f"Invalid {role.value}")
    return user


def _authorize_application_access(actor: Dict, role: Role, job: Dict, assignment: Optional[Dict]):
    """Ownership rules for acting on an application of `job`."""
    if role == Role.ADMIN:
        return

    user_id = str(actor["_id"])
    if role == Role.RECRUITER:
        if not assignment or assignment.get("recruiter_id") != user_id:
            raise Forbidden(f"recruiter {user_id} is not assigned to job {job['_id']}")
    elif role == Role.SPECIALIST:
        if not assignment or assignment.get("specialist_id") != user_id:
            raise Forbidden(f"specialist {user_id} is not assigned to job {job['_id']}")
        if not AssignmentState(assignment["state"]).released:
            raise PreconditionFailed(f"job {job['_id']} has not been released to the specialist")
    elif role == Role.COMPANY:
        if job.get("owner_id") != user_id:
            raise Forbidden(f"company {user_id} does not own job {job['_id']}")
    else:
        raise Forbidden(f"role {role.value} cannot change applications")


async def _compare_and_set_status(db, application: Dict, expected: Iterable[ApplicationStatus],
                                  target: ApplicationStatus, actor: Dict,
                                  extra: Optional[Dict] = None) -> Dict:
    now = datetime.utcnow()
    changes = {
        "status": target.value,
        "updated_at": now,
        "updated_by": str(actor["_id"]),
    }
    changes.update(extra or {})

    updated = await db.applications.find_one_and_update(
        {"_id": application["_id"], "status": {"$in": [s.value for s in expected]}},
        {
            "$set": changes,
            "$push": {
                "status_history": {
                    "status": target.value,
                    "changed_at": now,
                    "changed_by": str(actor["_id"]),
                    "changed_by_role": actor.get("role"),
                }
            },
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        latest = await db.applications.find_one({"_id": application["_id"]})
        if latest is None:
            raise NotFound(f"application {application['_id']}")
        raise AlreadyProcessed(
            f"application {application['_id']} moved to {latest['status']} concurrently"
        )
    return updated


def _candidate_recipient(application: Dict) -> Optional[str]:
    # Registered candidates get their own inbox; anonymous ones go to admins
    return application.get("user_id")


def application_out(doc: Dict) -> Dict:
    data = {key: value for key, value in doc.items() if key != "_id"}
    data["id"] = str(doc["_id"])
    return data


def assignment_out(doc: Dict) -> Dict:
    state = AssignmentState(doc["state"])
    data = {key: value for key, value in doc.items() if key != "_id"}
    data["id"] = str(doc["_id"])
    data["recruiter_status"] = state.recruiter_status.value
    data["specialist_status"] = state.specialist_status.value
    return data


# ===========================
# APPLICATIONS
# ===========================

@translate_storage_errors
async def create_application(db, job_id: str, candidate: Dict, user_id: Optional[str] = None,
                             injected: bool = False) -> Transition:
    name = (candidate.get("candidate_name") or "").strip()
    email = (candidate.get("candidate_email") or "").strip().lower()
    if not name or not email:
        raise ValidationError("candidate_name and candidate_email are required")

    job = await _load_job(db, job_id)
    if not injected and job.get("status") != "active":
        raise PreconditionFailed(f"job {job_id} is {job.get('status')}")

    if await db.applications.find_one({"job_id": job_id, "candidate_email": email}):
        raise DuplicateApplication(f"{email} already applied to {job_id}")

    now = datetime.utcnow()
    status = ApplicationStatus.INJECTED_BY_ADMIN if injected else ApplicationStatus.PENDING
    document = {
        "job_id": job_id,
        "user_id": user_id,
        "candidate_name": name,
        "candidate_email": email,
        "candidate_phone": candidate.get("candidate_phone"),
        "cv_url": candidate.get("cv_url"),
        "cover_letter": candidate.get("cover_letter"),
        "status": status.value,
        "notes": None,
        "status_history": [{"status": status.value, "changed_at": now, "changed_by": user_id}],
        "created_at": now,
        "updated_at": now,
        "reviewed_at": None,
    }

    try:
        result = await db.applications.insert_one(document)
    except DuplicateKeyError:
        # Lost the race against a concurrent submission with the same email
        raise DuplicateApplication(f"{email} already applied to {job_id}")
    document["_id"] = result.inserted_id

    assignment = await db.job_assignments.find_one({"job_id": job_id})
    recipient = assignment.get("recruiter_id") if assignment else None
    event = NotificationEvent(
        recipient_user_id=recipient,
        kind=NotificationKind.NEW_APPLICATION,
        entity_id=str(result.inserted_id),
        title="New application",
        message=f"{name} applied to \"{job.get('title', '')}\".",
        link=f"/jobs/{job_id}",
        metadata={"job_id": job_id, "status": status.value},
    )
    logger.info("Application %s created for job %s (%s)", result.inserted_id, job_id, status.value)
    return Transition(entity=document, events=[event])


@translate_storage_errors
async def change_application_status(db, application_id: str, actor: Dict, new_status: str,
                                    notes: Optional[str] = None) -> Transition:
    try:
        target = ApplicationStatus(new_status)
    except ValueError:
        raise ValidationError(f"Unknown status: {new_status}")

    if target in FORWARDS:
        return await forward_application(db, application_id, actor, target.value)

    role = actor_role(actor)
    application = await _load_application(db, application_id)
    job = await _load_job(db, application["job_id"])
    assignment = await db.job_assignments.find_one({"job_id": application["job_id"]})
    _authorize_application_access(actor, role, job, assignment)

    current = ApplicationStatus(application["status"])
    if current == target:
        raise AlreadyProcessed(f"application {application_id} is already {current.value}")
    if target not in allowed_moves(role, current):
        raise PreconditionFailed(f"{role.value} cannot move {current.value} -> {target.value}")

    extra: Dict[str, Any] = {}
    if notes is not None:
        extra["notes"] = notes
    if role == Role.COMPANY or current in COMPANY_VISIBLE_STATUSES:
        extra["reviewed_at"] = datetime.utcnow()

    updated = await _compare_and_set_status(db, application, {current}, target, actor, extra)

    if role == Role.COMPANY:
        recipient = None
    else:
        recipient = _candidate_recipient(application)
    event = NotificationEvent(
        recipient_user_id=recipient,
        kind=NotificationKind.APPLICATION_STATUS,
        entity_id=application_id,
        title="Application updated",
        message=f"{application['candidate_name']} moved to {target.value} on \"{job.get('title', '')}\".",
        link=f"/jobs/{application['job_id']}",
        metadata={"job_id": application["job_id"], "from": current.value, "status": target.value},
    )
    logger.info("Application %s: %s -> %s by %s", application_id, current.value, target.value, role.value)
    return Transition(entity=updated, events=[event])


@translate_storage_errors
async def forward_application(db, application_id: str, actor: Dict, target_status: str) -> Transition:
    """Send an application on to the specialist or to the company, at most once."""
    try:
        target = ApplicationStatus(target_status)
    except ValueError:
        raise ValidationError(f"Unknown status: {target_status}")
    if target not in FORWARDS:
        raise ValidationError(f"{target.value} is not a forward step")

    forwarder, sources = FORWARDS[target]
    role = actor_role(actor)
    if role not in (forwarder, Role.ADMIN):
        raise Forbidden(f"{role.value} cannot forward to {target.value}")

    application = await _load_application(db, application_id)
    job = await _load_job(db, application["job_id"])
    assignment = await db.job_assignments.find_one({"job_id": application["job_id"]})
    _authorize_application_access(actor, role, job, assignment)

    current = ApplicationStatus(application["status"])
    if current == ApplicationStatus.DISCARDED:
        raise PreconditionFailed(f"application {application_id} was discarded")
    if STAGE_ORDER[current] >= STAGE_ORDER[target]:
        raise AlreadyProcessed(f"application {application_id} is already {current.value}")
    if current not in sources:
        raise PreconditionFailed(f"cannot forward {current.value} -> {target.value}")

    now = datetime.utcnow()
    if target == ApplicationStatus.SENT_TO_SPECIALIST:
        if not assignment or not assignment.get("specialist_id"):
            raise PreconditionFailed(f"job {application['job_id']} has no specialist assigned")
    elif not assignment or not AssignmentState(assignment["state"]).released:
        raise PreconditionFailed(f"job {application['job_id']} has not been released to the specialist")

    updated = await _compare_and_set_status(db, application, sources, target, actor)

    if target == ApplicationStatus.SENT_TO_SPECIALIST:
        # Forwarding a candidate also releases the job if the recruiter had not yet
        await db.job_assignments.update_one(
            {"_id": assignment["_id"], "state": AssignmentState.NOT_SENT.value},
            {"$set": {"state": AssignmentState.AWAITING_SPECIALIST.value, "released_at": now, "updated_at": now}},
        )
        recipient = assignment["specialist_id"]
        kind = NotificationKind.SENT_TO_SPECIALIST
        title = "New candidate to evaluate"
    else:
        await db.job_assignments.update_one(
            {"_id": assignment["_id"]},
            {"$set": {"follow_up_date": now + timedelta(days=FOLLOW_UP_DAYS), "updated_at": now}},
        )
        recipient = job.get("owner_id")
        kind = NotificationKind.SENT_TO_COMPANY
        title = "New candidate for your job"

    event = NotificationEvent(
        recipient_user_id=recipient,
        kind=kind,
        entity_id=application_id,
        title=title,
        message=f"{application['candidate_name']} was sent for \"{job.get('title', '')}\".",
        link=f"/jobs/{application['job_id']}",
        metadata={"job_id": application["job_id"], "status": target.value},
    )
    logger.info("Application %s forwarded %s -> %s", application_id, current.value, target.value)
    return Transition(entity=updated, events=[event])


@translate_storage_errors
async def discard_application(db, application_id: str, actor: Dict, reason: Optional[str] = None) -> Transition:
    transition = await change_application_status(db, application_id, actor, ApplicationStatus.DISCARDED.value)

    role = actor_role(actor)
    if reason and role in (Role.RECRUITER, Role.SPECIALIST):
        application = transition.entity
        field_name = "recruiter_notes" if role == Role.RECRUITER else "specialist_notes"
        note = f"[DISCARDED: {application['candidate_name']}] {reason}"
        await _append_assignment_note(db, application["job_id"], field_name, note)
    return transition


async def _append_assignment_note(db, job_id: str, field_name: str, note: str):
    # Retry until the notes we appended to are still the stored ones
    while True:
        assignment = await db.job_assignments.find_one({"job_id": job_id})
        if assignment is None:
            return
        current_notes = assignment.get(field_name)
        result = await db.job_assignments.update_one(
            {"_id": assignment["_id"], field_name: current_notes},
            {"$set": {field_name: f"{current_notes}\n{note}" if current_notes else note}},
        )
        if result.matched_count:
            return


# ===========================
# JOB ASSIGNMENTS
# ===========================

@translate_storage_errors
async def assign_job(db, job_id: str, recruiter_id: Optional[str], specialist_id: Optional[str]) -> Transition:
    job = await _load_job(db, job_id)
    if recruiter_id:
        await _load_user_with_role(db, recruiter_id, Role.RECRUITER)

    warning = None
    if specialist_id:
        specialist = await _load_user_with_role(db, specialist_id, Role.SPECIALIST)
        if specialist.get("specialty") and job.get("profile") and specialist["specialty"] != job["profile"]:
            warning = (
                f"Specialist specialty ({specialist['specialty']}) does not match "
                f"the job profile ({job['profile']}). The assignment was saved anyway."
            )

    now = datetime.utcnow()
    existing = await db.job_assignments.find_one({"job_id": job_id})
    if existing is None:
        document = {
            "job_id": job_id,
            "recruiter_id": recruiter_id,
            "specialist_id": specialist_id,
            "state": AssignmentState.NOT_SENT.value,
            "recruiter_notes": None,
            "specialist_notes": None,
            "follow_up_date": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await db.job_assignments.insert_one(document)
        except DuplicateKeyError:
            raise AlreadyProcessed(f"job {job_id} was assigned concurrently")
        document["_id"] = result.inserted_id
        assignment = document
    else:
        changes = {"recruiter_id": recruiter_id, "specialist_id": specialist_id, "updated_at": now}
        if existing.get("specialist_id") != specialist_id:
            # A new specialist starts from scratch and must be released again
            changes["state"] = AssignmentState.NOT_SENT.value
        assignment = await db.job_assignments.find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

    event = NotificationEvent(
        recipient_user_id=recruiter_id or specialist_id,
        kind=NotificationKind.ASSIGNMENT,
        entity_id=str(assignment["_id"]),
        title="New job assignment",
        message=f"You were assigned to \"{job.get('title', '')}\".",
        link=f"/jobs/{job_id}",
        metadata={"job_id": job_id},
    )
    logger.info("Job %s assigned: recruiter=%s specialist=%s", job_id, recruiter_id, specialist_id)
    return Transition(entity=assignment, events=[event], warning=warning)


def _authorize_assignment(actor: Dict, role: Role, assignment: Dict, owner_field: str, allowed_role: Role):
    if role == Role.ADMIN:
        return
    if role != allowed_role or assignment.get(owner_field) != str(actor["_id"]):
        raise Forbidden(f"{role.value} {actor['_id']} does not own assignment {assignment['_id']}")


@translate_storage_errors
async def release_to_specialist(db, assignment_id: str, actor: Dict) -> Transition:
    """recruiter_status -> sent_to_specialist; the specialist track restarts at pending."""
    assignment = await _load_assignment(db, assignment_id)
    _authorize_assignment(actor, actor_role(actor), assignment, "recruiter_id", Role.RECRUITER)

    if not assignment.get("specialist_id"):
        raise PreconditionFailed(f"assignment {assignment_id} has no specialist")

    now = datetime.utcnow()
    updated = await db.job_assignments.find_one_and_update(
        {"_id": assignment["_id"], "state": AssignmentState.NOT_SENT.value},
        {"$set": {"state": AssignmentState.AWAITING_SPECIALIST.value, "released_at": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyProcessed(f"assignment {assignment_id} was already sent to the specialist")

    event = NotificationEvent(
        recipient_user_id=updated["specialist_id"],
        kind=NotificationKind.SENT_TO_SPECIALIST,
        entity_id=assignment_id,
        title="Job ready for evaluation",
        message="A recruiter sent you a job to evaluate.",
        link=f"/jobs/{updated['job_id']}",
        metadata={"job_id": updated["job_id"]},
    )
    return Transition(entity=updated, events=[event])


@translate_storage_errors
async def recall_from_specialist(db, assignment_id: str, actor: Dict) -> Transition:
    assignment = await _load_assignment(db, assignment_id)
    _authorize_assignment(actor, actor_role(actor), assignment, "recruiter_id", Role.RECRUITER)

    updated = await db.job_assignments.find_one_and_update(
        {"_id": assignment["_id"], "state": {"$in": [s.value for s in RELEASED_STATES]}},
        {"$set": {"state": AssignmentState.NOT_SENT.value, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyProcessed(f"assignment {assignment_id} is not with the specialist")

    event = NotificationEvent(
        recipient_user_id=updated.get("specialist_id"),
        kind=NotificationKind.ASSIGNMENT_STATUS,
        entity_id=assignment_id,
        title="Job recalled",
        message="The recruiter took this job back for review.",
        link=f"/jobs/{updated['job_id']}",
        metadata={"job_id": updated["job_id"], "recruiter_status": "not_sent"},
    )
    return Transition(entity=updated, events=[event])


@translate_storage_errors
async def set_specialist_status(db, assignment_id: str, actor: Dict, new_status: str) -> Transition:
    try:
        target = SpecialistStatus(new_status)
    except ValueError:
        raise ValidationError(f"Unknown specialist status: {new_status}")

    assignment = await _load_assignment(db, assignment_id)
    _authorize_assignment(actor, actor_role(actor), assignment, "specialist_id", Role.SPECIALIST)

    state = AssignmentState(assignment["state"])
    if not state.released:
        raise PreconditionFailed(f"assignment {assignment_id} has not been sent to the specialist")

    current = state.specialist_status
    if current == target:
        raise AlreadyProcessed(f"assignment {assignment_id} is already {current.value}")
    if target not in SPECIALIST_MOVES[current]:
        raise PreconditionFailed(f"cannot move specialist status {current.value} -> {target.value}")

    new_state = AssignmentState.for_specialist_status(target)
    updated = await db.job_assignments.find_one_and_update(
        {"_id": assignment["_id"], "state": state.value},
        {"$set": {"state": new_state.value, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        latest = await _load_assignment(db, assignment_id)
        if not AssignmentState(latest["state"]).released:
            raise PreconditionFailed(f"assignment {assignment_id} was recalled by the recruiter")
        raise AlreadyProcessed(f"assignment {assignment_id} changed concurrently")

    event = NotificationEvent(
        recipient_user_id=updated.get("recruiter_id"),
        kind=NotificationKind.ASSIGNMENT_STATUS,
        entity_id=assignment_id,
        title="Specialist progress",
        message=f"The specialist marked the job as {target.value}.",
        link=f"/jobs/{updated['job_id']}",
        metadata={"job_id": updated["job_id"], "specialist_status": target.value},
    )
    return Transition(entity=updated, events=[event])


@translate_storage_errors
async def save_assignment_notes(db, assignment_id: str, actor: Dict, notes: str) -> Dict:
    assignment = await _load_assignment(db, assignment_id)
    role = actor_role(actor)
    if role == Role.SPECIALIST:
        _authorize_assignment(actor, role, assignment, "specialist_id", Role.SPECIALIST)
        field_name = "specialist_notes"
    else:
        _authorize_assignment(actor, role, assignment, "recruiter_id", Role.RECRUITER)
        field_name = "recruiter_notes"

    return await db.job_assignments.find_one_and_update(
        {"_id": assignment["_id"]},
        {"$set": {field_name: notes, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


# ===========================
# VISIBILITY
# ===========================

@translate_storage_errors
async def recruiter_assignments(db, recruiter_id: Optional[str]) -> List[Dict]:
    query = {} if recruiter_id is None else {"recruiter_id": recruiter_id}
    return await db.job_assignments.find(query).sort("updated_at", -1).to_list(500)


@translate_storage_errors
async def specialist_assignments(db, specialist_id: Optional[str],
                                 specialist_status: Optional[str] = None) -> List[Dict]:
    """Assignments a specialist may see: only those the recruiter released."""
    states = RELEASED_STATES
    if specialist_status:
        try:
            wanted = SpecialistStatus(specialist_status)
        except ValueError:
            raise ValidationError(f"Unknown specialist status: {specialist_status}")
        states = {state for state in RELEASED_STATES if state.specialist_status == wanted}

    query: Dict[str, Any] = {"state": {"$in": [s.value for s in states]}}
    if specialist_id is not None:
        query["specialist_id"] = specialist_id
    return await db.job_assignments.find(query).sort("updated_at", -1).to_list(500)


@translate_storage_errors
async def applications_for_job(db, job_id: str, statuses: Optional[Iterable[ApplicationStatus]] = None) -> List[Dict]:
    query: Dict[str, Any] = {"job_id": job_id}
    if statuses is not None:
        query["status"] = {"$in": [s.value for s in statuses]}
    return await db.applications.find(query).sort("created_at", -1).to_list(1000)


async def specialist_applications(db, job_id: str) -> List[Dict]:
    return await applications_for_job(db, job_id, SPECIALIST_VISIBLE_STATUSES)


@translate_storage_errors
async def company_applications(db, owner_id: str, job_id: Optional[str] = None) -> List[Dict]:
    job_query: Dict[str, Any] = {"owner_id": owner_id}
    if job_id:
        job_query["_id"] = _object_id(job_id, "job")
    jobs = await db.jobs.find(job_query, {"_id": 1}).to_list(1000)
    job_ids = [str(job["_id"]) for job in jobs]

    return await db.applications.find({
        "job_id": {"$in": job_ids},
        "status": {"$in": [s.value for s in COMPANY_VISIBLE_STATUSES]},
    }).sort("updated_at", -1).to_list(1000)
