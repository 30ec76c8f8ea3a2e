"""
Tests for job posting, publishing and credit adjustments.
"""
from datetime import datetime, timedelta

import pytest
from pymongo.errors import ConnectionFailure

from conftest import add_job, add_rule, auth_header
from talentbridge.services import jobs as job_service
from talentbridge.utils.errors import (
    AlreadyProcessed,
    InsufficientCredits,
    PreconditionFailed,
    StorageUnavailable,
    ValidationError,
)

JOB = {
    "title": "Backend Developer",
    "company": "Acme",
    "location": "Lima, Lima",
    "salary": "3000-4000",
    "job_type": "full-time",
    "work_mode": "remote",
    "description": "Build APIs",
    "profile": "Tecnología",
    "seniority": "Sr",
}


async def balance(db, user):
    return (await db.users.find_one({"_id": user["_id"]}))["credits"]


@pytest.mark.asyncio
async def test_publishing_on_create_charges_the_quoted_cost(db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=10)

    job = await job_service.create_job(db, company, dict(JOB), publish_now=True)

    assert job["status"] == "active"
    assert job["credit_cost"] == 7
    assert job["pricing_rule_id"] == 3
    assert job["editable_until"] is not None
    assert await balance(db, company) == 3
    tx = await db.credit_transactions.find_one({"job_id": str(job["_id"])})
    assert tx["type"] == "spend"
    assert tx["amount"] == -7


@pytest.mark.asyncio
async def test_insufficient_credits_creates_nothing(db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=2)

    with pytest.raises(InsufficientCredits) as excinfo:
        await job_service.create_job(db, company, dict(JOB), publish_now=True)

    assert excinfo.value.extras() == {"required": 7, "available": 2}
    assert await db.jobs.count_documents({}) == 0
    assert await balance(db, company) == 2


@pytest.mark.asyncio
async def test_draft_is_free_until_published(db, make_user):
    company = await make_user("company", credits=10)

    draft = await job_service.create_job(db, company, dict(JOB))
    assert draft["status"] == "draft"
    assert draft["credit_cost"] == 5
    assert await balance(db, company) == 10

    published = await job_service.publish_job(db, company, str(draft["_id"]))
    assert published["status"] == "active"
    assert await balance(db, company) == 5

    with pytest.raises(AlreadyProcessed):
        await job_service.publish_job(db, company, str(draft["_id"]))
    assert await balance(db, company) == 5


@pytest.mark.asyncio
async def test_failed_publish_reverts_to_draft(db, make_user):
    company = await make_user("company", credits=1)
    draft = await job_service.create_job(db, company, dict(JOB))

    with pytest.raises(InsufficientCredits):
        await job_service.publish_job(db, company, str(draft["_id"]))

    stored = await db.jobs.find_one({"_id": draft["_id"]})
    assert stored["status"] == "draft"


@pytest.mark.asyncio
async def test_admin_posts_for_free(db, make_user):
    admin = await make_user("admin", credits=0)

    job = await job_service.create_job(db, admin, dict(JOB), publish_now=True)

    assert job["status"] == "active"
    assert await db.credit_transactions.count_documents({}) == 0


class _JobsInsertDown:
    """Wraps a database so inserting into `jobs` fails like a lost primary."""

    def __init__(self, db):
        self._db = db

    def __getattr__(self, name):
        collection = getattr(self._db, name)
        return _FailingInsert(collection) if name == "jobs" else collection


class _FailingInsert:
    def __init__(self, collection):
        self._collection = collection

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def insert_one(self, *args, **kwargs):
        raise ConnectionFailure("primary stepped down")


@pytest.mark.asyncio
async def test_failed_job_insert_costs_no_credits(db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=10)

    with pytest.raises(StorageUnavailable):
        await job_service.create_job(_JobsInsertDown(db), company, dict(JOB), publish_now=True)

    assert await balance(db, company) == 10
    assert await db.credit_transactions.count_documents({}) == 0
    assert await db.jobs.count_documents({}) == 0


@pytest.mark.asyncio
async def test_missing_fields_and_bad_salary_are_rejected(db, make_user):
    company = await make_user("company", credits=10)

    with pytest.raises(ValidationError):
        await job_service.create_job(db, company, {**JOB, "title": ""})
    with pytest.raises(ValidationError):
        await job_service.create_job(db, company, {**JOB, "salary_min": 5000, "salary_max": 4000})


@pytest.mark.asyncio
async def test_upgrading_seniority_charges_the_difference(db, make_user):
    await add_rule(db, 3, 7)
    await add_rule(db, 4, 10, seniority="Director")
    company = await make_user("company", credits=10)
    job = await job_service.create_job(db, company, dict(JOB), publish_now=True)

    updated, change = await job_service.update_job(db, company, str(job["_id"]), {"seniority": "Director"})

    assert change == {"original": 7, "new": 10, "difference": 3}
    assert updated["credit_cost"] == 10
    assert await balance(db, company) == 0


@pytest.mark.asyncio
async def test_downgrading_refunds_the_difference(db, make_user):
    await add_rule(db, 3, 7)
    await add_rule(db, 4, 2, seniority="Jr")
    company = await make_user("company", credits=10)
    job = await job_service.create_job(db, company, dict(JOB), publish_now=True)

    _, change = await job_service.update_job(db, company, str(job["_id"]), {"seniority": "Jr"})

    assert change["difference"] == -5
    assert await balance(db, company) == 8
    assert await db.credit_transactions.count_documents({"type": "refund"}) == 1


@pytest.mark.asyncio
async def test_upgrade_without_credits_leaves_job_untouched(db, make_user):
    await add_rule(db, 3, 7)
    await add_rule(db, 4, 10, seniority="Director")
    company = await make_user("company", credits=7)
    job = await job_service.create_job(db, company, dict(JOB), publish_now=True)

    with pytest.raises(InsufficientCredits):
        await job_service.update_job(db, company, str(job["_id"]), {"seniority": "Director"})

    stored = await db.jobs.find_one({"_id": job["_id"]})
    assert stored["seniority"] == "Sr"
    assert stored["credit_cost"] == 7


@pytest.mark.asyncio
async def test_repricing_the_table_never_touches_existing_jobs(db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=10)
    job = await job_service.create_job(db, company, dict(JOB), publish_now=True)

    await db.pricing_rules.update_one({"id": 3}, {"$set": {"credits": 1}})
    updated, change = await job_service.update_job(db, company, str(job["_id"]), {"title": "Senior Backend"})

    assert change is None
    assert updated["credit_cost"] == 7


@pytest.mark.asyncio
async def test_content_edits_close_with_the_edit_window(db, make_user):
    company = await make_user("company", credits=10)
    job = await add_job(db, company, editable_until=datetime.utcnow() - timedelta(minutes=1))

    with pytest.raises(PreconditionFailed):
        await job_service.update_job(db, company, str(job["_id"]), {"title": "New title"})

    # Status changes stay allowed
    updated, _ = await job_service.update_job(db, company, str(job["_id"]), {"status": "paused"})
    assert updated["status"] == "paused"


@pytest.mark.asyncio
async def test_draft_cannot_be_activated_by_editing_status(db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=0)
    draft = await job_service.create_job(db, company, dict(JOB))

    with pytest.raises(PreconditionFailed):
        await job_service.update_job(db, company, str(draft["_id"]), {"status": "active"})

    stored = await db.jobs.find_one({"_id": draft["_id"]})
    assert stored["status"] == "draft"
    assert stored["editable_until"] is None
    assert await balance(db, company) == 0
    assert await db.credit_transactions.count_documents({}) == 0


@pytest.mark.asyncio
async def test_pausing_and_resuming_a_paid_job_is_free(db, make_user):
    company = await make_user("company", credits=10)
    job = await job_service.create_job(db, company, dict(JOB), publish_now=True)
    job_id = str(job["_id"])

    paused, _ = await job_service.update_job(db, company, job_id, {"status": "paused"})
    resumed, _ = await job_service.update_job(db, company, job_id, {"status": "active"})

    assert paused["status"] == "paused"
    assert resumed["status"] == "active"
    assert await balance(db, company) == 5
    assert await db.credit_transactions.count_documents({}) == 1


@pytest.mark.asyncio
async def test_closed_jobs_stay_closed(db, make_user):
    company = await make_user("company", credits=10)
    job = await add_job(db, company, status="closed")

    for status in ("active", "paused", "draft"):
        with pytest.raises(PreconditionFailed):
            await job_service.update_job(db, company, str(job["_id"]), {"status": status})

    with pytest.raises(AlreadyProcessed):
        await job_service.update_job(db, company, str(job["_id"]), {"status": "closed"})


@pytest.mark.asyncio
async def test_draft_can_be_closed_without_charge(db, make_user):
    company = await make_user("company", credits=10)
    draft = await job_service.create_job(db, company, dict(JOB))

    closed, _ = await job_service.update_job(db, company, str(draft["_id"]), {"status": "closed"})

    assert closed["status"] == "closed"
    assert await balance(db, company) == 10


@pytest.mark.asyncio
async def test_unchanged_status_alongside_edits_is_ignored(db, make_user):
    company = await make_user("company", credits=10)
    job = await add_job(db, company)

    updated, _ = await job_service.update_job(db, company, str(job["_id"]), {"status": "active", "title": "Lead"})

    assert updated["status"] == "active"
    assert updated["title"] == "Lead"


@pytest.mark.asyncio
async def test_delete_cascades_to_pipeline(db, make_user):
    company = await make_user("company")
    job = await add_job(db, company)
    await db.applications.insert_one({"job_id": str(job["_id"]), "candidate_email": "a@example.com"})
    await db.job_assignments.insert_one({"job_id": str(job["_id"]), "state": "not_sent"})

    counts = await job_service.delete_job(db, company, str(job["_id"]))

    assert counts == {"applications_deleted": 1, "assignments_deleted": 1}
    assert await db.jobs.count_documents({}) == 0


# ===========================
# HTTP
# ===========================

@pytest.mark.asyncio
async def test_post_job_without_credits_returns_402(api, db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=1)

    r = await api.post("/jobs", json={**JOB, "publish_now": True}, headers=auth_header(company))

    assert r.status_code == 402
    assert r.json() == {"success": False, "error": "Insufficient credits", "required": 7, "available": 1}


@pytest.mark.asyncio
async def test_confidential_job_hides_company_from_public(api, db, make_user):
    company = await make_user("company")
    job = await add_job(db, company, is_confidential=True, location="Miraflores, Lima")

    public = await api.get(f"/jobs/{job['_id']}")
    owner = await api.get(f"/jobs/{job['_id']}", headers=auth_header(company))

    assert public.status_code == 200
    assert public.json()["company"] == "Confidential company"
    assert public.json()["location"] == "Lima"
    assert owner.json()["company"] == "Acme"


@pytest.mark.asyncio
async def test_candidates_cannot_post_jobs(api, make_user):
    candidate = await make_user("candidate")

    r = await api.post("/jobs", json=JOB, headers=auth_header(candidate))

    assert r.status_code == 403


@pytest.mark.asyncio
async def test_put_active_on_draft_returns_409_and_charges_nothing(api, db, make_user):
    await add_rule(db, 3, 7)
    company = await make_user("company", credits=10)
    draft = await job_service.create_job(db, company, dict(JOB))

    r = await api.put(f"/jobs/{draft['_id']}", json={"status": "active"}, headers=auth_header(company))

    assert r.status_code == 409
    assert r.json()["success"] is False
    assert (await db.jobs.find_one({"_id": draft["_id"]}))["status"] == "draft"
    assert await balance(db, company) == 10
