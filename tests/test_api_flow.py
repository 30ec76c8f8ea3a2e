"""
End-to-end flow through the HTTP API: post, assign, apply, triage, hire.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import add_rule, auth_header
from talentbridge.main import app


def test_health():
    client = TestClient(app)
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_root_lists_endpoints():
    client = TestClient(app)
    r = client.get("/")
    assert r.status_code == 200
    assert "/pricing/calculate" in r.json()["endpoints"]["public"]


@pytest.mark.asyncio
async def test_full_hiring_pipeline(api, db, make_user):
    await add_rule(db, 3, 7)
    admin = await make_user("admin")
    company = await make_user("company", credits=10)
    recruiter = await make_user("recruiter")
    specialist = await make_user("specialist", specialty="Tecnología")

    # Company posts and pays
    r = await api.post("/jobs", json={
        "title": "Backend Developer",
        "company": "Acme",
        "location": "Lima, Lima",
        "salary": "3000-4000",
        "job_type": "full-time",
        "work_mode": "remote",
        "description": "Build APIs",
        "profile": "Tecnología",
        "seniority": "Sr",
        "publish_now": True,
    }, headers=auth_header(company))
    assert r.status_code == 201, r.text
    job_id = r.json()["id"]
    assert r.json()["credit_cost"] == 7
    assert (await db.users.find_one({"_id": company["_id"]}))["credits"] == 3

    # Admin assigns the pipeline
    r = await api.post("/admin/assignments", json={
        "job_id": job_id,
        "recruiter_id": str(recruiter["_id"]),
        "specialist_id": str(specialist["_id"]),
    }, headers=auth_header(admin))
    assert r.status_code == 200, r.text
    assignment_id = r.json()["data"]["id"]
    assert r.json()["data"]["recruiter_status"] == "not_sent"
    assert "warning" not in r.json()

    # Anonymous candidate applies, once
    application = {"job_id": job_id, "candidate_name": "Ana", "candidate_email": "ana@example.com"}
    r = await api.post("/applications", json=application)
    assert r.status_code == 201, r.text
    application_id = r.json()["id"]

    r = await api.post("/applications", json={**application, "candidate_email": "ANA@example.com"})
    assert r.status_code == 409

    r = await api.get("/applications/check", params={"job_id": job_id, "email": "ana@example.com"})
    assert r.json()["has_applied"] is True

    # Recruiter got the new application in the inbox
    r = await api.get("/notifications", headers=auth_header(recruiter))
    assert {n["kind"] for n in r.json()["data"]} == {"assignment", "new_application"}

    # Specialist sees nothing before release
    r = await api.get("/specialist/dashboard", headers=auth_header(specialist))
    assert r.json()["data"] == []

    # Recruiter forwards, exactly once
    r = await api.post(f"/recruiter/applications/{application_id}/forward", headers=auth_header(recruiter))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "sent_to_specialist"

    r = await api.post(f"/recruiter/applications/{application_id}/forward", headers=auth_header(recruiter))
    assert r.status_code == 409
    assert r.json()["error"] == "This item was already processed"

    # Specialist works the job
    r = await api.get("/specialist/dashboard", headers=auth_header(specialist))
    jobs = r.json()["data"]
    assert [a["id"] for a in jobs] == [assignment_id]
    assert jobs[0]["specialist_status"] == "pending"
    assert [a["id"] for a in jobs[0]["applications"]] == [application_id]

    r = await api.put(f"/specialist/assignments/{assignment_id}/status", json={"status": "in_progress"},
                      headers=auth_header(specialist))
    assert r.status_code == 200, r.text
    assert r.json()["specialist_status"] == "in_progress"

    r = await api.post(f"/specialist/applications/{application_id}/forward", headers=auth_header(specialist))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "sent_to_company"

    # Company decides and closes the job
    r = await api.get("/company/applications", headers=auth_header(company))
    assert [a["id"] for a in r.json()["data"]] == [application_id]

    r = await api.patch(f"/company/applications/{application_id}",
                        json={"status": "accepted", "close_job": True}, headers=auth_header(company))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"

    job = await db.jobs.find_one({"title": "Backend Developer"})
    assert job["status"] == "closed"

    history = [h["status"] for h in r.json()["status_history"]]
    assert history == ["pending", "sent_to_specialist", "sent_to_company", "accepted"]

    # Admins heard about the hire
    r = await api.get("/notifications/count", headers=auth_header(admin))
    assert r.json()["unread"] >= 1


@pytest.mark.asyncio
async def test_recruiter_cannot_touch_unassigned_job(api, db, make_user):
    company = await make_user("company")
    recruiter = await make_user("recruiter")
    admin = await make_user("admin")
    r = await api.post("/jobs", json={
        "title": "QA", "company": "Acme", "location": "Lima", "salary": "1000",
        "job_type": "full-time", "description": "Testing",
    }, headers=auth_header(admin))
    job_id = r.json()["id"]
    await db.jobs.update_one({"title": "QA"}, {"$set": {"status": "active", "owner_id": str(company["_id"])}})

    r = await api.post("/applications", json={
        "job_id": job_id, "candidate_name": "Luis", "candidate_email": "luis@example.com",
    })
    application_id = r.json()["id"]

    r = await api.put(f"/recruiter/applications/{application_id}/status", json={"status": "reviewing"},
                      headers=auth_header(recruiter))

    assert r.status_code == 403
    assert r.json() == {"success": False, "error": "You are not allowed to perform this action"}


@pytest.mark.asyncio
async def test_specialist_status_before_release_is_409(api, db, make_user):
    admin = await make_user("admin")
    recruiter = await make_user("recruiter")
    specialist = await make_user("specialist")
    r = await api.post("/jobs", json={
        "title": "QA", "company": "Acme", "location": "Lima", "salary": "1000",
        "job_type": "full-time", "description": "Testing", "publish_now": True,
    }, headers=auth_header(admin))
    job_id = r.json()["id"]
    r = await api.post("/admin/assignments", json={
        "job_id": job_id, "recruiter_id": str(recruiter["_id"]), "specialist_id": str(specialist["_id"]),
    }, headers=auth_header(admin))
    assignment_id = r.json()["data"]["id"]

    r = await api.put(f"/specialist/assignments/{assignment_id}/status", json={"status": "completed"},
                      headers=auth_header(specialist))
    assert r.status_code == 409

    r = await api.post(f"/recruiter/assignments/{assignment_id}/release", headers=auth_header(recruiter))
    assert r.status_code == 200
    assert r.json()["specialist_status"] == "pending"

    r = await api.put(f"/specialist/assignments/{assignment_id}/status", json={"status": "completed"},
                      headers=auth_header(specialist))
    assert r.status_code == 200
    assert r.json()["specialist_status"] == "completed"


@pytest.mark.asyncio
async def test_unknown_status_filter_is_rejected(api, make_user):
    candidate = await make_user("candidate")
    admin = await make_user("admin")

    mine = await api.get("/my-applications", params={"status": "hired"}, headers=auth_header(candidate))
    everyone = await api.get("/admin/applications", params={"status": "hired"}, headers=auth_header(admin))
    known = await api.get("/my-applications", params={"status": "pending"}, headers=auth_header(candidate))

    assert mine.status_code == 400
    assert mine.json() == {"success": False, "error": "Unknown status: hired"}
    assert everyone.status_code == 400
    assert known.status_code == 200
    assert known.json() == []
