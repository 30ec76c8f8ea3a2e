"""
Shared fixtures: an in-memory Mongo (mongomock-motor) and an HTTP client
bound to the FastAPI app.
"""
import httpx
import pytest
import pytest_asyncio
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from talentbridge import database
from talentbridge.main import app
from talentbridge.services.admission import AdmissionController
from talentbridge.utils.auth import create_access_token


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    mock_db = client["talentbridge_test"]
    await database.ensure_indexes(mock_db)
    return mock_db


@pytest.fixture
def make_user(db):
    """Factory inserting a user with the given role."""

    async def _make_user(role, credits=0, **extra):
        user = {
            "name": f"{role.title()} User",
            "email": f"{role}-{ObjectId()}@example.com",
            "role": role,
            "credits": credits,
            "is_active": True,
            **extra,
        }
        result = await db.users.insert_one(user)
        user["_id"] = result.inserted_id
        return user

    return _make_user


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user['email']})}"}


@pytest_asyncio.fixture
async def api(db, monkeypatch):
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setattr(app.state, "admission", AdmissionController())

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def add_rule(db, rule_id, credits, profile="Tecnología", seniority="Sr", work_mode="remote",
                   location=None, is_active=True, **extra):
    rule = {
        "id": rule_id,
        "profile": profile,
        "seniority": seniority,
        "work_mode": work_mode,
        "location": location,
        "credits": credits,
        "is_active": is_active,
        **extra,
    }
    await db.pricing_rules.insert_one(rule)
    return rule


async def add_job(db, owner, status="active", **fields):
    job = {
        "title": "Backend Developer",
        "company": "Acme",
        "location": "Lima, Lima",
        "salary": "3000-4000",
        "job_type": "full-time",
        "work_mode": "remote",
        "description": "Build APIs",
        "profile": "Tecnología",
        "seniority": "Sr",
        "owner_id": str(owner["_id"]),
        "status": status,
        "credit_cost": 5,
        **fields,
    }
    result = await db.jobs.insert_one(job)
    job["_id"] = result.inserted_id
    return job
