"""
Tests for the notification outbox and inbox endpoints.
"""
import pytest

from conftest import auth_header
from talentbridge.models.lifecycle import NotificationKind
from talentbridge.services.notifications import NotificationEmitter, NotificationEvent


def event(recipient, entity_id="app-1"):
    return NotificationEvent(
        recipient_user_id=recipient,
        kind=NotificationKind.APPLICATION_STATUS,
        entity_id=entity_id,
        title="Application updated",
        message="Ana moved to reviewing.",
        metadata={"status": "reviewing"},
    )


@pytest.mark.asyncio
async def test_dispatch_writes_to_recipient_inbox(db, make_user):
    user = await make_user("candidate")

    delivered = await NotificationEmitter(db).dispatch([event(str(user["_id"]))])

    assert delivered == 1
    stored = await db.notifications.find_one({"user_id": str(user["_id"])})
    assert stored["kind"] == "application_status"
    assert stored["read"] is False
    assert stored["metadata"] == {"status": "reviewing", "entity_id": "app-1"}


@pytest.mark.asyncio
async def test_no_recipient_fans_out_to_active_admins(db, make_user):
    await make_user("admin")
    await make_user("admin")
    await make_user("admin", is_active=False)
    await make_user("recruiter")

    delivered = await NotificationEmitter(db).dispatch([event(None)])

    assert delivered == 2
    assert await db.notifications.count_documents({}) == 2


class BrokenInbox:
    async def insert_many(self, documents):
        raise RuntimeError("inbox down")


class BrokenDb:
    notifications = BrokenInbox()


@pytest.mark.asyncio
async def test_delivery_failure_is_logged_not_raised(caplog):
    delivered = await NotificationEmitter(BrokenDb()).dispatch([event("user-1"), event("user-2")])

    assert delivered == 0
    assert "Failed to deliver" in caplog.text


# ===========================
# HTTP
# ===========================

@pytest.mark.asyncio
async def test_inbox_lists_counts_and_marks_read(api, db, make_user):
    user = await make_user("recruiter")
    other = await make_user("recruiter")
    emitter = NotificationEmitter(db)
    await emitter.dispatch([event(str(user["_id"]), f"app-{i}") for i in range(3)])
    await emitter.dispatch([event(str(other["_id"]))])
    headers = auth_header(user)

    count = await api.get("/notifications/count", headers=headers)
    assert count.json() == {"success": True, "unread": 3}

    page = await api.get("/notifications", params={"limit": 2}, headers=headers)
    body = page.json()
    assert len(body["data"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["has_next"] is True

    first_id = body["data"][0]["id"]
    marked = await api.patch("/notifications", json={"ids": [first_id]}, headers=headers)
    assert marked.json()["updated"] == 1

    unread = await api.get("/notifications", params={"read": "false"}, headers=headers)
    assert unread.json()["pagination"]["total"] == 2

    await api.patch("/notifications", json={"all": True}, headers=headers)
    count = await api.get("/notifications/count", headers=headers)
    assert count.json()["unread"] == 0
    # Other users' inboxes are untouched
    assert await db.notifications.count_documents({"user_id": str(other["_id"]), "read": False}) == 1


@pytest.mark.asyncio
async def test_mark_read_needs_ids_or_all(api, make_user):
    user = await make_user("candidate")

    r = await api.patch("/notifications", json={}, headers=auth_header(user))

    assert r.status_code == 400
    assert r.json()["error"] == "Provide notification ids or all=true"


@pytest.mark.asyncio
async def test_inbox_requires_authentication(api):
    r = await api.get("/notifications")

    assert r.status_code in (401, 403)
