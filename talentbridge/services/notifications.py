# ========================================
# talentbridge/services/notifications.py
# ========================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

from talentbridge.models.lifecycle import NotificationKind, Role
from talentbridge.utils.errors import translate_storage_errors
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    """Outbox entry produced by a lifecycle transition.

    `recipient_user_id=None` fans out to every active admin.
    """

    recipient_user_id: Optional[str]
    kind: NotificationKind
    entity_id: str
    title: str
    message: str
    link: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class NotificationEmitter:
    """Delivers outbox events into user inboxes (the `notifications` collection)."""

    def __init__(self, db):
        self.db = db

    async def dispatch(self, events: Iterable[NotificationEvent]) -> int:
        delivered = 0
        for event in events:
            try:
                delivered += await self._deliver(event)
            except Exception:
                # Delivery is best-effort; the transition is already persisted
                logger.exception("Failed to deliver %s notification for %s", event.kind.value, event.entity_id)
        return delivered

    async def _deliver(self, event: NotificationEvent) -> int:
        if event.recipient_user_id is not None:
            recipients = [event.recipient_user_id]
        else:
            admins = await self.db.users.find(
                {"role": Role.ADMIN.value, "is_active": {"$ne": False}},
                {"_id": 1},
            ).to_list(1000)
            recipients = [str(admin["_id"]) for admin in admins]

        if not recipients:
            logger.info("No recipients for %s notification on %s", event.kind.value, event.entity_id)
            return 0

        now = datetime.utcnow()
        documents = [
            {
                "user_id": user_id,
                "kind": event.kind.value,
                "entity_id": event.entity_id,
                "title": event.title,
                "message": event.message,
                "link": event.link,
                "metadata": {**event.metadata, "entity_id": event.entity_id},
                "read": False,
                "read_at": None,
                "created_at": now,
            }
            for user_id in recipients
        ]
        await self.db.notifications.insert_many(documents)
        return len(documents)


# ===========================
# READ SIDE
# ===========================

@translate_storage_errors
async def unread_count(db, user_id: str) -> int:
    return await db.notifications.count_documents({"user_id": user_id, "read": False})


@translate_storage_errors
async def list_notifications(db, user_id: str, read: Optional[bool], skip: int, limit: int):
    query: Dict[str, Any] = {"user_id": user_id}
    if read is not None:
        query["read"] = read

    total = await db.notifications.count_documents(query)
    items = await db.notifications.find(query).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
    return items, total


@translate_storage_errors
async def mark_read(db, user_id: str, ids: Optional[List[str]] = None, all_: bool = False) -> int:
    now = datetime.utcnow()
    if all_:
        query = {"user_id": user_id, "read": False}
    else:
        object_ids = [ObjectId(i) for i in ids or [] if ObjectId.is_valid(i)]
        if not object_ids:
            return 0
        query = {"_id": {"$in": object_ids}, "user_id": user_id}

    result = await db.notifications.update_many(query, {"$set": {"read": True, "read_at": now}})
    return result.modified_count


def queue_notifications(background_tasks, db, events: Iterable[NotificationEvent]):
    """Deliver after the response is sent; the transition is already stored."""
    events = list(events)
    if events:
        background_tasks.add_task(NotificationEmitter(db).dispatch, events)
