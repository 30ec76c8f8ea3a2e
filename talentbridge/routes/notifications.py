# ========================================
# talentbridge/routes/notifications.py
# ========================================

from fastapi import APIRouter, Depends, Query
from typing import Optional

from talentbridge.database import get_db
from talentbridge.schemas.notification import NotificationMarkRead
from talentbridge.services import notifications as inbox
from talentbridge.services.admission import admission_guard, NOTIFICATION_WRITE_LIMIT
from talentbridge.utils.auth import get_current_user
from talentbridge.utils.errors import ValidationError
from talentbridge.utils.pagination import PageParams, page_params, paginated

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _notification_out(doc: dict) -> dict:
    data = {key: value for key, value in doc.items() if key not in ("_id", "user_id")}
    data["id"] = str(doc["_id"])
    return data


# ✅ 1. MY NOTIFICATIONS
@router.get("")
async def list_my_notifications(
    read: Optional[bool] = Query(None, description="Filter by read state"),
    params: PageParams = Depends(page_params),
    current_user: dict = Depends(get_current_user),
):
    items, total = await inbox.list_notifications(
        get_db(), str(current_user["_id"]), read, params.skip, params.limit
    )
    return paginated([_notification_out(n) for n in items], total, params)


# ✅ 2. UNREAD COUNT
@router.get("/count")
async def count_unread(current_user: dict = Depends(get_current_user)):
    count = await inbox.unread_count(get_db(), str(current_user["_id"]))
    return {"success": True, "unread": count}


# ✅ 3. MARK AS READ
@router.patch("", dependencies=[Depends(admission_guard("notifications", NOTIFICATION_WRITE_LIMIT))])
async def mark_as_read(body: NotificationMarkRead, current_user: dict = Depends(get_current_user)):
    if not body.all and not body.ids:
        raise ValidationError("Provide notification ids or all=true")

    updated = await inbox.mark_read(get_db(), str(current_user["_id"]), ids=body.ids, all_=body.all)
    return {"success": True, "updated": updated}
