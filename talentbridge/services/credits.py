# ========================================
# talentbridge/services/credits.py
# ========================================

from datetime import datetime
from typing import Dict, Optional

from pymongo import ReturnDocument

from talentbridge.utils.errors import InsufficientCredits, NotFound, translate_storage_errors
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)


async def _record(db, user_id, kind: str, amount: int, before: int, after: int,
                  description: str, job_id: Optional[str]):
    await db.credit_transactions.insert_one({
        "user_id": str(user_id),
        "job_id": job_id,
        "type": kind,
        "amount": amount,
        "balance_before": before,
        "balance_after": after,
        "description": description,
        "created_at": datetime.utcnow(),
    })


@translate_storage_errors
async def charge(db, user: Dict, amount: int, description: str, job_id: Optional[str] = None) -> Dict:
    """Atomically take `amount` credits from `user` or raise InsufficientCredits."""
    if amount <= 0:
        return user

    updated = await db.users.find_one_and_update(
        {"_id": user["_id"], "credits": {"$gte": amount}},
        {"$inc": {"credits": -amount}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        latest = await db.users.find_one({"_id": user["_id"]})
        if latest is None:
            raise NotFound(f"user {user['_id']}")
        raise InsufficientCredits(required=amount, available=latest.get("credits", 0))

    await _record(db, user["_id"], "spend", -amount, updated["credits"] + amount, updated["credits"],
                  description, job_id)
    logger.info("Charged %s credits to %s (%s)", amount, user["_id"], description)
    return updated


@translate_storage_errors
async def refund(db, user: Dict, amount: int, description: str, job_id: Optional[str] = None) -> Dict:
    if amount <= 0:
        return user

    updated = await db.users.find_one_and_update(
        {"_id": user["_id"]},
        {"$inc": {"credits": amount}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound(f"user {user['_id']}")

    await _record(db, user["_id"], "refund", amount, updated["credits"] - amount, updated["credits"],
                  description, job_id)
    logger.info("Refunded %s credits to %s (%s)", amount, user["_id"], description)
    return updated
