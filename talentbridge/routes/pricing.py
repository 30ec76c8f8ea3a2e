# ========================================
# talentbridge/routes/pricing.py
# ========================================

from fastapi import APIRouter, Depends, status
from typing import List

from talentbridge.database import get_db, next_sequence
from talentbridge.schemas.pricing import (
    PricingQuoteRequest,
    PricingQuoteResponse,
    PricingOptions,
    PricingRuleCreate,
    PricingRuleUpdate,
    PricingRuleResponse,
)
from talentbridge.services.admission import (
    admission_guard,
    ADMIN_WRITE_LIMIT,
    PRICING_QUOTE_LIMIT,
)
from talentbridge.services.pricing import resolve_credit_cost, pricing_options
from talentbridge.utils.auth import require_roles
from talentbridge.utils.errors import AlreadyProcessed, NotFound, ValidationError

router = APIRouter()

KEY_FIELDS = ("profile", "seniority", "work_mode", "location")

# ===========================
# PUBLIC QUOTES
# ===========================

# ✅ 1. QUOTE A JOB (same numbers the server charges)
@router.post("/pricing/calculate", response_model=PricingQuoteResponse,
             dependencies=[Depends(admission_guard("pricing-quote", PRICING_QUOTE_LIMIT))])
async def calculate_price(body: PricingQuoteRequest):
    """Credit cost for a profile / seniority / work mode combination."""
    quote = await resolve_credit_cost(get_db(), body.profile, body.seniority, body.work_mode)
    return quote.as_dict()


# ✅ 2. AVAILABLE PRICING OPTIONS
@router.get("/pricing/calculate", response_model=PricingOptions)
async def get_pricing_options():
    """Distinct values available in the active pricing table."""
    return await pricing_options(get_db())


# ===========================
# ADMIN: PRICING TABLE
# ===========================

# ✅ 3. LIST RULES
@router.get("/admin/pricing", response_model=List[PricingRuleResponse])
async def list_pricing_rules(current_user: dict = Depends(require_roles("admin"))):
    db = get_db()
    rules = await db.pricing_rules.find({}).sort("id", 1).to_list(1000)
    return rules


# ✅ 4. CREATE RULE
@router.post("/admin/pricing", response_model=PricingRuleResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(admission_guard("admin-pricing", ADMIN_WRITE_LIMIT))])
async def create_pricing_rule(rule: PricingRuleCreate, current_user: dict = Depends(require_roles("admin"))):
    """New rules always get a higher id, so existing quotes keep winning ties."""
    db = get_db()
    document = rule.model_dump()
    document["location"] = document["location"] or None

    if await db.pricing_rules.find_one({key: document[key] for key in KEY_FIELDS}):
        raise AlreadyProcessed("A rule for this profile, seniority, work mode and location already exists")

    document["id"] = await next_sequence(db, "pricing_rules")
    await db.pricing_rules.insert_one(document)
    return document


# ✅ 5. UPDATE RULE
@router.put("/admin/pricing/{rule_id}", response_model=PricingRuleResponse,
            dependencies=[Depends(admission_guard("admin-pricing", ADMIN_WRITE_LIMIT))])
async def update_pricing_rule(
    rule_id: int,
    changes: PricingRuleUpdate,
    current_user: dict = Depends(require_roles("admin")),
):
    """Edits only affect future quotes; jobs keep the credit cost they were charged."""
    db = get_db()
    existing = await db.pricing_rules.find_one({"id": rule_id})
    if not existing:
        raise NotFound(f"pricing rule {rule_id}")

    update = changes.model_dump(exclude_unset=True)
    if "location" in update:
        update["location"] = update["location"] or None
    if not update:
        raise ValidationError("No fields to update")

    if any(key in update for key in KEY_FIELDS):
        key = {field: update.get(field, existing.get(field)) for field in KEY_FIELDS}
        if await db.pricing_rules.find_one({**key, "id": {"$ne": rule_id}}):
            raise AlreadyProcessed("Another rule already uses this combination")

    await db.pricing_rules.update_one({"id": rule_id}, {"$set": update})
    return await db.pricing_rules.find_one({"id": rule_id})


# ✅ 6. DELETE RULE
@router.delete("/admin/pricing/{rule_id}",
               dependencies=[Depends(admission_guard("admin-pricing", ADMIN_WRITE_LIMIT))])
async def delete_pricing_rule(rule_id: int, current_user: dict = Depends(require_roles("admin"))):
    db = get_db()
    result = await db.pricing_rules.delete_one({"id": rule_id})
    if result.deleted_count == 0:
        raise NotFound(f"pricing rule {rule_id}")
    return {"message": "Pricing rule deleted", "id": rule_id}
