# ========================================
# talentbridge/services/pricing.py
# ========================================
"""Credit pricing resolver.

Every place that quotes or charges a job posting goes through
`resolve_credit_cost`, so the preview shown to a company and the amount
actually charged are always the same number.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from talentbridge.config import DEFAULT_CREDITS
from talentbridge.utils.errors import translate_storage_errors
from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)

# Lowest id wins when several active rules match
_ID_ASCENDING = [("id", 1)]


@dataclass(frozen=True)
class CreditQuote:
    credits: int
    found: bool
    matched_rule_id: Optional[int] = None

    def as_dict(self) -> Dict:
        data = {"credits": self.credits, "found": self.found}
        if self.matched_rule_id is not None:
            data["matched_rule_id"] = self.matched_rule_id
        return data


@dataclass(frozen=True)
class RuleLookup:
    """One step of the fallback chain: a named filter over active rules."""

    name: str
    location_agnostic_only: bool

    def build_query(self, profile: str, seniority: str, work_mode: str) -> Dict:
        query = {
            "profile": profile,
            "seniority": seniority,
            "work_mode": work_mode,
            "is_active": True,
        }
        if self.location_agnostic_only:
            query["location"] = None
        return query

    async def first_match(self, db, profile: str, seniority: str, work_mode: str) -> Optional[Dict]:
        return await db.pricing_rules.find_one(
            self.build_query(profile, seniority, work_mode),
            sort=_ID_ASCENDING,
        )


# Rules without a location are the canonical price; location-scoped rows
# only answer when no canonical row exists (older data).
PRICING_STRATEGY: Tuple[RuleLookup, ...] = (
    RuleLookup(name="location_agnostic", location_agnostic_only=True),
    RuleLookup(name="any_location", location_agnostic_only=False),
)


@translate_storage_errors
async def resolve_credit_cost(db, profile: Optional[str], seniority: Optional[str],
                              work_mode: Optional[str]) -> CreditQuote:
    if not profile or not seniority or not work_mode:
        return CreditQuote(credits=DEFAULT_CREDITS, found=False)

    for step in PRICING_STRATEGY:
        rule = await step.first_match(db, profile, seniority, work_mode)
        if rule:
            logger.debug(
                "Pricing %s/%s/%s matched rule %s via %s",
                profile, seniority, work_mode, rule["id"], step.name,
            )
            return CreditQuote(credits=rule["credits"], found=True, matched_rule_id=rule["id"])

    logger.info("No pricing rule for %s/%s/%s, using default", profile, seniority, work_mode)
    return CreditQuote(credits=DEFAULT_CREDITS, found=False)


@translate_storage_errors
async def minimum_salary(db, profile: str, seniority: str, work_mode: str) -> Optional[int]:
    """Minimum salary configured on the first matching active rule, if any."""
    rule = await db.pricing_rules.find_one(
        {"profile": profile, "seniority": seniority, "work_mode": work_mode, "is_active": True},
        sort=_ID_ASCENDING,
    )
    if rule:
        return rule.get("min_salary")
    return None


@translate_storage_errors
async def pricing_options(db) -> Dict[str, List[str]]:
    """Distinct values available in the active pricing table."""
    active = {"is_active": True}
    locations = await db.pricing_rules.distinct("location", {"is_active": True, "location": {"$ne": None}})
    return {
        "profiles": sorted(await db.pricing_rules.distinct("profile", active)),
        "seniorities": sorted(await db.pricing_rules.distinct("seniority", active)),
        "work_modes": sorted(await db.pricing_rules.distinct("work_mode", active)),
        "locations": sorted(loc for loc in locations if loc),
    }
