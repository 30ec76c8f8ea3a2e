from pydantic import BaseModel, Field
from typing import Optional, List, Literal

Seniority = Literal["Practicante", "Jr", "Middle", "Sr", "Director"]
WorkMode = Literal["remote", "hybrid", "presential"]


class PricingQuoteRequest(BaseModel):
    profile: str
    seniority: str
    work_mode: str


class PricingQuoteResponse(BaseModel):
    success: bool = True
    credits: int
    found: bool
    matched_rule_id: Optional[int] = None


class PricingOptions(BaseModel):
    profiles: List[str]
    seniorities: List[str]
    work_modes: List[str]
    locations: List[str]


class PricingRuleCreate(BaseModel):
    profile: str = Field(..., min_length=1)
    seniority: Seniority
    work_mode: WorkMode
    location: Optional[str] = None
    credits: int = Field(..., ge=0)
    min_salary: Optional[int] = None
    is_active: bool = True


class PricingRuleUpdate(BaseModel):
    profile: Optional[str] = None
    seniority: Optional[Seniority] = None
    work_mode: Optional[WorkMode] = None
    location: Optional[str] = None
    credits: Optional[int] = Field(None, ge=0)
    min_salary: Optional[int] = None
    is_active: Optional[bool] = None


class PricingRuleResponse(PricingRuleCreate):
    id: int
