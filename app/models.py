from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CaregiverItem(CamelModel):
    id: str
    name: str
    provider_type: str
    specializations: list[str]
    bio: str
    experience_years: int
    rating: float
    total_reviews: int
    languages: list[str]
    latitude: float | None = None
    longitude: float | None = None
    consultation_fee: float | None = None
    home_visit_fee: float | None = None
    is_verified: bool


class RankedResultItem(CamelModel):
    caregiver: CaregiverItem
    match_score: int = Field(..., ge=0, le=100)
    distance_km: float | None = Field(default=None, ge=0)
    reason: str
    rank: int = Field(..., ge=1)


class IntentItem(CamelModel):
    symptoms: list[str]
    specializations: list[str]
    provider_type_hint: Literal["doctor", "nurse", "therapist", "community_worker", "any"]
    urgency: Literal["low", "medium", "high", "emergency"]
    confidence: float = Field(..., ge=0, le=1)
    raw_query: str
    language: str
    reasoning: str
    strategy: str


class MatchResponse(CamelModel):
    query: str
    language: str
    results: list[RankedResultItem]
    intent: IntentItem
    fallback_used: bool
    message: str | None = None
    urgency_message: str | None = None
    disclaimer: str


class SpecializationItem(CamelModel):
    specialization: str
    caregiver_count: int


class SpecializationListResponse(CamelModel):
    specializations: list[SpecializationItem]
