from __future__ import annotations

from dataclasses import dataclass
import logging

from app import config
from app.services.caregivers import CaregiverRecord
from app.services.geo import distance_between
from app.services.intent import MedicalIntent
from app.services.localization import format_reason


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    overlap: float = 35.0
    provider_type: float = 20.0
    points_per_year: float = 2.0
    experience_cap: float = 20.0
    points_per_star: float = 5.0
    rating_cap: float = 15.0
    verified: float = 10.0
    near_bonus: float = 10.0
    mid_bonus: float = 5.0
    near_km: float = 5.0
    mid_km: float = 15.0

    @classmethod
    def from_config(cls) -> "ScoringWeights":
        return cls(
            overlap=config.SCORE_OVERLAP_WEIGHT,
            provider_type=config.SCORE_PROVIDER_WEIGHT,
            experience_cap=config.SCORE_EXPERIENCE_CAP,
            rating_cap=config.SCORE_RATING_CAP,
            verified=config.SCORE_VERIFIED_WEIGHT,
            near_bonus=config.SCORE_NEAR_BONUS,
            mid_bonus=config.SCORE_MID_BONUS,
            near_km=config.SCORE_NEAR_KM,
            mid_km=config.SCORE_MID_KM,
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    overlap: float
    experience: float
    rating: float
    verification: float
    proximity: float
    matched_label: str | None = None

    @property
    def total(self) -> int:
        raw = self.overlap + self.experience + self.rating + self.verification + self.proximity
        return int(round(min(max(raw, 0.0), 100.0)))


@dataclass(frozen=True)
class RankedResult:
    caregiver: CaregiverRecord
    match_score: int
    distance_km: float | None
    reason: str
    rank: int
    breakdown: ScoreBreakdown


def _match_terms(intent: MedicalIntent) -> list[str]:
    terms: list[str] = []
    for term in [*intent.specializations, *intent.symptoms]:
        key = term.strip().lower()
        if key and key not in terms:
            terms.append(key)
    return terms


def matched_specialization(caregiver: CaregiverRecord, intent: MedicalIntent) -> str | None:
    terms = _match_terms(intent)
    for label in caregiver.specializations:
        key = label.strip().lower()
        if not key:
            continue
        if any(key == term or term in key or key in term for term in terms):
            return label
    return None


class CaregiverRanker:
    def __init__(self, weights: ScoringWeights | None = None):
        self.weights = weights or ScoringWeights()

    def score(
        self,
        caregiver: CaregiverRecord,
        intent: MedicalIntent,
        location: tuple[float, float] | None = None,
    ) -> tuple[ScoreBreakdown, float | None]:
        weights = self.weights
        label = matched_specialization(caregiver, intent)
        if label is not None:
            overlap = weights.overlap
        elif intent.provider_type_hint != "any" and caregiver.provider_type == intent.provider_type_hint:
            overlap = weights.provider_type
        else:
            overlap = 0.0

        experience = min((caregiver.experience_years or 0) * weights.points_per_year, weights.experience_cap)
        rating = min((caregiver.rating or 0.0) * weights.points_per_star, weights.rating_cap)
        verification = weights.verified if caregiver.is_verified else 0.0

        distance_km = distance_between(location, caregiver.latitude, caregiver.longitude)
        proximity = 0.0
        if distance_km is not None:
            if distance_km <= weights.near_km:
                proximity = weights.near_bonus
            elif distance_km <= weights.mid_km:
                proximity = weights.mid_bonus

        breakdown = ScoreBreakdown(
            overlap=overlap,
            experience=max(experience, 0.0),
            rating=max(rating, 0.0),
            verification=verification,
            proximity=proximity,
            matched_label=label,
        )
        return breakdown, distance_km

    def rank(
        self,
        candidates: list[CaregiverRecord],
        intent: MedicalIntent,
        location: tuple[float, float] | None = None,
    ) -> list[RankedResult]:
        scored: list[tuple[CaregiverRecord, ScoreBreakdown, float | None]] = []
        seen: set[str] = set()
        for caregiver in candidates:
            if not caregiver.caregiver_id:
                logger.warning("Dropping caregiver %r without identity from ranking", caregiver.name)
                continue
            if caregiver.caregiver_id in seen:
                continue
            seen.add(caregiver.caregiver_id)
            breakdown, distance_km = self.score(caregiver, intent, location)
            scored.append((caregiver, breakdown, distance_km))

        # Rating breaks ties the capped rating component cannot separate.
        scored.sort(
            key=lambda item: (
                -item[1].total,
                -(item[0].experience_years or 0),
                -(item[0].rating or 0.0),
                item[0].caregiver_id,
            )
        )

        results: list[RankedResult] = []
        for position, (caregiver, breakdown, distance_km) in enumerate(scored, start=1):
            results.append(
                RankedResult(
                    caregiver=caregiver,
                    match_score=breakdown.total,
                    distance_km=round(distance_km, 2) if distance_km is not None else None,
                    reason=format_reason(
                        language=intent.language,
                        name=caregiver.name,
                        label=breakdown.matched_label,
                        provider_type=caregiver.provider_type,
                        experience=caregiver.experience_years or 0,
                        rating=caregiver.rating or 0.0,
                        distance_km=distance_km,
                    ),
                    rank=position,
                    breakdown=breakdown,
                )
            )
        return results
