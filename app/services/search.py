from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import re
from typing import Callable

from app.services.caregivers import CaregiverRecord
from app.services.intent import MedicalIntent
from app.services.store import CaregiverStore, StoreError


logger = logging.getLogger(__name__)

LOW_CONFIDENCE_THRESHOLD = 0.7

SEARCH_STOPWORDS = {
    "a",
    "an",
    "the",
    "and",
    "or",
    "for",
    "to",
    "of",
    "in",
    "on",
    "with",
    "my",
    "me",
    "i",
    "am",
    "is",
    "are",
    "have",
    "has",
    "had",
    "need",
    "help",
    "please",
    "some",
    "someone",
    "who",
    "can",
    "looking",
    "find",
    "want",
    "from",
    "since",
    "days",
    "very",
}


@dataclass(frozen=True)
class CandidatePool:
    target_count: int
    records: tuple[CaregiverRecord, ...] = ()
    stages_run: tuple[str, ...] = ()
    failed_stages: tuple[str, ...] = ()
    fallback_used: bool = False

    @property
    def needs_more(self) -> bool:
        return len(self.records) < self.target_count

    @property
    def seen_ids(self) -> set[str]:
        return {item.caregiver_id for item in self.records if item.caregiver_id}

    def extend(self, stage: str, found: list[CaregiverRecord], cap: int | None = None) -> "CandidatePool":
        seen = self.seen_ids
        added: list[CaregiverRecord] = []
        for record in found:
            if len(self.records) + len(added) >= self.target_count:
                break
            if cap is not None and len(added) >= cap:
                break
            if record.caregiver_id and record.caregiver_id in seen:
                continue
            if record.caregiver_id:
                seen.add(record.caregiver_id)
            added.append(record)
        logger.debug("Stage %s added %d of %d candidates", stage, len(added), len(found))
        return replace(self, records=self.records + tuple(added), stages_run=self._mark(stage))

    def failed(self, stage: str) -> "CandidatePool":
        failed_stages = self.failed_stages if stage in self.failed_stages else self.failed_stages + (stage,)
        return replace(self, stages_run=self._mark(stage), failed_stages=failed_stages)

    def _mark(self, stage: str) -> tuple[str, ...]:
        return self.stages_run if stage in self.stages_run else self.stages_run + (stage,)


@dataclass
class SearchOutcome:
    candidates: list[CaregiverRecord]
    fallback_used: bool
    stages_run: list[str] = field(default_factory=list)
    failed_stages: list[str] = field(default_factory=list)

    @property
    def store_unavailable(self) -> bool:
        if self.candidates or not self.stages_run:
            return False
        return set(self.failed_stages) == set(self.stages_run)


Stage = Callable[[CandidatePool], CandidatePool]


def query_keywords(query: str) -> list[str]:
    tokens = re.findall(r"[\w\u0900-\u097F]+", query.lower())
    return [token for token in tokens if token not in SEARCH_STOPWORDS and len(token) > 2]


def bio_search_terms(intent: MedicalIntent) -> list[str]:
    terms: list[str] = []
    candidates = [*intent.symptoms, intent.raw_query]
    if intent.confidence < LOW_CONFIDENCE_THRESHOLD:
        candidates.extend(query_keywords(intent.raw_query))

    seen: set[str] = set()
    for term in candidates:
        cleaned = term.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            terms.append(cleaned)
    return terms


class CandidateSearcher:
    def __init__(self, store: CaregiverStore, bio_term_limit: int = 3):
        self.store = store
        self.bio_term_limit = bio_term_limit

    def stages(self, intent: MedicalIntent, provider_type: str | None = None) -> list[tuple[str, Stage]]:
        """Ordered stages; a non-"any" provider_type restricts every stage to that type."""
        restrict = provider_type if provider_type and provider_type != "any" else None
        return [
            ("specialization", lambda pool: self._specialization_stage(pool, intent, restrict)),
            ("provider_type", lambda pool: self._provider_type_stage(pool, intent, restrict)),
            ("bio", lambda pool: self._bio_stage(pool, intent, restrict)),
            ("generic", lambda pool: self._generic_stage(pool, restrict)),
        ]

    def search(
        self,
        intent: MedicalIntent,
        location: tuple[float, float] | None = None,
        target_count: int = 10,
        provider_type: str | None = None,
    ) -> SearchOutcome:
        # Location only influences ranking; the store primitives have no geo predicate.
        pool = run_cascade(self.stages(intent, provider_type), CandidatePool(target_count=max(target_count, 1)))
        logger.info(
            "Candidate search collected %d caregivers via %s (failed: %s)",
            len(pool.records),
            ", ".join(pool.stages_run) or "no stages",
            ", ".join(pool.failed_stages) or "none",
        )
        return SearchOutcome(
            candidates=list(pool.records),
            fallback_used=pool.fallback_used,
            stages_run=list(pool.stages_run),
            failed_stages=list(pool.failed_stages),
        )

    def _query(self, pool: CandidatePool, stage: str, fetch: Callable[[], list[CaregiverRecord]]):
        try:
            return fetch(), pool
        except StoreError as exc:
            logger.warning("Store stage %s unavailable: %s", stage, exc)
            return None, pool.failed(stage)

    def _specialization_stage(self, pool: CandidatePool, intent: MedicalIntent, restrict: str | None) -> CandidatePool:
        if not intent.specializations:
            return pool
        found, pool = self._query(
            pool,
            "specialization",
            lambda: self.store.find_by_specializations(
                intent.specializations, limit=pool.target_count, provider_type=restrict
            ),
        )
        return pool if found is None else pool.extend("specialization", found)

    def _provider_type_stage(self, pool: CandidatePool, intent: MedicalIntent, restrict: str | None) -> CandidatePool:
        provider_type = restrict or intent.provider_type_hint
        if provider_type == "any":
            return pool
        limit = pool.target_count + len(pool.records)
        found, pool = self._query(
            pool,
            "provider_type",
            lambda: self.store.find_by_provider_type(provider_type, limit=limit),
        )
        return pool if found is None else pool.extend("provider_type", found)

    def _bio_stage(self, pool: CandidatePool, intent: MedicalIntent, restrict: str | None) -> CandidatePool:
        for term in bio_search_terms(intent):
            if not pool.needs_more:
                break
            limit = self.bio_term_limit + len(pool.records)
            found, pool = self._query(
                pool, "bio", lambda: self.store.find_by_bio(term, limit=limit, provider_type=restrict)
            )
            if found is not None:
                pool = pool.extend("bio", found, cap=self.bio_term_limit)
        return pool

    def _generic_stage(self, pool: CandidatePool, restrict: str | None = None) -> CandidatePool:
        if pool.records:
            return pool
        found, pool = self._query(
            pool,
            "generic",
            lambda: self.store.find_top_by_experience(limit=pool.target_count, provider_type=restrict),
        )
        if found is None:
            return pool
        return replace(pool.extend("generic", found), fallback_used=True)


def run_cascade(stages: list[tuple[str, Stage]], pool: CandidatePool) -> CandidatePool:
    for name, stage in stages:
        if not pool.needs_more:
            logger.debug("Target reached before stage %s", name)
            break
        pool = stage(pool)
    return pool
