from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import threading
import time

from app.services.intent import IntentExtractor, MedicalIntent
from app.services.localization import normalize_language, t, urgency_message
from app.services.ranking import CaregiverRanker, RankedResult
from app.services.search import CandidateSearcher


logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    pass


@dataclass
class MatchOutcome:
    results: list[RankedResult]
    intent: MedicalIntent
    fallback_used: bool
    message: str | None
    urgency_message: str | None
    disclaimer: str


def _keeps(item: RankedResult, provider_type: str | None, max_distance_km: float | None) -> bool:
    if provider_type and item.caregiver.provider_type != provider_type:
        return False
    # Unknown distance is kept; only a known distance can exceed the radius.
    if max_distance_km is not None and item.distance_km is not None:
        return item.distance_km <= max_distance_km
    return True


class CaregiverMatcher:
    def __init__(
        self,
        extractor: IntentExtractor,
        searcher: CandidateSearcher,
        ranker: CaregiverRanker,
        page_size: int = 10,
        target_count: int = 10,
        cache_ttl_seconds: int = 0,
    ):
        self.extractor = extractor
        self.searcher = searcher
        self.ranker = ranker
        self.page_size = page_size
        self.target_count = target_count
        self.cache_ttl_seconds = cache_ttl_seconds
        self._intent_cache: dict[tuple[str, str], tuple[float, MedicalIntent]] = {}
        self._cache_lock = threading.Lock()

    def match(
        self,
        query: str,
        location: tuple[float, float] | None = None,
        language: str = "en",
        provider_type: str | None = None,
        max_distance_km: float | None = None,
    ) -> MatchOutcome:
        language = normalize_language(language)
        intent = self._extract(query.strip(), language)
        requested_type = provider_type if provider_type and provider_type != "any" else None
        if requested_type:
            intent = replace(intent, provider_type_hint=requested_type)

        outcome = self.searcher.search(
            intent,
            location=location,
            target_count=self.target_count,
            provider_type=requested_type,
        )
        if outcome.store_unavailable:
            raise StoreUnavailableError("Caregiver store is unreachable.")

        ranked = self.ranker.rank(outcome.candidates, intent, location=location)
        kept = [item for item in ranked if _keeps(item, requested_type, max_distance_km)]
        if len(kept) != len(ranked):
            kept = [replace(item, rank=position) for position, item in enumerate(kept, start=1)]
        results = kept[: self.page_size]

        message = None
        if not results:
            message = t(language, "no_results")
        elif outcome.fallback_used:
            message = t(language, "fallback_notice")

        logger.info(
            "Matched %d caregivers for %s intent (urgency=%s, strategy=%s, fallback=%s)",
            len(results),
            "/".join(intent.specializations) or intent.provider_type_hint,
            intent.urgency,
            intent.strategy,
            outcome.fallback_used,
        )
        return MatchOutcome(
            results=results,
            intent=intent,
            fallback_used=outcome.fallback_used,
            message=message,
            urgency_message=urgency_message(language, intent.urgency),
            disclaimer=t(language, "disclaimer"),
        )

    def _extract(self, query: str, language: str) -> MedicalIntent:
        if self.cache_ttl_seconds <= 0:
            return self.extractor.extract(query, language)

        key = (" ".join(query.lower().split()), language)
        now = time.monotonic()
        with self._cache_lock:
            cached = self._intent_cache.get(key)
            if cached and now - cached[0] < self.cache_ttl_seconds:
                return cached[1]

        intent = self.extractor.extract(query, language)
        with self._cache_lock:
            self._intent_cache[key] = (now, intent)
            expired = [item for item, (stamp, _) in self._intent_cache.items() if now - stamp >= self.cache_ttl_seconds]
            for item in expired:
                del self._intent_cache[item]
        return intent
