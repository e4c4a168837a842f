from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from app import config
from app.models import (
    CaregiverItem,
    IntentItem,
    MatchResponse,
    RankedResultItem,
    SpecializationItem,
    SpecializationListResponse,
)
from app.services.caregivers import CaregiverRecord
from app.services.intent import PROVIDER_TYPES, IntentExtractor, LlmIntentExtractor, PatternIntentExtractor
from app.services.llm_client import CompletionClient
from app.services.localization import normalize_language
from app.services.matcher import CaregiverMatcher, StoreUnavailableError
from app.services.ranking import CaregiverRanker, ScoringWeights
from app.services.search import CandidateSearcher
from app.services.sql_store import SqlCaregiverStore
from app.services.store import CaregiverStore, JsonCaregiverStore, StoreError
from app.services.vocabulary import DEFAULT_KEYWORD_TABLE


config.configure_logging()


def build_store() -> CaregiverStore:
    if config.CAREGIVER_DB_URL:
        return SqlCaregiverStore.from_url(config.CAREGIVER_DB_URL, timeout=config.STORE_TIMEOUT_SECONDS)
    return JsonCaregiverStore.from_json(config.CAREGIVER_SEED_PATH)


def build_extractor() -> IntentExtractor:
    pattern = PatternIntentExtractor(DEFAULT_KEYWORD_TABLE)
    llm = None
    if config.LLM_API_KEY:
        client = CompletionClient(
            api_key=config.LLM_API_KEY,
            model=config.LLM_MODEL,
            base_url=config.LLM_BASE_URL,
            timeout=config.LLM_TIMEOUT_SECONDS,
        )
        llm = LlmIntentExtractor(client=client, table=DEFAULT_KEYWORD_TABLE, defaults=pattern)
    return IntentExtractor(pattern=pattern, llm=llm, table=DEFAULT_KEYWORD_TABLE)


store = build_store()
matcher = CaregiverMatcher(
    extractor=build_extractor(),
    searcher=CandidateSearcher(store=store, bio_term_limit=config.BIO_TERM_LIMIT),
    ranker=CaregiverRanker(ScoringWeights.from_config()),
    page_size=config.MATCH_PAGE_SIZE,
    target_count=config.SEARCH_TARGET_COUNT,
    cache_ttl_seconds=config.INTENT_CACHE_TTL_SECONDS,
)

app = FastAPI(
    title="Caregiver Match Service",
    version="0.1.0",
    description="Matches free-text health concerns to doctors, nurses, therapists and community health workers",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def to_caregiver_item(record: CaregiverRecord, language: str) -> CaregiverItem:
    return CaregiverItem(
        id=record.caregiver_id,
        name=record.name,
        provider_type=record.provider_type,
        specializations=list(record.specializations),
        bio=record.bio_for(language),
        experience_years=record.experience_years,
        rating=record.rating,
        total_reviews=record.total_reviews,
        languages=list(record.languages),
        latitude=record.latitude,
        longitude=record.longitude,
        consultation_fee=record.consultation_fee,
        home_visit_fee=record.home_visit_fee,
        is_verified=record.is_verified,
    )


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok", "service": "caregiver-match"}


@app.get("/match", response_model=MatchResponse)
def match_caregivers(
    query: str | None = Query(default=None, max_length=800),
    lang: str = Query(default="en", max_length=5),
    lat: float | None = Query(default=None, ge=-90, le=90),
    lon: float | None = Query(default=None, ge=-180, le=180),
    provider_type: str | None = Query(default=None, alias="type"),
    radius: float | None = Query(default=None, gt=0, le=20000),
) -> MatchResponse:
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query is required")
    if provider_type is not None and provider_type not in PROVIDER_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown provider type: {provider_type}")

    language = normalize_language(lang)
    location = (lat, lon) if lat is not None and lon is not None else None

    try:
        outcome = matcher.match(
            query=query,
            location=location,
            language=language,
            provider_type=provider_type,
            max_distance_km=radius,
        )
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=500, detail="Caregiver search is temporarily unavailable.") from exc

    intent = outcome.intent
    return MatchResponse(
        query=query.strip(),
        language=language,
        results=[
            RankedResultItem(
                caregiver=to_caregiver_item(item.caregiver, language),
                match_score=item.match_score,
                distance_km=item.distance_km,
                reason=item.reason,
                rank=item.rank,
            )
            for item in outcome.results
        ],
        intent=IntentItem(
            symptoms=list(intent.symptoms),
            specializations=list(intent.specializations),
            provider_type_hint=intent.provider_type_hint,
            urgency=intent.urgency,
            confidence=intent.confidence,
            raw_query=intent.raw_query,
            language=intent.language,
            reasoning=intent.reasoning,
            strategy=intent.strategy,
        ),
        fallback_used=outcome.fallback_used,
        message=outcome.message,
        urgency_message=outcome.urgency_message,
        disclaimer=outcome.disclaimer,
    )


@app.get("/specializations", response_model=SpecializationListResponse)
def specializations() -> SpecializationListResponse:
    try:
        counts = store.specialization_counts()
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="Caregiver search is temporarily unavailable.") from exc

    items = [
        SpecializationItem(specialization=label, caregiver_count=counts.get(label.lower(), 0))
        for label in DEFAULT_KEYWORD_TABLE.vocabulary
    ]
    items.sort(key=lambda item: (-item.caregiver_count, item.specialization))
    return SpecializationListResponse(specializations=items)


@app.get("/caregivers/{caregiver_id}", response_model=CaregiverItem)
def caregiver_detail(caregiver_id: str, lang: str = Query(default="en", max_length=5)) -> CaregiverItem:
    try:
        record = store.get_by_id(caregiver_id)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="Caregiver search is temporarily unavailable.") from exc
    if record is None:
        raise HTTPException(status_code=404, detail="Caregiver not found")
    return to_caregiver_item(record, normalize_language(lang))
