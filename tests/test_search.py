from app.services.caregivers import CaregiverRecord
from app.services.intent import MedicalIntent
from app.services.search import (
    CandidatePool,
    CandidateSearcher,
    bio_search_terms,
    query_keywords,
    run_cascade,
)
from app.services.store import JsonCaregiverStore, StoreError


def _caregiver(caregiver_id: str, provider_type: str = "doctor", specializations=(), bio: str = "", experience: int = 5):
    return CaregiverRecord(
        caregiver_id=caregiver_id,
        name=f"Caregiver {caregiver_id}",
        provider_type=provider_type,
        specializations=tuple(specializations),
        bio={"en": bio} if bio else {},
        experience_years=experience,
        rating=4.0,
        is_verified=True,
        is_active=True,
    )


def _intent(specializations=(), provider_type="doctor", symptoms=("chest pain",), query="chest pain", confidence=0.9):
    return MedicalIntent(
        symptoms=tuple(symptoms),
        specializations=tuple(specializations),
        provider_type_hint=provider_type,
        urgency="medium",
        confidence=confidence,
        raw_query=query,
        language="en",
    )


class RecordingStore(JsonCaregiverStore):
    def __init__(self, caregivers, failing=()):
        super().__init__(caregivers)
        self.calls: list[str] = []
        self.failing = set(failing)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise StoreError(f"{name} timed out")

    def find_by_specializations(self, specializations, limit, provider_type=None):
        self._record("specialization")
        return super().find_by_specializations(specializations, limit, provider_type=provider_type)

    def find_by_provider_type(self, provider_type, limit):
        self._record("provider_type")
        return super().find_by_provider_type(provider_type, limit)

    def find_by_bio(self, term, limit, provider_type=None):
        self._record("bio")
        return super().find_by_bio(term, limit, provider_type=provider_type)

    def find_top_by_experience(self, limit, provider_type=None):
        self._record("generic")
        return super().find_top_by_experience(limit, provider_type=provider_type)


def test_specialization_stage_short_circuits_when_target_reached() -> None:
    caregivers = [_caregiver(f"c{index}", specializations=["Cardiology"]) for index in range(4)]
    store = RecordingStore(caregivers)
    outcome = CandidateSearcher(store).search(_intent(["Cardiology"]), target_count=3)

    assert len(outcome.candidates) == 3
    assert store.calls == ["specialization"]
    assert outcome.fallback_used is False


def test_stages_run_in_order_and_deduplicate() -> None:
    caregivers = [
        _caregiver("card", specializations=["Cardiology"], experience=10),
        _caregiver("doc", experience=8),
        _caregiver("nurse", provider_type="nurse", bio="Helps with chest pain at home.", experience=3),
        _caregiver("other", provider_type="therapist", experience=20),
    ]
    store = RecordingStore(caregivers)
    outcome = CandidateSearcher(store).search(_intent(["Cardiology"]), target_count=10)

    ids = [item.caregiver_id for item in outcome.candidates]
    assert ids == ["card", "doc", "nurse"]
    assert store.calls[:2] == ["specialization", "provider_type"]
    assert "generic" not in store.calls
    assert outcome.stages_run == ["specialization", "provider_type", "bio"]


def test_any_provider_and_empty_specializations_skip_stages() -> None:
    store = RecordingStore([_caregiver("a", bio="fever and cough")])
    outcome = CandidateSearcher(store).search(
        _intent(provider_type="any", symptoms=("fever",), query="fever"), target_count=5
    )
    assert "specialization" not in store.calls
    assert "provider_type" not in store.calls
    assert [item.caregiver_id for item in outcome.candidates] == ["a"]


def test_generic_fallback_guarantees_results() -> None:
    caregivers = [_caregiver("junior", experience=2), _caregiver("senior", experience=25)]
    store = RecordingStore(caregivers)
    intent = _intent(provider_type="any", symptoms=("xyzabc",), query="xyzabc", confidence=0.6)
    outcome = CandidateSearcher(store).search(intent, target_count=5)

    assert [item.caregiver_id for item in outcome.candidates] == ["senior", "junior"]
    assert outcome.fallback_used is True
    assert store.calls[-1] == "generic"


def test_requested_provider_type_restricts_every_stage() -> None:
    caregivers = [
        _caregiver("card", specializations=["Cardiology"], experience=10),
        _caregiver("cardnurse", provider_type="nurse", specializations=["Cardiology"], experience=4),
        _caregiver("nurse", provider_type="nurse", bio="Helps with chest pain at home.", experience=3),
        _caregiver("ward", provider_type="nurse", experience=9),
    ]
    outcome = CandidateSearcher(RecordingStore(caregivers)).search(
        _intent(["Cardiology"]), target_count=10, provider_type="nurse"
    )
    assert [item.caregiver_id for item in outcome.candidates] == ["cardnurse", "ward", "nurse"]

    doctors_only = RecordingStore([_caregiver("doc", experience=30)])
    intent = _intent(provider_type="any", symptoms=("xyzabc",), query="xyzabc", confidence=0.6)
    outcome = CandidateSearcher(doctors_only).search(intent, target_count=10, provider_type="nurse")
    assert outcome.candidates == []
    assert doctors_only.calls[-1] == "generic"


def test_failed_stage_degrades_to_next_stage(caplog) -> None:
    caregivers = [_caregiver("card", specializations=["Cardiology"]), _caregiver("doc")]
    store = RecordingStore(caregivers, failing={"specialization"})
    with caplog.at_level("WARNING"):
        outcome = CandidateSearcher(store).search(_intent(["Cardiology"]), target_count=10)

    assert {item.caregiver_id for item in outcome.candidates} == {"card", "doc"}
    assert outcome.failed_stages == ["specialization"]
    assert outcome.store_unavailable is False
    assert "specialization" in caplog.text


def test_every_stage_failing_marks_store_unavailable() -> None:
    store = RecordingStore(
        [_caregiver("a")], failing={"specialization", "provider_type", "bio", "generic"}
    )
    outcome = CandidateSearcher(store).search(_intent(["Cardiology"]), target_count=10)

    assert outcome.candidates == []
    assert outcome.store_unavailable is True
    assert set(outcome.failed_stages) == {"specialization", "provider_type", "bio", "generic"}


def test_bio_stage_caps_each_term() -> None:
    caregivers = [_caregiver(f"n{index}", provider_type="nurse", bio="wound dressing") for index in range(6)]
    store = RecordingStore(caregivers)
    intent = _intent(provider_type="any", symptoms=("wound", "dressing"), query="wound dressing")
    outcome = CandidateSearcher(store, bio_term_limit=2).search(intent, target_count=10)

    # "wound" and "dressing" each add two, the raw query adds the last two.
    assert len(outcome.candidates) == 6
    assert store.calls.count("bio") == 3


def test_low_confidence_adds_query_keywords() -> None:
    confident = _intent(symptoms=("anxiety",), query="I feel anxious at night")
    unsure = _intent(symptoms=("anxiety",), query="I feel anxious at night", confidence=0.5)

    assert bio_search_terms(confident) == ["anxiety", "I feel anxious at night"]
    assert bio_search_terms(unsure) == ["anxiety", "I feel anxious at night", "feel", "anxious", "night"]


def test_query_keywords_drop_stopwords() -> None:
    assert query_keywords("I need help with my knee") == ["knee"]
    assert query_keywords("मुझे बुखार है") == ["मुझे", "बुखार"]


def test_run_cascade_accepts_custom_stages() -> None:
    seen: list[str] = []

    def stage(name, records):
        def run(pool: CandidatePool) -> CandidatePool:
            seen.append(name)
            return pool.extend(name, records)

        return run

    pool = run_cascade(
        [
            ("first", stage("first", [_caregiver("a")])),
            ("second", stage("second", [_caregiver("a"), _caregiver("b")])),
            ("third", stage("third", [_caregiver("c")])),
        ],
        CandidatePool(target_count=2),
    )
    assert [item.caregiver_id for item in pool.records] == ["a", "b"]
    assert seen == ["first", "second"]
