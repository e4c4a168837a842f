from pathlib import Path
import json

import httpx

from app.services.intent import (
    DEGRADED_CONFIDENCE,
    IntentExtractor,
    LlmIntentExtractor,
    PatternIntentExtractor,
    extract_json_object,
)
from app.services.llm_client import CompletionClient, LlmCompletionError
from app.services.vocabulary import DEFAULT_KEYWORD_TABLE, KeywordTable


class FakeCompletionClient:
    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str, language: str = "en", temperature: float = 0.1, max_tokens: int = 600) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def _extractor_with_llm(reply: str | None = None, error: Exception | None = None) -> IntentExtractor:
    llm = LlmIntentExtractor(client=FakeCompletionClient(reply, error), table=DEFAULT_KEYWORD_TABLE)
    return IntentExtractor(llm=llm)


def test_chest_pain_maps_to_cardiology() -> None:
    intent = IntentExtractor().extract("I have chest pain since morning", "en")
    assert intent.specializations == ("Cardiology", "Heart Care")
    assert intent.provider_type_hint == "doctor"
    assert intent.urgency == "high"
    assert intent.confidence == 0.9
    assert intent.strategy == "pattern"


def test_first_matching_topic_wins() -> None:
    intent = IntentExtractor().extract("chest pain and fever", "en")
    assert "Cardiology" in intent.specializations
    assert "General Medicine" not in intent.specializations


def test_unmatched_query_yields_generic_intent() -> None:
    intent = IntentExtractor().extract("xyzabc nonsense", "en")
    assert intent.specializations == ()
    assert intent.provider_type_hint == "any"
    assert intent.urgency == "low"
    assert intent.confidence == 0.6
    assert intent.symptoms == ("xyzabc nonsense",)


def test_hindi_keywords_match() -> None:
    intent = IntentExtractor().extract("मेरे बच्चे को बुखार है", "hi")
    assert intent.specializations[0] == "Pediatrics"
    assert intent.language == "hi"


def test_emergency_marker_escalation() -> None:
    extractor = IntentExtractor()
    assert extractor.extract("emergency chest pain", "en").urgency == "emergency"
    assert extractor.extract("critical headache", "en").urgency == "emergency"
    assert extractor.extract("severe rash on my arm", "en").urgency == "high"
    assert extractor.extract("rash on my arm", "en").urgency == "low"


def test_urgency_never_lowered_by_escalation() -> None:
    intent = _extractor_with_llm(
        json.dumps({"specializations": ["Dermatology"], "urgency": "emergency", "confidence": 0.8})
    ).extract("severe rash", "en")
    assert intent.urgency == "emergency"


def test_keyword_table_is_injectable(tmp_path: Path) -> None:
    data_path = tmp_path / "keywords.json"
    data_path.write_text(
        json.dumps(
            {
                "topics": [
                    {
                        "label": "eyes",
                        "pattern": "eye|vision|blurry",
                        "specializations": ["Ophthalmology"],
                        "provider_type": "doctor",
                        "urgency": "medium",
                        "symptoms": ["vision problem"],
                    }
                ],
                "vocabulary": ["Ophthalmology"],
                "emergency_markers": ["sudden"],
            }
        ),
        encoding="utf-8",
    )
    table = KeywordTable.from_json(data_path)
    extractor = IntentExtractor(table=table)

    intent = extractor.extract("blurry vision", "en")
    assert intent.specializations == ("Ophthalmology",)
    assert extractor.extract("chest pain", "en").specializations == ()
    assert extractor.extract("sudden blurry vision", "en").urgency == "high"


def test_canonical_specialization() -> None:
    table = DEFAULT_KEYWORD_TABLE
    assert table.canonical_specialization("cardiology") == "Cardiology"
    assert table.canonical_specialization("  Wound   care ") == "Wound Care"
    assert table.canonical_specialization("Pediatric") == "Pediatrics"
    assert table.canonical_specialization("Astrology") is None
    assert table.canonical_specialization("") is None


def test_llm_reply_is_coerced_to_vocabulary() -> None:
    reply = (
        "Sure, here is the analysis:\n"
        + json.dumps(
            {
                "symptoms": ["chest pain"],
                "specializations": ["cardiology", "Astrology"],
                "provider_type": "Doctor",
                "urgency": "HIGH",
                "confidence": 0.85,
                "reasoning": "Cardiac symptoms.",
            }
        )
        + "\nLet me know if you need more."
    )
    intent = _extractor_with_llm(reply).extract("my chest hurts", "en")
    assert intent.strategy == "llm"
    assert intent.specializations == ("Cardiology",)
    assert intent.provider_type_hint == "doctor"
    assert intent.urgency == "high"
    assert intent.confidence == 0.85


def test_llm_invalid_fields_fall_back_per_field() -> None:
    reply = json.dumps(
        {
            "symptoms": "not a list",
            "specializations": ["Dermatology"],
            "provider_type": "wizard",
            "urgency": "whenever",
            "confidence": 7,
        }
    )
    intent = _extractor_with_llm(reply).extract("itchy skin rash", "en")
    assert intent.strategy == "llm"
    assert intent.specializations == ("Dermatology",)
    assert intent.provider_type_hint == "doctor"
    assert intent.urgency == "low"
    assert intent.confidence == 1.0
    assert intent.symptoms == ("skin condition", "rash")


def test_llm_both_provider_type_maps_to_any() -> None:
    reply = json.dumps({"specializations": ["Vaccination"], "caregiverType": "both"})
    intent = _extractor_with_llm(reply).extract("flu shot", "en")
    assert intent.provider_type_hint == "any"


def test_llm_malformed_json_falls_back_to_pattern() -> None:
    intent = _extractor_with_llm('{"specializations": ["Cardiology",').extract("chest pain", "en")
    assert intent.strategy == "pattern"
    assert intent.specializations == ("Cardiology", "Heart Care")


def test_llm_reply_without_intent_fields_falls_back() -> None:
    intent = _extractor_with_llm('{"answer": "see a doctor"}').extract("chest pain", "en")
    assert intent.strategy == "pattern"


def test_llm_error_falls_back_to_pattern(caplog) -> None:
    extractor = _extractor_with_llm(error=LlmCompletionError("timed out"))
    with caplog.at_level("WARNING"):
        intent = extractor.extract("back pain", "en")
    assert intent.strategy == "pattern"
    assert intent.specializations == ("Orthopedics",)
    assert "timed out" in caplog.text


def test_llm_http_failure_through_client() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
    client = CompletionClient(api_key="test-key", model="test-model", base_url="https://llm.test/v1", transport=transport)
    extractor = IntentExtractor(llm=LlmIntentExtractor(client=client))

    intent = extractor.extract("skin rash", "en")
    assert intent.strategy == "pattern"
    assert intent.specializations == ("Dermatology", "Skin Care")


def test_extraction_never_raises(monkeypatch) -> None:
    pattern = PatternIntentExtractor()

    def broken(query: str, language: str):
        raise RuntimeError("rule table corrupted")

    monkeypatch.setattr(pattern, "try_extract", broken)
    intent = IntentExtractor(pattern=pattern).extract("chest pain", "xx")
    assert intent.confidence == DEGRADED_CONFIDENCE
    assert intent.provider_type_hint == "any"
    assert intent.language == "en"


def test_extract_json_object() -> None:
    assert extract_json_object('prefix {"a": {"b": 1}} suffix') == '{"a": {"b": 1}}'
    assert extract_json_object('{"text": "a } inside", "n": 2}') == '{"text": "a } inside", "n": 2}'
    assert extract_json_object('{"quote": "say \\"hi\\" }"}') == '{"quote": "say \\"hi\\" }"}'
    assert extract_json_object("no json here") is None
    assert extract_json_object('{"unterminated": 1') is None
