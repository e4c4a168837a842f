from __future__ import annotations

from dataclasses import dataclass, replace
import json
import logging
from typing import Any

from app.services.caregivers import normalize_provider_type
from app.services.llm_client import CompletionClient, LlmCompletionError
from app.services.localization import normalize_language
from app.services.vocabulary import DEFAULT_KEYWORD_TABLE, KeywordTable


logger = logging.getLogger(__name__)

URGENCY_LEVELS = ("low", "medium", "high", "emergency")
PROVIDER_TYPES = ("doctor", "nurse", "therapist", "community_worker", "any")

MATCHED_CONFIDENCE = 0.9
UNMATCHED_CONFIDENCE = 0.6
DEGRADED_CONFIDENCE = 0.3


@dataclass(frozen=True)
class MedicalIntent:
    symptoms: tuple[str, ...]
    specializations: tuple[str, ...]
    provider_type_hint: str
    urgency: str
    confidence: float
    raw_query: str
    language: str
    reasoning: str = ""
    strategy: str = "pattern"


@dataclass(frozen=True)
class ExtractionError:
    reason: str


@dataclass(frozen=True)
class ExtractionResult:
    intent: MedicalIntent | None = None
    error: ExtractionError | None = None

    @property
    def ok(self) -> bool:
        return self.intent is not None


def urgency_at_least(current: str, floor: str) -> str:
    if URGENCY_LEVELS.index(current) >= URGENCY_LEVELS.index(floor):
        return current
    return floor


def generic_intent(query: str, language: str, confidence: float, reasoning: str = "") -> MedicalIntent:
    return MedicalIntent(
        symptoms=(query,),
        specializations=(),
        provider_type_hint="any",
        urgency="low",
        confidence=confidence,
        raw_query=query,
        language=language,
        reasoning=reasoning or "General healthcare query - recommending available providers.",
        strategy="fallback",
    )


def escalate_urgency(intent: MedicalIntent, table: KeywordTable) -> MedicalIntent:
    if not table.has_emergency_marker(intent.raw_query):
        return intent
    floor = "emergency" if table.is_high_severity(intent.specializations) else "high"
    escalated = urgency_at_least(intent.urgency, floor)
    if escalated == intent.urgency:
        return intent
    return replace(intent, urgency=escalated)


class PatternIntentExtractor:
    def __init__(self, table: KeywordTable = DEFAULT_KEYWORD_TABLE):
        self.table = table

    def try_extract(self, query: str, language: str) -> ExtractionResult:
        rule = self.table.match_topic(query)
        if rule is None:
            return ExtractionResult(intent=generic_intent(query, language, UNMATCHED_CONFIDENCE))

        return ExtractionResult(
            intent=MedicalIntent(
                symptoms=rule.symptoms,
                specializations=rule.specializations,
                provider_type_hint=rule.provider_type,
                urgency=rule.urgency,
                confidence=MATCHED_CONFIDENCE,
                raw_query=query,
                language=language,
                reasoning=rule.reasoning,
                strategy="pattern",
            )
        )


def extract_json_object(text: str) -> str | None:
    """Return the first balanced {...} block in text, or None."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


INTENT_PROMPT = """Analyze this healthcare query. The patient is looking for a caregiver (doctor, nurse, therapist or community health worker).

Patient query: "{query}"
Language: {language}

Available specializations (use only these labels):
{vocabulary}

Respond with ONLY a JSON object in this exact format:
{{
  "symptoms": ["symptoms or conditions mentioned"],
  "specializations": ["matching labels from the list above"],
  "provider_type": "doctor|nurse|therapist|community_worker|any",
  "urgency": "low|medium|high|emergency",
  "confidence": 0.0-1.0,
  "reasoning": "one short sentence"
}}

Rules:
1. Never give a diagnosis or treatment advice.
2. Use "emergency" only for life-threatening symptoms such as chest pain or breathing trouble.
3. Confidence must reflect how certain the match is.
"""

EXPECTED_LLM_FIELDS = {"symptoms", "specializations", "provider_type", "caregiverType", "urgency", "confidence"}


class LlmIntentExtractor:
    def __init__(
        self,
        client: CompletionClient,
        table: KeywordTable = DEFAULT_KEYWORD_TABLE,
        defaults: PatternIntentExtractor | None = None,
    ):
        self.client = client
        self.table = table
        self.defaults = defaults or PatternIntentExtractor(table)

    def build_prompt(self, query: str, language: str) -> str:
        vocabulary = "\n".join(f"- {label}" for label in self.table.vocabulary)
        return INTENT_PROMPT.format(query=query.replace('"', "'"), language=language, vocabulary=vocabulary)

    def try_extract(self, query: str, language: str) -> ExtractionResult:
        try:
            text = self.client.complete(self.build_prompt(query, language), language=language, temperature=0.1)
        except LlmCompletionError as exc:
            return ExtractionResult(error=ExtractionError(str(exc)))

        block = extract_json_object(text)
        if block is None:
            return ExtractionResult(error=ExtractionError("No JSON object in LLM reply."))
        try:
            payload = json.loads(block)
        except json.JSONDecodeError as exc:
            return ExtractionResult(error=ExtractionError(f"Malformed JSON in LLM reply: {exc.msg}"))

        if not isinstance(payload, dict) or not EXPECTED_LLM_FIELDS.intersection(payload):
            return ExtractionResult(error=ExtractionError("LLM reply did not describe a medical intent."))

        fallback = self.defaults.try_extract(query, language).intent
        return ExtractionResult(intent=self._coerce(payload, fallback))

    def _coerce(self, payload: dict[str, Any], fallback: MedicalIntent) -> MedicalIntent:
        symptoms = fallback.symptoms
        raw_symptoms = payload.get("symptoms")
        if isinstance(raw_symptoms, list):
            cleaned = tuple(str(item).strip() for item in raw_symptoms if str(item).strip())
            if cleaned:
                symptoms = cleaned

        specializations = fallback.specializations
        raw_specializations = payload.get("specializations")
        if isinstance(raw_specializations, list):
            mapped: list[str] = []
            for item in raw_specializations:
                label = self.table.canonical_specialization(str(item))
                if label and label not in mapped:
                    mapped.append(label)
            if mapped:
                specializations = tuple(mapped)

        provider_type = fallback.provider_type_hint
        raw_provider = payload.get("provider_type", payload.get("caregiverType"))
        if isinstance(raw_provider, str) and raw_provider.strip().lower() in {"any", "both"}:
            provider_type = "any"
        elif isinstance(raw_provider, str) and normalize_provider_type(raw_provider) != "any":
            provider_type = normalize_provider_type(raw_provider)

        urgency = fallback.urgency
        raw_urgency = payload.get("urgency")
        if isinstance(raw_urgency, str) and raw_urgency.strip().lower() in URGENCY_LEVELS:
            urgency = raw_urgency.strip().lower()

        confidence = fallback.confidence
        raw_confidence = payload.get("confidence")
        if isinstance(raw_confidence, (int, float)) and not isinstance(raw_confidence, bool):
            confidence = min(max(float(raw_confidence), 0.0), 1.0)

        reasoning = payload.get("reasoning")
        if not isinstance(reasoning, str) or not reasoning.strip():
            reasoning = fallback.reasoning

        return MedicalIntent(
            symptoms=symptoms,
            specializations=specializations,
            provider_type_hint=provider_type,
            urgency=urgency,
            confidence=round(confidence, 2),
            raw_query=fallback.raw_query,
            language=fallback.language,
            reasoning=reasoning.strip(),
            strategy="llm",
        )


class IntentExtractor:
    def __init__(
        self,
        pattern: PatternIntentExtractor | None = None,
        llm: LlmIntentExtractor | None = None,
        table: KeywordTable = DEFAULT_KEYWORD_TABLE,
    ):
        self.table = table
        self.pattern = pattern or PatternIntentExtractor(table)
        self.llm = llm

    def extract(self, query: str, language: str = "en") -> MedicalIntent:
        language = normalize_language(language)
        try:
            result = self._run_strategies(query, language)
            intent = result.intent if result.ok else generic_intent(query, language, DEGRADED_CONFIDENCE)
            return escalate_urgency(intent, self.table)
        except Exception:
            logger.exception("Intent extraction failed for query %r", query)
            return generic_intent(query, language, DEGRADED_CONFIDENCE)

    def _run_strategies(self, query: str, language: str) -> ExtractionResult:
        if self.llm is not None:
            result = self.llm.try_extract(query, language)
            if result.ok:
                return result
            logger.warning("LLM intent extraction degraded to pattern rules: %s", result.error.reason)

        result = self.pattern.try_extract(query, language)
        if not result.ok:
            logger.warning("Pattern intent extraction failed: %s", result.error.reason)
        return result
