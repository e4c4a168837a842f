from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from pathlib import Path
import json
import re


CONTROLLED_SPECIALIZATIONS = (
    "Cardiology",
    "Heart Care",
    "Neurology",
    "Pulmonology",
    "Orthopedics",
    "Pediatrics",
    "Childcare",
    "Newborn Care",
    "General Medicine",
    "General Care",
    "Family Medicine",
    "Dermatology",
    "Skin Care",
    "Pregnancy Care",
    "ANC Care",
    "Postnatal Care",
    "Lactation Support",
    "Mental Health Support",
    "Anxiety Treatment",
    "Depression Care",
    "Counseling",
    "Therapy",
    "Diabetes Care",
    "Hypertension",
    "Chronic Disease Management",
    "Diet Counseling",
    "Elder Care",
    "Geriatric Care",
    "Palliative Care",
    "Pain Management",
    "Wound Care",
    "Post-Surgery Care",
    "Dressing",
    "Burn Care",
    "ICU Support",
    "Critical Care",
    "Emergency Medicine",
    "IV Therapy",
    "Home Healthcare",
    "Home Nursing",
    "Medication Administration",
    "Physiotherapy",
    "Rehabilitation",
    "Mobility Assistance",
    "Vaccination",
    "Vaccination Support",
    "Immunization",
    "Preventive Care",
    "Community Health",
    "Oncology Support",
)


EMERGENCY_MARKERS = (
    "emergency",
    "severe",
    "critical",
    "can't breathe",
    "can’t breathe",
    "cannot breathe",
    "immediate",
    "आपातकाल",
    "गंभीर",
    "तुरंत",
)


@dataclass(frozen=True)
class TopicRule:
    label: str
    pattern: str
    specializations: tuple[str, ...]
    provider_type: str
    urgency: str
    symptoms: tuple[str, ...]
    reasoning: str = ""
    keywords: tuple[str, ...] = ()
    high_severity: bool = False


# Order matters: the first matching topic wins, so severe and specific
# conditions must come before generic ones.
DEFAULT_TOPIC_RULES = (
    TopicRule(
        label="cardiac",
        pattern=r"heart|chest pain|cardiac|angina|palpitation|arrhythmia|coronary|myocardial|cardiovascular",
        specializations=("Cardiology", "Heart Care"),
        provider_type="doctor",
        urgency="high",
        symptoms=("chest pain", "heart disease", "cardiac emergency"),
        reasoning="Cardiovascular symptoms need prompt evaluation by a cardiologist.",
        keywords=("सीने में दर्द", "दिल", "हृदय"),
        high_severity=True,
    ),
    TopicRule(
        label="neurological",
        pattern=r"stroke|seizure|epilep|paralysis|numbness|concussion|migraine|headache|dizziness|vertigo|memory loss|neurolog",
        specializations=("Neurology",),
        provider_type="doctor",
        urgency="high",
        symptoms=("headache", "migraine", "neurological disorder", "stroke symptoms"),
        reasoning="Neurological symptoms need specialist evaluation to rule out serious conditions.",
        keywords=("सिरदर्द", "सिर दर्द", "दौरा", "लकवा", "चक्कर"),
        high_severity=True,
    ),
    TopicRule(
        label="respiratory",
        pattern=r"breathing|breathless|shortness of breath|asthma|wheez|pneumonia|lung",
        specializations=("Pulmonology",),
        provider_type="doctor",
        urgency="high",
        symptoms=("breathing difficulty", "asthma", "lung condition"),
        reasoning="Breathing problems should be assessed quickly by a doctor.",
        keywords=("सांस", "दमा"),
        high_severity=True,
    ),
    TopicRule(
        label="critical-care",
        pattern=r"icu|intensive care|life support|ventilator|critical care",
        specializations=("ICU Support", "Critical Care"),
        provider_type="nurse",
        urgency="high",
        symptoms=("critical care", "intensive monitoring"),
        reasoning="Critical care situations need ICU-trained nursing support.",
        high_severity=True,
    ),
    TopicRule(
        label="mental-health",
        pattern=r"mental|anxiety|anxious|depress|stress|panic|insomnia|counsel|lonely",
        specializations=("Mental Health Support", "Anxiety Treatment", "Depression Care", "Counseling"),
        provider_type="therapist",
        urgency="medium",
        symptoms=("anxiety", "depression", "mental health concern"),
        reasoning="Emotional and mental health concerns are best supported by a therapist or counselor.",
        keywords=("तनाव", "चिंता", "अवसाद"),
    ),
    TopicRule(
        label="pregnancy",
        pattern=r"pregnan|maternity|prenatal|antenatal|postnatal|postpartum|delivery|labou?r pain|breastfeed|anc\b",
        specializations=("Pregnancy Care", "ANC Care", "Postnatal Care", "Lactation Support"),
        provider_type="nurse",
        urgency="medium",
        symptoms=("pregnancy care", "prenatal care", "postnatal care"),
        reasoning="Pregnancy and maternity care can be provided by maternal health nurses.",
        keywords=("गर्भ", "प्रसव"),
    ),
    TopicRule(
        label="pediatric",
        pattern=r"child|baby|babies|infant|kid\b|kids\b|pediatric|paediatric|newborn|toddler",
        specializations=("Pediatrics", "Childcare", "Newborn Care"),
        provider_type="doctor",
        urgency="medium",
        symptoms=("child health", "pediatric care", "child development"),
        reasoning="Children need pediatric care suited to their growth and development.",
        keywords=("बच्चे", "बच्चा", "शिशु"),
    ),
    TopicRule(
        label="orthopedic",
        pattern=r"bone|fracture|joint pain|back pain|knee|arthritis|spine|shoulder|sprain|ligament|tendon|sports injury",
        specializations=("Orthopedics",),
        provider_type="doctor",
        urgency="medium",
        symptoms=("bone fracture", "joint pain", "musculoskeletal pain"),
        reasoning="Bone and joint problems need orthopedic evaluation.",
        keywords=("हड्डी", "जोड़ों", "कमर दर्द"),
    ),
    TopicRule(
        label="chronic",
        pattern=r"diabet|blood sugar|sugar level|insulin|hypertension|blood pressure|\bbp\b|thyroid|cholesterol",
        specializations=("Diabetes Care", "Hypertension", "Chronic Disease Management"),
        provider_type="nurse",
        urgency="medium",
        symptoms=("diabetes", "high blood pressure", "chronic condition"),
        reasoning="Chronic conditions benefit from regular monitoring and management.",
        keywords=("मधुमेह", "शुगर", "ब्लड प्रेशर"),
    ),
    TopicRule(
        label="skin",
        pattern=r"skin|rash|acne|eczema|psoriasis|mole|itch|dermat",
        specializations=("Dermatology", "Skin Care"),
        provider_type="doctor",
        urgency="low",
        symptoms=("skin condition", "rash"),
        reasoning="Skin conditions need dermatological evaluation.",
        keywords=("त्वचा", "खुजली"),
    ),
    TopicRule(
        label="wound",
        pattern=r"wound|dressing|injection|catheter|post[- ]surgery|after surgery|bandage|suture|burn",
        specializations=("Wound Care", "Post-Surgery Care", "Dressing", "Burn Care"),
        provider_type="nurse",
        urgency="medium",
        symptoms=("wound care", "post-surgical care", "dressing"),
        reasoning="Wound care and nursing procedures are handled by skilled nurses.",
        keywords=("घाव", "पट्टी"),
    ),
    TopicRule(
        label="elder",
        pattern=r"elder|senior|old age|geriatric|aging|ageing|dementia|mobility",
        specializations=("Elder Care", "Geriatric Care", "Mobility Assistance"),
        provider_type="nurse",
        urgency="low",
        symptoms=("elder care", "geriatric support"),
        reasoning="Elderly patients benefit from geriatric nursing and daily living support.",
        keywords=("बुजुर्ग", "वृद्ध"),
    ),
    TopicRule(
        label="rehabilitation",
        pattern=r"physio|rehab|exercise therapy|stiffness|recovery exercise",
        specializations=("Physiotherapy", "Rehabilitation"),
        provider_type="therapist",
        urgency="low",
        symptoms=("physiotherapy", "rehabilitation"),
        reasoning="Physiotherapists help restore movement and strength.",
        keywords=("फिजियो",),
    ),
    TopicRule(
        label="home-care",
        pattern=r"home care|home nursing|bedside care|patient monitoring|medication administration|vital signs",
        specializations=("Home Healthcare", "Home Nursing", "Medication Administration"),
        provider_type="nurse",
        urgency="low",
        symptoms=("home care", "bedside nursing"),
        reasoning="Home healthcare is best provided by experienced home care nurses.",
    ),
    TopicRule(
        label="vaccination",
        pattern=r"vaccin|immuni[sz]|flu shot|booster|health screening|preventive",
        specializations=("Vaccination", "Vaccination Support", "Immunization", "Preventive Care"),
        provider_type="any",
        urgency="low",
        symptoms=("vaccination", "immunization", "preventive care"),
        reasoning="Vaccination can be given by qualified doctors or nurses.",
        keywords=("टीका", "टीकाकरण"),
    ),
    TopicRule(
        label="community",
        pattern=r"asha|community health|village health|health worker|door to door",
        specializations=("Community Health",),
        provider_type="community_worker",
        urgency="low",
        symptoms=("community health support",),
        reasoning="Community health workers provide local follow-up and basic care.",
        keywords=("आशा",),
    ),
    TopicRule(
        label="general",
        pattern=r"fever|cold|flu|cough|sore throat|infection|vomit|diarrh|stomach|checkup|check-up|blood test|weakness",
        specializations=("General Medicine", "Family Medicine"),
        provider_type="doctor",
        urgency="medium",
        symptoms=("fever", "infection", "general health"),
        reasoning="General medical conditions need a doctor's evaluation.",
        keywords=("बुखार", "खांसी", "जुकाम", "उल्टी", "दस्त"),
    ),
)


class KeywordTable:
    """Read-only topic rules, controlled vocabulary and emergency markers."""

    def __init__(
        self,
        rules: tuple[TopicRule, ...] | list[TopicRule],
        vocabulary: tuple[str, ...] | list[str] = CONTROLLED_SPECIALIZATIONS,
        emergency_markers: tuple[str, ...] | list[str] = EMERGENCY_MARKERS,
    ):
        self.rules = tuple(rules)
        self.vocabulary = tuple(vocabulary)
        self.emergency_markers = tuple(marker.lower() for marker in emergency_markers)
        self._patterns = [re.compile(rf"\b(?:{rule.pattern})", re.IGNORECASE) for rule in self.rules]
        self._vocabulary_by_key = {label.lower(): label for label in self.vocabulary}
        self.high_severity_specializations = frozenset(
            label.lower() for rule in self.rules if rule.high_severity for label in rule.specializations
        )

    @classmethod
    def from_json(cls, data_path: Path) -> "KeywordTable":
        payload = json.loads(data_path.read_text(encoding="utf-8"))
        rules = [
            TopicRule(
                label=item["label"],
                pattern=item["pattern"],
                specializations=tuple(item.get("specializations", [])),
                provider_type=item.get("provider_type", "any"),
                urgency=item.get("urgency", "low"),
                symptoms=tuple(item.get("symptoms", [])),
                reasoning=item.get("reasoning", ""),
                keywords=tuple(item.get("keywords", [])),
                high_severity=bool(item.get("high_severity", False)),
            )
            for item in payload.get("topics", [])
        ]
        return cls(
            rules=rules,
            vocabulary=payload.get("vocabulary", CONTROLLED_SPECIALIZATIONS),
            emergency_markers=payload.get("emergency_markers", EMERGENCY_MARKERS),
        )

    def match_topic(self, query: str) -> TopicRule | None:
        lowered_query = query.lower()
        for rule, pattern in zip(self.rules, self._patterns):
            if pattern.search(lowered_query):
                return rule
            if any(keyword.lower() in lowered_query for keyword in rule.keywords):
                return rule
        return None

    def has_emergency_marker(self, query: str) -> bool:
        lowered_query = query.lower()
        return any(marker in lowered_query for marker in self.emergency_markers)

    def canonical_specialization(self, label: str) -> str | None:
        key = " ".join(label.split()).lower()
        if not key:
            return None
        if key in self._vocabulary_by_key:
            return self._vocabulary_by_key[key]

        contained = [vocab_key for vocab_key in self._vocabulary_by_key if vocab_key in key]
        if contained:
            return self._vocabulary_by_key[max(contained, key=len)]

        if len(key) >= 5:
            containing = [vocab_key for vocab_key in self._vocabulary_by_key if key in vocab_key]
            if containing:
                return self._vocabulary_by_key[min(containing, key=len)]

        close = get_close_matches(key, list(self._vocabulary_by_key), n=1, cutoff=0.8)
        if close:
            return self._vocabulary_by_key[close[0]]
        return None

    def is_high_severity(self, specializations: tuple[str, ...]) -> bool:
        return any(label.lower() in self.high_severity_specializations for label in specializations)


DEFAULT_KEYWORD_TABLE = KeywordTable(DEFAULT_TOPIC_RULES)
