SUPPORTED_LANGUAGES = {"en", "hi"}


LOCALIZED_TEXT = {
    "en": {
        "disclaimer": "These are best-effort provider recommendations based on keyword matching, not a diagnosis or medical advice.",
        "urgency_high": "Your symptoms may need prompt attention. Please consult a doctor in person as soon as possible.",
        "urgency_emergency": "⚠️ This may be an emergency. Call local emergency services (ambulance/108) or go to the nearest hospital now.",
        "no_results": "No caregivers are available right now. Please try again later or visit your nearest health center.",
        "fallback_notice": "We could not find a specialist for your query, so these are our most experienced caregivers.",
        "reason": "{name} is a good match for {label}, with {experience} years of experience and a {rating}/5 rating.",
        "reason_distance": " About {distance} km away.",
        "provider_doctor": "doctor consultations",
        "provider_nurse": "nursing care",
        "provider_therapist": "therapy",
        "provider_community_worker": "community health support",
        "provider_any": "your health concern",
    },
    "hi": {
        "disclaimer": "ये कीवर्ड मिलान पर आधारित सुझाव हैं, कोई निदान या चिकित्सा सलाह नहीं।",
        "urgency_high": "आपके लक्षणों पर जल्द ध्यान देने की ज़रूरत हो सकती है। कृपया जल्द से जल्द डॉक्टर से व्यक्तिगत रूप से मिलें।",
        "urgency_emergency": "⚠️ यह आपात स्थिति हो सकती है। तुरंत स्थानीय आपातकालीन सेवा (एम्बुलेंस/108) पर कॉल करें या नज़दीकी अस्पताल जाएं।",
        "no_results": "अभी कोई देखभालकर्ता उपलब्ध नहीं है। कृपया बाद में प्रयास करें या नज़दीकी स्वास्थ्य केंद्र जाएं।",
        "fallback_notice": "आपकी खोज के लिए विशेषज्ञ नहीं मिला, इसलिए ये हमारे सबसे अनुभवी देखभालकर्ता हैं।",
        "reason": "{name} {label} के लिए उपयुक्त हैं। {experience} साल का अनुभव और {rating}/5 रेटिंग।",
        "reason_distance": " लगभग {distance} किमी दूर।",
        "provider_doctor": "डॉक्टर परामर्श",
        "provider_nurse": "नर्सिंग देखभाल",
        "provider_therapist": "थेरेपी",
        "provider_community_worker": "सामुदायिक स्वास्थ्य सहायता",
        "provider_any": "आपकी स्वास्थ्य समस्या",
    },
}


def normalize_language(language: str | None) -> str:
    if not language:
        return "en"
    code = language.strip().lower()
    if "-" in code:
        code = code.split("-", maxsplit=1)[0]
    return code if code in SUPPORTED_LANGUAGES else "en"


def t(language: str, key: str) -> str:
    lang = normalize_language(language)
    if key in LOCALIZED_TEXT[lang]:
        return LOCALIZED_TEXT[lang][key]
    return LOCALIZED_TEXT["en"].get(key, key)


def urgency_message(language: str, urgency: str) -> str | None:
    if urgency == "emergency":
        return t(language, "urgency_emergency")
    if urgency == "high":
        return t(language, "urgency_high")
    return None


def format_reason(
    language: str,
    name: str,
    label: str | None,
    provider_type: str,
    experience: int,
    rating: float,
    distance_km: float | None = None,
) -> str:
    subject = label or t(language, f"provider_{provider_type}")
    reason = t(language, "reason").format(
        name=name,
        label=subject,
        experience=experience,
        rating=f"{rating:.1f}",
    )
    if distance_km is not None:
        reason += t(language, "reason_distance").format(distance=f"{distance_km:.1f}")
    return reason
