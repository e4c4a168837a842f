from __future__ import annotations

from dataclasses import dataclass, field
import math
import re
from typing import Any, Mapping


PROVIDER_TYPE_ALIASES = {
    "doctor": "doctor",
    "physician": "doctor",
    "dr": "doctor",
    "nurse": "nurse",
    "anm": "nurse",
    "therapist": "therapist",
    "physiotherapist": "therapist",
    "counselor": "therapist",
    "counsellor": "therapist",
    "community_worker": "community_worker",
    "community worker": "community_worker",
    "community health worker": "community_worker",
    "chw": "community_worker",
    "asha": "community_worker",
}


@dataclass(frozen=True)
class CaregiverRecord:
    caregiver_id: str | None
    name: str
    provider_type: str
    specializations: tuple[str, ...] = ()
    bio: dict[str, str] = field(default_factory=dict)
    experience_years: int = 0
    rating: float = 0.0
    total_reviews: int = 0
    latitude: float | None = None
    longitude: float | None = None
    consultation_fee: float | None = None
    home_visit_fee: float | None = None
    languages: tuple[str, ...] = ()
    is_verified: bool = False
    is_active: bool = False

    @property
    def is_eligible(self) -> bool:
        return self.is_active and self.is_verified

    def bio_for(self, language: str) -> str:
        return self.bio.get(language) or self.bio.get("en") or next(iter(self.bio.values()), "")


def search_order_key(record: CaregiverRecord) -> tuple:
    """Experience desc, rating desc, identity asc."""
    return (-(record.experience_years or 0), -(record.rating or 0.0), record.caregiver_id or "")


def normalize_provider_type(value: Any) -> str:
    if not value:
        return "any"
    key = str(value).strip().lower().replace("-", " ")
    if key in PROVIDER_TYPE_ALIASES:
        return PROVIDER_TYPE_ALIASES[key]
    return PROVIDER_TYPE_ALIASES.get(key.replace(" ", "_"), "any")


def split_labels(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        stripped = raw.strip().strip("{}")
        values = re.split(r"[|;,]", stripped)
    elif isinstance(raw, (list, tuple, set, frozenset)):
        values = [str(item) for item in raw if item is not None]
    else:
        return ()

    deduped: list[str] = []
    seen: set[str] = set()
    for value in values:
        cleaned = re.sub(r"\s+", " ", value.strip().strip('"'))
        key = cleaned.lower()
        if cleaned and key not in seen:
            deduped.append(cleaned)
            seen.add(key)
    return tuple(deduped)


def _to_int(value: Any, minimum: int = 0) -> int:
    try:
        return max(int(float(value)), minimum)
    except (TypeError, ValueError, OverflowError):
        return minimum


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "t"}
    return bool(value)


def _fee(value: Any) -> float | None:
    amount = _to_float(value)
    if amount is None or amount < 0:
        return None
    return round(amount, 2)


def _display_name(row: Mapping[str, Any]) -> str:
    name = (row.get("name") or "").strip()
    if name:
        return name
    composed = f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()
    return composed or "Healthcare Provider"


def caregiver_from_row(row: Mapping[str, Any]) -> CaregiverRecord:
    """Build a CaregiverRecord from a loosely-typed store row."""
    raw_id = row.get("id")
    caregiver_id = str(raw_id).strip() if raw_id not in (None, "") else None

    bio: dict[str, str] = {}
    raw_bio = row.get("bio")
    if isinstance(raw_bio, Mapping):
        bio.update({str(lang): str(text) for lang, text in raw_bio.items() if text})
    elif isinstance(raw_bio, str) and raw_bio.strip():
        bio["en"] = raw_bio.strip()
    for lang in ("en", "hi"):
        text = row.get(f"bio_{lang}")
        if text:
            bio[lang] = str(text).strip()

    rating = _to_float(row.get("rating")) or 0.0
    latitude = _to_float(row.get("latitude"))
    longitude = _to_float(row.get("longitude"))
    if latitude is None or longitude is None:
        latitude, longitude = None, None

    return CaregiverRecord(
        caregiver_id=caregiver_id,
        name=_display_name(row),
        provider_type=normalize_provider_type(row.get("type") or row.get("provider_type")),
        specializations=split_labels(row.get("specializations")),
        bio=bio,
        experience_years=_to_int(row.get("experience_years")),
        rating=min(max(rating, 0.0), 5.0),
        total_reviews=_to_int(row.get("total_reviews")),
        latitude=latitude,
        longitude=longitude,
        consultation_fee=_fee(row.get("consultation_fee")),
        home_visit_fee=_fee(row.get("home_visit_fee")),
        languages=split_labels(row.get("languages")),
        is_verified=_to_bool(row.get("is_verified")),
        is_active=_to_bool(row.get("is_active", True)),
    )
