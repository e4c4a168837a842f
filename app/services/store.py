from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Iterable
import json

from app.services.caregivers import CaregiverRecord, caregiver_from_row, search_order_key


class StoreError(RuntimeError):
    pass


class CaregiverStore:
    """Query primitives over active and verified caregivers only."""

    def find_by_specializations(
        self, specializations: Iterable[str], limit: int, provider_type: str | None = None
    ) -> list[CaregiverRecord]:
        raise NotImplementedError

    def find_by_provider_type(self, provider_type: str, limit: int) -> list[CaregiverRecord]:
        raise NotImplementedError

    def find_by_bio(self, term: str, limit: int, provider_type: str | None = None) -> list[CaregiverRecord]:
        raise NotImplementedError

    def find_top_by_experience(self, limit: int, provider_type: str | None = None) -> list[CaregiverRecord]:
        raise NotImplementedError

    def get_by_id(self, caregiver_id: str) -> CaregiverRecord | None:
        raise NotImplementedError

    def specialization_counts(self) -> dict[str, int]:
        raise NotImplementedError


class JsonCaregiverStore(CaregiverStore):
    def __init__(self, caregivers: list[CaregiverRecord]):
        self.caregivers = sorted((item for item in caregivers if item.is_eligible), key=search_order_key)

    @classmethod
    def from_json(cls, data_path: Path) -> "JsonCaregiverStore":
        try:
            payload = json.loads(data_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Unable to load caregiver data from {data_path}") from exc
        return cls([caregiver_from_row(item) for item in payload])

    def _of_type(self, provider_type: str | None) -> list[CaregiverRecord]:
        if not provider_type:
            return self.caregivers
        return [item for item in self.caregivers if item.provider_type == provider_type]

    def find_by_specializations(
        self, specializations: Iterable[str], limit: int, provider_type: str | None = None
    ) -> list[CaregiverRecord]:
        wanted = {label.lower() for label in specializations if label}
        if not wanted:
            return []
        matches = [
            item
            for item in self._of_type(provider_type)
            if any(label.lower() in wanted for label in item.specializations)
        ]
        return matches[:limit]

    def find_by_provider_type(self, provider_type: str, limit: int) -> list[CaregiverRecord]:
        return self._of_type(provider_type)[:limit]

    def find_by_bio(self, term: str, limit: int, provider_type: str | None = None) -> list[CaregiverRecord]:
        needle = term.strip().lower()
        if not needle:
            return []
        matches = [
            item
            for item in self._of_type(provider_type)
            if any(needle in text.lower() for text in item.bio.values())
        ]
        return matches[:limit]

    def find_top_by_experience(self, limit: int, provider_type: str | None = None) -> list[CaregiverRecord]:
        return self._of_type(provider_type)[:limit]

    def get_by_id(self, caregiver_id: str) -> CaregiverRecord | None:
        return next((item for item in self.caregivers if item.caregiver_id == caregiver_id), None)

    def specialization_counts(self) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for item in self.caregivers:
            counts.update({label.lower() for label in item.specializations})
        return dict(counts)
