from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from sqlalchemy import Boolean, Column, Float, Index, Integer, String, Text, create_engine, or_
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.services.caregivers import CaregiverRecord, caregiver_from_row, split_labels
from app.services.store import CaregiverStore, StoreError


Base = declarative_base()

LABEL_DELIMITER = "|"


class CaregiverRow(Base):
    __tablename__ = "caregivers"
    id = Column(String, primary_key=True)
    name = Column(String)
    first_name = Column(String)
    last_name = Column(String)
    type = Column(String, nullable=False, default="nurse")
    # Stored as "|Label A|Label B|" so a single label can be matched with LIKE.
    specializations = Column(Text, default="")
    languages = Column(Text, default="")
    bio_en = Column(Text)
    bio_hi = Column(Text)
    experience_years = Column(Integer, default=0)
    rating = Column(Float, default=0)
    total_reviews = Column(Integer, default=0)
    latitude = Column(Float)
    longitude = Column(Float)
    consultation_fee = Column(Float)
    home_visit_fee = Column(Float)
    is_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        Index("idx_caregiver_eligible", "is_active", "is_verified", "experience_years"),
        Index("idx_caregiver_type", "type"),
    )


def join_labels(labels: Iterable[str]) -> str:
    cleaned = split_labels(list(labels))
    if not cleaned:
        return ""
    return f"{LABEL_DELIMITER}{LABEL_DELIMITER.join(cleaned)}{LABEL_DELIMITER}"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_mapping(row: CaregiverRow) -> dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in CaregiverRow.__table__.columns}


def _of_type(query, provider_type: str | None):
    if not provider_type:
        return query
    return query.filter(CaregiverRow.type == provider_type)


def engine_options(database_url: str, timeout: float) -> dict[str, Any]:
    """create_engine keyword arguments bounding connects, pool waits and statements."""
    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        connect_args: dict[str, Any] = {"check_same_thread": False, "timeout": timeout}
        if url.database in (None, "", ":memory:"):
            return {"connect_args": connect_args, "poolclass": StaticPool}
        return {"connect_args": connect_args, "pool_timeout": timeout}

    connect_args = {}
    if backend == "postgresql":
        connect_args = {
            "connect_timeout": max(int(timeout), 1),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    elif backend == "mysql":
        connect_args = {"connect_timeout": max(int(timeout), 1)}
    return {"connect_args": connect_args, "pool_pre_ping": True, "pool_timeout": timeout}


class SqlCaregiverStore(CaregiverStore):
    def __init__(self, engine):
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, timeout: float = 5.0) -> "SqlCaregiverStore":
        return cls(create_engine(database_url, **engine_options(database_url, timeout)))

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def upsert_rows(self, rows: list[dict]) -> int:
        written = 0
        try:
            with self.session_factory() as session:
                for item in rows:
                    record = caregiver_from_row(item)
                    if not record.caregiver_id:
                        continue
                    session.merge(
                        CaregiverRow(
                            id=record.caregiver_id,
                            name=record.name,
                            first_name=item.get("first_name"),
                            last_name=item.get("last_name"),
                            type=record.provider_type,
                            specializations=join_labels(record.specializations),
                            languages=join_labels(record.languages),
                            bio_en=record.bio.get("en"),
                            bio_hi=record.bio.get("hi"),
                            experience_years=record.experience_years,
                            rating=record.rating,
                            total_reviews=record.total_reviews,
                            latitude=record.latitude,
                            longitude=record.longitude,
                            consultation_fee=record.consultation_fee,
                            home_visit_fee=record.home_visit_fee,
                            is_verified=record.is_verified,
                            is_active=record.is_active,
                        )
                    )
                    written += 1
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Caregiver upsert failed: {exc}") from exc
        return written

    @staticmethod
    def _eligible(query):
        return query.filter(CaregiverRow.is_active.is_(True), CaregiverRow.is_verified.is_(True))

    @staticmethod
    def _ordered(query):
        return query.order_by(
            CaregiverRow.experience_years.desc(),
            CaregiverRow.rating.desc(),
            CaregiverRow.id.asc(),
        )

    def _fetch(self, build_query, limit: int | None = None) -> list[CaregiverRecord]:
        try:
            with self.session_factory() as session:
                query = build_query(self._eligible(session.query(CaregiverRow)))
                if limit is not None:
                    query = query.limit(limit)
                return [caregiver_from_row(_row_to_mapping(row)) for row in query.all()]
        except SQLAlchemyError as exc:
            raise StoreError(f"Caregiver query failed: {exc}") from exc

    def find_by_specializations(
        self, specializations: Iterable[str], limit: int, provider_type: str | None = None
    ) -> list[CaregiverRecord]:
        labels = [label for label in specializations if label]
        if not labels:
            return []
        clauses = [
            CaregiverRow.specializations.ilike(
                f"%{LABEL_DELIMITER}{_escape_like(label)}{LABEL_DELIMITER}%", escape="\\"
            )
            for label in labels
        ]
        return self._fetch(lambda query: self._ordered(_of_type(query.filter(or_(*clauses)), provider_type)), limit)

    def find_by_provider_type(self, provider_type: str, limit: int) -> list[CaregiverRecord]:
        return self._fetch(lambda query: self._ordered(query.filter(CaregiverRow.type == provider_type)), limit)

    def find_by_bio(self, term: str, limit: int, provider_type: str | None = None) -> list[CaregiverRecord]:
        needle = term.strip()
        if not needle:
            return []
        pattern = f"%{_escape_like(needle)}%"
        condition = or_(
            CaregiverRow.bio_en.ilike(pattern, escape="\\"),
            CaregiverRow.bio_hi.ilike(pattern, escape="\\"),
        )
        return self._fetch(lambda query: self._ordered(_of_type(query.filter(condition), provider_type)), limit)

    def find_top_by_experience(self, limit: int, provider_type: str | None = None) -> list[CaregiverRecord]:
        return self._fetch(lambda query: self._ordered(_of_type(query, provider_type)), limit)

    def get_by_id(self, caregiver_id: str) -> CaregiverRecord | None:
        matches = self._fetch(lambda query: query.filter(CaregiverRow.id == caregiver_id), 1)
        return matches[0] if matches else None

    def specialization_counts(self) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for record in self._fetch(lambda query: query):
            counts.update({label.lower() for label in record.specializations})
        return dict(counts)
