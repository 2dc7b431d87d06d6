from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from app.core.config import Settings
from app.services.availability_models import DayOfWeek


class AvailabilityStore(ABC):
    @abstractmethod
    def get_availability(self, email: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def get_availability_for_emails(self, emails: Iterable[str]) -> dict[str, dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def upsert_availability(self, email: str, availability: Mapping[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def delete_availability(self, email: str) -> bool:
        raise NotImplementedError


class InMemoryAvailabilityStore(AvailabilityStore):
    def __init__(self) -> None:
        self._records_by_email: dict[str, dict[str, Any]] = {}

    def get_availability(self, email: str) -> dict[str, Any] | None:
        record = self._records_by_email.get(_normalize_email(email))
        if not record:
            return None
        return _copy_record(record)

    def get_availability_for_emails(self, emails: Iterable[str]) -> dict[str, dict[str, Any]]:
        records: dict[str, dict[str, Any]] = {}
        for email in emails:
            normalized_email = _normalize_email(email)
            record = self._records_by_email.get(normalized_email)
            if record:
                records[normalized_email] = _copy_record(record)
        return records

    def upsert_availability(self, email: str, availability: Mapping[str, Any]) -> dict[str, Any]:
        normalized_email = _normalize_email(email)
        now = datetime.now(UTC)
        existing = self._records_by_email.get(normalized_email)
        record = {
            "email": normalized_email,
            "availability": _normalize_availability_document(availability),
            "created_at": existing["created_at"] if existing else now,
            "updated_at": now,
        }
        self._records_by_email[normalized_email] = record
        return _copy_record(record)

    def delete_availability(self, email: str) -> bool:
        return self._records_by_email.pop(_normalize_email(email), None) is not None


class MongoAvailabilityStore(AvailabilityStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import MongoClient

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
        )
        self._collection = self._client[db_name][collection_name]
        self._collection.create_index("email", unique=True)

    def get_availability(self, email: str) -> dict[str, Any] | None:
        record = self._collection.find_one({"email": _normalize_email(email)})
        return _serialize_record(record)

    def get_availability_for_emails(self, emails: Iterable[str]) -> dict[str, dict[str, Any]]:
        normalized_emails = sorted({_normalize_email(email) for email in emails})
        if not normalized_emails:
            return {}
        records: dict[str, dict[str, Any]] = {}
        for record in self._collection.find({"email": {"$in": normalized_emails}}):
            serialized = _serialize_record(record)
            if serialized:
                records[serialized["email"]] = serialized
        return records

    def upsert_availability(self, email: str, availability: Mapping[str, Any]) -> dict[str, Any]:
        from pymongo import ReturnDocument

        normalized_email = _normalize_email(email)
        now = datetime.now(UTC)
        record = self._collection.find_one_and_update(
            {"email": normalized_email},
            {
                "$set": {
                    "availability": _normalize_availability_document(availability),
                    "updated_at": now,
                },
                "$setOnInsert": {
                    "created_at": now,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        serialized = _serialize_record(record)
        if not serialized:
            raise RuntimeError("Unable to read stored availability.")
        return serialized

    def delete_availability(self, email: str) -> bool:
        result = self._collection.delete_one({"email": _normalize_email(email)})
        return result.deleted_count > 0


def _normalize_availability_document(availability: Mapping[str, Any]) -> dict[str, Any]:
    document: dict[str, Any] = {}
    for day in DayOfWeek:
        raw_day = availability.get(day.value)
        if not isinstance(raw_day, Mapping):
            document[day.value] = {"enabled": False, "time_slots": []}
            continue
        document[day.value] = {
            "enabled": raw_day.get("enabled") is True,
            "time_slots": [
                {"start": slot.get("start"), "end": slot.get("end")}
                for slot in raw_day.get("time_slots") or []
                if isinstance(slot, Mapping)
            ],
        }
    return document


def _copy_record(record: Mapping[str, Any]) -> dict[str, Any]:
    copied = dict(record)
    copied["availability"] = _normalize_availability_document(record.get("availability") or {})
    return copied


def _serialize_record(record: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not record:
        return None
    serialized = _copy_record(record)
    serialized.pop("_id", None)
    return serialized


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def create_availability_store(settings: Settings) -> AvailabilityStore:
    return _create_availability_store_cached(
        availability_store=settings.availability_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_availability_collection=settings.mongodb_availability_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_availability_store_cached(
    *,
    availability_store: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_availability_collection: str,
    mongodb_connect_timeout_ms: int,
) -> AvailabilityStore:
    if availability_store == "memory":
        return InMemoryAvailabilityStore()

    if availability_store == "mongodb":
        return MongoAvailabilityStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            collection_name=mongodb_availability_collection,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryAvailabilityStore()


def clear_availability_store_cache() -> None:
    _create_availability_store_cached.cache_clear()
