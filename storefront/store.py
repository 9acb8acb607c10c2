"""Key/value persistence for the storefront.

Every value is a text blob stored under a fixed key in ``store_entries``.
Collections (inventory, reviews) are JSON arrays of records; branding
values are plain strings. Reads never raise: a missing, unreadable or
corrupt value comes back as "nothing stored". Writes are best effort: a
failure is logged and reported through the return value, never raised.
"""
import json
import logging
from typing import Iterable, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from storefront.models import StoreEntry

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class PersistentStore:
    def __init__(self, engine):
        self.engine = engine

    # ---- scalar values ----
    def get_value(self, key: str) -> str | None:
        try:
            with Session(self.engine) as s:
                entry = s.get(StoreEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.warning("store: read of %r failed: %s", key, e)
            return None

    def set_value(self, key: str, value: str) -> bool:
        try:
            with Session(self.engine) as s:
                entry = s.get(StoreEntry, key)
                if entry:
                    entry.value = value
                else:
                    entry = StoreEntry(key=key, value=value)
                s.add(entry)
                s.commit()
            return True
        except SQLAlchemyError as e:
            logger.warning("store: write of %r failed: %s", key, e)
            return False

    def remove_value(self, key: str) -> bool:
        try:
            with Session(self.engine) as s:
                entry = s.get(StoreEntry, key)
                if entry:
                    s.delete(entry)
                    s.commit()
            return True
        except SQLAlchemyError as e:
            logger.warning("store: delete of %r failed: %s", key, e)
            return False

    # ---- collections ----
    def load(self, key: str, record_type: type[RecordT]) -> list[RecordT]:
        """Return the saved collection under ``key`` or an empty list.

        Records that no longer fit ``record_type`` are dropped one by one so a
        single bad row does not hide the rest of the collection.
        """
        raw = self.get_value(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning("store: %r is not valid JSON, treating as empty: %s", key, e)
            return []
        if not isinstance(data, list):
            logger.warning("store: %r is not a JSON array, treating as empty", key)
            return []
        records = []
        for item in data:
            try:
                records.append(record_type.model_validate(item))
            except ValidationError as e:
                logger.warning("store: skipping malformed record in %r: %s", key, e)
        return records

    def save(self, key: str, collection: Iterable[BaseModel]) -> bool:
        payload = json.dumps(
            [r.model_dump(mode="json", by_alias=True) for r in collection],
            ensure_ascii=False,
        )
        return self.set_value(key, payload)
