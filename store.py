import logging
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Reading
from schemas import ReadingCreate
from utils import ms_to_datetime, timestamp_to_ms, to_naive_utc

logger = logging.getLogger(__name__)

IRRIGATION_DEFAULTS = {
    "regando": False,
    "rega_pulsos": 0,
    "rega_volume_l": 0,
    "volume_total_l": 0,
    "rega_duracao_s": 0,
}


class StorageError(Exception):
    """The database could not be reached or refused a read/write."""


def _bound(value: Any):
    dt = ms_to_datetime(timestamp_to_ms(value))
    if dt is None:
        raise ValueError(f"invalid date bound: {value!r}")
    return to_naive_utc(dt)


class ReadingStore:
    """Create/read/delete access to persisted readings. There is no update."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, body: ReadingCreate) -> Reading:
        data = body.to_record()
        for k, default in IRRIGATION_DEFAULTS.items():
            if data.get(k) is None:
                data[k] = default
        reading = Reading(**data)
        try:
            self.db.add(reading); self.db.commit(); self.db.refresh(reading)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("[DB] insert reading failed")
            raise StorageError("could not store reading") from exc
        return reading

    def find_all(self) -> List[Reading]:
        # no ordering guarantee, callers sort
        try:
            return list(self.db.scalars(select(Reading)).all())
        except SQLAlchemyError as exc:
            logger.exception("[DB] list readings failed")
            raise StorageError("could not list readings") from exc

    def find_by_id(self, reading_id: str) -> Optional[Reading]:
        try:
            return self.db.get(Reading, reading_id)
        except SQLAlchemyError as exc:
            logger.exception("[DB] get reading failed id=%s", reading_id)
            raise StorageError("could not load reading") from exc

    def find_by_date_range(self, start: Any, end: Any) -> List[Reading]:
        """Readings with ``start <= timestamp <= end``.

        Bounds take any encoding the normalizer accepts; an unresolvable
        bound raises ``ValueError``.
        """
        lo, hi = _bound(start), _bound(end)
        stmt = (
            select(Reading)
            .where(Reading.timestamp >= lo, Reading.timestamp <= hi)
            .order_by(Reading.timestamp.asc())
        )
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.exception("[DB] range query failed start=%s end=%s", lo, hi)
            raise StorageError("could not query readings") from exc

    def delete_by_id(self, reading_id: str) -> Optional[Reading]:
        try:
            reading = self.db.get(Reading, reading_id)
            if reading is None:
                return None
            self.db.delete(reading); self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("[DB] delete reading failed id=%s", reading_id)
            raise StorageError("could not delete reading") from exc
        return reading
