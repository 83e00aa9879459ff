import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, field_serializer, field_validator

from utils import ms_to_datetime, timestamp_to_ms, to_naive_utc

logger = logging.getLogger(__name__)

TRUTHY = ("1", "true")

class ReadingCreate(BaseModel):
    """Inbound device payload.

    ``timestamp`` is required but lenient: any encoding the normalizer
    understands is accepted, and a present-but-unparseable value falls back
    to the current time (logged). Optional fields left out stay ``None``;
    defaults are applied by the store.
    """
    humidity: FiniteFloat
    timestamp: datetime
    regando: Optional[bool] = None
    rega_pulsos: Optional[FiniteFloat] = None
    rega_volume_l: Optional[FiniteFloat] = None
    volume_total_l: Optional[FiniteFloat] = None
    rega_duracao_s: Optional[FiniteFloat] = None
    device_ts_ms: Optional[int] = None
    esp_ip: Optional[str] = None
    esp_rssi: Optional[FiniteFloat] = None
    timestamp_iso: Optional[str] = None

    @field_validator("humidity", mode="before")
    @classmethod
    def _humidity_not_bool(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("humidity must be a number")
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize_timestamp(cls, v: Any) -> datetime:
        if v is None:
            raise ValueError("timestamp is required")
        dt = ms_to_datetime(timestamp_to_ms(v))
        if dt is None:
            logger.warning("[INGEST] unparseable timestamp %r, using current time", v)
            dt = datetime.now(timezone.utc)
        return dt

    @field_validator("regando", mode="before")
    @classmethod
    def _coerce_regando(cls, v: Any) -> Optional[bool]:
        if v is None:
            return None
        if isinstance(v, bool):
            return v
        if isinstance(v, (int, float)):
            return v == 1
        return str(v).strip().lower() in TRUTHY

    @field_validator("esp_ip", "timestamp_iso", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def to_record(self) -> dict:
        data = self.model_dump()
        data["timestamp"] = to_naive_utc(self.timestamp)
        return data

class ReadingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    humidity: float
    timestamp: datetime
    regando: bool = False
    rega_pulsos: float = 0
    rega_volume_l: float = 0
    volume_total_l: float = 0
    rega_duracao_s: float = 0
    device_ts_ms: Optional[int] = None
    esp_ip: Optional[str] = None
    esp_rssi: Optional[float] = None
    timestamp_iso: Optional[str] = None
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @field_serializer("timestamp", "created_at", "updated_at")
    def _iso_utc(self, dt: datetime) -> str:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
