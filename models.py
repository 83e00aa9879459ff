import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Float, Boolean, BigInteger, DateTime
from database import Base

def _new_id() -> str:
    return uuid.uuid4().hex

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Reading(Base):
    __tablename__ = "readings"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    humidity: Mapped[float] = mapped_column(Float)
    # naive UTC
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)
    regando: Mapped[bool] = mapped_column(Boolean, default=False)
    rega_pulsos: Mapped[float] = mapped_column(Float, default=0)
    rega_volume_l: Mapped[float] = mapped_column(Float, default=0)
    volume_total_l: Mapped[float] = mapped_column(Float, default=0)
    rega_duracao_s: Mapped[float] = mapped_column(Float, default=0)
    device_ts_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    esp_ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    esp_rssi: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp_iso: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
