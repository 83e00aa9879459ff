"""Dashboard side of the readings API.

Everything is recomputed from the full list of raw readings on each refresh
or filter change: normalize, sort by time, aggregate, filter, sort by the
selected column, paginate. ``DashboardClient`` only holds the inputs of that
pipeline and the last view it produced.
"""
import logging
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import requests

from utils import HumidityStats, humidity_stats, resolve_timestamp, timestamp_to_ms

logger = logging.getLogger(__name__)

PAGE_SIZE = 10


@dataclass(frozen=True)
class NormalizedReading:
    id: Optional[str]
    humidity: float
    ts_ms: Optional[int]
    timestamp_iso: Optional[str]
    regando: bool = False
    rega_pulsos: Optional[float] = None
    rega_volume_l: Optional[float] = None
    volume_total_l: Optional[float] = None
    rega_duracao_s: Optional[float] = None
    device_ts_ms: Optional[int] = None
    esp_ip: Optional[str] = None
    esp_rssi: Optional[float] = None
    original: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        f = float(value)
    except (TypeError, ValueError):
        return math.nan
    return f


def normalize_reading(raw: Mapping[str, Any]) -> NormalizedReading:
    ts = resolve_timestamp(raw)
    regando = raw.get("regando")
    return NormalizedReading(
        id=raw.get("id", raw.get("_id")),
        humidity=_as_float(raw.get("humidity")),
        ts_ms=ts.ms if ts else None,
        timestamp_iso=ts.iso if ts else None,
        regando=regando if isinstance(regando, bool) else regando == 1,
        rega_pulsos=raw.get("rega_pulsos"),
        rega_volume_l=raw.get("rega_volume_l"),
        volume_total_l=raw.get("volume_total_l"),
        rega_duracao_s=raw.get("rega_duracao_s"),
        device_ts_ms=raw.get("device_ts_ms"),
        esp_ip=raw.get("esp_ip"),
        esp_rssi=raw.get("esp_rssi"),
        original=raw,
    )


def sort_by_timestamp(readings: Sequence[NormalizedReading]) -> List[NormalizedReading]:
    # unresolvable timestamps sort as 0, i.e. first
    return sorted(readings, key=lambda r: r.ts_ms or 0)


def latest_reading(readings_asc: Sequence[NormalizedReading]) -> Optional[NormalizedReading]:
    return readings_asc[-1] if readings_asc else None


def reading_stats(readings: Sequence[NormalizedReading]) -> HumidityStats:
    return humidity_stats(r.humidity for r in readings if not math.isnan(r.humidity))


# ---------- Filters ----------
@dataclass(frozen=True)
class Filters:
    """Inclusive date and humidity bounds; ``None`` means unbounded."""
    start_ms: Optional[int] = None
    end_ms: Optional[int] = None
    min_humidity: Optional[float] = None
    max_humidity: Optional[float] = None

    @classmethod
    def from_inputs(cls, start=None, end=None, min_humidity=None, max_humidity=None) -> "Filters":
        """Build from raw form values; blank or unparseable values are ignored."""
        def num(v):
            if v is None or (isinstance(v, str) and not v.strip()):
                return None
            f = _as_float(v)
            return None if math.isnan(f) else f
        return cls(timestamp_to_ms(start), timestamp_to_ms(end), num(min_humidity), num(max_humidity))

    @property
    def has_date_range(self) -> bool:
        return self.start_ms is not None or self.end_ms is not None

    def matches(self, r: NormalizedReading) -> bool:
        if self.has_date_range:
            if r.ts_ms is None:
                return False
            if self.start_ms is not None and r.ts_ms < self.start_ms:
                return False
            if self.end_ms is not None and r.ts_ms > self.end_ms:
                return False
        if self.min_humidity is not None or self.max_humidity is not None:
            if math.isnan(r.humidity):
                return False
            if self.min_humidity is not None and r.humidity < self.min_humidity:
                return False
            if self.max_humidity is not None and r.humidity > self.max_humidity:
                return False
        return True


def apply_filters(readings: Sequence[NormalizedReading], filters: Filters) -> List[NormalizedReading]:
    return [r for r in readings if filters.matches(r)]


# ---------- Column sort ----------
class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"
    NONE = ""


ROTATE = {
    SortDirection.NONE: SortDirection.ASC,
    SortDirection.ASC: SortDirection.DESC,
    SortDirection.DESC: SortDirection.NONE,
}


@dataclass(frozen=True)
class SortState:
    column: Optional[str] = None
    direction: SortDirection = SortDirection.NONE

    def toggle(self, column: str) -> "SortState":
        """Next state after a click on ``column``'s header.

        Only one column is sorted at a time; clicking a different column
        starts it from unsorted.
        """
        current = self.direction if column == self.column else SortDirection.NONE
        nxt = ROTATE[current]
        if nxt is SortDirection.NONE:
            return SortState()
        return SortState(column, nxt)

    def direction_for(self, column: str) -> SortDirection:
        return self.direction if column == self.column else SortDirection.NONE


def _sort_key(r: NormalizedReading, column: str) -> Tuple[bool, Any]:
    if column == "timestamp":
        return (False, r.ts_ms or 0)
    v = getattr(r, column, None)
    if isinstance(v, bool):
        v = int(v)
    if v is None or (isinstance(v, float) and math.isnan(v)):
        v = 0
    return (isinstance(v, str), v)


def sort_readings(readings: Sequence[NormalizedReading], state: SortState) -> List[NormalizedReading]:
    if not state.column or state.direction is SortDirection.NONE:
        return list(readings)
    return sorted(readings, key=lambda r: _sort_key(r, state.column),
                  reverse=state.direction is SortDirection.DESC)


# ---------- Pagination ----------
@dataclass(frozen=True)
class Page:
    items: List[NormalizedReading]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))


def paginate(readings: Sequence[NormalizedReading], page: int = 1, page_size: int = PAGE_SIZE) -> Page:
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")
    total = len(readings)
    pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), pages)
    start = (page - 1) * page_size
    return Page(list(readings[start:start + page_size]), page, page_size, total)


def chart_series(readings_asc: Sequence[NormalizedReading], filters: Filters) -> Tuple[List[str], List[float]]:
    """Labels and values for the humidity line chart."""
    points = [r for r in apply_filters(readings_asc, filters) if r.timestamp_iso is not None]
    return [r.timestamp_iso for r in points], [r.humidity for r in points]


# ---------- View ----------
@dataclass(frozen=True)
class DashboardView:
    readings: List[NormalizedReading]
    latest: Optional[NormalizedReading]
    stats: HumidityStats
    filtered: List[NormalizedReading]
    page: Page
    sort: SortState
    chart_labels: List[str]
    chart_values: List[float]


def build_view(raw: Sequence[Mapping[str, Any]], filters: Filters = Filters(),
               sort: SortState = SortState(), page: int = 1,
               page_size: int = PAGE_SIZE) -> DashboardView:
    readings = sort_by_timestamp([normalize_reading(r) for r in raw])
    filtered = sort_readings(apply_filters(readings, filters), sort)
    labels, values = chart_series(readings, filters)
    return DashboardView(
        readings=readings,
        latest=latest_reading(readings),
        stats=reading_stats(readings),
        filtered=filtered,
        page=paginate(filtered, page, page_size),
        sort=sort,
        chart_labels=labels,
        chart_values=values,
    )


class DashboardClient:
    """Fetches readings from the API and keeps the current dashboard view.

    Each refresh takes a generation number; a response that arrives after a
    newer refresh was started is dropped. Failed fetches are logged and the
    previous view stays in place.
    """

    def __init__(self, base_url: str, page_size: int = PAGE_SIZE,
                 session: Optional[requests.Session] = None):
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.session = session or requests.Session()
        self.filters = Filters()
        self.sort = SortState()
        self.page = 1
        self._raw: List[Dict[str, Any]] = []
        self._generation = 0
        self._lock = threading.Lock()
        self.view = self._rebuild()

    def _rebuild(self) -> DashboardView:
        self.view = build_view(self._raw, self.filters, self.sort, self.page, self.page_size)
        self.page = self.view.page.page
        return self.view

    def _fetch(self) -> List[Dict[str, Any]]:
        resp = self.session.get(f"{self.base_url}/reading")
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"expected a list of readings, got {type(data).__name__}")
        return data

    def refresh(self) -> bool:
        """Reload every reading; returns False when nothing was applied."""
        with self._lock:
            self._generation += 1
            token = self._generation
        try:
            data = self._fetch()
        except (requests.RequestException, ValueError) as exc:
            logger.error("[DASHBOARD] failed to load readings: %s", exc)
            return False
        with self._lock:
            if token != self._generation:
                logger.info("[DASHBOARD] dropping stale response gen=%s current=%s",
                            token, self._generation)
                return False
            self._raw = data
            self._rebuild()
        logger.debug("[DASHBOARD] loaded %s readings", len(data))
        return True

    def set_filters(self, filters: Filters) -> DashboardView:
        with self._lock:
            self.filters = filters
            self.page = 1
            return self._rebuild()

    def reset_filters(self) -> DashboardView:
        return self.set_filters(Filters())

    def toggle_sort(self, column: str) -> DashboardView:
        with self._lock:
            self.sort = self.sort.toggle(column)
            return self._rebuild()

    def go_to_page(self, page: int) -> DashboardView:
        with self._lock:
            self.page = page
            return self._rebuild()
