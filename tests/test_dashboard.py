"""Tests for the dashboard pipeline and client."""

import math
from unittest.mock import MagicMock

import pytest
import requests

from dashboard import (
    DashboardClient,
    Filters,
    SortDirection,
    SortState,
    apply_filters,
    build_view,
    chart_series,
    latest_reading,
    normalize_reading,
    paginate,
    reading_stats,
    sort_by_timestamp,
    sort_readings,
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def raw_readings():
    """Readings as the API returns them, deliberately out of order."""
    return [
        {"id": "b", "humidity": 30, "timestamp": "2024-01-02T00:00:00.000Z", "regando": True},
        {"id": "a", "humidity": 10, "timestamp": "2024-01-01T00:00:00.000Z", "regando": False},
        {"id": "x", "humidity": 50, "timestamp": "garbage"},
        {"id": "c", "humidity": 20, "timestamp": 1704240000},  # 2024-01-03, seconds
    ]


def _fake_response(data):
    resp = MagicMock()
    resp.json.return_value = data
    resp.raise_for_status.return_value = None
    return resp


# =============================================================================
# NORMALIZATION / ORDERING / AGGREGATES
# =============================================================================

class TestNormalize:

    def test_attaches_ts_and_keeps_original(self, raw_readings):
        r = normalize_reading(raw_readings[3])
        assert r.ts_ms == 1_704_240_000_000
        assert r.timestamp_iso == "2024-01-03T00:00:00.000Z"
        assert r.original is raw_readings[3]
        assert raw_readings[3]["timestamp"] == 1704240000

    def test_unresolvable_timestamp(self, raw_readings):
        r = normalize_reading(raw_readings[2])
        assert r.ts_ms is None and r.timestamp_iso is None

    def test_regando_numeric(self):
        assert normalize_reading({"humidity": 1, "regando": 1}).regando is True
        assert normalize_reading({"humidity": 1, "regando": 0}).regando is False
        assert normalize_reading({"humidity": 1}).regando is False

    def test_mongo_style_id(self):
        assert normalize_reading({"_id": "abc", "humidity": 1}).id == "abc"


class TestOrdering:

    def test_ascending_with_unresolvable_first(self, raw_readings):
        ordered = sort_by_timestamp([normalize_reading(r) for r in raw_readings])
        assert [r.id for r in ordered] == ["x", "a", "b", "c"]

    def test_latest_is_last(self, raw_readings):
        ordered = sort_by_timestamp([normalize_reading(r) for r in raw_readings])
        assert latest_reading(ordered).id == "c"
        assert latest_reading([]) is None

    def test_stats(self):
        readings = [normalize_reading({"humidity": 10}), normalize_reading({"humidity": 20})]
        stats = reading_stats(readings)
        assert (stats.mean, stats.min, stats.max) == (15, 10, 20)
        assert tuple(reading_stats([])) == (0, 0, 0)


# =============================================================================
# FILTERS
# =============================================================================

class TestFilters:

    def test_date_range_inclusive_and_drops_unknown_time(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        f = Filters.from_inputs(start="2024-01-01T00:00:00Z", end="2024-01-02T00:00:00Z")
        assert sorted(r.id for r in apply_filters(readings, f)) == ["a", "b"]

    def test_humidity_bounds_inclusive(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        f = Filters.from_inputs(min_humidity="20", max_humidity=30)
        assert sorted(r.id for r in apply_filters(readings, f)) == ["b", "c"]

    def test_no_filters_keeps_everything(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        assert len(apply_filters(readings, Filters())) == 4

    def test_blank_inputs_ignored(self):
        assert Filters.from_inputs("", None, "", None) == Filters()

    def test_non_numeric_humidity_excluded_by_bounds(self):
        readings = [normalize_reading({"humidity": "n/a", "timestamp": 1})]
        assert math.isnan(readings[0].humidity)
        assert apply_filters(readings, Filters(min_humidity=0)) == []


# =============================================================================
# COLUMN SORT
# =============================================================================

class TestSortState:

    def test_three_clicks_cycle_back_to_unsorted(self):
        s = SortState()
        s = s.toggle("humidity")
        assert s.direction is SortDirection.ASC
        s = s.toggle("humidity")
        assert s.direction is SortDirection.DESC
        s = s.toggle("humidity")
        assert s == SortState()
        assert s.direction_for("humidity") is SortDirection.NONE

    def test_other_column_resets_first(self):
        s = SortState().toggle("humidity").toggle("humidity")
        s = s.toggle("timestamp")
        assert s.direction_for("humidity") is SortDirection.NONE
        assert s.direction_for("timestamp") is SortDirection.ASC

    def test_sort_by_humidity(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        asc = sort_readings(readings, SortState("humidity", SortDirection.ASC))
        desc = sort_readings(readings, SortState("humidity", SortDirection.DESC))
        assert [r.humidity for r in asc] == [10, 20, 30, 50]
        assert [r.humidity for r in desc] == [50, 30, 20, 10]

    def test_sort_by_timestamp_column(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        desc = sort_readings(readings, SortState("timestamp", SortDirection.DESC))
        assert [r.id for r in desc] == ["c", "b", "a", "x"]

    def test_sort_booleans_and_missing(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        asc = sort_readings(readings, SortState("regando", SortDirection.ASC))
        assert asc[-1].id == "b"
        by_ip = sort_readings(readings, SortState("esp_ip", SortDirection.ASC))
        assert len(by_ip) == 4

    def test_unsorted_keeps_order(self, raw_readings):
        readings = [normalize_reading(r) for r in raw_readings]
        assert sort_readings(readings, SortState()) == readings


# =============================================================================
# PAGINATION / VIEW
# =============================================================================

class TestPagination:

    def test_pages(self):
        readings = [normalize_reading({"humidity": i, "timestamp": i + 1}) for i in range(25)]
        page = paginate(readings, 3, 10)
        assert page.pages == 3
        assert page.total == 25
        assert [r.humidity for r in page.items] == [20, 21, 22, 23, 24]

    def test_out_of_range_clamps(self):
        readings = [normalize_reading({"humidity": i}) for i in range(5)]
        assert paginate(readings, 9, 10).page == 1
        assert paginate([], 1, 10).pages == 1

    def test_zero_page_size_rejected(self):
        with pytest.raises(ValueError):
            paginate([], 1, 0)
        with pytest.raises(ValueError):
            DashboardClient("http://api", page_size=0, session=MagicMock())


class TestBuildView:

    def test_view(self, raw_readings):
        view = build_view(raw_readings, Filters(min_humidity=15), page_size=2)
        assert view.latest.id == "c"
        assert view.stats.mean == 27.5
        assert [r.id for r in view.filtered] == ["x", "b", "c"]
        assert [r.id for r in view.page.items] == ["x", "b"]

    def test_overflowing_timestamps_do_not_break_view(self):
        view = build_view([
            {"id": "big", "humidity": 1, "timestamp": "9" * 5000},
            {"id": "neg", "humidity": 2, "timestamp": -1e306},
        ])
        assert {r.id for r in view.readings} == {"big", "neg"}
        assert all(r.ts_ms is None for r in view.readings)
        assert view.chart_labels == []

    def test_chart_series_skips_unknown_time(self, raw_readings):
        readings = sort_by_timestamp([normalize_reading(r) for r in raw_readings])
        labels, values = chart_series(readings, Filters())
        assert labels == ["2024-01-01T00:00:00.000Z", "2024-01-02T00:00:00.000Z",
                          "2024-01-03T00:00:00.000Z"]
        assert values == [10, 30, 20]


# =============================================================================
# CLIENT
# =============================================================================

class TestDashboardClient:

    def test_refresh_builds_view(self, raw_readings):
        session = MagicMock()
        session.get.return_value = _fake_response(raw_readings)
        client = DashboardClient("http://api/", session=session)

        assert client.refresh() is True
        session.get.assert_called_once_with("http://api/reading")
        assert len(client.view.readings) == 4

    def test_failed_fetch_keeps_stale_view(self, raw_readings):
        session = MagicMock()
        session.get.return_value = _fake_response(raw_readings)
        client = DashboardClient("http://api", session=session)
        client.refresh()

        session.get.side_effect = requests.ConnectionError("offline")
        assert client.refresh() is False
        assert len(client.view.readings) == 4

    def test_non_list_payload_is_rejected(self):
        session = MagicMock()
        session.get.return_value = _fake_response({"error": "boom"})
        client = DashboardClient("http://api", session=session)
        assert client.refresh() is False
        assert client.view.readings == []

    def test_stale_response_is_dropped(self, raw_readings):
        session = MagicMock()
        client = DashboardClient("http://api", session=session)
        newer = [{"id": "new", "humidity": 99, "timestamp": 1}]

        def slow_get(url):
            # a second refresh starts and finishes while the first is in flight
            session.get.side_effect = None
            session.get.return_value = _fake_response(newer)
            assert client.refresh() is True
            return _fake_response(raw_readings)

        session.get.side_effect = slow_get
        assert client.refresh() is False
        assert [r.id for r in client.view.readings] == ["new"]

    def test_filter_change_resets_page(self):
        session = MagicMock()
        session.get.return_value = _fake_response(
            [{"humidity": i, "timestamp": i + 1} for i in range(30)]
        )
        client = DashboardClient("http://api", page_size=10, session=session)
        client.refresh()
        client.go_to_page(3)
        assert client.view.page.page == 3

        view = client.set_filters(Filters(max_humidity=25))
        assert view.page.page == 1
        assert view.page.total == 26

    def test_toggle_sort(self):
        session = MagicMock()
        session.get.return_value = _fake_response([{"humidity": 5, "timestamp": 1},
                                                   {"humidity": 7, "timestamp": 2}])
        client = DashboardClient("http://api", session=session)
        client.refresh()
        client.toggle_sort("humidity")
        view = client.toggle_sort("humidity")
        assert [r.humidity for r in view.filtered] == [7, 5]

    def test_view_changes_hold_the_lock(self):
        client = DashboardClient("http://api", session=MagicMock())
        client._lock = MagicMock()
        client.set_filters(Filters(min_humidity=1))
        client.toggle_sort("humidity")
        client.go_to_page(2)
        client.reset_filters()
        assert client._lock.__enter__.call_count == 4
        assert client._lock.__exit__.call_count == 4
