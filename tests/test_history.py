"""Tests for history.py CSV loading and windowing."""

from datetime import date, datetime, timedelta

import pytest

from careahead.exceptions import HistoryLoadError
from careahead.history import (
    dedupe_by_day,
    history_for_comparison,
    latest_for_day,
    load_history,
    save_history,
    seed_history,
)
from careahead.models import VitalSample


def _sample(ts: datetime, hr: int = 70, br: int = 15) -> VitalSample:
    return VitalSample(timestamp=ts, heart_rate=hr, breathing_rate=br)


class TestLoadHistory:
    """Tests for load_history()."""

    def test_basic_csv(self, tmp_path):
        path = tmp_path / "vitals.csv"
        path.write_text(
            "timestamp,heart_rate,breathing_rate,sleep_hours,notes\n"
            "2024-01-02T12:00:00,72,15,7.5,after run\n"
            "2024-01-01T08:30:00,65,14,,\n"
        )
        samples = load_history(path)
        assert len(samples) == 2
        assert samples[0].timestamp == datetime(2024, 1, 1, 8, 30)
        assert samples[0].sleep_hours is None
        assert samples[0].notes is None
        assert samples[1].heart_rate == 72
        assert samples[1].sleep_hours == 7.5
        assert samples[1].notes == "after run"

    def test_app_export_column_names(self, tmp_path):
        """camelCase export columns are mapped."""
        path = tmp_path / "export.csv"
        path.write_text("date,heartRate,breathingRate\n2024/03/05,80,18\n")
        samples = load_history(path)
        assert samples == [_sample(datetime(2024, 3, 5), 80, 18)]

    def test_invalid_rows_skipped(self, tmp_path):
        path = tmp_path / "vitals.csv"
        path.write_text(
            "timestamp,heart_rate,breathing_rate\n"
            "garbage,70,15\n"
            "2024-01-01,abc,15\n"
            "2024-01-02,71,16\n"
        )
        samples = load_history(path)
        assert [s.heart_rate for s in samples] == [71]

    def test_non_finite_values_skipped(self, tmp_path):
        """inf readings are skipped like unparseable rows; inf sleep is dropped."""
        path = tmp_path / "vitals.csv"
        path.write_text(
            "timestamp,heart_rate,breathing_rate,sleep_hours\n"
            "2024-01-01,inf,15,7\n"
            "2024-01-02,70,-inf,7\n"
            "2024-01-03,72,16,inf\n"
        )
        samples = load_history(path)
        assert len(samples) == 1
        assert samples[0].heart_rate == 72
        assert samples[0].sleep_hours is None

    def test_negative_sleep_dropped(self, tmp_path):
        path = tmp_path / "vitals.csv"
        path.write_text("timestamp,heart_rate,breathing_rate,sleep_hours\n2024-01-01,70,15,-1\n")
        assert load_history(path)[0].sleep_hours is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(HistoryLoadError, match="not found") as exc_info:
            load_history(tmp_path / "missing.csv")
        assert exc_info.value.path.endswith("missing.csv")

    def test_missing_columns_raises(self, tmp_path):
        path = tmp_path / "vitals.csv"
        path.write_text("timestamp,heart_rate\n2024-01-01,70\n")
        with pytest.raises(HistoryLoadError, match="breathing_rate"):
            load_history(path)

    def test_empty_file_raises(self, tmp_path):
        path = tmp_path / "vitals.csv"
        path.write_text("")
        with pytest.raises(HistoryLoadError, match="Could not read"):
            load_history(path)

    def test_save_then_load(self, tmp_path):
        """Saved history loads back unchanged."""
        samples = [
            VitalSample(timestamp=datetime(2024, 1, 1, 12), heart_rate=70, breathing_rate=15, sleep_hours=7.0),
            VitalSample(timestamp=datetime(2024, 1, 2, 12), heart_rate=75, breathing_rate=16, notes="tired"),
        ]
        path = tmp_path / "out" / "vitals.csv"
        save_history(samples, path)
        assert load_history(path) == samples


class TestDedupeByDay:
    """Tests for dedupe_by_day()."""

    def test_latest_sample_per_day_wins(self):
        morning = _sample(datetime(2024, 1, 1, 8), hr=90)
        evening = _sample(datetime(2024, 1, 1, 20), hr=60)
        next_day = _sample(datetime(2024, 1, 2, 9), hr=70)
        assert dedupe_by_day([evening, next_day, morning]) == [evening, next_day]

    def test_empty(self):
        assert dedupe_by_day([]) == []


class TestComparisonWindow:
    """Tests for history_for_comparison() and latest_for_day()."""

    def test_excludes_today_and_future(self):
        base = datetime(2024, 1, 1, 12)
        samples = [_sample(base + timedelta(days=i)) for i in range(10)]
        history = history_for_comparison(samples, date(2024, 1, 5))
        assert [s.day for s in history] == [date(2024, 1, d) for d in range(1, 5)]

    def test_window_keeps_most_recent_days(self):
        base = datetime(2024, 1, 1, 12)
        samples = [_sample(base + timedelta(days=i)) for i in range(100)]
        today = (base + timedelta(days=100)).date()
        history = history_for_comparison(samples, today, window=60)
        assert len(history) == 60
        assert history[0].day == (base + timedelta(days=40)).date()
        assert history[-1].day == (base + timedelta(days=99)).date()

    def test_latest_for_day(self):
        early = _sample(datetime(2024, 1, 5, 7), hr=80)
        late = _sample(datetime(2024, 1, 5, 21), hr=66)
        assert latest_for_day([late, early], date(2024, 1, 5)) is late
        assert latest_for_day([late, early], date(2024, 1, 6)) is None


class TestSeedHistory:
    """Tests for seed_history()."""

    def test_seeded_days_and_ranges(self):
        samples = seed_history(30, end=date(2024, 2, 1), seed=7)
        assert len(samples) == 30
        assert samples[0].day == date(2024, 1, 2)
        assert samples[-1].day == date(2024, 1, 31)
        assert all(55 <= s.heart_rate <= 95 for s in samples)
        assert all(12 <= s.breathing_rate <= 20 for s in samples)

    def test_reproducible_with_seed(self):
        assert seed_history(10, end=date(2024, 1, 1), seed=1) == seed_history(10, end=date(2024, 1, 1), seed=1)
