"""Sample-store helpers: CSV loading, per-day dedupe and comparison windows.

The app persists samples on the device; the CLI uses a CSV file with one row
per scan as a stand-in for that store.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Final

import pandas as pd
from dateutil.parser import parse as date_parse

from careahead.exceptions import HistoryLoadError
from careahead.models import VitalSample

logger = logging.getLogger(__name__)

CSV_COLUMNS: Final[list[str]] = ["timestamp", "heart_rate", "breathing_rate", "sleep_hours", "notes"]
REQUIRED_COLUMNS: Final[list[str]] = ["timestamp", "heart_rate", "breathing_rate"]

# Handle the naming conventions of app exports
COLUMN_MAPPINGS: Final[dict[str, str]] = {
    "date": "timestamp",
    "day": "timestamp",
    "heartRate": "heart_rate",
    "hr": "heart_rate",
    "breathingRate": "breathing_rate",
    "br": "breathing_rate",
    "sleepHours": "sleep_hours",
    "sleep": "sleep_hours",
}


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    try:
        return date_parse(text)
    except (ValueError, OverflowError):
        return None


def _finite(value: object) -> bool:
    return bool(pd.notna(value)) and math.isfinite(value)


def load_history(path: Path) -> list[VitalSample]:
    """Load samples from CSV, skipping rows that cannot be parsed.

    Raises:
        HistoryLoadError: If the file is missing or lacks required columns.
    """
    if not path.exists():
        raise HistoryLoadError(f"History file not found: {path}", path=str(path))

    try:
        df = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise HistoryLoadError(f"Could not read history file: {e}", path=str(path)) from e

    df = df.rename(columns={k: v for k, v in COLUMN_MAPPINGS.items() if k in df.columns})
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise HistoryLoadError(
            f"History file missing required columns: {', '.join(missing)}", path=str(path)
        )

    samples: list[VitalSample] = []
    skipped = 0
    for row in df.itertuples(index=False):
        timestamp = _parse_timestamp(row.timestamp)
        hr = pd.to_numeric(row.heart_rate, errors="coerce")
        br = pd.to_numeric(row.breathing_rate, errors="coerce")
        if timestamp is None or not _finite(hr) or not _finite(br):
            skipped += 1
            continue

        sleep = getattr(row, "sleep_hours", None)
        if sleep is not None:
            sleep = pd.to_numeric(sleep, errors="coerce")
        notes = getattr(row, "notes", None)
        samples.append(
            VitalSample(
                timestamp=timestamp,
                heart_rate=int(round(hr)),
                breathing_rate=int(round(br)),
                sleep_hours=float(sleep) if sleep is not None and _finite(sleep) and sleep >= 0 else None,
                notes=str(notes) if isinstance(notes, str) and notes.strip() else None,
            )
        )

    if skipped:
        logger.warning("Skipped %d unparseable row(s) in %s", skipped, path)
    logger.info("Loaded %d sample(s) from %s", len(samples), path)
    return sorted(samples, key=lambda s: s.timestamp)


def save_history(samples: Iterable[VitalSample], path: Path) -> None:
    rows = [
        {
            "timestamp": s.timestamp.isoformat(timespec="seconds"),
            "heart_rate": s.heart_rate,
            "breathing_rate": s.breathing_rate,
            "sleep_hours": s.sleep_hours,
            "notes": s.notes,
        }
        for s in sorted(samples, key=lambda s: s.timestamp)
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(path, index=False)


def dedupe_by_day(samples: Iterable[VitalSample]) -> list[VitalSample]:
    """Keep the most recent sample per calendar day, oldest day first."""
    latest: dict[date, VitalSample] = {}
    for sample in samples:
        current = latest.get(sample.day)
        if current is None or sample.timestamp >= current.timestamp:
            latest[sample.day] = sample
    return [latest[d] for d in sorted(latest)]


def latest_for_day(samples: Iterable[VitalSample], day: date) -> VitalSample | None:
    """Return the authoritative (most recent) sample recorded on `day`."""
    same_day = [s for s in samples if s.day == day]
    return max(same_day, key=lambda s: s.timestamp) if same_day else None


def history_for_comparison(
    samples: Iterable[VitalSample], today: date, window: int = 60
) -> list[VitalSample]:
    """Most recent `window` days before `today`, one sample per day, oldest first.

    Days after `today` are ignored so that past days can be re-scored.
    """
    previous = [s for s in dedupe_by_day(samples) if s.day < today]
    return previous[-window:] if window > 0 else []


def seed_history(
    days: int = 100,
    *,
    end: date | None = None,
    seed: int | None = None,
) -> list[VitalSample]:
    """Generate demo samples at noon for each of the `days` days before `end`."""
    rng = random.Random(seed)
    end = end or date.today()
    samples = []
    for days_ago in range(days, 0, -1):
        day = end - timedelta(days=days_ago)
        samples.append(
            VitalSample(
                timestamp=datetime.combine(day, time(hour=12)),
                heart_rate=rng.randint(55, 95),
                breathing_rate=rng.randint(12, 20),
            )
        )
    return samples
