"""Data models shared by the baseline engine, prompt builder and parser."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, fields
from datetime import date, datetime
from enum import Enum
from typing import Final


class Metric(str, Enum):
    """Vital-sign metric tracked per sample."""

    HEART_RATE = "heart_rate"
    BREATHING_RATE = "breathing_rate"

    @property
    def unit(self) -> str:
        return "bpm" if self is Metric.HEART_RATE else "rpm"

    @property
    def title(self) -> str:
        return "Heart Rate" if self is Metric.HEART_RATE else "Breathing Rate"

    def value_of(self, sample: VitalSample) -> int:
        return getattr(sample, self.value)


class Stability(str, Enum):
    STABLE = "stable"
    WITHIN_RANGE = "within_range"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True, slots=True)
class VitalSample:
    """One scan result. Only the calendar day of `timestamp` matters for trends."""

    timestamp: datetime
    heart_rate: int
    breathing_rate: int
    sleep_hours: float | None = None
    notes: str | None = None

    @property
    def day(self) -> date:
        return self.timestamp.date()


@dataclass(frozen=True, slots=True)
class BaselineStats:
    """Statistical summary of a history window for one metric."""

    average: float
    low_band: float
    high_band: float
    std_dev: float
    count: int

    def contains(self, value: float) -> bool:
        return self.low_band <= value <= self.high_band


# JSON keys used by the model response, in display order
SECTION_KEYS: Final[dict[str, str]] = {
    "introduction": "introduction",
    "heart_rate_discussion": "heartRateDiscussion",
    "breathing_rate_discussion": "breathingRateDiscussion",
    "final_thoughts": "finalThoughts",
    "disclaimer": "disclaimer",
}

_BLANK_LINES = re.compile(r"\n[ \t]*(?:\n[ \t]*)+")


def split_paragraphs(text: str) -> list[str]:
    """Split text on runs of blank lines, dropping empty paragraphs."""
    text = text.replace("\r\n", "\n")
    return [p.strip() for p in _BLANK_LINES.split(text) if p.strip()]


@dataclass(frozen=True, slots=True)
class InsightSections:
    """Render-ready narrative sections of one insight."""

    introduction: str
    heart_rate_discussion: str
    breathing_rate_discussion: str
    final_thoughts: str
    disclaimer: str

    def to_dict(self) -> dict[str, str]:
        return {SECTION_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    def to_json(self) -> str:
        """Serialize using the same shape the response parser accepts."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def cards(self) -> list[tuple[str, list[str]]]:
        """Return (title, paragraphs) pairs; the disclaimer closes the last card."""
        return [
            ("Introduction", split_paragraphs(self.introduction)),
            (Metric.HEART_RATE.title, split_paragraphs(self.heart_rate_discussion)),
            (Metric.BREATHING_RATE.title, split_paragraphs(self.breathing_rate_discussion)),
            ("Final Thoughts", split_paragraphs(self.final_thoughts) + split_paragraphs(self.disclaimer)),
        ]
