"""Deterministic prompt rendering for insight and trend-paragraph requests.

Templates are markdown files in the `prompts/` folder next to this module. The
output depends only on the arguments; nothing reads the clock.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

from careahead.exceptions import PromptError
from careahead.models import BaselineStats, Metric, VitalSample

PROMPTS_DIR: Final = Path(__file__).parent / "prompts"
DISCLAIMER: Final = "Not medical advice."
PROMPT_DAYS: Final = 30
TREND_DAYS: Final = 7

ResponseFormat = Literal["json", "text"]
RESPONSE_FORMATS: Final[tuple[str, ...]] = ("json", "text")


def load_prompt(name: str) -> str:
    path = PROMPTS_DIR / f"{name}.md"
    if not path.exists():
        raise PromptError(f"Prompt file not found: {path}", prompt_name=name)
    return path.read_text(encoding="utf-8").strip()


@dataclass(frozen=True, slots=True)
class HistorySummary:
    """Lightweight avg/min/max summary shown to the model."""

    days: int
    avg_heart_rate: float
    avg_breathing_rate: float
    min_heart_rate: int
    max_heart_rate: int
    min_breathing_rate: int
    max_breathing_rate: int
    avg_sleep_hours: float | None = None
    min_sleep_hours: float | None = None
    max_sleep_hours: float | None = None

    @classmethod
    def from_samples(cls, samples: list[VitalSample]) -> "HistorySummary | None":
        if not samples:
            return None
        hr = [s.heart_rate for s in samples]
        br = [s.breathing_rate for s in samples]
        sleep = [s.sleep_hours for s in samples if s.sleep_hours is not None]
        return cls(
            days=len(samples),
            avg_heart_rate=sum(hr) / len(hr),
            avg_breathing_rate=sum(br) / len(br),
            min_heart_rate=min(hr),
            max_heart_rate=max(hr),
            min_breathing_rate=min(br),
            max_breathing_rate=max(br),
            avg_sleep_hours=sum(sleep) / len(sleep) if sleep else None,
            min_sleep_hours=min(sleep) if sleep else None,
            max_sleep_hours=max(sleep) if sleep else None,
        )

    def lines(self) -> list[str]:
        out = [
            f"- Avg heart rate: {self.avg_heart_rate:.1f} bpm",
            f"- Avg breathing rate: {self.avg_breathing_rate:.1f} rpm",
            f"- Heart rate range: {self.min_heart_rate}-{self.max_heart_rate} bpm",
            f"- Breathing rate range: {self.min_breathing_rate}-{self.max_breathing_rate} rpm",
        ]
        if self.avg_sleep_hours is not None:
            out.append(f"- Avg sleep: {self.avg_sleep_hours:.1f} hours")
            out.append(f"- Sleep range: {self.min_sleep_hours:.1f}-{self.max_sleep_hours:.1f} hours")
        return out


def recent_history(history: Iterable[VitalSample], days: int = PROMPT_DAYS) -> list[VitalSample]:
    """Oldest-first history truncated to the trailing `days` entries."""
    ordered = sorted(history, key=lambda s: s.timestamp)
    return ordered[-days:] if days > 0 else []


def format_history_line(sample: VitalSample) -> str:
    line = f"- {sample.day.isoformat()}: HR {sample.heart_rate} bpm, BR {sample.breathing_rate} rpm"
    if sample.sleep_hours is not None:
        line += f", Sleep {sample.sleep_hours:.1f} h"
    return line


def build_prompt(
    today: VitalSample,
    history: Iterable[VitalSample],
    response_format: ResponseFormat = "json",
    days: int = PROMPT_DAYS,
) -> str:
    """Render the insight prompt for `today` compared with its history."""
    if response_format not in RESPONSE_FORMATS:
        raise PromptError(f"Unknown response format: {response_format}", prompt_name="insight")

    window = recent_history(history, days)
    summary = HistorySummary.from_samples(window)

    if today.sleep_hours is not None:
        today_sleep = f"- Sleep: {today.sleep_hours:.1f} hours"
    else:
        today_sleep = "- Sleep: (no data)"

    return load_prompt("insight").format(
        disclaimer=DISCLAIMER,
        today=today.day.isoformat(),
        heart_rate=today.heart_rate,
        breathing_rate=today.breathing_rate,
        today_sleep=today_sleep,
        history_days=len(window),
        summary="\n".join(summary.lines()) if summary else "- No previous measurements recorded yet.",
        daily_history="\n".join(format_history_line(s) for s in window) or "- (none)",
        output_format=load_prompt(f"insight.{response_format}_format"),
    )


def build_trend_prompt(
    metric: Metric,
    history: Iterable[VitalSample],
    baseline: BaselineStats | None,
    days: int = TREND_DAYS,
) -> str:
    """Render a one-paragraph trend prompt for a single metric."""
    window = recent_history(history, days)
    if baseline is None:
        baseline_text = "- No baseline yet."
    else:
        baseline_text = "\n".join(
            [
                f"- Average: {baseline.average:.1f} {metric.unit}",
                f"- Normal band: {baseline.low_band:.1f}-{baseline.high_band:.1f} {metric.unit}",
                f"- Standard deviation: {baseline.std_dev:.1f} {metric.unit}",
            ]
        )
    recent = "\n".join(
        f"- {s.day.isoformat()}: {metric.value_of(s)} {metric.unit}" for s in window
    )
    return load_prompt("trend").format(
        metric_title_lower=metric.title.lower(),
        days=len(window),
        baseline_days=baseline.count if baseline else 0,
        baseline=baseline_text,
        recent=recent or "- (none)",
    )
