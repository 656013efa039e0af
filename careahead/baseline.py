"""Baseline statistics, risk score and stability classification.

The band, penalty and weighting constants are empirically chosen. They live in
`BaselineSettings` so a profile can recalibrate them without touching the
algorithm.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, fields
from datetime import date

import pandas as pd

from careahead.exceptions import ConfigurationError
from careahead.history import dedupe_by_day, history_for_comparison
from careahead.models import BaselineStats, Metric, Stability, VitalSample

logger = logging.getLogger(__name__)


def _per_metric(heart_rate: float, breathing_rate: float) -> dict[Metric, float]:
    return {Metric.HEART_RATE: heart_rate, Metric.BREATHING_RATE: breathing_rate}


@dataclass(frozen=True)
class BaselineSettings:
    """Tunable constants of the baseline engine."""

    low_percentile: float = 0.15
    high_percentile: float = 0.85
    min_percentile_samples: int = 10

    # Penalty of an in-band value; a score of exactly 0 is never shown
    in_band_penalty: float = 6.0
    penalty_slope: float = 35.0
    max_penalty: float = 99.0

    # Heart-rate deviation is treated as the stronger signal
    heart_rate_weight: float = 0.6
    breathing_rate_weight: float = 0.4

    scale_floor: dict[Metric, float] = field(default_factory=lambda: _per_metric(5.0, 2.0))
    stability_threshold: dict[Metric, float] = field(default_factory=lambda: _per_metric(6.0, 1.5))

    def __post_init__(self) -> None:
        if not 0.0 <= self.low_percentile <= self.high_percentile <= 1.0:
            raise ConfigurationError(
                "Percentiles must satisfy 0 <= low_percentile <= high_percentile <= 1"
            )
        if self.min_percentile_samples < 1:
            raise ConfigurationError("min_percentile_samples must be at least 1")
        if self.heart_rate_weight < 0 or self.breathing_rate_weight < 0:
            raise ConfigurationError("Risk weights must be non-negative")

    @classmethod
    def from_dict(cls, data: dict | None) -> "BaselineSettings":
        """Build settings from a profile's `baseline:` mapping.

        Per-metric values accept `{heart_rate: x, breathing_rate: y}` mappings.
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError("Baseline settings must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown baseline setting(s): {', '.join(unknown)}")

        kwargs = dict(data)
        defaults = cls()
        for name, value in data.items():
            default = getattr(defaults, name)
            if isinstance(default, dict):
                continue
            try:
                kwargs[name] = type(default)(value)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Invalid baseline setting '{name}': expected a number, got {value!r}"
                )
        for name in ("scale_floor", "stability_threshold"):
            if name in kwargs:
                merged = dict(getattr(defaults, name))
                try:
                    merged.update({Metric(k): float(v) for k, v in kwargs[name].items()})
                except (ValueError, AttributeError, TypeError) as e:
                    raise ConfigurationError(f"Invalid baseline setting '{name}': {e}") from e
                kwargs[name] = merged
        return cls(**kwargs)


DEFAULT_SETTINGS = BaselineSettings()


def compute_baseline(
    history: Iterable[VitalSample],
    metric: Metric,
    settings: BaselineSettings = DEFAULT_SETTINGS,
) -> BaselineStats | None:
    """Summarize `metric` over `history`; None when there is no data yet."""
    values = pd.Series([metric.value_of(s) for s in dedupe_by_day(history)], dtype="float64")
    n = len(values)
    if n == 0:
        return None

    average = float(values.mean())
    std_dev = float(values.std(ddof=1)) if n >= 2 else 0.0

    # pandas' default quantile interpolation is linear between order statistics
    if n >= settings.min_percentile_samples:
        low = float(values.quantile(settings.low_percentile))
        high = float(values.quantile(settings.high_percentile))
    else:
        low, high = float(values.min()), float(values.max())

    # Skewed histories can push the mean outside the percentile band
    low, high = min(low, average), max(high, average)

    return BaselineStats(average=average, low_band=low, high_band=high, std_dev=std_dev, count=n)


def risk_penalty(
    value: float,
    low: float,
    high: float,
    scale: float,
    settings: BaselineSettings = DEFAULT_SETTINGS,
) -> float:
    """Penalty in [0, max_penalty] for how far `value` sits outside [low, high]."""
    if low <= value <= high:
        return settings.in_band_penalty
    distance = low - value if value < low else value - high
    return min(settings.max_penalty, distance / max(1.0, scale) * settings.penalty_slope)


def metric_scale(
    baseline: BaselineStats, metric: Metric, settings: BaselineSettings = DEFAULT_SETTINGS
) -> float:
    return max(settings.scale_floor[metric], baseline.std_dev)


def risk_score(
    today: VitalSample | None,
    hr_baseline: BaselineStats | None,
    br_baseline: BaselineStats | None,
    settings: BaselineSettings = DEFAULT_SETTINGS,
) -> int | None:
    """Bounded 1-100 deviation score of today's sample; None if anything is missing."""
    if today is None or hr_baseline is None or br_baseline is None:
        return None

    hr_penalty = risk_penalty(
        today.heart_rate,
        hr_baseline.low_band,
        hr_baseline.high_band,
        metric_scale(hr_baseline, Metric.HEART_RATE, settings),
        settings,
    )
    br_penalty = risk_penalty(
        today.breathing_rate,
        br_baseline.low_band,
        br_baseline.high_band,
        metric_scale(br_baseline, Metric.BREATHING_RATE, settings),
        settings,
    )
    combined = settings.heart_rate_weight * hr_penalty + settings.breathing_rate_weight * br_penalty
    # Half-up rounding; combined is never negative
    score = 1 + math.floor(combined + 0.5)
    return max(1, min(100, score))


def classify_stability(
    value: float,
    baseline: BaselineStats | None,
    metric: Metric,
    settings: BaselineSettings = DEFAULT_SETTINGS,
) -> Stability | None:
    if baseline is None:
        return None
    if not baseline.contains(value):
        return Stability.OUT_OF_RANGE
    if baseline.std_dev <= settings.stability_threshold[metric]:
        return Stability.STABLE
    return Stability.WITHIN_RANGE


@dataclass(frozen=True, slots=True)
class DailyScore:
    """Risk score of one recorded day against its own trailing window."""

    day: date
    sample: VitalSample
    score: int | None
    heart_rate: Stability | None
    breathing_rate: Stability | None


def score_day(
    samples: list[VitalSample],
    today: VitalSample,
    settings: BaselineSettings = DEFAULT_SETTINGS,
    window: int = 60,
) -> DailyScore:
    history = history_for_comparison(samples, today.day, window)
    hr = compute_baseline(history, Metric.HEART_RATE, settings)
    br = compute_baseline(history, Metric.BREATHING_RATE, settings)
    return DailyScore(
        day=today.day,
        sample=today,
        score=risk_score(today, hr, br, settings),
        heart_rate=classify_stability(today.heart_rate, hr, Metric.HEART_RATE, settings),
        breathing_rate=classify_stability(today.breathing_rate, br, Metric.BREATHING_RATE, settings),
    )


def score_history(
    samples: Iterable[VitalSample],
    settings: BaselineSettings = DEFAULT_SETTINGS,
    window: int = 60,
) -> Iterator[DailyScore]:
    """Yield a DailyScore for every recorded day, oldest first.

    The first day has no history, so its score is None.
    """
    samples = list(samples)
    for sample in dedupe_by_day(samples):
        yield score_day(samples, sample, settings, window)
