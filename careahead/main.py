"""Command-line front end for the baseline and insight pipeline.

• Loads a profile from `profiles/<name>.yaml` (see config.py) and a CSV sample
  history (`timestamp,heart_rate,breathing_rate,sleep_hours,notes`).
• Prints today's baselines, stability and risk score.
• Optionally backfills a risk score for every recorded day.
• Asks the language model for an insight and prints the parsed sections.
• Optionally asks for a short trend paragraph per metric (`--trends`).

Environment variables (used when the profile leaves them unset):
    LLM_API_KEY     – API key for the OpenAI-compatible endpoint
    MODEL_ID        – model to use
    LLM_BASE_URL    – (optional) endpoint, defaults to Gemini's OpenAI-compatible API
    HISTORY_PATH    – (optional) CSV sample history
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime
from pathlib import Path

from dateutil.parser import parse as date_parse
from dotenv import load_dotenv
from tqdm import tqdm

from careahead.baseline import DailyScore, compute_baseline, score_day, score_history
from careahead.config import Config, ProfileConfig
from careahead.controller import GenerationState, GenerationStatus, insight_controller, paragraph_controller
from careahead.exceptions import CareAheadError, ConfigurationError, HistoryLoadError
from careahead.history import history_for_comparison, latest_for_day, load_history, save_history, seed_history
from careahead.llm import make_llm
from careahead.models import InsightSections, Metric, VitalSample, split_paragraphs
from careahead.prompt_builder import build_prompt, build_trend_prompt

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Logging helpers
# --------------------------------------------------------------------------------------


def setup_logging(level: int = logging.INFO) -> None:
    """Configure a root logger that prints to stdout and also persists errors."""
    fmt = "%(asctime)s | %(levelname)-8s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    root = logging.getLogger()
    root.setLevel(level)

    out_hdlr = logging.StreamHandler(sys.stdout)
    out_hdlr.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)
    err_hdlr = logging.FileHandler(logs_dir / "error.log", encoding="utf-8")
    err_hdlr.setLevel(logging.ERROR)
    err_hdlr.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root.handlers = [out_hdlr, err_hdlr]

    # Quiet noisy deps
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# --------------------------------------------------------------------------------------
# Report formatting
# --------------------------------------------------------------------------------------


STABILITY_LABELS = {
    "stable": "stable",
    "within_range": "within your range",
    "out_of_range": "outside your range",
}


def format_daily_score(result: DailyScore) -> list[str]:
    """Human-readable summary of one day's score (no data is shown as such, never as 0)."""
    sample = result.sample
    lines = [f"Date: {result.day.isoformat()}"]
    for metric, stability in (
        (Metric.HEART_RATE, result.heart_rate),
        (Metric.BREATHING_RATE, result.breathing_rate),
    ):
        label = STABILITY_LABELS[stability.value] if stability else "no baseline yet"
        lines.append(f"  {metric.title}: {metric.value_of(sample)} {metric.unit} ({label})")
    if sample.sleep_hours is not None:
        lines.append(f"  Sleep: {sample.sleep_hours:.1f} h")
    lines.append(f"  Risk score: {result.score if result.score is not None else 'no data'}")
    return lines


def format_sections(sections: InsightSections | str) -> str:
    if isinstance(sections, str):
        return "\n\n".join(split_paragraphs(sections))
    blocks = []
    for title, paragraphs in sections.cards():
        blocks.append("\n\n".join([f"## {title}", *paragraphs]))
    return "\n\n".join(blocks)


def _log_state(state: GenerationState) -> None:
    if state.status is GenerationStatus.REVEALING:
        logger.debug("Revealing insight (%.0f%%)", state.progress * 100)
    else:
        logger.info("Insight generation: %s", state.status.value)


async def generate_insight(config: Config, today: VitalSample, history: list[VitalSample]) -> GenerationState:
    """Structured sections for the `json` format, plain prose for `text`."""
    prompt = build_prompt(today, history, config.response_format, config.prompt_days)
    make_controller = paragraph_controller if config.response_format == "text" else insight_controller
    controller = make_controller(make_llm(config), reveal_steps=config.reveal_steps)
    controller.subscribe(_log_state)
    return await controller.generate(prompt)


async def generate_trends(config: Config, history: list[VitalSample]) -> dict[Metric, GenerationState]:
    """One paragraph per metric; each card owns an independent controller."""
    llm = make_llm(config)
    jobs = {}
    for metric in Metric:
        baseline = compute_baseline(history, metric, config.baseline)
        controller = paragraph_controller(llm)
        jobs[metric] = controller.generate_once(build_trend_prompt(metric, history, baseline))
    states = await asyncio.gather(*jobs.values())
    return dict(zip(jobs, states))


# --------------------------------------------------------------------------------------
# CLI entry point
# --------------------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Baseline statistics and narrative insights for daily vitals.")
    parser.add_argument("--profile", required=True, help="Profile name under profiles/")
    parser.add_argument("--profiles-dir", type=Path, default=Path("profiles"))
    parser.add_argument("--history", type=Path, help="CSV sample history (overrides the profile)")
    parser.add_argument("--date", help="Day to analyse (default: today)")
    parser.add_argument("--demo-days", type=int, default=0, help="Seed N days of demo history if the file is missing")
    parser.add_argument("--backfill", action="store_true", help="Print a risk score for every recorded day")
    parser.add_argument("--no-insight", action="store_true", help="Skip the language model call")
    parser.add_argument("--trends", action="store_true", help="Also generate a trend paragraph per metric")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def resolve_day(value: str | None) -> date:
    if not value:
        return date.today()
    try:
        return date_parse(value).date()
    except (ValueError, OverflowError):
        raise SystemExit(f"Invalid --date: {value}")


def load_samples(path: Path | None, demo_days: int, day: date) -> list[VitalSample]:
    if path is None:
        raise ConfigurationError("No history file: pass --history or set history_path in the profile")
    if not path.exists() and demo_days > 0:
        samples = seed_history(demo_days, end=day)
        save_history(samples, path)
        logger.info("Seeded %d days of demo history at %s", demo_days, path)
    return load_history(path)


def main(argv: list[str] | None = None) -> None:
    """Run the pipeline using a profile plus environment variables."""
    load_dotenv(override=True)
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        profile = ProfileConfig.find(args.profile, args.profiles_dir)
        config = Config.from_profile(profile)
    except (ConfigurationError, FileNotFoundError) as e:
        raise SystemExit(f"Configuration error: {e}")

    day = resolve_day(args.date)
    try:
        samples = load_samples(args.history or config.history_path, args.demo_days, day)
    except (ConfigurationError, HistoryLoadError) as e:
        raise SystemExit(f"History error: {e}")

    start = datetime.now()

    if args.backfill:
        results = list(tqdm(score_history(samples, config.baseline, config.history_window), desc="Scoring"))
        for result in results:
            score = result.score if result.score is not None else "-"
            print(f"{result.day.isoformat()}  RS {score}")

    today = latest_for_day(samples, day)
    if today is None:
        print(f"No scan recorded for {day.isoformat()}. Run today's video test to get an insight.")
        return

    print("\n".join(format_daily_score(score_day(samples, today, config.baseline, config.history_window))))

    if not args.no_insight:
        history = history_for_comparison(samples, day, config.history_window)
        try:
            state = asyncio.run(generate_insight(config, today, history))
        except CareAheadError as e:
            raise SystemExit(f"Insight error: {e}")
        if state.status is GenerationStatus.ERROR:
            print(f"\nInsight unavailable: {state.message}")
        elif state.result is not None:
            print("\n" + format_sections(state.result))

    if args.trends:
        history = history_for_comparison(samples, day, config.history_window)
        try:
            trends = asyncio.run(generate_trends(config, history))
        except CareAheadError as e:
            raise SystemExit(f"Trend error: {e}")
        for metric, state in trends.items():
            text = state.result if state.status is GenerationStatus.DONE else f"(unavailable: {state.message})"
            print(f"\n## {metric.title} trend\n\n{text}")

    logger.info("Finished in %.1fs", (datetime.now() - start).total_seconds())


if __name__ == "__main__":
    main()
