"""Turn raw model output into InsightSections.

Model output is untrusted: it may wrap the JSON in prose or code fences, use
smart quotes, leave trailing commas or be cut off. Extraction is attempted in
three tiers, first success wins:

1. strict  - parse the text between the first `{` and the last `}`
2. repair  - strip fences, normalize quotes, drop trailing commas, retry 1
3. scrape  - regex each `"field": "..."` out of the raw text

Normalization then fills every empty field, so `parse_insight` never fails.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Final

from careahead.models import SECTION_KEYS, InsightSections
from careahead.prompt_builder import DISCLAIMER

logger = logging.getLogger(__name__)

PLACEHOLDERS: Final[dict[str, str]] = {
    "introduction": (
        "Today's measurements have been recorded. A detailed summary isn't "
        "available right now, but your numbers are saved and will count toward "
        "your personal baseline."
    ),
    "heart_rate_discussion": (
        "Heart rate commentary isn't available for this insight. Compare today's "
        "reading with your recent trend in the chart above."
    ),
    "breathing_rate_discussion": (
        "Breathing rate commentary isn't available for this insight. Compare "
        "today's reading with your recent trend in the chart above."
    ),
    "final_thoughts": (
        "Measuring at a similar time each day, rested and in good lighting, "
        "makes your trends easier to read."
    ),
}

NARRATIVE_FIELDS: Final[tuple[str, ...]] = tuple(PLACEHOLDERS)

_FENCE = re.compile(r"```[A-Za-z0-9_-]*")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SMART_QUOTES: Final = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "″": '"',
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "′": "'",
    }
)
_JSON_STRING = r'"((?:[^"\\]|\\.)*)"'


class ParseTier(str, Enum):
    STRICT = "strict"
    REPAIRED = "repaired"
    SCRAPED = "scraped"


def _coerce(value: object) -> str:
    """Accept a string or a list of strings (joined by a blank line)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [_coerce(v).strip() for v in value]
        return "\n\n".join(p for p in parts if p)
    return str(value)


def extract_strict(text: str) -> dict[str, str] | None:
    """Parse the outermost `{...}` span; None unless it is an object with known keys."""
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start : end + 1])
    except (ValueError, RecursionError):
        # Malformed or too deeply nested
        return None
    if not isinstance(data, dict) or not any(key in data for key in SECTION_KEYS.values()):
        return None
    try:
        return {name: _coerce(data.get(key)) for name, key in SECTION_KEYS.items()}
    except RecursionError:
        return None


def sanitize(text: str) -> str:
    """Apply the fixed textual repairs used by the second tier."""
    text = _FENCE.sub("", text)
    text = text.translate(_SMART_QUOTES)
    return _TRAILING_COMMA.sub(r"\1", text)


def _unescape(fragment: str) -> str:
    try:
        return json.loads(f'"{fragment}"', strict=False)
    except (ValueError, RecursionError):
        # Invalid escape sequences; undo the common ones by hand
        return (
            fragment.replace("\\n", "\n")
            .replace("\\t", "\t")
            .replace('\\"', '"')
            .replace("\\\\", "\\")
        )


def scrape_fields(text: str) -> dict[str, str]:
    """Regex out whatever fields are present; missing ones are empty strings."""
    found: dict[str, str] = {}
    for name, key in SECTION_KEYS.items():
        quoted = re.escape(key)
        match = re.search(rf'"{quoted}"\s*:\s*{_JSON_STRING}', text, flags=re.DOTALL)
        if match:
            found[name] = _unescape(match.group(1))
            continue
        array = re.search(rf'"{quoted}"\s*:\s*\[(.*?)\]', text, flags=re.DOTALL)
        if array:
            items = [_unescape(m) for m in re.findall(_JSON_STRING, array.group(1), flags=re.DOTALL)]
            found[name] = _coerce(items)
            continue
        found[name] = ""

    if not found["introduction"].strip():
        found["introduction"] = text
    return found


def extract_fields(raw_text: str) -> tuple[dict[str, str], ParseTier]:
    fields = extract_strict(raw_text)
    if fields is not None:
        return fields, ParseTier.STRICT

    fields = extract_strict(sanitize(raw_text))
    if fields is not None:
        return fields, ParseTier.REPAIRED

    return scrape_fields(raw_text), ParseTier.SCRAPED


def normalize(fields: dict[str, str]) -> InsightSections:
    """Trim every field and substitute placeholders for empty ones."""
    values = {name: (fields.get(name) or "").strip() for name in SECTION_KEYS}
    for name in NARRATIVE_FIELDS:
        if not values[name]:
            values[name] = PLACEHOLDERS[name]
    if not values["disclaimer"]:
        values["disclaimer"] = DISCLAIMER
    return InsightSections(**values)


def parse_insight(raw_text: str | None) -> InsightSections:
    """Parse model output into fully populated sections. Never raises."""
    raw_text = raw_text or ""
    fields, tier = extract_fields(raw_text)
    if tier is ParseTier.STRICT:
        logger.debug("Parsed insight response as strict JSON")
    else:
        logger.warning("Insight response was not valid JSON; used %s extraction", tier.value)

    missing = [name for name in NARRATIVE_FIELDS if not fields.get(name, "").strip()]
    if missing:
        logger.info("Insight response missing sections: %s", ", ".join(missing))
    return normalize(fields)


def parse_paragraph(raw_text: str | None) -> str:
    """Trim a free-form single-paragraph response."""
    return (raw_text or "").strip()
