"""Configuration management for careahead.

Centralizes profile-based configuration loading and validation. Credentials
come from the profile or the environment only; nothing here embeds a key.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from careahead.baseline import BaselineSettings
from careahead.exceptions import ConfigurationError
from careahead.prompt_builder import PROMPT_DAYS, RESPONSE_FORMATS

# Gemini's OpenAI-compatible endpoint
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_HISTORY_WINDOW = 60


@dataclass
class ProfileConfig:
    """Profile configuration loaded from YAML file.

    Contains user-specific paths, API configuration, and optional setting overrides.
    """

    name: str
    history_path: Path | None = None

    # API configuration
    base_url: str | None = None
    api_key: str | None = None
    model_id: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    timeout: float | None = None

    # Insight configuration
    response_format: str | None = None
    history_window: int | None = None
    prompt_days: int | None = None
    reveal_steps: int | None = None
    baseline: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, profile_path: Path) -> "ProfileConfig":
        """Load profile from YAML or JSON file."""
        if not profile_path.exists():
            raise FileNotFoundError(f"Profile not found: {profile_path}")

        content = profile_path.read_text(encoding="utf-8")

        if profile_path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        else:
            data = json.loads(content)

        if not isinstance(data, dict):
            raise ConfigurationError(f"Profile '{profile_path}' must contain a mapping")

        history_path = data.get("history_path")

        return cls(
            name=data.get("name", profile_path.stem),
            history_path=Path(history_path) if history_path else None,
            base_url=data.get("base_url"),
            api_key=data.get("api_key"),
            model_id=data.get("model_id"),
            temperature=data.get("temperature"),
            max_tokens=data.get("max_tokens"),
            timeout=data.get("timeout"),
            response_format=data.get("response_format"),
            history_window=data.get("history_window"),
            prompt_days=data.get("prompt_days"),
            reveal_steps=data.get("reveal_steps"),
            baseline=data.get("baseline") or {},
        )

    @classmethod
    def list_profiles(cls, profiles_dir: Path = Path("profiles")) -> list[str]:
        """List available profile names (excludes templates starting with _)."""
        if not profiles_dir.exists():
            return []
        profiles = []
        for ext in ("*.yaml", "*.yml", "*.json"):
            for f in profiles_dir.glob(ext):
                if not f.name.startswith("_"):
                    profiles.append(f.stem)
        return sorted(set(profiles))

    @classmethod
    def find(cls, name: str, profiles_dir: Path = Path("profiles")) -> "ProfileConfig":
        """Load a profile by name from `profiles_dir`."""
        for ext in (".yaml", ".yml", ".json"):
            path = profiles_dir / f"{name}{ext}"
            if path.exists():
                return cls.from_file(path)
        raise ConfigurationError(f"Profile '{name}' not found in {profiles_dir}")


@dataclass
class Config:
    """Configuration for insight generation.

    Values come from the profile first, then environment variables.
    Required fields will raise an error if not set.
    """

    # API Configuration
    base_url: str
    api_key: str
    model_id: str
    temperature: float
    max_tokens: int
    timeout: float

    # Path Configuration
    history_path: Path | None

    # Insight Configuration
    response_format: str
    history_window: int
    prompt_days: int
    reveal_steps: int
    baseline: BaselineSettings

    @classmethod
    def from_profile(cls, profile: ProfileConfig) -> "Config":
        """Load configuration from a profile.

        Args:
            profile: ProfileConfig loaded from YAML/JSON file.

        Returns:
            Config: Validated configuration object.

        Raises:
            ConfigurationError: If required fields are missing or invalid.
        """
        api_key = profile.api_key or os.getenv("LLM_API_KEY")
        if not api_key:
            raise ConfigurationError(
                f"Profile '{profile.name}' has no api_key and LLM_API_KEY is not set"
            )

        model_id = profile.model_id or os.getenv("MODEL_ID")
        if not model_id:
            raise ConfigurationError(
                f"Profile '{profile.name}' has no model_id and MODEL_ID is not set"
            )

        base_url = profile.base_url or os.getenv("LLM_BASE_URL") or DEFAULT_BASE_URL

        response_format = profile.response_format or "json"
        if response_format not in RESPONSE_FORMATS:
            raise ConfigurationError(
                f"Profile '{profile.name}' has invalid response_format '{response_format}' "
                f"(expected one of {', '.join(RESPONSE_FORMATS)})"
            )

        history_path = profile.history_path
        if history_path is None and os.getenv("HISTORY_PATH"):
            history_path = Path(os.environ["HISTORY_PATH"])

        def positive(value: int | None, default: int, key: str) -> int:
            if value is None:
                return default
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Profile '{profile.name}': {key} must be an integer")
            return max(1, value)

        def number(value: float | None, default: float, key: str) -> float:
            if value is None:
                return default
            try:
                return float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Profile '{profile.name}': {key} must be a number")

        try:
            reveal_steps = max(0, int(profile.reveal_steps or 0))
        except (TypeError, ValueError):
            raise ConfigurationError(f"Profile '{profile.name}': reveal_steps must be an integer")

        return cls(
            base_url=base_url,
            api_key=api_key,
            model_id=model_id,
            temperature=number(profile.temperature, 0.4, "temperature"),
            max_tokens=positive(profile.max_tokens, 2048, "max_tokens"),
            timeout=number(profile.timeout, 60.0, "timeout"),
            history_path=history_path,
            response_format=response_format,
            history_window=positive(profile.history_window, DEFAULT_HISTORY_WINDOW, "history_window"),
            prompt_days=positive(profile.prompt_days, PROMPT_DAYS, "prompt_days"),
            reveal_steps=reveal_steps,
            baseline=BaselineSettings.from_dict(profile.baseline),
        )
