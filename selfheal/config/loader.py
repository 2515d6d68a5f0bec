from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path

from selfheal.config.schema import HealingConfig

API_KEY_VARIABLES = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

MODEL_VARIABLES = {
    "openai": "OPENAI_MODEL",
    "anthropic": "ANTHROPIC_MODEL",
    "gemini": "GEMINI_MODEL",
}


class ConfigLoader:
    """Loads and validates the healing configuration."""

    @staticmethod
    def load(path: str | Path) -> HealingConfig:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return HealingConfig.model_validate(payload)

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None, **overrides) -> HealingConfig:
        env = os.environ if environ is None else environ
        provider = env.get("LLM_PROVIDER", "openai").lower()
        payload = {
            "provider": provider,
            "api_key": env.get(API_KEY_VARIABLES.get(provider, "")),
            "model": env.get(MODEL_VARIABLES.get(provider, "")),
        }
        if env.get("HEALING_REPORTS_DIR"):
            payload["reports_dir"] = env["HEALING_REPORTS_DIR"]
        payload.update({key: value for key, value in overrides.items() if value is not None})
        return HealingConfig.model_validate(payload)
