from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

SUPPORTED_PROVIDERS = ("openai", "anthropic", "gemini")
SUPPORTED_BROWSERS = ("chrome", "firefox")


class HealingConfig(BaseModel):
    """Settings threaded through every healing component.

    Healing is enabled only when ``api_key`` is set; without it every
    component degrades to pass-through behaviour.
    """

    api_key: str | None = None
    provider: str = "openai"
    model: str | None = None
    reports_dir: Path = Path("healing-reports")
    summary_filename: str = "summary.json"
    screenshots_dir: Path = Path("test-results")
    action_timeout_ms: int = Field(default=5000, gt=0)
    validation_timeout_ms: int = Field(default=2000, gt=0)
    default_timeout_ms: int = Field(default=30000, gt=0)
    llm_timeout_seconds: float = Field(default=30.0, gt=0)
    max_markup_chars: int = Field(default=10000, gt=0)
    test_id_attribute: str = "data-testid"
    lock_timeout_seconds: float = Field(default=30.0, ge=0)
    lock_stale_seconds: float = Field(default=300.0, gt=0)
    browser: str = "chrome"
    headless: bool = True
    page_load_timeout_seconds: int = Field(default=30, gt=0)
    window_size: tuple[int, int] = (1440, 1200)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported LLM provider: {value}")
        return normalized

    @field_validator("browser")
    @classmethod
    def validate_browser(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in SUPPORTED_BROWSERS:
            raise ValueError(f"Unsupported browser: {value}")
        return normalized

    @field_validator("api_key")
    @classmethod
    def blank_key_is_missing(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def summary_path(self) -> Path:
        return self.reports_dir / self.summary_filename

    @property
    def html_report_path(self) -> Path:
        return self.summary_path.with_suffix(".html")
