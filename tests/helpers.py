from __future__ import annotations

import os
from pathlib import Path
from urllib import error, request

import pytest
from selenium.common.exceptions import (
    ElementClickInterceptedException,
    InvalidSelectorException,
    NoSuchWindowException,
)

from selfheal.config.schema import HealingConfig
from selfheal.core.healer import Healer
from selfheal.core.metadata import HealingEvent
from selfheal.core.resolver import LocatorResolver

FAST_TIMEOUTS = {
    "action_timeout_ms": 50,
    "validation_timeout_ms": 50,
    "default_timeout_ms": 100,
}


class FakeElement:
    def __init__(self, name: str = "element", displayed: bool = True, intercept_clicks: bool = False) -> None:
        self.name = name
        self.displayed = displayed
        self.intercept_clicks = intercept_clicks
        self.clicks = 0
        self.value = ""

    def is_displayed(self) -> bool:
        return self.displayed

    def click(self) -> None:
        if self.intercept_clicks:
            raise ElementClickInterceptedException(f"{self.name} is covered")
        self.clicks += 1

    def clear(self) -> None:
        self.value = ""

    def send_keys(self, value: str) -> None:
        self.value += value


class FakeDriver:
    """In-memory WebDriver stand-in keyed by compiled (by, value) pairs."""

    def __init__(self, page_source: str = "<html><body></body></html>") -> None:
        self.resolver = LocatorResolver()
        self._page_source = page_source
        self.elements: dict[tuple[str, str], list[FakeElement]] = {}
        self.invalid: set[str] = set()
        self.closed = False
        self.screenshot_fails = False
        self.lookups: list[tuple[str, str]] = []
        self.current_url = ""

    def add(self, locator: str, element: FakeElement | None = None) -> FakeElement:
        resolved = self.resolver.resolve(locator)
        element = element or FakeElement(locator)
        self.elements.setdefault((resolved.by, resolved.value), []).append(element)
        return element

    def remove(self, locator: str) -> None:
        resolved = self.resolver.resolve(locator)
        self.elements.pop((resolved.by, resolved.value), None)

    def find_elements(self, by: str, value: str) -> list[FakeElement]:
        self._ensure_open()
        self.lookups.append((by, value))
        if value in self.invalid:
            raise InvalidSelectorException(f"invalid selector: {value}")
        return list(self.elements.get((by, value), []))

    @property
    def page_source(self) -> str:
        self._ensure_open()
        return self._page_source

    def get_screenshot_as_png(self) -> bytes:
        self._ensure_open()
        if self.screenshot_fails:
            raise NoSuchWindowException("screenshot failed")
        return b"\x89PNG fake"

    def get(self, url: str) -> None:
        self._ensure_open()
        self.current_url = url

    def _ensure_open(self) -> None:
        if self.closed:
            raise NoSuchWindowException("no such window: target window already closed")


class FakeSuggestionProvider:
    provider_name = "fake"

    def __init__(self, markup: list[str] | None = None, image: list[str] | None = None) -> None:
        self.markup = list(markup or [])
        self.image = list(image or [])
        self.markup_calls: list[tuple[str, str, str]] = []
        self.image_calls: list[tuple[bytes, str, str]] = []

    def suggest_from_markup(self, page_source: str, failed_locator: str, error_message: str) -> list[str]:
        self.markup_calls.append((page_source, failed_locator, error_message))
        return list(self.markup)

    def suggest_from_image(self, image_png: bytes, failed_locator: str, error_message: str) -> list[str]:
        self.image_calls.append((image_png, failed_locator, error_message))
        return list(self.image)

    @property
    def calls(self) -> int:
        return len(self.markup_calls) + len(self.image_calls)


def make_config(tmp_path: Path, **overrides) -> HealingConfig:
    payload = {
        "api_key": "test-key",
        "reports_dir": tmp_path / "healing-reports",
        "screenshots_dir": tmp_path / "screenshots",
        **FAST_TIMEOUTS,
    }
    payload.update(overrides)
    return HealingConfig.model_validate(payload)


def make_healer(tmp_path: Path, provider=None, **overrides) -> Healer:
    config = make_config(tmp_path, **overrides)
    return Healer.from_config(config, suggestion_provider=provider)


def make_event(original: str, healed: str = "", timestamp: str = "2026-01-01T00:00:00.000000+00:00", **extra) -> HealingEvent:
    payload = {
        "timestamp": timestamp,
        "test_name": "test_example",
        "original_locator": original,
        "healed_locator": healed,
        "error_message": "Timed out",
        "success": bool(healed),
        "attempted_locators": (healed,) if healed else (),
        "healing_duration_ms": 12,
    }
    payload.update(extra)
    return HealingEvent(**payload)


def require_reachable_base_url(base_url: str) -> None:
    try:
        with request.urlopen(base_url, timeout=2):
            return
    except (error.URLError, TimeoutError) as exc:
        pytest.skip(f"Target app is not reachable at {base_url}: {exc}")


def require_llm_credentials() -> None:
    provider = os.getenv("LLM_PROVIDER", "openai").lower()
    if provider == "openai" and not os.getenv("OPENAI_API_KEY"):
        pytest.skip("OPENAI_API_KEY is required for self-healing tests")
    if provider == "anthropic" and not os.getenv("ANTHROPIC_API_KEY"):
        pytest.skip("ANTHROPIC_API_KEY is required for self-healing tests")
    if provider == "gemini" and not os.getenv("GEMINI_API_KEY"):
        pytest.skip("GEMINI_API_KEY is required for self-healing tests")
