from __future__ import annotations

import json

from selenium.common.exceptions import TimeoutException

from selfheal.config.schema import HealingConfig
from selfheal.core.healer import Healer
from tests.helpers import FakeDriver, FakeElement, FakeSuggestionProvider, make_event, make_healer


def _failure() -> TimeoutException:
    return TimeoutException("Timed out waiting for #submit-old")


def test_disabled_healer_returns_not_healed_without_calling_provider(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('submit')"])
    healer = make_healer(tmp_path, provider, api_key=None)

    result = healer.heal(driver, "click", "#submit-old", _failure(), "test_disabled")

    assert not healer.enabled
    assert not result.healed
    assert result.element is None
    assert provider.calls == 0
    assert driver.lookups == []
    assert len(healer.recorder) == 0


def test_from_config_without_key_builds_no_provider(tmp_path):
    config = HealingConfig(reports_dir=tmp_path)
    healer = Healer.from_config(config)
    assert healer.suggestion_provider is None
    assert not healer.enabled


def test_text_candidates_stop_at_first_success(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('a')", "byTestId('b')", "byTestId('c')"])
    target = driver.add("byTestId('b')")
    driver.add("byTestId('c')")
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "click", "#gone", _failure(), "test_order")

    assert result.healed
    assert result.element is target
    assert result.locator == "byTestId('b')"
    (event,) = healer.recorder.events
    assert event.success
    assert event.healed_locator == "byTestId('b')"
    assert event.attempted_locators == ("byTestId('a')", "byTestId('b')")
    assert event.test_name == "test_order"
    assert event.error_message == str(_failure())
    assert provider.image_calls == []
    assert healer.cache.lookup("#gone") == "byTestId('b')"


def test_submit_scenario_records_second_candidate(tmp_path, driver):
    provider = FakeSuggestionProvider(
        markup=["byTestId('submit-btn')", "byRole(button,{name:'Submit'})"],
    )
    button = driver.add("byRole(button,{name:'Submit'})")
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "click", "#submit-old", _failure(), "test_submit")

    assert result.element is button
    event = healer.recorder.events[0].to_json()
    assert event["originalLocator"] == "#submit-old"
    assert event["healedLocator"] == "byRole(button,{name:'Submit'})"
    assert event["success"] is True
    assert event["attemptedLocators"] == ["byTestId('submit-btn')", "byRole(button,{name:'Submit'})"]
    assert event["healingDurationMs"] >= 0


def test_invalid_and_unsafe_candidates_are_skipped(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["evaluate('alert(1)')", "bySelector('div[')", "byText('Submit')"])
    driver.invalid.add("div[")
    driver.add("byText('Submit')")
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "click", "#x", _failure(), "test_unsafe")

    assert result.locator == "byText('Submit')"
    assert healer.recorder.events[0].attempted_locators == (
        "evaluate('alert(1)')",
        "bySelector('div[')",
        "byText('Submit')",
    )


def test_hidden_candidate_does_not_validate(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('hidden')", "byTestId('shown')"])
    driver.add("byTestId('hidden')", FakeElement(displayed=False))
    driver.add("byTestId('shown')")
    healer = make_healer(tmp_path, provider)

    assert healer.heal(driver, "click", "#x", _failure(), "test_hidden").locator == "byTestId('shown')"


def test_vision_phase_skips_already_attempted_candidates(tmp_path, driver):
    provider = FakeSuggestionProvider(
        markup=["byTestId('a')", "byTestId('b')"],
        image=["byTestId('b')", "byText('Continue')"],
    )
    driver.add("byText('Continue')")
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "click", "#next", _failure(), "test_vision")

    assert result.locator == "byText('Continue')"
    assert len(provider.image_calls) == 1
    assert provider.image_calls[0][0] == b"\x89PNG fake"
    assert healer.recorder.events[0].attempted_locators == ("byTestId('a')", "byTestId('b')", "byText('Continue')")
    assert list((tmp_path / "screenshots").glob("healing-*.png"))


def test_exhausted_candidates_record_failure(tmp_path, driver):
    provider = FakeSuggestionProvider(
        markup=["byTestId('a')", "byTestId('b')"],
        image=["byTestId('b')", "byTestId('c')"],
    )
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "fill", "#gone", _failure(), "test_exhausted")

    assert not result.healed
    (event,) = healer.recorder.events
    assert event.success is False
    assert event.healed_locator == ""
    assert event.attempted_locators == ("byTestId('a')", "byTestId('b')", "byTestId('c')")
    assert "#gone" not in healer.cache


def test_empty_suggestions_record_failure(tmp_path, driver):
    healer = make_healer(tmp_path, FakeSuggestionProvider())

    assert not healer.heal(driver, "click", "#gone", _failure(), "test_empty").healed
    assert healer.recorder.events[0].attempted_locators == ()


def test_screenshot_failure_skips_vision_but_records_event(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('a')"], image=["byTestId('b')"])
    driver.screenshot_fails = True
    healer = make_healer(tmp_path, provider)

    assert not healer.heal(driver, "click", "#gone", _failure(), "test_no_screenshot").healed
    assert provider.image_calls == []
    assert healer.recorder.events[0].attempted_locators == ("byTestId('a')",)


def test_closed_page_aborts_without_event(tmp_path):
    provider = FakeSuggestionProvider(markup=["byTestId('a')"])
    driver = FakeDriver()
    driver.closed = True
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "click", "#gone", _failure(), "test_closed")

    assert not result.healed
    assert provider.calls == 0
    assert len(healer.recorder) == 0


def test_cache_hit_skips_provider_and_event(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('other')"])
    element = driver.add("byTestId('submit')")
    healer = make_healer(tmp_path, provider)
    healer.cache.record("#submit-old", "byTestId('submit')")

    result = healer.heal(driver, "click", "#submit-old", _failure(), "test_cached")

    assert result.healed
    assert result.element is element
    assert result.locator == "byTestId('submit')"
    assert provider.calls == 0
    assert len(healer.recorder) == 0


def test_stale_cache_entry_is_evicted_then_provider_queried_fresh(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('new')"])
    healer = make_healer(tmp_path, provider)
    healer.cache.record("#submit-old", "byTestId('dead')")

    first = healer.heal(driver, "click", "#submit-old", _failure(), "test_stale")
    assert not first.healed
    assert "#submit-old" not in healer.cache
    assert len(provider.markup_calls) == 1

    driver.add("byTestId('new')")
    second = healer.heal(driver, "click", "#submit-old", _failure(), "test_stale")

    assert second.locator == "byTestId('new')"
    assert len(provider.markup_calls) == 2
    assert healer.cache.lookup("#submit-old") == "byTestId('new')"


def test_cache_is_seeded_from_previous_summary(tmp_path, driver):
    reports_dir = tmp_path / "healing-reports"
    reports_dir.mkdir()
    summary = {
        "totalTests": 1,
        "totalHealing": 1,
        "successfulHealing": 1,
        "failedHealing": 0,
        "timestamp": "2026-01-01T00:00:00+00:00",
        "changes": [make_event("#submit-old", "byTestId('submit')").to_json()],
    }
    (reports_dir / "summary.json").write_text(json.dumps(summary), encoding="utf-8")
    provider = FakeSuggestionProvider()
    driver.add("byTestId('submit')")

    healer = make_healer(tmp_path, provider)
    result = healer.heal(driver, "click", "#submit-old", _failure(), "test_seeded")

    assert result.locator == "byTestId('submit')"
    assert provider.calls == 0


def test_candidate_with_bad_option_is_skipped(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byRole('heading', {level: 'x'})", "byTestId('submit')"])
    target = driver.add("byTestId('submit')")
    healer = make_healer(tmp_path, provider)

    result = healer.heal(driver, "click", "#gone", _failure(), "test_bad_option")

    assert result.element is target
    assert healer.recorder.events[0].attempted_locators == ("byRole('heading', {level: 'x'})", "byTestId('submit')")


def test_cached_locator_with_bad_option_is_evicted(tmp_path, driver):
    provider = FakeSuggestionProvider(markup=["byTestId('submit')"])
    driver.add("byTestId('submit')")
    healer = make_healer(tmp_path, provider)
    healer.cache.record("#gone", "byRole('heading', {level: 'x'})")

    result = healer.heal(driver, "click", "#gone", _failure(), "test_bad_cache")

    assert result.locator == "byTestId('submit')"
    assert healer.cache.lookup("#gone") == "byTestId('submit')"
