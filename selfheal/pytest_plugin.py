"""pytest integration: healing fixtures plus end-of-session aggregation.

Enable it from a ``conftest.py`` with ``pytest_plugins = ["selfheal.pytest_plugin"]``
or on the command line with ``-p selfheal.pytest_plugin``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from selfheal.config.loader import ConfigLoader
from selfheal.config.schema import HealingConfig
from selfheal.core.actions import HealingPage
from selfheal.core.browser import BrowserSession
from selfheal.core.exceptions import ReportLockTimeout
from selfheal.core.healer import Healer
from selfheal.logging.artifacts import ArtifactManager
from selfheal.reporting.aggregator import AggregationResult, HealingAggregator

log = logging.getLogger(__name__)

CONFIG_KEY = pytest.StashKey[HealingConfig]()
HEALER_KEY = pytest.StashKey[Healer]()
RESULT_KEY = pytest.StashKey[AggregationResult]()


def pytest_addoption(parser):
    group = parser.getgroup("selfheal", "locator self-healing")
    group.addoption("--healing-config", default=None, help="JSON file with healing settings.")
    group.addoption("--healing-reports-dir", default=None, help="Directory for healing run files and reports.")
    group.addoption("--no-healing", action="store_true", default=False, help="Disable locator healing.")


def load_healing_config(config: pytest.Config) -> HealingConfig:
    config_path = config.getoption("healing_config")
    healing_config = ConfigLoader.load(config_path) if config_path else ConfigLoader.from_env()
    updates = {}
    reports_dir = config.getoption("healing_reports_dir")
    if reports_dir:
        updates["reports_dir"] = Path(reports_dir)
    if config.getoption("no_healing"):
        updates["api_key"] = None
    return healing_config.model_copy(update=updates)


def flush_run_report(healer: Healer) -> None:
    try:
        healer.recorder.flush()
    except OSError as exc:
        log.warning("Could not write healing run report: %s", exc)


def pytest_configure(config):
    config.stash[CONFIG_KEY] = load_healing_config(config)


@pytest.fixture(scope="session")
def healing_config(pytestconfig) -> HealingConfig:
    return pytestconfig.stash[CONFIG_KEY]


@pytest.fixture(scope="session")
def healing_context(pytestconfig, healing_config):
    healer = Healer.from_config(healing_config)
    pytestconfig.stash[HEALER_KEY] = healer
    yield healer
    flush_run_report(healer)


@pytest.fixture()
def healing_driver(healing_config):
    """Selenium driver for ``healing_page``; override to supply your own."""

    driver = BrowserSession(healing_config).start()
    yield driver
    driver.quit()


@pytest.fixture()
def healing_page(request, healing_driver, healing_context) -> HealingPage:
    return HealingPage(healing_driver, healing_context, request.node.name)


def pytest_sessionfinish(session, exitstatus):
    config = session.config
    healer = config.stash.get(HEALER_KEY, None)
    if healer is not None:
        flush_run_report(healer)
    if hasattr(config, "workerinput"):
        return
    healing_config = config.stash.get(CONFIG_KEY, None)
    if healing_config is None:
        return
    if not healing_config.enabled and not ArtifactManager.from_config(healing_config).run_reports():
        return
    try:
        result = HealingAggregator.from_config(healing_config).aggregate(total_tests=session.testscollected)
    except (ReportLockTimeout, OSError) as exc:
        log.warning("Healing report aggregation failed: %s", exc)
        return
    config.stash[RESULT_KEY] = result


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    result = config.stash.get(RESULT_KEY, None)
    if result is None:
        return
    summary = result.summary
    terminalreporter.section("Self-Healing Summary")
    terminalreporter.write_line(f"Total Healing Attempts: {summary.total_healing_attempts}")
    terminalreporter.write_line(f"Successful: {summary.successful_healing}")
    terminalreporter.write_line(f"Failed: {summary.failed_healing}")
    terminalreporter.write_line(f"JSON Report: {result.summary_path}")
    terminalreporter.write_line(f"HTML Report: {result.html_path}")
    healed = [event for event in result.run_events if event.success]
    if healed:
        terminalreporter.write_line("Healings in this run:")
        for index, event in enumerate(healed, start=1):
            terminalreporter.write_line(f"{index}. {event.test_name}")
            terminalreporter.write_line(f"   Original: {event.original_locator}")
            terminalreporter.write_line(f"   Healed:   {event.healed_locator}")
