from __future__ import annotations

from selenium.common.exceptions import WebDriverException

from selfheal.core.exceptions import HealingError
from selfheal.core.healer import Healer
from selfheal.core.resolver import ResolvedLocator


class HealingPage:
    """Locator-based browser actions routed through the healing pipeline.

    Each action first runs against the given locator with a fail-fast
    timeout. On failure the healer is consulted; a healed locator replays the
    same action with the caller's timeout, otherwise the original error is
    re-raised untouched.
    """

    def __init__(self, driver, healer: Healer, test_name: str) -> None:
        self.driver = driver
        self.healer = healer
        self.resolver = healer.resolver
        self.config = healer.config
        self.test_name = test_name

    def click(self, locator: str, timeout_ms: int | None = None) -> None:
        self._run("click", locator, timeout_ms, self._click)

    def fill(self, locator: str, value: str, timeout_ms: int | None = None, clear_first: bool = True) -> None:
        self._run("fill", locator, timeout_ms, self._fill, value, clear_first)

    def wait_for(self, locator: str, state: str = "visible", timeout_ms: int | None = None):
        return self._run("wait_for", locator, timeout_ms, self._wait_for, state)

    def is_visible(self, locator: str) -> bool:
        return self._run("is_visible", locator, None, self._is_visible)

    def goto(self, url: str) -> None:
        self.driver.get(url)

    def find(self, locator: str, timeout_ms: int | None = None):
        """Returns the visible element for a locator, without healing."""

        resolved = self.resolver.resolve(locator)
        return self.resolver.wait_visible(self.driver, resolved, timeout_ms or self.config.default_timeout_ms)

    def _run(self, action: str, locator: str, timeout_ms: int | None, operation, *args):
        try:
            return operation(self.resolver.resolve(locator), self.config.action_timeout_ms, *args)
        except (WebDriverException, HealingError) as exc:
            result = self.healer.heal(self.driver, action, locator, exc, self.test_name)
            if not (result.healed and result.locator):
                raise
        replay_timeout = timeout_ms or self.config.default_timeout_ms
        return operation(self.resolver.resolve(result.locator), replay_timeout, *args)

    def _click(self, resolved: ResolvedLocator, timeout_ms: int) -> None:
        self.resolver.wait_visible(self.driver, resolved, timeout_ms).click()

    def _fill(self, resolved: ResolvedLocator, timeout_ms: int, value: str, clear_first: bool) -> None:
        element = self.resolver.wait_visible(self.driver, resolved, timeout_ms)
        if clear_first:
            element.clear()
        element.send_keys(value)

    def _wait_for(self, resolved: ResolvedLocator, timeout_ms: int, state: str):
        return self.resolver.wait_for_state(self.driver, resolved, state, timeout_ms)

    def _is_visible(self, resolved: ResolvedLocator, timeout_ms: int) -> bool:
        return self.resolver.is_visible(self.driver, resolved)
