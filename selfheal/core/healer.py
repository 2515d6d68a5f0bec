from __future__ import annotations

import logging
import time

from selenium.common.exceptions import WebDriverException

from selfheal.config.schema import HealingConfig
from selfheal.core.cache import HealingCache
from selfheal.core.exceptions import LocatorSyntaxError
from selfheal.core.metadata import HealingEvent, HealResult, utc_timestamp
from selfheal.core.resolver import LocatorResolver
from selfheal.llm.client import create_suggestion_provider
from selfheal.logging.artifacts import ArtifactManager
from selfheal.logging.audit import HealingRunRecorder

log = logging.getLogger(__name__)


class Healer:
    """Coordinates cache lookup, suggestion phases and candidate validation.

    ``heal`` never raises: every outcome is a ``HealResult`` and the caller
    decides whether to surface its own original error.
    """

    def __init__(
        self,
        config: HealingConfig,
        suggestion_provider,
        resolver: LocatorResolver,
        cache: HealingCache,
        recorder: HealingRunRecorder,
        artifact_manager: ArtifactManager,
    ) -> None:
        self.config = config
        self.suggestion_provider = suggestion_provider
        self.resolver = resolver
        self.cache = cache
        self.recorder = recorder
        self.artifact_manager = artifact_manager

    @classmethod
    def from_config(cls, config: HealingConfig, suggestion_provider=None) -> Healer:
        """Wires the default collaborators; the cache is seeded only when enabled."""

        artifact_manager = ArtifactManager.from_config(config)
        cache = HealingCache()
        if config.enabled:
            if suggestion_provider is None:
                suggestion_provider = create_suggestion_provider(config)
            cache.seed_from_summary(config.summary_path)
            log.info("Healing enabled (%s)", config.provider)
        else:
            log.info("No LLM API key configured, healing disabled")
        return cls(
            config,
            suggestion_provider,
            LocatorResolver(config.test_id_attribute),
            cache,
            HealingRunRecorder(artifact_manager),
            artifact_manager,
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self.suggestion_provider is not None

    def heal(self, driver, action: str, original_locator: str, failure: Exception, test_name: str) -> HealResult:
        if not self.enabled:
            return HealResult()

        error_message = str(failure)
        log.info("Self-healing initiated for %s (%s in %r): %s", original_locator, action, test_name, error_message)

        cached = self._from_cache(driver, original_locator)
        if cached.healed:
            return cached

        started = time.monotonic()
        try:
            page_source = driver.page_source
        except WebDriverException as exc:
            log.warning("Cannot access page content, page may be closed: %s", exc)
            return HealResult()
        log.debug("Page HTML extracted (%d characters)", len(page_source))

        attempted: list[str] = []
        suggestions = self.suggestion_provider.suggest_from_markup(page_source, original_locator, error_message)
        log.info("Provider suggested %d alternative(s)", len(suggestions))
        healed, element = self._try_candidates(driver, suggestions, attempted)

        if not healed:
            log.info("Text suggestions exhausted, attempting screenshot analysis")
            image_png = self._capture_screenshot(driver)
            if image_png:
                vision = self.suggestion_provider.suggest_from_image(image_png, original_locator, error_message)
                log.info("Vision suggested %d alternative(s)", len(vision))
                healed, element = self._try_candidates(driver, vision, attempted)

        duration_ms = int((time.monotonic() - started) * 1000)
        self.recorder.record(
            HealingEvent(
                timestamp=utc_timestamp(),
                test_name=test_name,
                original_locator=original_locator,
                healed_locator=healed,
                error_message=error_message,
                success=bool(healed),
                attempted_locators=tuple(attempted),
                healing_duration_ms=duration_ms,
            )
        )
        if not healed:
            log.warning("All healing attempts failed for %s after %dms", original_locator, duration_ms)
            return HealResult()

        self.cache.record(original_locator, healed)
        log.info("Healed %s with %s in %dms", original_locator, healed, duration_ms)
        return HealResult(element=element, healed=True, locator=healed)

    def _from_cache(self, driver, original_locator: str) -> HealResult:
        cached = self.cache.lookup(original_locator)
        if cached is None:
            return HealResult()
        try:
            element = self.resolver.validate(driver, cached, self.config.validation_timeout_ms)
        except (LocatorSyntaxError, WebDriverException) as exc:
            log.warning("Cached locator %s no longer valid, evicting: %s", cached, exc)
            self.cache.evict(original_locator)
            return HealResult()
        log.info("Cache hit for %s, using %s", original_locator, cached)
        return HealResult(element=element, healed=True, locator=cached)

    def _try_candidates(self, driver, candidates: list[str], attempted: list[str]) -> tuple[str, object]:
        for candidate in candidates:
            if candidate in attempted:
                continue
            attempted.append(candidate)
            try:
                element = self.resolver.validate(driver, candidate, self.config.validation_timeout_ms)
            except (LocatorSyntaxError, WebDriverException) as exc:
                log.debug("Candidate %s failed: %s", candidate, exc)
                continue
            return candidate, element
        return "", None

    def _capture_screenshot(self, driver) -> bytes | None:
        try:
            image_png = driver.get_screenshot_as_png()
        except WebDriverException as exc:
            log.warning("Screenshot capture failed, skipping vision phase: %s", exc)
            return None
        try:
            path = self.artifact_manager.write_screenshot(image_png)
            log.debug("Healing screenshot saved to %s", path)
        except OSError as exc:
            log.warning("Could not persist healing screenshot: %s", exc)
        return image_png
