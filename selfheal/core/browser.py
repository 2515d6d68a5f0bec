from __future__ import annotations

import logging

from selenium import webdriver
from selenium.webdriver import ChromeOptions, FirefoxOptions

from selfheal.config.schema import HealingConfig

log = logging.getLogger(__name__)


def _chrome(config: HealingConfig):
    options = ChromeOptions()
    if config.headless:
        options.add_argument("--headless=new")
    width, height = config.window_size
    options.add_argument(f"--window-size={width},{height}")
    return webdriver.Chrome(options=options)


def _firefox(config: HealingConfig):
    options = FirefoxOptions()
    if config.headless:
        options.add_argument("-headless")
    driver = webdriver.Firefox(options=options)
    driver.set_window_size(*config.window_size)
    return driver


DRIVER_FACTORIES = {
    "chrome": _chrome,
    "firefox": _firefox,
}


class BrowserSession:
    """Starts Selenium Manager backed drivers for the default ``healing_driver``."""

    def __init__(self, config: HealingConfig) -> None:
        self.config = config

    def start(self, browser_name: str | None = None):
        name = (browser_name or self.config.browser).lower()
        factory = DRIVER_FACTORIES.get(name)
        if factory is None:
            raise ValueError(f"Unsupported browser: {name}")
        log.info("Starting %s (headless=%s)", name, self.config.headless)
        driver = factory(self.config)
        driver.set_page_load_timeout(self.config.page_load_timeout_seconds)
        # Healing relies on explicit polling; implicit waits would stretch every lookup.
        driver.implicitly_wait(0)
        return driver
