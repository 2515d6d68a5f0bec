from __future__ import annotations

from dataclasses import dataclass

from selenium.common.exceptions import StaleElementReferenceException, TimeoutException
from selenium.webdriver.common.by import By

from selfheal.core.exceptions import LocatorSyntaxError
from selfheal.core.locators import parse_locator
from selfheal.core.metadata import LocatorSpec
from selfheal.utils.wait import wait_until

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"
# XPath 1.0 has no lower-case(), so both sides fold ASCII letters only.
_ASCII_FOLD = str.maketrans(_UPPER, _LOWER)

IMPLICIT_ROLES = {
    "button": [
        "button",
        "input[@type='button' or @type='submit' or @type='reset' or @type='image']",
        "summary",
    ],
    "link": ["a[@href]", "area[@href]"],
    "textbox": [
        "input[not(@type) or @type='text' or @type='email' or @type='tel' or @type='url']",
        "textarea",
    ],
    "searchbox": ["input[@type='search']"],
    "checkbox": ["input[@type='checkbox']"],
    "radio": ["input[@type='radio']"],
    "spinbutton": ["input[@type='number']"],
    "slider": ["input[@type='range']"],
    "combobox": ["select[not(@multiple)]"],
    "listbox": ["select[@multiple]"],
    "option": ["option"],
    "heading": ["h1", "h2", "h3", "h4", "h5", "h6"],
    "img": ["img"],
    "list": ["ul", "ol"],
    "listitem": ["li"],
    "table": ["table"],
    "row": ["tr"],
    "cell": ["td"],
    "form": ["form"],
    "navigation": ["nav"],
    "dialog": ["dialog"],
}

WAIT_STATES = ("visible", "attached", "hidden", "detached")


@dataclass(slots=True)
class ResolvedLocator:
    by: str
    value: str
    index: int | None = None
    source: str = ""

    def find_all(self, driver) -> list:
        return driver.find_elements(self.by, self.value)

    def find(self, driver):
        matches = self.find_all(driver)
        index = self.index or 0
        try:
            return matches[index]
        except IndexError:
            return None


def xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    pieces = value.split("'")
    quoted = [f"'{piece}'" for piece in pieces]
    return "concat(" + ", \"'\", ".join(quoted) + ")"


def _escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _text_match(expression: str, text: str, exact: bool) -> str:
    normalized = " ".join(text.split())
    if exact:
        return f"normalize-space({expression})={xpath_literal(normalized)}"
    lowered = f"translate(normalize-space({expression}), '{_UPPER}', '{_LOWER}')"
    return f"contains({lowered}, {xpath_literal(normalized.translate(_ASCII_FOLD))})"


def _accessible_name(name: str, exact: bool) -> str:
    checks = [
        _text_match(".", name, exact),
        _text_match("@aria-label", name, exact),
        _text_match("@value", name, exact),
        _text_match("@title", name, exact),
        _text_match("@placeholder", name, exact),
        _text_match("@alt", name, exact),
        f"@id=//label[{_text_match('.', name, exact)}]/@for",
    ]
    return " or ".join(checks)


class LocatorResolver:
    """Compiles parsed locators into Selenium lookups and waits on them."""

    def __init__(self, test_id_attribute: str = "data-testid") -> None:
        self.test_id_attribute = test_id_attribute

    def resolve(self, locator: str) -> ResolvedLocator:
        return self.compile(parse_locator(locator))

    def compile(self, spec: LocatorSpec) -> ResolvedLocator:
        try:
            return self._compile(spec)
        except (TypeError, ValueError) as exc:
            raise LocatorSyntaxError(f"Cannot compile {spec.source or spec.value!r}: {exc}") from exc

    def _compile(self, spec: LocatorSpec) -> ResolvedLocator:
        if spec.kind == "selector":
            by = By.XPATH if spec.options.get("type") == "xpath" else By.CSS_SELECTOR
            return ResolvedLocator(by, spec.value, spec.index, spec.source)
        if spec.kind == "test_id":
            css = f'[{self.test_id_attribute}="{_escape_css_string(spec.value)}"]'
            return ResolvedLocator(By.CSS_SELECTOR, css, spec.index, spec.source)
        exact = bool(spec.options.get("exact", False))
        if spec.kind == "text":
            xpath = f"//*[not(self::script or self::style)][text()[{_text_match('.', spec.value, exact)}]]"
        elif spec.kind == "label":
            xpath = self._label_xpath(spec.value, exact)
        else:
            xpath = self._role_xpath(spec.value, spec.options.get("name"), exact, spec.options.get("level"))
        return ResolvedLocator(By.XPATH, xpath, spec.index, spec.source)

    def wait_visible(self, driver, resolved: ResolvedLocator, timeout_ms: int):
        return self.wait_for_state(driver, resolved, "visible", timeout_ms)

    def wait_for_state(self, driver, resolved: ResolvedLocator, state: str, timeout_ms: int):
        if state not in WAIT_STATES:
            raise ValueError(f"Unsupported wait state: {state}")

        def check():
            try:
                element = resolved.find(driver)
                if state == "attached":
                    return element
                if state == "detached":
                    return element is None
                visible = element is not None and element.is_displayed()
                if state == "visible":
                    return element if visible else None
                return not visible
            except StaleElementReferenceException:
                return None

        result = wait_until(check, timeout_ms / 1000)
        if not result:
            raise TimeoutException(
                f"Timed out after {timeout_ms}ms waiting for {resolved.source or resolved.value} to be {state}"
            )
        return result

    def is_visible(self, driver, resolved: ResolvedLocator) -> bool:
        element = resolved.find(driver)
        try:
            return element is not None and element.is_displayed()
        except StaleElementReferenceException:
            return False

    def validate(self, driver, candidate: str, timeout_ms: int):
        """Resolves a candidate and returns its element once visible."""

        return self.wait_visible(driver, self.resolve(candidate), timeout_ms)

    @staticmethod
    def _label_xpath(text: str, exact: bool) -> str:
        label = f"//label[{_text_match('.', text, exact)}]"
        controls = "self::input or self::textarea or self::select"
        return " | ".join(
            [
                f"//*[@id={label}/@for]",
                f"{label}//*[{controls}]",
                f"//*[{controls}][{_text_match('@aria-label', text, exact)}]",
            ]
        )

    @staticmethod
    def _role_xpath(role: str, name, exact: bool, level=None) -> str:
        role = role.strip().lower()
        explicit = f"*[@role={xpath_literal(role)}]"
        if role == "heading" and level is not None:
            implicit = [f"h{int(level)}[not(@role)]"]
            explicit += f"[@aria-level='{int(level)}']"
        else:
            implicit = [f"{tag}[not(@role)]" for tag in IMPLICIT_ROLES.get(role, [])]
        branches = [explicit, *implicit]
        predicate = f"[{_accessible_name(str(name), exact)}]" if name is not None else ""
        return " | ".join(f"//{branch}{predicate}" for branch in branches)
