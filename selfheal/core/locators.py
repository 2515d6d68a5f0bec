from __future__ import annotations

import re
from typing import Any

from selfheal.core.exceptions import LocatorSyntaxError
from selfheal.core.metadata import LocatorSpec

CONSTRUCTORS = {
    "byRole": "role",
    "getByRole": "role",
    "get_by_role": "role",
    "byText": "text",
    "getByText": "text",
    "get_by_text": "text",
    "byLabel": "label",
    "getByLabel": "label",
    "get_by_label": "label",
    "byTestId": "test_id",
    "getByTestId": "test_id",
    "get_by_test_id": "test_id",
    "bySelector": "selector",
    "locator": "selector",
}

ALLOWED_OPTIONS = {
    "role": {"name", "exact", "level"},
    "text": {"exact"},
    "label": {"exact"},
    "test_id": set(),
    "selector": set(),
}

OPTION_TYPES = {
    "name": (str, int, float),
    "exact": (bool,),
    "level": (int,),
}

_TOKEN_RE = re.compile(
    r"""
    (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<number>-?\d+(?:\.\d+)?)
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<punct>[(){},:.=])
    """,
    re.VERBOSE,
)
_CALL_RE = re.compile(r"^\s*(?:page\s*\.\s*)?[A-Za-z_][A-Za-z0-9_]*\s*\(")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_LITERALS = {"true": True, "false": False, "True": True, "False": False}


def infer_selector_type(selector: str) -> str:
    stripped = selector.strip()
    if stripped.startswith("/") or stripped.startswith("("):
        return "xpath"
    return "css"


def parse_locator(text: str) -> LocatorSpec:
    """Parses a locator string into a constructor call or a raw selector.

    Call-shaped strings must use one of the known constructors with literal
    arguments only; anything else is rejected with ``LocatorSyntaxError``.
    """

    source = text.strip()
    if not source:
        raise LocatorSyntaxError("Empty locator")
    if not _CALL_RE.match(source):
        return _raw_selector(source)
    return _Parser(source).parse()


def _raw_selector(source: str) -> LocatorSpec:
    if source.startswith("xpath="):
        return LocatorSpec(kind="selector", value=source[len("xpath="):], options={"type": "xpath"}, source=source)
    if source.startswith("css="):
        return LocatorSpec(kind="selector", value=source[len("css="):], options={"type": "css"}, source=source)
    return LocatorSpec(kind="selector", value=source, options={"type": infer_selector_type(source)}, source=source)


def _tokenize(source: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    position = 0
    while position < len(source):
        if source[position].isspace():
            position += 1
            continue
        match = _TOKEN_RE.match(source, position)
        if not match:
            raise LocatorSyntaxError(f"Unexpected character {source[position]!r} at {position} in {source!r}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


def _unquote(token: str) -> str:
    body = token[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def _check_option(constructor: str, key: str, value: Any) -> None:
    expected = OPTION_TYPES[key]
    # bool is an int subclass; only "exact" takes booleans.
    if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
        raise LocatorSyntaxError(f"{constructor} option {key!r} does not accept {value!r}")
    if key == "level" and value < 1:
        raise LocatorSyntaxError(f"{constructor} option 'level' must be positive, got {value}")


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = _tokenize(source)
        self.position = 0

    def parse(self) -> LocatorSpec:
        name = self._expect("name")
        if name == "page" and self._peek() == ("punct", "."):
            self._advance()
            name = self._expect("name")
        kind = CONSTRUCTORS.get(name)
        if kind is None:
            raise LocatorSyntaxError(f"Unsupported locator constructor: {name}")
        self._expect("punct", "(")
        positional, options = self._arguments()
        if len(positional) != 1:
            raise LocatorSyntaxError(f"{name} expects exactly one positional argument")
        value = positional[0]
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise LocatorSyntaxError(f"{name} expects a string argument")
        value = str(value)
        unknown = set(options) - ALLOWED_OPTIONS[kind]
        if unknown:
            raise LocatorSyntaxError(f"Unsupported options for {name}: {', '.join(sorted(unknown))}")
        for key, option in options.items():
            _check_option(name, key, option)
        if kind == "selector":
            spec = _raw_selector(value)
        else:
            spec = LocatorSpec(kind=kind, value=value, options=options)
        spec.index = self._chain()
        spec.source = self.source
        if self.position != len(self.tokens):
            raise LocatorSyntaxError(f"Unexpected trailing input in {self.source!r}")
        return spec

    def _arguments(self) -> tuple[list[Any], dict[str, Any]]:
        positional: list[Any] = []
        options: dict[str, Any] = {}
        if self._peek() == ("punct", ")"):
            self._advance()
            return positional, options
        while True:
            token = self._peek()
            if token == ("punct", "{"):
                options.update(self._object())
            elif token is not None and token[0] == "name" and self._peek(1) == ("punct", "="):
                key = self._advance()[1]
                self._advance()
                options[key] = self._literal(bare_names=False)
            else:
                if options:
                    raise LocatorSyntaxError("Positional argument after options")
                positional.append(self._literal(bare_names=True))
            separator = self._expect("punct")
            if separator == ")":
                return positional, options
            if separator != ",":
                raise LocatorSyntaxError(f"Expected ',' or ')' in {self.source!r}")
            if self._peek() == ("punct", ")"):
                self._advance()
                return positional, options

    def _object(self) -> dict[str, Any]:
        self._expect("punct", "{")
        result: dict[str, Any] = {}
        while self._peek() != ("punct", "}"):
            kind, raw = self._advance()
            if kind == "name":
                key = raw
            elif kind == "string":
                key = _unquote(raw)
            else:
                raise LocatorSyntaxError(f"Invalid option key {raw!r}")
            self._expect("punct", ":")
            result[key] = self._literal(bare_names=False)
            if self._peek() == ("punct", ","):
                self._advance()
            elif self._peek() != ("punct", "}"):
                raise LocatorSyntaxError(f"Expected ',' or '}}' in {self.source!r}")
        self._advance()
        return result

    def _literal(self, *, bare_names: bool) -> Any:
        kind, raw = self._advance()
        if kind == "string":
            return _unquote(raw)
        if kind == "number":
            return float(raw) if "." in raw else int(raw)
        if kind == "name":
            if raw in _LITERALS:
                return _LITERALS[raw]
            if bare_names:
                return raw
        raise LocatorSyntaxError(f"Unsupported literal {raw!r} in {self.source!r}")

    def _chain(self) -> int | None:
        index = None
        while self._peek() == ("punct", "."):
            self._advance()
            name = self._expect("name")
            if name in ("first", "last"):
                if self._peek() == ("punct", "("):
                    self._advance()
                    self._expect("punct", ")")
                index = 0 if name == "first" else -1
            elif name == "nth":
                self._expect("punct", "(")
                value = self._literal(bare_names=False)
                if isinstance(value, bool) or not isinstance(value, int):
                    raise LocatorSyntaxError("nth() expects an integer")
                self._expect("punct", ")")
                index = value
            else:
                raise LocatorSyntaxError(f"Unsupported locator method: {name}")
        return index

    def _peek(self, offset: int = 0) -> tuple[str, str] | None:
        position = self.position + offset
        if position >= len(self.tokens):
            return None
        return self.tokens[position]

    def _advance(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise LocatorSyntaxError(f"Unexpected end of locator {self.source!r}")
        self.position += 1
        return token

    def _expect(self, kind: str, value: str | None = None) -> str:
        token_kind, raw = self._advance()
        if token_kind != kind or (value is not None and raw != value):
            expected = value or kind
            raise LocatorSyntaxError(f"Expected {expected!r} but found {raw!r} in {self.source!r}")
        return raw
