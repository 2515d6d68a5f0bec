from __future__ import annotations

import pytest

from tests.helpers import FakeDriver

pytest_plugins = ["pytester", "selfheal.pytest_plugin"]


@pytest.fixture()
def driver():
    return FakeDriver("<html><body><button data-testid='submit'>Submit</button></body></html>")
