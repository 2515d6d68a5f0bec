from __future__ import annotations

import json

from selfheal.core.cache import HealingCache
from tests.helpers import make_event


def _write_summary(path, changes):
    path.write_text(json.dumps({"changes": [change.to_json() for change in changes]}), encoding="utf-8")


def test_lookup_record_evict():
    cache = HealingCache()
    assert cache.lookup("#a") is None
    cache.record("#a", "byTestId('a')")
    cache.record("#a", "byTestId('a2')")
    assert cache.lookup("#a") == "byTestId('a2')"
    assert len(cache) == 1
    cache.evict("#a")
    cache.evict("#never-there")
    assert "#a" not in cache


def test_seed_indexes_successes_last_write_wins(tmp_path):
    summary_path = tmp_path / "summary.json"
    _write_summary(
        summary_path,
        [
            make_event("#a", "byTestId('old')", timestamp="2026-01-01T00:00:00+00:00"),
            make_event("#b", "", timestamp="2026-01-01T00:00:01+00:00"),
            make_event("#a", "byTestId('new')", timestamp="2026-01-01T00:00:02+00:00"),
        ],
    )
    cache = HealingCache()

    assert cache.seed_from_summary(summary_path) == 1
    assert cache.lookup("#a") == "byTestId('new')"
    assert cache.lookup("#b") is None


def test_missing_summary_seeds_nothing(tmp_path):
    assert HealingCache().seed_from_summary(tmp_path / "absent.json") == 0


def test_corrupt_summary_is_treated_as_empty(tmp_path, caplog):
    summary_path = tmp_path / "summary.json"
    summary_path.write_text("{not json", encoding="utf-8")
    cache = HealingCache()

    assert cache.seed_from_summary(summary_path) == 0
    assert "starting fresh" in caplog.text
