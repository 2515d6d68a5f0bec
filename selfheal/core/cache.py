from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from selfheal.core.metadata import HealingSummary

log = logging.getLogger(__name__)


class HealingCache:
    """Process-local map from a failed locator to its last working replacement."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def lookup(self, original_locator: str) -> str | None:
        return self._entries.get(original_locator)

    def record(self, original_locator: str, healed_locator: str) -> None:
        self._entries[original_locator] = healed_locator

    def evict(self, original_locator: str) -> None:
        self._entries.pop(original_locator, None)

    def __contains__(self, original_locator: object) -> bool:
        return original_locator in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def seed_from_summary(self, summary_path: str | Path) -> int:
        """Indexes successful events of a prior summary, last write wins."""

        path = Path(summary_path)
        if not path.exists():
            return 0
        try:
            summary = HealingSummary.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as exc:
            log.warning("Could not load healing cache from %s, starting fresh: %s", path, exc)
            return 0
        for change in summary.changes:
            if change.success and change.healed_locator:
                self.record(change.original_locator, change.healed_locator)
        log.info("Loaded %d cached healing(s) from previous runs", len(self))
        return len(self)
