from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from itertools import chain
from pathlib import Path

from pydantic import ValidationError

from selfheal.core.metadata import HealingEvent, HealingSummary
from selfheal.logging.artifacts import ArtifactManager
from selfheal.reporting.html import render_html
from selfheal.utils.lock import FileLock

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AggregationResult:
    summary: HealingSummary
    run_events: list[HealingEvent] = field(default_factory=list)
    consumed_files: list[Path] = field(default_factory=list)
    summary_path: Path | None = None
    html_path: Path | None = None


def merge_events(existing: Iterable[HealingEvent], incoming: Iterable[HealingEvent]) -> list[HealingEvent]:
    """Keeps the first event per (timestamp, original locator) key, existing ones first."""

    merged: list[HealingEvent] = []
    seen: set[tuple[str, str]] = set()
    for event in chain(existing, incoming):
        if event.identity in seen:
            continue
        seen.add(event.identity)
        merged.append(event)
    return merged


class HealingAggregator:
    """Folds run-scoped event files into the cumulative summary.

    The whole read-modify-write cycle runs under a lock file next to the
    summary, so concurrent aggregators serialize instead of losing updates.
    """

    def __init__(
        self,
        artifact_manager: ArtifactManager,
        lock_timeout: float = 30.0,
        lock_stale_after: float = 300.0,
    ) -> None:
        self.artifact_manager = artifact_manager
        self.lock_timeout = lock_timeout
        self.lock_stale_after = lock_stale_after

    @classmethod
    def from_config(cls, config) -> HealingAggregator:
        return cls(
            ArtifactManager.from_config(config),
            lock_timeout=config.lock_timeout_seconds,
            lock_stale_after=config.lock_stale_seconds,
        )

    @property
    def lock_path(self) -> Path:
        summary_path = self.artifact_manager.summary_path
        return summary_path.with_name(summary_path.name + ".lock")

    def aggregate(self, total_tests: int = 0) -> AggregationResult:
        with FileLock(self.lock_path, timeout=self.lock_timeout, stale_after=self.lock_stale_after):
            run_events, consumed = self.read_run_reports(self.artifact_manager.run_reports())
            existing = self.load_summary()
            changes = merge_events(existing.changes, run_events)
            summary = HealingSummary.from_changes(changes, total_tests=total_tests)
            summary_path = self.artifact_manager.write_atomic(
                self.artifact_manager.summary_path,
                json.dumps(summary.to_json(), indent=2),
            )
            self._delete(consumed + self.artifact_manager.stale_html_reports())
            html_path = self.artifact_manager.write_atomic(
                self.artifact_manager.html_report_path,
                render_html(summary),
            )
        log.info(
            "Healing summary: %d attempt(s), %d successful, %d failed",
            summary.total_healing_attempts,
            summary.successful_healing,
            summary.failed_healing,
        )
        return AggregationResult(
            summary=summary,
            run_events=run_events,
            consumed_files=consumed,
            summary_path=summary_path,
            html_path=html_path,
        )

    def load_summary(self) -> HealingSummary:
        path = self.artifact_manager.summary_path
        if not path.exists():
            return HealingSummary()
        try:
            return HealingSummary.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as exc:
            backup = path.with_name(f"{path.name}.corrupt-{self.artifact_manager.timestamp()}")
            log.warning("Could not read existing summary %s, moving it to %s: %s", path, backup, exc)
            try:
                path.replace(backup)
            except OSError as move_exc:
                log.warning("Could not move corrupt summary aside: %s", move_exc)
            return HealingSummary()

    @staticmethod
    def read_run_reports(paths: Iterable[Path]) -> tuple[list[HealingEvent], list[Path]]:
        """Reads run-scoped files; unreadable ones are skipped and left on disk."""

        events: list[HealingEvent] = []
        consumed: list[Path] = []
        for path in paths:
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
                if not isinstance(payload, list):
                    raise ValueError(f"expected a list of events, found {type(payload).__name__}")
                file_events = [HealingEvent.model_validate(item) for item in payload]
            except (OSError, ValueError, ValidationError) as exc:
                log.warning("Skipping invalid run report %s: %s", path, exc)
                continue
            events.extend(file_events)
            consumed.append(path)
        return events, consumed

    @staticmethod
    def _delete(paths: Iterable[Path]) -> None:
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                log.warning("Could not delete %s: %s", path, exc)
