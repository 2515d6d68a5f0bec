from __future__ import annotations

import json
import logging
from pathlib import Path

from selfheal.core.metadata import HealingEvent
from selfheal.logging.artifacts import ArtifactManager

log = logging.getLogger(__name__)


class HealingRunRecorder:
    """Append-only event list for one test process, flushed once at exit."""

    def __init__(self, artifact_manager: ArtifactManager) -> None:
        self.artifact_manager = artifact_manager
        self._events: list[HealingEvent] = []
        self.flushed_path: Path | None = None

    def record(self, event: HealingEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[HealingEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def flush(self) -> Path | None:
        """Writes the run-scoped file; nothing is written for an empty run."""

        if not self._events or self.flushed_path is not None:
            return self.flushed_path
        path = self.artifact_manager.new_run_report_path()
        payload = [event.to_json() for event in self._events]
        self.artifact_manager.write_atomic(path, json.dumps(payload, indent=2))
        self.flushed_path = path
        log.info("Healing data saved to %s (%d event(s), will be aggregated to summary)", path, len(self._events))
        return path
