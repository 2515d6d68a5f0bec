from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime
from pathlib import Path

RUN_REPORT_PREFIX = "healing-"


class ArtifactManager:
    """Owns the on-disk layout of healing reports and screenshots."""

    def __init__(
        self,
        reports_dir: str | Path = "healing-reports",
        screenshots_dir: str | Path = "test-results",
        summary_filename: str = "summary.json",
    ) -> None:
        self.reports_dir = Path(reports_dir)
        self.screenshots_dir = Path(screenshots_dir)
        self.summary_path = self.reports_dir / summary_filename
        self.html_report_path = self.summary_path.with_suffix(".html")

    @classmethod
    def from_config(cls, config) -> ArtifactManager:
        return cls(config.reports_dir, config.screenshots_dir, config.summary_filename)

    @staticmethod
    def timestamp() -> str:
        return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")

    def new_run_report_path(self) -> Path:
        # Nanosecond clock alone collides between rapid runs; pid and a random suffix disambiguate.
        name = f"{RUN_REPORT_PREFIX}{time.time_ns()}-{os.getpid()}-{uuid.uuid4().hex[:8]}.json"
        return self.reports_dir / name

    def run_reports(self) -> list[Path]:
        if not self.reports_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.reports_dir.iterdir()
            if path.is_file() and path.name.startswith(RUN_REPORT_PREFIX) and path.suffix == ".json"
        )

    def stale_html_reports(self) -> list[Path]:
        if not self.reports_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.reports_dir.iterdir()
            if path.is_file() and path.name.startswith(RUN_REPORT_PREFIX) and path.suffix == ".html"
        )

    def write_screenshot(self, image_png: bytes, label: str = "healing") -> Path:
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        path = self.screenshots_dir / f"{label}-{self.timestamp()}.png"
        path.write_bytes(image_png)
        return path

    @staticmethod
    def write_atomic(path: Path, content: str) -> Path:
        """Writes through a sibling temp file so readers never see partial content."""

        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        temp_path.write_text(content, encoding="utf-8")
        os.replace(temp_path, path)
        return path
