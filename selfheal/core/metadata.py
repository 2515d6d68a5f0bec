from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


class HealingEvent(BaseModel):
    """One concluded healing attempt, successful or exhausted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    timestamp: str
    test_name: str
    original_locator: str
    healed_locator: str = ""
    error_message: str = ""
    success: bool
    attempted_locators: tuple[str, ...] = ()
    healing_duration_ms: int = Field(
        default=0,
        validation_alias=AliasChoices("healingDurationMs", "healingTimeMs", "healing_duration_ms"),
        serialization_alias="healingDurationMs",
    )

    @property
    def identity(self) -> tuple[str, str]:
        return self.timestamp, self.original_locator

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class HealingSummary(BaseModel):
    """Cumulative cross-run record written by the aggregator."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_tests: int = 0
    total_healing_attempts: int = Field(
        default=0,
        validation_alias=AliasChoices("totalHealingAttempts", "totalHealing", "total_healing_attempts"),
        serialization_alias="totalHealingAttempts",
    )
    successful_healing: int = 0
    failed_healing: int = 0
    timestamp: str = ""
    changes: list[HealingEvent] = Field(default_factory=list)

    @classmethod
    def from_changes(cls, changes: list[HealingEvent], total_tests: int = 0) -> HealingSummary:
        successful = sum(1 for change in changes if change.success)
        return cls(
            total_tests=total_tests,
            total_healing_attempts=len(changes),
            successful_healing=successful,
            failed_healing=len(changes) - successful,
            timestamp=utc_timestamp(),
            changes=list(changes),
        )

    @property
    def success_rate(self) -> int:
        if not self.total_healing_attempts:
            return 0
        return round(self.successful_healing / self.total_healing_attempts * 100)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(slots=True)
class LocatorSpec:
    """Parsed form of a locator string."""

    kind: str
    value: str
    options: dict[str, Any] = field(default_factory=dict)
    index: int | None = None
    source: str = ""


@dataclass(slots=True)
class HealResult:
    element: Any = None
    healed: bool = False
    locator: str = ""
