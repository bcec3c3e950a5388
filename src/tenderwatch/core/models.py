"""
Core data structures shared by adapters, cache, scheduler and query layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DownloadLink:
    """A document link attached to a tender notice."""

    text: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"text": self.text, "url": self.url}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DownloadLink":
        return cls(text=str(data.get("text") or ""), url=str(data.get("url") or ""))


@dataclass(frozen=True)
class TenderRecord:
    """One discovered tender notice.

    Records are immutable; a later scrape supersedes the whole set for a
    source rather than mutating individual records.
    """

    name: str
    posted_date: str = ""
    closing_date: str = ""
    download_links: tuple[DownloadLink, ...] = ()

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("TenderRecord.name must not be empty")
        if not isinstance(self.download_links, tuple):
            object.__setattr__(self, "download_links", tuple(self.download_links))

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Identity used to de-duplicate records within one scrape pass."""
        return (self.name, self.posted_date)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "postedDate": self.posted_date,
            "closingDate": self.closing_date,
            "downloadLinks": [link.to_dict() for link in self.download_links],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TenderRecord":
        return cls(
            name=str(data["name"]),
            posted_date=str(data.get("postedDate") or ""),
            closing_date=str(data.get("closingDate") or ""),
            download_links=tuple(
                DownloadLink.from_dict(link) for link in data.get("downloadLinks") or []
            ),
        )


def dedupe_records(records: Iterable[TenderRecord]) -> list[TenderRecord]:
    """Drop records whose (name, posted date) was already seen, keeping order."""
    seen: set[tuple[str, str]] = set()
    unique: list[TenderRecord] = []
    for record in records:
        if record.dedup_key in seen:
            continue
        seen.add(record.dedup_key)
        unique.append(record)
    return unique


class JobStatus(str, Enum):
    """Run state of a source's scrape job."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SourceJobState:
    """Mutable per-source job bookkeeping owned by the orchestrator."""

    source_id: str
    name: str = ""
    priority: int = 1
    interval_minutes: int = 30
    status: JobStatus = JobStatus.IDLE
    last_run_at: datetime | None = None
    last_success_at: datetime | None = None
    last_error: str | None = None
    next_eligible_run_at: datetime | None = None
    backoff_until: datetime | None = None
    next_scheduled_run_at: datetime | None = None
    success_count: int = 0
    error_count: int = 0
    consecutive_failures: int = 0
    last_record_count: int | None = None
    last_duration_seconds: float | None = None

    @property
    def is_running(self) -> bool:
        return self.status is JobStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "name": self.name,
            "status": self.status.value,
            "lastRunAt": isoformat(self.last_run_at),
            "lastSuccessAt": isoformat(self.last_success_at),
            "lastError": self.last_error,
            "nextEligibleRunAt": isoformat(self.next_eligible_run_at),
            "backoffUntil": isoformat(self.backoff_until),
            "nextScheduledRunAt": isoformat(self.next_scheduled_run_at),
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "consecutiveFailures": self.consecutive_failures,
            "lastRecordCount": self.last_record_count,
            "lastDurationSeconds": self.last_duration_seconds,
            "priority": self.priority,
            "interval": self.interval_minutes,
        }


@dataclass(frozen=True)
class CacheEntry:
    """Cached scrape result for one source."""

    source_id: str
    data: tuple[TenderRecord, ...]
    fetched_at: datetime
    ttl_expires_at: datetime
    is_fallback: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.data, tuple):
            object.__setattr__(self, "data", tuple(self.data))

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.ttl_expires_at

    def age_seconds(self, now: datetime | None = None) -> float:
        return ((now or utcnow()) - self.fetched_at).total_seconds()

    def to_payload(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.data]
