"""
Per-dependency fetch outcomes.

Produced by the fetcher, consumed by the materializer; never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bindingtool.core.models import DependencyRecord
from bindingtool.errors import BindingToolError, ErrorCode


class FetchStatus(str, Enum):
    """Result of fetching one dependency."""

    SUCCESS = "success"  # downloaded and verified
    CACHED = "cached"  # already present in the dependency cache, verified
    FAILURE = "failure"


@dataclass(frozen=True)
class FetchOutcome:
    """Outcome of fetching a single dependency record."""

    record: DependencyRecord
    status: FetchStatus
    path: Path | None = None  # kept artifact, if any
    size_bytes: int = 0
    error_code: ErrorCode | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != FetchStatus.FAILURE

    @classmethod
    def success(
        cls, record: DependencyRecord, path: Path | None = None, size_bytes: int = 0
    ) -> FetchOutcome:
        return cls(record=record, status=FetchStatus.SUCCESS, path=path, size_bytes=size_bytes)

    @classmethod
    def cached(cls, record: DependencyRecord, path: Path) -> FetchOutcome:
        return cls(record=record, status=FetchStatus.CACHED, path=path)

    @classmethod
    def failure(cls, record: DependencyRecord, error: BindingToolError) -> FetchOutcome:
        return cls(
            record=record,
            status=FetchStatus.FAILURE,
            error_code=error.code,
            reason=error.message,
        )
