"""
Dependency-mapping materialization.

Turns verified fetch outcomes into binding entries keyed by the artifact
digest, so the build can map each dependency URI to a local copy.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from bindingtool.bindings.store import BindingStoreProtocol, WriteStatus
from bindingtool.errors import BindingToolError, ConflictError
from bindingtool.fetch.outcome import FetchOutcome

logger = logging.getLogger(__name__)

DEPENDENCY_MAPPING_TYPE = "dependency-mapping"
FAILED = "failed"


class EntryResult(BaseModel):
    """What happened to one dependency's binding entry."""

    model_config = ConfigDict(frozen=True)

    checksum: str = Field(..., description="Full tagged checksum of the record")
    key: str = Field(..., description="Binding key (hex digest)")
    value: str | None = Field(default=None, description="Value written, if any")
    status: str = Field(..., description="created, updated, unchanged, conflict or failed")
    reason: str | None = Field(default=None, description="Why the entry failed or conflicted")


class MaterializationResult(BaseModel):
    """Per-entry results and counts for one materialization pass."""

    model_config = ConfigDict(frozen=True)

    binding: str = Field(..., description="Binding name written to")
    entries: tuple[EntryResult, ...] = Field(default_factory=tuple)
    created: int = Field(default=0, description="New entries")
    updated: int = Field(default=0, description="Entries overwritten under force")
    unchanged: int = Field(default=0, description="Entries already holding the value")
    conflicted: int = Field(default=0, description="Entries left alone because they differ")
    failed: int = Field(default=0, description="Dependencies not written")

    @classmethod
    def compute(cls, binding: str, entries: Iterable[EntryResult]) -> MaterializationResult:
        """Build a result with counts derived from the entries."""
        entries = tuple(entries)
        counts = {status: 0 for status in ("created", "updated", "unchanged", "conflict", FAILED)}
        for entry in entries:
            counts[entry.status] += 1
        return cls(
            binding=binding,
            entries=entries,
            created=counts["created"],
            updated=counts["updated"],
            unchanged=counts["unchanged"],
            conflicted=counts["conflict"],
            failed=counts[FAILED],
        )

    @property
    def ok(self) -> bool:
        return self.conflicted == 0 and self.failed == 0


class BindingMaterializer:
    """
    Writes one binding entry per successfully fetched dependency.

    Failed outcomes are counted and never written. Writes go through a lock
    so outcomes may be handed in from several threads.
    """

    def __init__(
        self,
        store: BindingStoreProtocol,
        binding_type: str = DEPENDENCY_MAPPING_TYPE,
        name: str | None = None,
        force: bool = False,
        location_prefix: str | None = None,
    ):
        """
        Initialize the materializer.

        Args:
            store: Binding store to write to.
            binding_type: Binding type.
            name: Binding name; defaults to the type.
            force: Overwrite entries whose value differs.
            location_prefix: Dependency cache directory as seen by the build,
                e.g. the container mount path. Values become
                `<prefix>/<digest>/<file name>`. Defaults to the artifact's
                own absolute path.
        """
        self.store = store
        self.binding_type = binding_type
        self.name = name or binding_type
        self.force = force
        self.location_prefix = location_prefix.rstrip("/") if location_prefix else None
        self._lock = threading.Lock()

    def entry_value(self, outcome: FetchOutcome) -> str:
        """Value recorded for a successful outcome."""
        record = outcome.record
        if outcome.path is None or record.is_local:
            return record.uri
        if self.location_prefix:
            return f"file://{self.location_prefix}/{record.digest}/{outcome.path.name}"
        return f"file://{outcome.path.resolve().as_posix()}"

    def materialize_one(self, outcome: FetchOutcome) -> EntryResult:
        """Write the entry for one outcome."""
        record = outcome.record
        key = record.digest

        if not outcome.ok:
            return EntryResult(
                checksum=record.checksum, key=key, status=FAILED, reason=outcome.reason
            )

        value = self.entry_value(outcome)
        with self._lock:
            try:
                status = self.store.put(
                    self.binding_type, key, value, name=self.name, force=self.force
                )
            except ConflictError as e:
                return EntryResult(
                    checksum=record.checksum,
                    key=key,
                    status=WriteStatus.CONFLICT.value,
                    reason=e.message,
                )
            except BindingToolError as e:
                logger.error("Cannot write binding entry for %s: %s", record.uri, e.message)
                return EntryResult(
                    checksum=record.checksum, key=key, status=FAILED, reason=e.message
                )

        reason = None
        if status == WriteStatus.CONFLICT:
            reason = "entry exists with a different value"
        return EntryResult(
            checksum=record.checksum, key=key, value=value, status=status.value, reason=reason
        )

    def materialize(self, outcomes: Iterable[FetchOutcome]) -> MaterializationResult:
        """
        Write entries for all outcomes.

        Args:
            outcomes: Fetch outcomes, typically from DependencyFetcher.fetch_all.

        Returns:
            MaterializationResult with per-entry statuses and counts.
        """
        entries = [self.materialize_one(outcome) for outcome in outcomes]
        result = MaterializationResult.compute(self.name, entries)
        logger.info(
            "Binding %s: %d created, %d updated, %d unchanged, %d conflicted, %d failed",
            result.binding,
            result.created,
            result.updated,
            result.unchanged,
            result.conflicted,
            result.failed,
        )
        return result
