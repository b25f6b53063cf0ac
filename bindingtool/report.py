"""
Run report.

Summarizes one dependency-mapping run: what was resolved, fetched and
written, and which items failed.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bindingtool.bindings.materialize import FAILED, MaterializationResult
from bindingtool.bindings.store import WriteStatus
from bindingtool.core.json_canonical import canonical_json_dumps
from bindingtool.fetch.outcome import FetchOutcome, FetchStatus
from bindingtool.resolver.resolver import ResolutionSet


class FetchCounts(BaseModel):
    """Fetch outcome counts."""

    model_config = ConfigDict(frozen=True)

    success: int = Field(default=0, description="Downloaded and verified")
    cached: int = Field(default=0, description="Reused from the dependency cache")
    failure: int = Field(default=0, description="Failed to fetch or verify")

    @classmethod
    def compute(cls, outcomes: list[FetchOutcome]) -> FetchCounts:
        return cls(
            success=sum(1 for o in outcomes if o.status == FetchStatus.SUCCESS),
            cached=sum(1 for o in outcomes if o.status == FetchStatus.CACHED),
            failure=sum(1 for o in outcomes if o.status == FetchStatus.FAILURE),
        )


class WriteCounts(BaseModel):
    """Binding entry write counts."""

    model_config = ConfigDict(frozen=True)

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    conflicted: int = 0
    failed: int = 0


class FailureEntry(BaseModel):
    """One dependency that did not end up in the binding."""

    model_config = ConfigDict(frozen=True)

    checksum: str
    uri: str
    code: str
    reason: str | None = None


class RunReport(BaseModel):
    """Report for a single dependency-mapping run."""

    model_config = ConfigDict(frozen=True)

    root: str = Field(description="Root buildpack reference")
    binding: str = Field(description="Binding name written to")
    dependencies: int = Field(default=0, description="Unique dependencies resolved")
    resolution_hash: str = Field(description="Fingerprint of the resolved checksum set")
    skipped_for_stack: int = Field(
        default=0, description="Records dropped because they do not apply to the stack"
    )
    warnings: list[str] = Field(default_factory=list, description="Skipped manifest entries")
    resolution_errors: list[dict[str, Any]] = Field(
        default_factory=list, description="References that could not be resolved"
    )
    buildpacks: list[dict[str, Any]] = Field(
        default_factory=list, description="Buildpacks visited, in resolution order"
    )
    fetch: FetchCounts = Field(default_factory=FetchCounts)
    writes: WriteCounts = Field(default_factory=WriteCounts)
    failures: list[FailureEntry] = Field(
        default_factory=list, description="Failed or conflicted dependencies by checksum"
    )

    @classmethod
    def build(
        cls,
        resolution: ResolutionSet,
        outcomes: list[FetchOutcome],
        materialization: MaterializationResult,
    ) -> RunReport:
        """Assemble a report from the results of each phase."""
        uris = {o.record.checksum: o.record.uri for o in outcomes}
        # Fetch error codes are more specific than the generic "failed"
        codes = {o.record.checksum: o.error_code.value for o in outcomes if o.error_code}
        failures = [
            FailureEntry(
                checksum=entry.checksum,
                uri=uris.get(entry.checksum, ""),
                code=codes.get(entry.checksum, entry.status),
                reason=entry.reason,
            )
            for entry in materialization.entries
            if entry.status in (FAILED, WriteStatus.CONFLICT.value)
        ]

        return cls(
            root=resolution.root,
            binding=materialization.binding,
            dependencies=len(resolution),
            resolution_hash=resolution.fingerprint(),
            skipped_for_stack=resolution.skipped_for_stack,
            warnings=list(resolution.warnings),
            resolution_errors=[e.to_dict() for e in resolution.errors],
            buildpacks=resolution.graph.to_dict()["nodes"],
            fetch=FetchCounts.compute(outcomes),
            writes=WriteCounts(
                created=materialization.created,
                updated=materialization.updated,
                unchanged=materialization.unchanged,
                conflicted=materialization.conflicted,
                failed=materialization.failed,
            ),
            failures=sorted(failures, key=lambda f: f.checksum),
        )

    @property
    def ok(self) -> bool:
        """True when every dependency was written and no required reference failed."""
        hard_errors = [e for e in self.resolution_errors if not e.get("optional")]
        return not self.failures and not hard_errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_json(self, indent: bool = True) -> str:
        """Serialize to canonical JSON."""
        return canonical_json_dumps(self.model_dump(), indent=indent)

    def render_text(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Root: {self.root}",
            f"Binding: {self.binding}",
            f"Dependencies: {self.dependencies} (resolution {self.resolution_hash})",
            f"Fetched: {self.fetch.success} downloaded, {self.fetch.cached} cached, "
            f"{self.fetch.failure} failed",
            f"Entries: {self.writes.created} created, {self.writes.updated} updated, "
            f"{self.writes.unchanged} unchanged, {self.writes.conflicted} conflicted, "
            f"{self.writes.failed} failed",
        ]
        if self.skipped_for_stack:
            lines.append(f"Skipped for stack: {self.skipped_for_stack}")
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            lines.extend(f"  {w}" for w in self.warnings)
        if self.resolution_errors:
            lines.append(f"Unresolved buildpacks ({len(self.resolution_errors)}):")
            for error in self.resolution_errors:
                marker = " (optional)" if error.get("optional") else ""
                lines.append(
                    f"  {error['reference']}{marker}: [{error['code']}] {error['message']}"
                )
        if self.failures:
            lines.append(f"Failures ({len(self.failures)}):")
            for failure in self.failures:
                lines.append(f"  {failure.checksum} {failure.uri}: [{failure.code}] {failure.reason}")
        return "\n".join(lines)
