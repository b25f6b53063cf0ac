"""
Dependency resolver.

Walks a buildpack and every buildpack reachable through its order groups,
collecting the dependency records they declare, deduplicated by checksum.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from bindingtool.core.fingerprint import compute_resolution_hash
from bindingtool.core.models import BuildpackReference, DependencyRecord
from bindingtool.errors import BindingToolError
from bindingtool.manifest.parser import ParsePolicy, parse_manifest
from bindingtool.manifest.source import ManifestSourceProtocol
from bindingtool.resolver.graph import BuildpackGraph, node_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionError:
    """A non-root reference that could not be fetched or parsed."""

    reference: str
    parent: str
    code: str
    message: str
    optional: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reference": self.reference,
            "parent": self.parent,
            "code": self.code,
            "message": self.message,
            "optional": self.optional,
        }


@dataclass
class ResolutionSet:
    """
    Dependency records gathered by one resolution run.

    Records are keyed by checksum. A later record with the same checksum
    replaces the earlier one's metadata but keeps its position, so the
    iteration order is the order checksums were first discovered.
    """

    root: str
    records: dict[str, DependencyRecord] = field(default_factory=dict)
    errors: list[ResolutionError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    graph: BuildpackGraph = field(default_factory=BuildpackGraph)
    skipped_for_stack: int = 0

    def add(self, record: DependencyRecord) -> bool:
        """
        Add a record.

        Returns:
            True if the checksum was new to the set.
        """
        is_new = record.checksum not in self.records
        self.records[record.checksum] = record
        return is_new

    def dependencies(self) -> list[DependencyRecord]:
        """Records in discovery order."""
        return list(self.records.values())

    @property
    def hard_errors(self) -> list[ResolutionError]:
        """Errors for references not marked optional."""
        return [e for e in self.errors if not e.optional]

    def fingerprint(self) -> str:
        return compute_resolution_hash(self.records.keys())

    def __len__(self) -> int:
        return len(self.records)


class DependencyResolver:
    """
    Resolves the full dependency set of a buildpack tree.

    Uses an explicit stack rather than recursion. Order groups are walked in
    document order, depth-first, so output ordering is reproducible.
    """

    def __init__(
        self,
        source: ManifestSourceProtocol,
        *,
        policy: ParsePolicy = ParsePolicy.LENIENT,
        stack: str | None = None,
    ):
        """
        Initialize the resolver.

        Args:
            source: Manifest source used for every reference.
            policy: Parse policy for invalid dependency entries.
            stack: Only keep records applicable to this stack id.
        """
        self.source = source
        self.policy = policy
        self.stack = stack

    def resolve(self, root: BuildpackReference) -> ResolutionSet:
        """
        Resolve every dependency reachable from `root`.

        Args:
            root: Root buildpack reference.

        Returns:
            ResolutionSet with records, per-reference errors, and the graph.

        Raises:
            BindingToolError: If the root reference cannot be fetched or parsed.
        """
        result = ResolutionSet(root=str(root))
        graph = result.graph

        # identity -> graph key, for references seen before or after fetching
        visited: dict[tuple[str, str], str] = {}
        pending: list[tuple[BuildpackReference, str | None]] = [(root, None)]

        while pending:
            reference, parent = pending.pop()
            identity = _normalize(reference.identity)

            if identity in visited:
                if parent is not None:
                    graph.add_edge(parent, visited[identity])
                logger.debug("Skipping already visited %s", reference)
                continue

            try:
                fetched = self.source.fetch(reference)
                descriptor = parse_manifest(
                    fetched.raw, policy=self.policy, source=fetched.location
                )
            except BindingToolError as e:
                if parent is None:
                    raise
                self._record_failure(result, reference, parent, e)
                visited[identity] = node_key(reference.id, reference.version)
                continue

            buildpack_id = descriptor.id or reference.id or str(reference)
            version = descriptor.version or fetched.resolved_version
            resolved = _normalize((buildpack_id, version or ""))

            if resolved in visited:
                # Same buildpack reached through a different reference
                visited[identity] = visited[resolved]
                if parent is not None:
                    graph.add_edge(parent, visited[resolved])
                continue

            node = graph.add_node(buildpack_id, version, fetched.location)
            visited[identity] = node.key
            visited[resolved] = node.key
            if parent is not None:
                graph.add_edge(parent, node.key)

            result.warnings.extend(descriptor.warnings)
            for record in descriptor.dependencies:
                if not record.applies_to(self.stack):
                    result.skipped_for_stack += 1
                    continue
                result.add(record)
                node.dependency_count += 1

            references = descriptor.references()
            logger.info(
                "Resolved %s: %d dependencies, %d order references",
                node.key,
                node.dependency_count,
                len(references),
            )

            # Reversed so the first reference in document order is popped first
            for child in reversed(references):
                pending.append((child, node.key))

        cycles = graph.find_cycles()
        for cycle in cycles:
            logger.info("Order groups form a cycle: %s", " -> ".join(cycle))

        logger.info(
            "Resolution of %s found %d unique dependencies across %d buildpacks",
            root,
            len(result),
            len(graph.nodes),
        )
        return result

    def _record_failure(
        self,
        result: ResolutionSet,
        reference: BuildpackReference,
        parent: str,
        error: BindingToolError,
    ) -> None:
        node = result.graph.add_node(reference.id, reference.version)
        node.error = error.message
        result.graph.add_edge(parent, node.key)

        resolution_error = ResolutionError(
            reference=str(reference),
            parent=parent,
            code=error.code.value,
            message=error.message,
            optional=reference.optional,
        )
        result.errors.append(resolution_error)

        if reference.optional:
            logger.warning("Optional buildpack %s skipped: %s", reference, error.message)
        else:
            logger.error("Failed to resolve %s: %s", reference, error.message)


def _normalize(identity: tuple[str, str]) -> tuple[str, str]:
    buildpack_id, version = identity
    return buildpack_id, version.removeprefix("v")
