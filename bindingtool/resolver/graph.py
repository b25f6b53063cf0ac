"""
Buildpack graph.

Records which buildpacks were visited during resolution and the
order-group edges between them. Meta-buildpacks may reference each other
in cycles, so the graph is a general directed graph rather than a tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import xxhash

from bindingtool.core.json_canonical import canonical_json_bytes


@dataclass
class BuildpackNode:
    """A buildpack reached during resolution."""

    key: str
    buildpack_id: str
    version: str
    location: str = ""
    dependency_count: int = 0
    references: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "id": self.buildpack_id,
            "version": self.version,
            "location": self.location,
            "dependency_count": self.dependency_count,
            "references": list(self.references),
            "error": self.error,
        }


def node_key(buildpack_id: str, version: str | None) -> str:
    """Graph key for a buildpack identity."""
    return f"{buildpack_id}@{version}" if version else buildpack_id


@dataclass
class BuildpackGraph:
    """
    Directed graph of buildpacks connected by order-group references.

    Nodes are kept in the order they were first added, which matches the
    depth-first document-order walk of the resolver.
    """

    nodes: dict[str, BuildpackNode] = field(default_factory=dict)
    root: str | None = None

    def add_node(
        self,
        buildpack_id: str,
        version: str | None,
        location: str = "",
    ) -> BuildpackNode:
        """
        Add a node, or return the existing node with the same identity.

        Args:
            buildpack_id: Buildpack id or manifest path.
            version: Resolved version, if known.
            location: Where the manifest was read from.

        Returns:
            The node for this identity.
        """
        key = node_key(buildpack_id, version)
        node = self.nodes.get(key)
        if node is None:
            node = BuildpackNode(
                key=key,
                buildpack_id=buildpack_id,
                version=version or "",
                location=location,
            )
            self.nodes[key] = node
            if self.root is None:
                self.root = key
        return node

    def add_edge(self, source: str, target: str) -> None:
        """Record that `source` references `target` in an order group."""
        node = self.nodes[source]
        if target not in node.references:
            node.references.append(target)

    def find_cycles(self) -> list[list[str]]:
        """
        Find back edges that close a cycle.

        Returns:
            List of cycles, each as the path of keys from the repeated node
            back to itself.
        """
        cycles: list[list[str]] = []
        state: dict[str, int] = {}  # 1 = on stack, 2 = done

        for start in self.nodes:
            if start in state:
                continue
            stack: list[tuple[str, int]] = [(start, 0)]
            path: list[str] = []
            while stack:
                key, index = stack.pop()
                if index == 0:
                    state[key] = 1
                    path.append(key)
                references = self.nodes[key].references if key in self.nodes else []
                if index < len(references):
                    stack.append((key, index + 1))
                    target = references[index]
                    if state.get(target) == 1:
                        cycles.append(path[path.index(target):] + [target])
                    elif target not in state and target in self.nodes:
                        stack.append((target, 0))
                else:
                    state[key] = 2
                    path.pop()

        return cycles

    def fingerprint(self) -> str:
        """Compute graph fingerprint."""
        content = [
            {"key": n.key, "references": sorted(n.references)}
            for n in sorted(self.nodes.values(), key=lambda x: x.key)
        ]
        return xxhash.xxh64(canonical_json_bytes(content)).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "root": self.root,
            "nodes": [n.to_dict() for n in self.nodes.values()],
        }
