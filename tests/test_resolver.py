"""Tests for dependency resolution."""

import pytest

from conftest import manifest_toml
from bindingtool.core.models import BuildpackReference
from bindingtool.errors import NotFoundError
from bindingtool.manifest.source import FetchedManifest
from bindingtool.resolver import BuildpackGraph, DependencyResolver

SHA_1 = "1" * 64
SHA_2 = "2" * 64
SHA_3 = "3" * 64


class FakeSource:
    """In-memory manifest source keyed by buildpack id."""

    def __init__(self, manifests):
        self.manifests = manifests
        self.calls = []

    def fetch(self, reference):
        self.calls.append(str(reference))
        raw = self.manifests.get(reference.id)
        if raw is None:
            raise NotFoundError(f"no buildpack.toml for {reference}")
        return FetchedManifest(
            raw=raw.encode("utf-8"),
            resolved_version=reference.version or "v1.0.0",
            location=f"fake://{reference.id}",
        )


def meta(buildpack_id, *groups):
    return manifest_toml(buildpack_id, "1.0.0", groups=groups)


def leaf(buildpack_id, *deps):
    return manifest_toml(
        buildpack_id, "1.0.0", dependencies=[(f"https://e.com/{sha[:4]}.tgz", sha) for sha in deps]
    )


class TestResolve:
    """Tests for collecting dependency records."""

    def test_meta_buildpack_deduplicates_by_checksum(self):
        """Shared checksums appear once, in discovery order."""
        source = FakeSource(
            {
                "o/a": meta("o/a", [("o/b", None, False), ("o/c", None, False)]),
                "o/b": leaf("o/b", SHA_1, SHA_2),
                "o/c": leaf("o/c", SHA_2, SHA_3),
            }
        )
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/a"))

        assert [r.digest for r in result.dependencies()] == [SHA_1, SHA_2, SHA_3]
        assert len(result) == 3
        assert result.errors == []

    def test_leaf_buildpack(self):
        source = FakeSource({"o/b": leaf("o/b", SHA_1)})
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/b@1.0.0"))
        assert [r.checksum for r in result.dependencies()] == [f"sha256:{SHA_1}"]

    def test_nested_groups_in_document_order(self):
        source = FakeSource(
            {
                "o/root": meta("o/root", [("o/mid", None, False)], [("o/c", None, False)]),
                "o/mid": meta("o/mid", [("o/b", None, False)]),
                "o/b": leaf("o/b", SHA_1),
                "o/c": leaf("o/c", SHA_2),
            }
        )
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/root"))
        assert [r.digest for r in result.dependencies()] == [SHA_1, SHA_2]
        assert source.calls == ["o/root", "o/mid", "o/b", "o/c"]

    def test_repeated_reference_fetched_once(self):
        source = FakeSource(
            {
                "o/a": meta("o/a", [("o/b", "1.0.0", False)], [("o/b", "v1.0.0", False)]),
                "o/b": leaf("o/b", SHA_1),
            }
        )
        DependencyResolver(source).resolve(BuildpackReference.parse("o/a"))
        assert source.calls.count("o/b@1.0.0") + source.calls.count("o/b@v1.0.0") == 1

    def test_cycle_terminates(self):
        """Buildpacks referencing each other are each visited once."""
        source = FakeSource(
            {
                "o/a": manifest_toml("o/a", "1.0.0", [("https://e.com/a.tgz", SHA_1)], [[("o/b", "1.0.0", False)]]),
                "o/b": manifest_toml("o/b", "1.0.0", [("https://e.com/b.tgz", SHA_2)], [[("o/a", "1.0.0", False)]]),
            }
        )
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/a@1.0.0"))

        assert [r.digest for r in result.dependencies()] == [SHA_1, SHA_2]
        assert source.calls == ["o/a@1.0.0", "o/b@1.0.0"]
        assert result.graph.find_cycles() == [["o/a@1.0.0", "o/b@1.0.0", "o/a@1.0.0"]]

    def test_stack_filter(self):
        toml = f"""
[[metadata.dependencies]]
uri = "https://e.com/bionic.tgz"
sha256 = "{SHA_1}"
stacks = ["io.buildpacks.stacks.bionic"]

[[metadata.dependencies]]
uri = "https://e.com/any.tgz"
sha256 = "{SHA_2}"
"""
        source = FakeSource({"o/b": toml})
        result = DependencyResolver(source, stack="io.buildpacks.stacks.jammy").resolve(
            BuildpackReference.parse("o/b")
        )
        assert [r.digest for r in result.dependencies()] == [SHA_2]
        assert result.skipped_for_stack == 1

    def test_deterministic(self):
        manifests = {
            "o/a": meta("o/a", [("o/b", None, False), ("o/c", None, False)]),
            "o/b": leaf("o/b", SHA_3, SHA_1),
            "o/c": leaf("o/c", SHA_2),
        }
        first = DependencyResolver(FakeSource(manifests)).resolve(BuildpackReference.parse("o/a"))
        second = DependencyResolver(FakeSource(manifests)).resolve(BuildpackReference.parse("o/a"))

        assert first.dependencies() == second.dependencies()
        assert first.fingerprint() == second.fingerprint()
        assert first.graph.fingerprint() == second.graph.fingerprint()


class TestResolutionFailures:
    """Tests for per-reference failures."""

    def test_root_failure_raises(self):
        with pytest.raises(NotFoundError):
            DependencyResolver(FakeSource({})).resolve(BuildpackReference.parse("o/missing"))

    def test_child_failure_is_partial(self):
        """A missing child is recorded; siblings still resolve."""
        source = FakeSource(
            {
                "o/a": meta("o/a", [("o/missing", "2.0.0", False), ("o/c", None, False)]),
                "o/c": leaf("o/c", SHA_3),
            }
        )
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/a"))

        assert [r.digest for r in result.dependencies()] == [SHA_3]
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.reference == "o/missing@2.0.0"
        assert error.code == "not_found"
        assert error.parent == "o/a@1.0.0"
        assert result.hard_errors == [error]
        assert result.graph.nodes["o/missing@2.0.0"].error is not None

    def test_optional_failure_is_soft(self):
        source = FakeSource({"o/a": meta("o/a", [("o/missing", None, True)])})
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/a"))

        assert result.errors[0].optional
        assert result.hard_errors == []

    def test_invalid_child_manifest(self):
        source = FakeSource(
            {
                "o/a": meta("o/a", [("o/bad", None, False)]),
                "o/bad": "this is not toml = = =",
            }
        )
        result = DependencyResolver(source).resolve(BuildpackReference.parse("o/a"))
        assert result.errors[0].code == "invalid_manifest"


class TestBuildpackGraph:
    """Tests for the buildpack graph."""

    def test_add_node_idempotent(self):
        graph = BuildpackGraph()
        first = graph.add_node("o/a", "1.0.0")
        second = graph.add_node("o/a", "1.0.0")
        assert first is second
        assert graph.root == "o/a@1.0.0"

    def test_no_cycles_in_tree(self):
        graph = BuildpackGraph()
        for name in ("a", "b", "c"):
            graph.add_node(name, None)
        graph.add_edge("a", "b")
        graph.add_edge("a", "c")
        graph.add_edge("b", "c")
        assert graph.find_cycles() == []
