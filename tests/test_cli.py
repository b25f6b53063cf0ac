"""Tests for the bt command line."""

import json

import pytest
from click.testing import CliRunner

from conftest import manifest_toml, sha256_hex
from bindingtool import __version__
from bindingtool.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def binding_root(tmp_path):
    return tmp_path / "bindings"


@pytest.fixture
def local_buildpack(tmp_path):
    """A buildpack.toml whose dependencies are local files."""
    artifacts = tmp_path / "artifacts"
    artifacts.mkdir()
    deps = []
    for name in ("jdk.tgz", "jre.tgz"):
        path = artifacts / name
        path.write_bytes(f"contents of {name}".encode())
        deps.append((path.as_uri(), sha256_hex(path.read_bytes())))

    manifest = tmp_path / "buildpack.toml"
    manifest.write_text(manifest_toml("paketo-buildpacks/bellsoft-liberica", "9.3.2", deps))
    return manifest, deps


class TestMain:
    """Tests for the command group."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_unknown_log_level(self, runner, monkeypatch):
        monkeypatch.setenv("BT_LOG_LEVEL", "chatty")
        result = runner.invoke(main, ["add", "-t", "x", "-p", "k=v"])
        assert result.exit_code == 2
        assert "BT_LOG_LEVEL" in result.output


class TestDependencyMapping:
    """Tests for `bt dependency-mapping`."""

    def test_local_manifest(self, runner, binding_root, local_buildpack):
        manifest, deps = local_buildpack

        result = runner.invoke(main, ["dependency-mapping", "-t", str(manifest)])

        assert result.exit_code == 0, result.output
        assert "Dependencies: 2" in result.output
        binding = binding_root / "dependency-mapping"
        assert (binding / "type").read_text() == "dependency-mapping"
        for uri, sha in deps:
            assert (binding / sha).read_text() == uri

    def test_rerun_is_idempotent(self, runner, local_buildpack):
        manifest, _ = local_buildpack
        runner.invoke(main, ["dependency-mapping", "-t", str(manifest)])

        result = runner.invoke(main, ["dependency-mapping", "-t", str(manifest)])

        assert result.exit_code == 0
        assert "0 created, 0 updated, 2 unchanged" in result.output

    def test_conflict_then_force(self, runner, binding_root, local_buildpack):
        manifest, deps = local_buildpack
        binding = binding_root / "deps"
        binding.mkdir(parents=True)
        (binding / "type").write_text("dependency-mapping")
        (binding / deps[0][1]).write_text("file:///somewhere/else.tgz")

        conflicted = runner.invoke(main, ["dependency-mapping", "-t", str(manifest), "-n", "deps"])
        forced = runner.invoke(main, ["dependency-mapping", "-t", str(manifest), "-n", "deps", "-f"])

        assert conflicted.exit_code == 1
        assert "[conflict]" in conflicted.output
        assert forced.exit_code == 0
        assert (binding / deps[0][1]).read_text() == deps[0][0]

    def test_checksum_mismatch_fails(self, runner, tmp_path, binding_root):
        artifact = tmp_path / "a.tgz"
        artifact.write_bytes(b"real")
        manifest = tmp_path / "buildpack.toml"
        manifest.write_text(manifest_toml("o/r", "1.0.0", [(artifact.as_uri(), "f" * 64)]))

        result = runner.invoke(main, ["dependency-mapping", "-t", str(manifest)])

        assert result.exit_code == 1
        assert "checksum_mismatch" in result.output
        assert not (binding_root / "dependency-mapping" / ("f" * 64)).exists()

    def test_json_report(self, runner, local_buildpack):
        manifest, _ = local_buildpack

        result = runner.invoke(main, ["dependency-mapping", "-t", str(manifest), "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["dependencies"] == 2
        assert payload["writes"]["created"] == 2
        assert payload["failures"] == []

    def test_missing_manifest(self, runner, tmp_path):
        result = runner.invoke(main, ["dependency-mapping", "-t", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1
        assert "manifest not found" in result.output

    def test_invalid_buildpack_reference(self, runner):
        result = runner.invoke(main, ["dependency-mapping", "-b", "not-a-reference"])
        assert result.exit_code == 1
        assert "should have format `buildpack/id@version`" in result.output

    def test_requires_exactly_one_source(self, runner, local_buildpack):
        manifest, _ = local_buildpack
        neither = runner.invoke(main, ["dependency-mapping"])
        both = runner.invoke(main, ["dependency-mapping", "-t", str(manifest), "-b", "o/r"])
        assert neither.exit_code == 2
        assert both.exit_code == 2

    def test_strict_rejects_invalid_entries(self, runner, tmp_path):
        manifest = tmp_path / "buildpack.toml"
        manifest.write_text('[[metadata.dependencies]]\nuri = "https://e.com/a.tgz"\n')

        lenient = runner.invoke(main, ["dependency-mapping", "-t", str(manifest)])
        strict = runner.invoke(main, ["dependency-mapping", "-t", str(manifest), "--strict"])

        assert lenient.exit_code == 0
        assert "dependency #1 skipped" in lenient.output
        assert strict.exit_code == 1
        assert "invalid dependency #1" in strict.output


class TestAdd:
    """Tests for `bt add`."""

    def test_add_values_and_files(self, runner, tmp_path, binding_root):
        settings = tmp_path / "settings.xml"
        settings.write_text("<settings/>")

        result = runner.invoke(
            main, ["add", "-t", "maven", "-p", "url=https://repo", "-p", f"settings.xml=@{settings}"]
        )

        assert result.exit_code == 0, result.output
        assert (binding_root / "maven" / "type").read_text() == "maven"
        assert (binding_root / "maven" / "url").read_text() == "https://repo"
        assert (binding_root / "maven" / "settings.xml").read_text() == "<settings/>"

    def test_bad_parameter(self, runner):
        result = runner.invoke(main, ["add", "-t", "maven", "-p", "novalue"])
        assert result.exit_code == 2
        assert "should have format key=value" in result.output

    def test_conflict_requires_force(self, runner, binding_root):
        runner.invoke(main, ["add", "-t", "maven", "-p", "url=a"])

        conflicted = runner.invoke(main, ["add", "-t", "maven", "-p", "url=b"])
        forced = runner.invoke(main, ["add", "-t", "maven", "-p", "url=b", "-f"])

        assert conflicted.exit_code == 1
        assert "use --force" in conflicted.output
        assert forced.exit_code == 0
        assert (binding_root / "maven" / "url").read_text() == "b"

    def test_missing_file_parameter(self, runner, tmp_path):
        result = runner.invoke(main, ["add", "-t", "maven", "-p", f"f=@{tmp_path / 'missing'}"])
        assert result.exit_code == 1
        assert "cannot read" in result.output


class TestCaCerts:
    """Tests for `bt ca-certs`."""

    def test_certificates_keyed_by_basename(self, runner, tmp_path, binding_root):
        certs = []
        for name in ("corp.pem", "proxy.crt"):
            cert = tmp_path / name
            cert.write_text(f"cert {name}")
            certs += ["-c", str(cert)]

        result = runner.invoke(main, ["ca-certs", *certs])

        assert result.exit_code == 0, result.output
        binding = binding_root / "ca-certificates"
        assert (binding / "type").read_text() == "ca-certificates"
        assert (binding / "corp.pem").read_text() == "cert corp.pem"
        assert (binding / "proxy.crt").read_text() == "cert proxy.crt"

    def test_custom_name(self, runner, tmp_path, binding_root):
        cert = tmp_path / "corp.pem"
        cert.write_text("cert")

        result = runner.invoke(main, ["ca-certs", "-c", str(cert), "-n", "my-certs"])

        assert result.exit_code == 0
        assert (binding_root / "my-certs" / "type").read_text() == "ca-certificates"
