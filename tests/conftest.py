"""Shared fixtures and helpers for binding-tool tests."""

import hashlib

import httpx
import pytest

from bindingtool.config import FetchConfig
from bindingtool.fetch.http import create_client


def sha256_hex(data: bytes) -> str:
    """Hex sha256 of some bytes."""
    return hashlib.sha256(data).hexdigest()


def manifest_toml(
    buildpack_id=None,
    version=None,
    dependencies=(),
    groups=(),
) -> str:
    """
    Render a buildpack.toml.

    Args:
        buildpack_id: [buildpack] id, omitted when None.
        version: [buildpack] version.
        dependencies: (uri, sha256) pairs.
        groups: Order groups, each a list of (id, version, optional) tuples.
    """
    lines = []
    if buildpack_id is not None:
        lines += ["[buildpack]", f'id = "{buildpack_id}"']
        if version is not None:
            lines.append(f'version = "{version}"')
        lines.append("")

    for uri, sha in dependencies:
        lines += [
            "[[metadata.dependencies]]",
            f'id = "dep-{sha[:6]}"',
            f'uri = "{uri}"',
            f'sha256 = "{sha}"',
            "",
        ]

    for group in groups:
        lines.append("[[order]]")
        for member_id, member_version, optional in group:
            lines.append("[[order.group]]")
            lines.append(f'id = "{member_id}"')
            if member_version is not None:
                lines.append(f'version = "{member_version}"')
            if optional:
                lines.append("optional = true")
        lines.append("")

    return "\n".join(lines)


@pytest.fixture
def mock_client():
    """Factory for an httpx client backed by a handler function."""
    clients = []

    def factory(handler, config=None):
        client = create_client(config or FetchConfig(), transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep tests independent of the caller's environment."""
    for name in (
        "BT_MAX_SIMULTANEOUS",
        "BT_CONN_TIMEOUT",
        "BT_READ_TIMEOUT",
        "BT_REQ_TIMEOUT",
        "BT_LOG_LEVEL",
        "PROXY",
        "SSL_CERT_FILE",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SERVICE_BINDING_ROOT", str(tmp_path / "bindings"))
