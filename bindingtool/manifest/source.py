"""
Manifest retrieval.

Reads buildpack.toml from disk or from a buildpack's GitHub repository,
resolving the latest release when no version is given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from bindingtool.config import FetchConfig
from bindingtool.core.json_canonical import canonical_json_loads
from bindingtool.core.models import BuildpackReference
from bindingtool.errors import (
    BindingToolError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    wrap_error,
)
from bindingtool.fetch.http import Deadline

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"
MANIFEST_FILENAME = "buildpack.toml"


@dataclass(frozen=True)
class FetchedManifest:
    """Raw manifest bytes and the version they were fetched at."""

    raw: bytes
    resolved_version: str | None
    location: str


class ManifestSourceProtocol(Protocol):
    """Anything that can produce a manifest for a reference."""

    def fetch(self, reference: BuildpackReference) -> FetchedManifest:
        ...


class ManifestSource:
    """
    Fetches manifests for local and remote buildpack references.

    Remote ids are GitHub ``owner/repo`` names. A reference without an exact
    version resolves to the repository's latest release tag.
    """

    def __init__(
        self,
        client: httpx.Client,
        config: FetchConfig | None = None,
        *,
        api_url: str = GITHUB_API_URL,
        raw_url: str = GITHUB_RAW_URL,
    ):
        """
        Initialize the manifest source.

        Args:
            client: Shared HTTP client.
            config: Fetch configuration (token, request timeout).
            api_url: GitHub API base URL.
            raw_url: Base URL serving raw repository files.
        """
        self.client = client
        self.config = config or FetchConfig()
        self.api_url = api_url.rstrip("/")
        self.raw_url = raw_url.rstrip("/")

    def fetch(self, reference: BuildpackReference) -> FetchedManifest:
        """
        Fetch the manifest for a reference.

        Args:
            reference: Local or remote buildpack reference.

        Returns:
            FetchedManifest with raw bytes and resolved version.

        Raises:
            NotFoundError: No matching file, release, or tag.
            NetworkError: Transport, DNS, or TLS failure.
            FetchTimeoutError: Timeout while fetching.
            LocalIOError: Local file could not be read.
        """
        if reference.is_local:
            return self._fetch_local(reference)
        return self._fetch_remote(reference)

    def _fetch_local(self, reference: BuildpackReference) -> FetchedManifest:
        path = Path(reference.path)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(
                f"manifest not found: {path}", context={"path": str(path)}
            ) from None
        except OSError as e:
            raise LocalIOError(
                f"cannot read manifest {path}: {e}", context={"path": str(path)}
            ) from e

        logger.debug("Read manifest %s (%d bytes)", path, len(raw))
        return FetchedManifest(
            raw=raw, resolved_version=reference.version, location=str(path)
        )

    def _fetch_remote(self, reference: BuildpackReference) -> FetchedManifest:
        owner, repo = reference.owner_repo
        version = reference.exact_version

        if version is None:
            if reference.version is not None:
                logger.info(
                    "Version constraint '%s' for %s resolved to latest release",
                    reference.version,
                    reference.id,
                )
            candidates = [self.latest_release(owner, repo)]
        else:
            candidates = _tag_candidates(version)

        for tag in candidates:
            url = f"{self.raw_url}/{owner}/{repo}/{tag}/{MANIFEST_FILENAME}"
            raw = self._get(url, not_found_ok=True)
            if raw is not None:
                logger.debug("Fetched manifest %s", url)
                return FetchedManifest(raw=raw, resolved_version=tag, location=url)

        raise NotFoundError(
            f"no {MANIFEST_FILENAME} for {reference}",
            hint="Check the buildpack id and that the version is a released tag.",
            context={"tags": ", ".join(candidates)},
        )

    def latest_release(self, owner: str, repo: str) -> str:
        """
        Resolve the tag of the latest release.

        Raises:
            NotFoundError: If the repository has no releases.
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/releases/latest"
        headers = {"Accept": "application/vnd.github+json"}
        if self.config.github_token:
            headers["Authorization"] = f"Bearer {self.config.github_token}"

        body = self._get(url, headers=headers, not_found_ok=True)
        if body is None:
            raise NotFoundError(
                f"no releases found for {owner}/{repo}", context={"url": url}
            )

        try:
            tag = canonical_json_loads(body).get("tag_name")
        except (ValueError, AttributeError):
            tag = None
        if not isinstance(tag, str) or not tag:
            raise NetworkError(
                f"unexpected release response for {owner}/{repo}", context={"url": url}
            )

        logger.info("Latest release of %s/%s is %s", owner, repo, tag)
        return tag

    def _get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        not_found_ok: bool = False,
    ) -> bytes | None:
        deadline = Deadline(self.config.request_timeout, url=url)
        try:
            response = self.client.get(url, headers=headers)
            deadline.check()
        except BindingToolError:
            raise
        except httpx.HTTPError as e:
            raise wrap_error(e, f"failed on url {url}", url=url) from e

        if response.status_code == 404 and not_found_ok:
            return None
        if response.is_error:
            raise NetworkError(
                f"failed on url {url}: HTTP {response.status_code}",
                context={"url": url, "status": response.status_code},
            )
        return response.content


def _tag_candidates(version: str) -> list[str]:
    # Buildpack releases are tagged v1.2.3; accept bare versions too
    if version.startswith("v"):
        return [version]
    return [f"v{version}", version]
