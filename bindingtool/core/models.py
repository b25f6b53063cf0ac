"""
Buildpack and dependency models.

A buildpack manifest declares dependency records and order groups that
reference other buildpacks. Dependency records are identified by checksum.
"""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bindingtool.core.fingerprint import SUPPORTED_ALGORITHMS
from bindingtool.errors import ValidationError

# Characters that make a version a constraint rather than an exact release
_CONSTRAINT_CHARS = re.compile(r"[\^~<>=*,| ]|(^|\.)[xX](\.|$)|^$")

_REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class DependencyRecord(BaseModel):
    """
    One externally-fetchable artifact required at build time.

    Two records with the same checksum describe the same artifact even if
    their name or version metadata differ.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Dependency identifier")
    name: str = Field(default="", description="Human-readable name")
    version: str = Field(default="", description="Dependency version")
    uri: str = Field(description="Network or local-file source URI")
    checksum: str = Field(description="Algorithm-tagged digest, e.g. sha256:abc...")
    stacks: tuple[str, ...] = Field(
        default=(), description="Applicable stacks; empty means any"
    )

    @field_validator("checksum")
    @classmethod
    def _normalize_checksum(cls, value: str) -> str:
        algorithm, sep, digest = value.strip().partition(":")
        if not sep:
            algorithm, digest = "sha256", algorithm
        algorithm = algorithm.lower()
        digest = digest.lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"unsupported checksum algorithm '{algorithm}'")
        if not digest or not re.fullmatch(r"[0-9a-f]+", digest):
            raise ValueError("checksum digest must be hex")
        return f"{algorithm}:{digest}"

    @property
    def algorithm(self) -> str:
        """Checksum algorithm name."""
        return self.checksum.split(":", 1)[0]

    @property
    def digest(self) -> str:
        """Hex digest, used as the binding key."""
        return self.checksum.split(":", 1)[1]

    @property
    def is_local(self) -> bool:
        """Whether the source is a local file rather than a network URI."""
        scheme = urlparse(self.uri).scheme
        return scheme in ("", "file") or len(scheme) == 1  # drive letters

    @property
    def local_path(self) -> Path:
        """Filesystem path of a local source."""
        parsed = urlparse(self.uri)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        return Path(self.uri)

    @property
    def filename(self) -> str:
        """
        Last path segment of the source URI.

        Raises:
            ValidationError: If the URI has no path to take a name from.
        """
        path = urlparse(self.uri).path
        name = unquote(path.rstrip("/").rsplit("/", 1)[-1]) if path else ""
        if not name:
            raise ValidationError(
                f"no path segments for {self.uri}",
                context={"checksum": self.checksum},
            )
        return name

    def applies_to(self, stack: str | None) -> bool:
        """Whether this record applies to a stack (None matches everything)."""
        if stack is None or not self.stacks:
            return True
        return stack in self.stacks or "*" in self.stacks

    def label(self) -> str:
        """Short description for logs and reports."""
        name = self.name or self.id or self.filename_or_uri()
        return f"{name} {self.version}".strip()

    def filename_or_uri(self) -> str:
        try:
            return self.filename
        except ValidationError:
            return self.uri


class BuildpackReference(BaseModel):
    """
    Identifies a manifest to fetch.

    Either a remote reference (``owner/repo`` id with an optional version) or
    a local manifest path. Never mutated once constructed.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Buildpack id, owner/repo form")
    version: str | None = Field(default=None, description="Exact version or constraint")
    path: str | None = Field(default=None, description="Local buildpack.toml path")
    optional: bool = Field(default=False, description="Marked optional in its order group")

    @property
    def is_local(self) -> bool:
        return self.path is not None

    @property
    def exact_version(self) -> str | None:
        """The version if it names one release, None for constraints or latest."""
        if self.version is None or _CONSTRAINT_CHARS.search(self.version):
            return None
        return self.version

    @property
    def owner_repo(self) -> tuple[str, str]:
        """
        Split the id into GitHub owner and repository.

        Raises:
            ValidationError: If the id is not in owner/repo form.
        """
        if not _REFERENCE_PATTERN.match(self.id):
            raise ValidationError(
                f"buildpack id '{self.id}' should have format `owner/repo`",
                hint="Example: `paketo-buildpacks/bellsoft-liberica@v10.0.0`",
            )
        owner, repo = self.id.split("/", 1)
        return owner, repo

    @property
    def identity(self) -> tuple[str, str]:
        """Key used to detect repeated references before fetching."""
        if self.path is not None:
            return ("path:" + str(Path(self.path).resolve()), self.version or "")
        return (self.id, self.exact_version or "")

    def __str__(self) -> str:
        if self.path is not None:
            return self.path
        if self.version:
            return f"{self.id}@{self.version}"
        return self.id

    @classmethod
    def parse(cls, value: str) -> BuildpackReference:
        """
        Parse a ``owner/repo`` or ``owner/repo@version`` string.

        Raises:
            ValidationError: If the string is not in that form.
        """
        buildpack_id, sep, version = value.strip().partition("@")
        if not _REFERENCE_PATTERN.match(buildpack_id) or (sep and not version):
            raise ValidationError(
                f"parse of [{value}] failed, should have format "
                "`buildpack/id@version`, `@version` is optional"
            )
        return cls(id=buildpack_id, version=version or None)

    @classmethod
    def local(cls, path: str | Path) -> BuildpackReference:
        """Reference a buildpack.toml on disk."""
        return cls(path=str(path))


class OrderGroup(BaseModel):
    """Buildpacks that can be combined to satisfy one build."""

    model_config = ConfigDict(frozen=True)

    group: tuple[BuildpackReference, ...] = Field(default=())


class ManifestDescriptor(BaseModel):
    """Parsed form of one buildpack manifest."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="[buildpack] id")
    version: str | None = Field(default=None, description="[buildpack] version")
    order: tuple[OrderGroup, ...] = Field(default=(), description="Order groups")
    dependencies: tuple[DependencyRecord, ...] = Field(
        default=(), description="Dependencies declared directly by this manifest"
    )
    warnings: tuple[str, ...] = Field(
        default=(), description="Entries dropped while parsing"
    )

    @property
    def is_leaf(self) -> bool:
        return not self.order

    @property
    def is_meta(self) -> bool:
        return bool(self.order) and not self.dependencies

    def references(self) -> list[BuildpackReference]:
        """All order-group references in document order."""
        return [ref for group in self.order for ref in group.group]
