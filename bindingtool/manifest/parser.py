"""
buildpack.toml parser.

Decodes order groups and `[[metadata.dependencies]]` entries into a
ManifestDescriptor. Pure; performs no I/O.
"""

from __future__ import annotations

import logging
import tomllib
from enum import Enum
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from bindingtool.core.models import (
    BuildpackReference,
    DependencyRecord,
    ManifestDescriptor,
    OrderGroup,
)
from bindingtool.errors import InvalidManifestError

logger = logging.getLogger(__name__)


class ParsePolicy(str, Enum):
    """How to treat individual dependency entries that cannot be used."""

    LENIENT = "lenient"  # drop the entry and record a warning
    STRICT = "strict"  # reject the whole manifest


class _InvalidEntry(Exception):
    pass


def parse_manifest(
    raw: bytes | str,
    *,
    policy: ParsePolicy = ParsePolicy.LENIENT,
    source: str = "buildpack.toml",
) -> ManifestDescriptor:
    """
    Parse a buildpack manifest.

    Args:
        raw: Manifest bytes or text.
        policy: Handling of invalid dependency entries.
        source: Name used in warnings and errors.

    Returns:
        Parsed ManifestDescriptor.

    Raises:
        InvalidManifestError: If the document is not valid TOML, its
            structure is wrong, or (STRICT) a dependency entry is invalid.
    """
    document = _decode(raw, source)

    buildpack = document.get("buildpack", {})
    if not isinstance(buildpack, dict):
        raise InvalidManifestError(
            "buildpack should be a table", context={"source": source}
        )

    order = _parse_order(document.get("order", []), source)

    warnings: list[str] = []
    dependencies: list[DependencyRecord] = []
    for index, entry in enumerate(_dependency_entries(document, source)):
        try:
            dependencies.append(_parse_dependency(entry))
        except _InvalidEntry as e:
            message = f"{source}: dependency #{index + 1} skipped: {e}"
            if policy == ParsePolicy.STRICT:
                raise InvalidManifestError(
                    f"invalid dependency #{index + 1}: {e}",
                    context={"source": source},
                ) from None
            logger.warning("%s", message)
            warnings.append(message)

    return ManifestDescriptor(
        id=_optional_str(buildpack.get("id")),
        version=_optional_str(buildpack.get("version")),
        order=tuple(order),
        dependencies=tuple(dependencies),
        warnings=tuple(warnings),
    )


def _decode(raw: bytes | str, source: str) -> dict[str, Any]:
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        return tomllib.loads(text)
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise InvalidManifestError(
            f"buildpack.toml format is invalid: {e}", context={"source": source}
        ) from e


def _parse_order(order: Any, source: str) -> list[OrderGroup]:
    if not isinstance(order, list):
        raise InvalidManifestError("order should be an array", context={"source": source})

    groups = []
    for entry in order:
        if not isinstance(entry, dict):
            raise InvalidManifestError(
                "order entry should be a table", context={"source": source}
            )
        members = entry.get("group", [])
        if not isinstance(members, list):
            raise InvalidManifestError(
                "order group should be an array", context={"source": source}
            )

        references = []
        for member in members:
            if not isinstance(member, dict) or not isinstance(member.get("id"), str):
                raise InvalidManifestError(
                    "order group member requires a string id",
                    context={"source": source},
                )
            references.append(
                BuildpackReference(
                    id=member["id"],
                    version=_optional_str(member.get("version")),
                    optional=bool(member.get("optional", False)),
                )
            )
        groups.append(OrderGroup(group=tuple(references)))

    return groups


def _dependency_entries(document: dict[str, Any], source: str) -> list[Any]:
    metadata = document.get("metadata", {})
    if not isinstance(metadata, dict):
        raise InvalidManifestError(
            "metadata should be a table", context={"source": source}
        )

    entries = metadata.get("dependencies", [])
    if not isinstance(entries, list):
        raise InvalidManifestError(
            "dependencies should be an array", context={"source": source}
        )
    return entries


def _parse_dependency(entry: Any) -> DependencyRecord:
    if not isinstance(entry, dict):
        raise _InvalidEntry("dependency should be a table")

    uri = entry.get("uri")
    if uri is None:
        raise _InvalidEntry("uri field is required")
    if not isinstance(uri, str) or not uri.strip():
        raise _InvalidEntry("uri should be a non-empty string")

    sha256 = entry.get("sha256")
    checksum = entry.get("checksum")
    if (sha256 is None) == (checksum is None):
        raise _InvalidEntry("exactly one of sha256 or checksum field is required")

    if sha256 is not None:
        if not isinstance(sha256, str):
            raise _InvalidEntry("sha256 field should be a string")
        tagged = f"sha256:{sha256}"
    else:
        if not isinstance(checksum, str):
            raise _InvalidEntry("checksum field should be a string")
        if ":" not in checksum:
            raise _InvalidEntry("checksum field should be `algorithm:hex`")
        tagged = checksum

    stacks = entry.get("stacks", [])
    if not isinstance(stacks, list) or not all(isinstance(s, str) for s in stacks):
        raise _InvalidEntry("stacks should be an array of strings")

    try:
        return DependencyRecord(
            id=_optional_str(entry.get("id")) or "",
            name=_optional_str(entry.get("name")) or "",
            version=_optional_str(entry.get("version")) or "",
            uri=uri.strip(),
            checksum=tagged,
            stacks=tuple(stacks),
        )
    except PydanticValidationError as e:
        reason = "; ".join(err["msg"] for err in e.errors())
        raise _InvalidEntry(reason) from None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
