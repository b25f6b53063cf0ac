"""
Digests for artifacts and fingerprints for resolution results.

Artifact digests use the algorithm named in a dependency's checksum.
Resolution fingerprints use xxhash for cheap run-to-run comparison.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from pathlib import Path

import xxhash

from bindingtool.core.json_canonical import canonical_json_bytes

SUPPORTED_ALGORITHMS = ("sha256", "sha384", "sha512")

CHUNK_SIZE = 65536


def new_hasher(algorithm: str) -> "hashlib._Hash":
    """
    Create a hasher for a checksum algorithm.

    Args:
        algorithm: Algorithm name, e.g. "sha256".

    Returns:
        A fresh hashlib hasher.

    Raises:
        ValueError: If the algorithm is not supported.
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(f"unsupported checksum algorithm '{algorithm}'")
    return hashlib.new(algorithm)


def compute_file_digest(path: Path, algorithm: str = "sha256") -> str:
    """
    Compute the hex digest of a file's contents.

    Args:
        path: Path to file.
        algorithm: Checksum algorithm.

    Returns:
        Lowercase hex digest.
    """
    hasher = new_hasher(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def digests_match(expected: str, actual: str) -> bool:
    """Compare two hex digests case-insensitively."""
    return expected.strip().lower() == actual.strip().lower()


def compute_resolution_hash(checksums: Iterable[str]) -> str:
    """
    Compute a fingerprint of a resolution set.

    The fingerprint depends only on which artifacts were resolved, not on
    traversal order, so two runs over an unchanged tree compare equal.

    Args:
        checksums: Algorithm-tagged checksums of the resolved records.

    Returns:
        Hex-encoded hash string.
    """
    content = sorted({c.lower() for c in checksums})
    return xxhash.xxh64(canonical_json_bytes(content)).hexdigest()
