"""Manifest retrieval and parsing."""

from bindingtool.manifest.parser import ParsePolicy, parse_manifest
from bindingtool.manifest.source import FetchedManifest, ManifestSource

__all__ = [
    "FetchedManifest",
    "ManifestSource",
    "ParsePolicy",
    "parse_manifest",
]
