"""Core utilities: models, canonical JSON, digests and fingerprints."""

from bindingtool.core.fingerprint import (
    SUPPORTED_ALGORITHMS,
    compute_file_digest,
    compute_resolution_hash,
    digests_match,
)
from bindingtool.core.json_canonical import canonical_json_dumps, canonical_json_loads
from bindingtool.core.models import (
    BuildpackReference,
    DependencyRecord,
    ManifestDescriptor,
    OrderGroup,
)

__all__ = [
    "SUPPORTED_ALGORITHMS",
    "BuildpackReference",
    "DependencyRecord",
    "ManifestDescriptor",
    "OrderGroup",
    "canonical_json_dumps",
    "canonical_json_loads",
    "compute_file_digest",
    "compute_resolution_hash",
    "digests_match",
]
