"""Service binding storage and dependency-mapping materialization."""

from bindingtool.bindings.fs_store import FilesystemBindingStore
from bindingtool.bindings.materialize import (
    DEPENDENCY_MAPPING_TYPE,
    BindingMaterializer,
    EntryResult,
    MaterializationResult,
)
from bindingtool.bindings.store import BindingStore, WriteStatus

__all__ = [
    "DEPENDENCY_MAPPING_TYPE",
    "BindingMaterializer",
    "BindingStore",
    "EntryResult",
    "FilesystemBindingStore",
    "MaterializationResult",
    "WriteStatus",
]
