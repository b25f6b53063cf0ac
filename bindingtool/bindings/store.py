"""
Binding store interface.

A binding is a named directory holding a `type` file and one file per
entry. Stores write entries and report how each write changed the binding.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Protocol

from bindingtool.errors import ValidationError

TYPE_KEY = "type"


class WriteStatus(str, Enum):
    """How a single entry write changed the binding."""

    CREATED = "created"
    UPDATED = "updated"  # existing entry overwritten under force
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"  # existing entry differs and force was not set


def validate_key(key: str) -> str:
    """
    Check that a key can be used as an entry file name.

    Raises:
        ValidationError: If the key is empty, reserved, or contains a path
            separator.
    """
    if not key or key.strip() != key:
        raise ValidationError(f"invalid binding key {key!r}: must be a non-empty name")
    if key == TYPE_KEY:
        raise ValidationError(f"invalid binding key {key!r}: reserved for the binding type")
    if "/" in key or "\\" in key or key in (".", ".."):
        raise ValidationError(f"invalid binding key {key!r}: must not contain a path")
    return key


class BindingStore(ABC):
    """
    Abstract binding store.

    Implementations must make every entry write atomic: a reader sees the
    previous value or the new one, never a partial file.
    """

    @abstractmethod
    def put(
        self,
        binding_type: str,
        key: str,
        value: str,
        *,
        name: str | None = None,
        force: bool = False,
    ) -> WriteStatus:
        """
        Write a text entry.

        Args:
            binding_type: Binding type, written to the `type` file.
            key: Entry name.
            value: Entry content.
            name: Binding name; defaults to the type.
            force: Overwrite an existing entry with different content.

        Returns:
            WriteStatus describing the change.
        """
        ...

    @abstractmethod
    def put_file(
        self,
        binding_type: str,
        key: str,
        source: Path,
        *,
        name: str | None = None,
        force: bool = False,
    ) -> WriteStatus:
        """
        Copy a file in as an entry.

        Same semantics as `put`, with the entry content read from `source`.
        """
        ...

    @abstractmethod
    def get(self, name: str, key: str) -> str | None:
        """
        Read an entry.

        Returns:
            Entry content, or None if the binding or entry does not exist.
        """
        ...

    @abstractmethod
    def get_type(self, binding_type: str) -> list[tuple[str, str]]:
        """
        Read every entry from all bindings of a type.

        Returns:
            (key, value) pairs sorted by key.
        """
        ...


class BindingStoreProtocol(Protocol):
    """Protocol for binding store implementations."""

    def put(
        self,
        binding_type: str,
        key: str,
        value: str,
        *,
        name: str | None = None,
        force: bool = False,
    ) -> WriteStatus:
        ...

    def get(self, name: str, key: str) -> str | None:
        ...
