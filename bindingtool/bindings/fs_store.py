"""
Filesystem binding store.

Lays bindings out the way the Kubernetes service binding specification
mounts them into a container.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from bindingtool.bindings.store import TYPE_KEY, BindingStore, WriteStatus, validate_key
from bindingtool.errors import ConflictError, LocalIOError, ValidationError

logger = logging.getLogger(__name__)

SERVICE_BINDING_ROOT_ENV = "SERVICE_BINDING_ROOT"
DEFAULT_BINDING_ROOT = "bindings"


class FilesystemBindingStore(BindingStore):
    """
    Directory-per-binding store.

    Structure:
        root/
            <name>/
                type             # binding type
                <key>            # one file per entry
    """

    def __init__(self, root: Path):
        """
        Initialize the store.

        Args:
            root: Binding root directory; created on first write.
        """
        self.root = Path(root)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> FilesystemBindingStore:
        """Create a store rooted at SERVICE_BINDING_ROOT, default ./bindings."""
        env = os.environ if environ is None else environ
        return cls(Path(env.get(SERVICE_BINDING_ROOT_ENV) or DEFAULT_BINDING_ROOT))

    def binding_dir(self, name: str) -> Path:
        """Directory for a binding name."""
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValidationError(f"invalid binding name {name!r}")
        return self.root / name

    def put(
        self,
        binding_type: str,
        key: str,
        value: str,
        *,
        name: str | None = None,
        force: bool = False,
    ) -> WriteStatus:
        """Write a text entry."""
        return self._write(binding_type, key, value.encode("utf-8"), name=name, force=force)

    def put_file(
        self,
        binding_type: str,
        key: str,
        source: Path,
        *,
        name: str | None = None,
        force: bool = False,
    ) -> WriteStatus:
        """Copy a file in as an entry."""
        try:
            content = Path(source).read_bytes()
        except OSError as e:
            raise LocalIOError(f"cannot read {source}: {e}", context={"key": key}) from e
        return self._write(binding_type, key, content, name=name, force=force)

    def get(self, name: str, key: str) -> str | None:
        """Read an entry."""
        path = self.binding_dir(name) / key
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def get_binding_type(self, name: str) -> str | None:
        """Read the type of a binding, or None if it does not exist."""
        path = self.binding_dir(name) / TYPE_KEY
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8").strip()

    def get_type(self, binding_type: str) -> list[tuple[str, str]]:
        """Read every entry from all bindings of a type, sorted by key."""
        entries: list[tuple[str, str]] = []
        if not self.root.is_dir():
            return entries

        for binding in sorted(self.root.iterdir()):
            if not binding.is_dir() or self.get_binding_type(binding.name) != binding_type:
                continue
            for entry in binding.iterdir():
                if entry.name == TYPE_KEY or entry.name.startswith(".") or not entry.is_file():
                    continue
                entries.append((entry.name, entry.read_text(encoding="utf-8")))

        return sorted(entries)

    def _write(
        self,
        binding_type: str,
        key: str,
        content: bytes,
        *,
        name: str | None,
        force: bool,
    ) -> WriteStatus:
        validate_key(key)
        if not binding_type:
            raise ValidationError("binding type must not be empty")

        directory = self.binding_dir(name or binding_type)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            self._write_type(directory, binding_type, force=force)

            path = directory / key
            if path.is_file():
                if path.read_bytes() == content:
                    return WriteStatus.UNCHANGED
                if not force:
                    logger.warning("Binding entry %s exists with different content", path)
                    return WriteStatus.CONFLICT
                _atomic_write(path, content)
                logger.debug("Overwrote %s", path)
                return WriteStatus.UPDATED

            _atomic_write(path, content)
            logger.debug("Wrote %s", path)
            return WriteStatus.CREATED
        except OSError as e:
            raise LocalIOError(
                f"cannot write binding entry {key}: {e}",
                context={"binding": str(directory)},
            ) from e

    def _write_type(self, directory: Path, binding_type: str, *, force: bool) -> None:
        path = directory / TYPE_KEY
        if path.is_file():
            existing = path.read_text(encoding="utf-8").strip()
            if existing == binding_type:
                return
            if not force:
                raise ConflictError(
                    f"binding {directory.name} already has type {existing!r}",
                    hint="Use a different binding name or --force to replace it.",
                    context={"binding": str(directory)},
                )
        _atomic_write(path, binding_type.encode("utf-8"))


def _atomic_write(path: Path, content: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
