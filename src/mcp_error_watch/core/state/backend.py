"""Storage backends for the persisted registries.

Registries are small JSON documents addressed by relative names such as
``seen_errors.json`` or ``pending/svc-a.json``. Every cycle loads a whole
document, mutates it in memory and writes it back.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class StateWriteError(OSError):
    """A registry could not be persisted."""


class StateBackend(Protocol):
    """Whole-document storage used by the registries."""

    async def read(self, name: str) -> str | None:
        """Return document text, or None when it does not exist or cannot be read."""
        ...

    async def write(self, name: str, text: str) -> None:
        """Replace a document; raise StateWriteError on failure."""
        ...

    async def delete(self, name: str) -> bool:
        """Delete a document; return False when it did not exist."""
        ...

    async def list(self, prefix: str) -> list[str]:
        """Return the names of documents directly under a prefix directory."""
        ...

    async def modified_at(self, name: str) -> datetime | None:
        """Return the last write time of a document, in UTC."""
        ...


class FileStateBackend:
    """Backend storing each document as a file under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        return self.root / name

    async def read(self, name: str) -> str | None:
        path = self.path_for(name)
        try:
            async with aiofiles.open(path, encoding="utf-8", errors="replace") as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read %s, treating as empty: %s", path, e)
            return None

    async def write(self, name: str, text: str) -> None:
        """Write atomically: temp file + fsync + os.replace."""
        path = self.path_for(name)
        tmp_path: str | None = None
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            os.close(fd)
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(text)
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise StateWriteError(f"Failed to write {path}: {e}") from e

    async def delete(self, name: str) -> bool:
        path = self.path_for(name)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StateWriteError(f"Failed to delete {path}: {e}") from e
        return True

    async def list(self, prefix: str) -> list[str]:
        directory = self.path_for(prefix)
        try:
            names = await aiofiles.os.listdir(directory)
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Could not list %s: %s", directory, e)
            return []
        return sorted(
            f"{prefix}/{n}"
            for n in names
            if not n.startswith(".") and (directory / n).is_file()
        )

    async def modified_at(self, name: str) -> datetime | None:
        try:
            st = await aiofiles.os.stat(self.path_for(name))
        except OSError:
            return None
        return datetime.fromtimestamp(st.st_mtime, tz=UTC)


class MemoryStateBackend:
    """In-memory backend with an injectable clock for modification times."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.clock = clock or (lambda: datetime.now(UTC))
        self.documents: dict[str, tuple[str, datetime]] = {}

    async def read(self, name: str) -> str | None:
        doc = self.documents.get(name)
        return doc[0] if doc is not None else None

    async def write(self, name: str, text: str) -> None:
        self.documents[name] = (text, self.clock())

    async def delete(self, name: str) -> bool:
        return self.documents.pop(name, None) is not None

    async def list(self, prefix: str) -> list[str]:
        head = f"{prefix}/"
        return sorted(n for n in self.documents if n.startswith(head) and "/" not in n[len(head):])

    async def modified_at(self, name: str) -> datetime | None:
        doc = self.documents.get(name)
        return doc[1] if doc is not None else None


async def load_json(backend: StateBackend, name: str) -> Any | None:
    """Load a JSON document; missing or corrupt documents yield None."""
    text = await backend.read(name)
    if text is None or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state document %s, treating as empty: %s", name, e)
        return None


async def save_json(backend: StateBackend, name: str, data: Any) -> None:
    await backend.write(name, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


async def load_registry(backend: StateBackend, name: str, model: type[M]) -> dict[str, M]:
    """Load a signature-keyed registry, skipping entries that fail validation."""
    data = await load_json(backend, name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("State document %s is not an object, treating as empty", name)
        return {}

    out: dict[str, M] = {}
    for key, value in data.items():
        try:
            out[key] = model.model_validate(value)
        except ValidationError as e:
            logger.warning("Dropping invalid entry %s in %s: %s", key, name, e.errors()[:1])
    return out


async def save_registry(backend: StateBackend, name: str, entries: Mapping[str, BaseModel]) -> None:
    await save_json(
        backend,
        name,
        {key: entry.model_dump(mode="json") for key, entry in entries.items()},
    )
