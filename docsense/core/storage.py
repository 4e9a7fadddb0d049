"""
File storage abstraction. Local filesystem backend.

Uploads land under a name derived from the document id, then get renamed once
classification has produced a better name. Neither step ever overwrites an
existing file.
"""

import logging
import mimetypes
import os
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import get_settings

logger = logging.getLogger(__name__)

FALLBACK_EXTENSION = ".bin"

_MIME_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}


@dataclass
class StoredFile:
    stored_file_name: str
    file_path: str
    mime_type: str
    file_size: int


class FileStore(ABC):
    @abstractmethod
    async def save(
        self,
        file_bytes: bytes,
        document_id: str,
        filename: str,
        content_type: Optional[str] = None,
    ) -> StoredFile:
        """Persist raw upload bytes under a name derived from the document id."""
        ...

    @abstractmethod
    async def rename(self, current_path: str, new_file_name: str) -> tuple[str, str]:
        """Rename a stored file. Returns (stored_file_name, file_path)."""
        ...

    @abstractmethod
    async def read(self, file_path: str) -> bytes:
        ...

    @abstractmethod
    async def exists(self, file_path: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, file_path: str) -> None:
        ...


class LocalStorage(FileStore):
    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or get_settings().storage_root)

    async def save(
        self,
        file_bytes: bytes,
        document_id: str,
        filename: str,
        content_type: Optional[str] = None,
    ) -> StoredFile:
        ext = (Path(filename).suffix or FALLBACK_EXTENSION).lower()
        stored_name = f"{uuid.UUID(document_id).hex}{ext}"

        self.base_path.mkdir(parents=True, exist_ok=True)
        file_path = self.base_path / stored_name

        # "xb" refuses to clobber an existing file
        with open(file_path, "xb") as fh:
            fh.write(file_bytes)

        logger.info("Saved locally: %s (%d bytes)", file_path, len(file_bytes))
        return StoredFile(
            stored_file_name=stored_name,
            file_path=str(file_path),
            mime_type=content_type or guess_content_type(filename),
            file_size=len(file_bytes),
        )

    async def rename(self, current_path: str, new_file_name: str) -> tuple[str, str]:
        source = Path(current_path)
        directory = source.parent
        stem = slugify(Path(new_file_name).stem) or "document"
        ext = Path(new_file_name).suffix.lower()

        final_name = f"{stem}{ext}"
        target = directory / final_name

        if not source.exists():
            raise FileNotFoundError(f"Source file not found for rename: {current_path}")

        if os.path.normcase(str(source)) == os.path.normcase(str(target)):
            return final_name, str(target)

        while target.exists():
            final_name = f"{stem}-{uuid.uuid4().hex[:8]}{ext}"
            target = directory / final_name

        os.rename(source, target)
        logger.info("Renamed %s → %s", source.name, final_name)
        return final_name, str(target)

    async def read(self, file_path: str) -> bytes:
        return Path(file_path).read_bytes()

    async def exists(self, file_path: str) -> bool:
        return bool(file_path) and Path(file_path).is_file()

    async def delete(self, file_path: str) -> None:
        path = Path(file_path)
        if path.exists():
            path.unlink()
            logger.info("Deleted file: %s", file_path)


def get_storage() -> FileStore:
    """Return the active storage backend."""
    return LocalStorage()


def slugify(value: str) -> str:
    """Lowercase, keep [a-z0-9 -], collapse whitespace/hyphen runs, hyphenate."""
    value = (value or "").lower()
    value = re.sub(r"[^a-z0-9\s-]", "", value)
    value = re.sub(r"[\s-]+", " ", value).strip()
    return re.sub(r"\s", "-", value)


def guess_content_type(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    if ext in _MIME_BY_EXTENSION:
        return _MIME_BY_EXTENSION[ext]
    ct, _ = mimetypes.guess_type(filename)
    return ct or "application/octet-stream"
