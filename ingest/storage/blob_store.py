import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from ingest.config.settings import Settings
from ingest.processor.exceptions import BlobNotFoundError, UnsupportedStorageDiskError


class BaseBlobStore(ABC):
    """Contract for durable byte storage keyed by a relative path."""

    @abstractmethod
    def store(self, content: bytes, filename: str, kind: str, owner_id: int) -> str:
        """Persist bytes and return the path to read them back."""

    @abstractmethod
    def read(self, path: str) -> bytes:
        """Return stored bytes.

        Raises:
            BlobNotFoundError: if nothing is stored under ``path``.
        """

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Remove stored bytes. Returns False if there was nothing to remove."""

    @abstractmethod
    def exists(self, path: str) -> bool: ...


def blob_relative_path(kind: str, owner_id: int, filename: str, now: datetime) -> Path:
    """Build {kind}/{owner_id}/{YYYYmmdd_HHMMSS}_{8 hex}{ext}."""
    suffix = Path(filename).suffix.lower()
    stamp = now.strftime("%Y%m%d_%H%M%S")
    return Path(kind.lower()) / str(owner_id) / f"{stamp}_{secrets.token_hex(4)}{suffix}"


class LocalBlobStore(BaseBlobStore):
    """Stores files on the local disk under a single root directory."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def store(self, content: bytes, filename: str, kind: str, owner_id: int) -> str:
        relative = blob_relative_path(kind, owner_id, filename, datetime.now())
        target = self._resolve(str(relative))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return relative.as_posix()

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise BlobNotFoundError(f"File not found: {target}")
        return target.read_bytes()

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        return True

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def _resolve(self, path: str) -> Path:
        root = self._files_root.resolve()
        target = (root / path).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"Path '{path}' escapes the storage root")
        return target


def build_blob_store(settings: Settings, files_root: Path | None = None) -> BaseBlobStore:
    """Create the blob store for the configured storage disk."""
    if settings.storage_disk != "local":
        raise UnsupportedStorageDiskError(
            f"storage_disk '{settings.storage_disk}' is not supported"
        )
    return LocalBlobStore(files_root if files_root is not None else Path(settings.files_root))
