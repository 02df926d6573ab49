"""
Key-Material Store - named byte blobs for the connector's identity.

The controller only depends on the KeyMaterialStore protocol; FileSystemStore
and InMemoryStore are the two implementations shipped here.
"""

import threading
from pathlib import Path
from typing import Dict, Protocol, Union, runtime_checkable

from .exceptions import ArtifactNotFoundError, StorageError
from .utils.files import atomic_write, safe_artifact_path
from .utils.logging import get_logger

logger = get_logger(__name__)

# Artifact names shared with deployed counterparts
ENROLLMENT_INFO = "config.json"
RUNTIME_INFO = "info.json"
PRIVATE_KEY = "generated.key"
CSR = "generated.csr"
CERTIFICATE = "generated.crt"

IDENTITY_ARTIFACTS = (ENROLLMENT_INFO, RUNTIME_INFO, PRIVATE_KEY, CSR, CERTIFICATE)


@runtime_checkable
class KeyMaterialStore(Protocol):
    """
    Read/write named byte blobs.

    Implementations raise ArtifactNotFoundError for a missing name and
    StorageError for any other failure.
    """

    def write(self, name: str, data: bytes) -> None:
        ...

    def read(self, name: str) -> bytes:
        ...


class FileSystemStore:
    """Stores each artifact as a file under ``base_dir``, written atomically with mode 0600."""

    def __init__(self, base_dir: Union[str, Path] = "."):
        self.base_dir = Path(base_dir)

    def _path(self, name: str) -> Path:
        try:
            return safe_artifact_path(self.base_dir, name)
        except ValueError as e:
            raise StorageError(str(e), name=name) from e

    def write(self, name: str, data: bytes) -> None:
        path = self._path(name)
        try:
            atomic_write(path, data)
        except OSError as e:
            raise StorageError(str(e), name=name) from e
        logger.debug(f"Wrote {len(data)} bytes to {path}")

    def read(self, name: str) -> bytes:
        path = self._path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ArtifactNotFoundError(name) from e
        except OSError as e:
            raise StorageError(str(e), name=name) from e

    def delete(self, name: str) -> bool:
        """Remove an artifact; returns False if it did not exist."""
        path = self._path(name)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(str(e), name=name) from e


class InMemoryStore:
    """Process-local store, used in tests and for ephemeral identities."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def write(self, name: str, data: bytes) -> None:
        with self._lock:
            self._blobs[name] = bytes(data)

    def read(self, name: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[name]
            except KeyError:
                raise ArtifactNotFoundError(name) from None

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._blobs.pop(name, None) is not None

    def names(self):
        with self._lock:
            return sorted(self._blobs)
