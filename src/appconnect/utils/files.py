import os
import tempfile
from pathlib import Path
from typing import Union

from .logging import get_logger

logger = get_logger(__name__)


def atomic_write(target_path: Union[str, Path], data: bytes, mode: int = 0o600) -> None:
    """
    Write bytes to a file atomically via a sibling temporary file.

    The file is created with ``mode`` before any content lands in it, so key
    material is never briefly world-readable.
    """
    target = Path(target_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    # Same directory as the target keeps os.replace on one device
    fd, temp_name = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as tf:
            os.fchmod(tf.fileno(), mode)
            tf.write(data)
            tf.flush()
            os.fsync(tf.fileno())
        os.replace(temp_name, target)
    except OSError as e:
        logger.error(f"Failed to perform atomic write to {target}: {e}")
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


def safe_artifact_path(base_dir: Union[str, Path], name: str) -> Path:
    """
    Resolve an artifact name inside base_dir.

    Only the final path component of ``name`` is kept, so names such as
    ``../../etc/passwd`` cannot escape the store directory.
    """
    safe_name = os.path.basename(name)
    if not safe_name or safe_name in (".", ".."):
        raise ValueError(f"Invalid artifact name: {name!r}")
    return Path(base_dir) / safe_name
