"""
Archive checksums.

Release documents record the SHA-256 of the archive they were built from.
"""
from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Union

from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)


def compute_checksum(
    path: Union[Path, str],
    algorithm: str = "sha256",
    chunk_size: int = 65536
) -> str:
    """
    Compute the hex digest checksum for a file.

    Reads the file in chunks so large archives are never loaded whole.

    Args:
        path: Path to file to hash
        algorithm: Hash algorithm (sha256, md5, sha1, etc.)
        chunk_size: Number of bytes to read per chunk

    Returns:
        Hex digest string of the file hash

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If algorithm is not supported

    Example:
        >>> compute_checksum("Foo-Bar-1.0.tar.gz")
        'a3f2b1c...'
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        hasher = hashlib.new(algorithm)
    except ValueError as e:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}") from e

    with path.open("rb") as file_handle:
        for chunk in iter(lambda: file_handle.read(chunk_size), b""):
            hasher.update(chunk)

    digest = hasher.hexdigest()
    logger.debug(f"{algorithm} of {path.name}: {digest[:16]}...")

    return digest
