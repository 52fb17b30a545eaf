"""
Line readers for the gzip-compressed offline feeds.

Mirror snapshots sometimes carry tar-style padding or other junk after the
last gzip member. Everything decompressed before the damage is kept; the
rest of the file is logged and ignored.
"""
from __future__ import annotations

import gzip
import io
import zlib
from pathlib import Path
from typing import Iterator, List, Union

from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 65536


def read_gzip_bytes(path: Union[Path, str], chunk_size: int = CHUNK_SIZE) -> bytes:
    """
    Decompress a gzip file, stopping at the first damaged or foreign data.

    Args:
        path: gzip-compressed file
        chunk_size: Maximum number of bytes decompressed per read

    Returns:
        Decompressed bytes of every intact member

    Raises:
        FileNotFoundError: If the file does not exist
        gzip.BadGzipFile: If not even the first member could be read
    """
    path = Path(path)
    chunks: List[bytes] = []

    with gzip.open(path, "rb") as fh:
        try:
            while True:
                # read1 makes at most one raw read, so earlier chunks survive an error
                chunk = fh.read1(chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        except (gzip.BadGzipFile, EOFError, zlib.error) as e:
            if not chunks:
                raise
            size = sum(len(chunk) for chunk in chunks)
            logger.warning(f"{path}: ignoring data after {size} decompressed bytes ({e})")

    return b"".join(chunks)


def iter_gzip_lines(path: Union[Path, str], encoding: str = "utf-8") -> Iterator[str]:
    """
    Yield decoded lines (without trailing newline) from a gzip file.

    The whole file is decompressed before the first line is yielded.

    Args:
        path: gzip-compressed text file
        encoding: Text encoding; undecodable bytes are replaced

    Yields:
        One line at a time

    Raises:
        FileNotFoundError: If the file does not exist
        gzip.BadGzipFile: If the file is not gzip data at all
    """
    text = read_gzip_bytes(path).decode(encoding, errors="replace")
    for line in io.StringIO(text):
        yield line.rstrip("\r\n")


def iter_text_lines(path: Union[Path, str], encoding: str = "utf-8") -> Iterator[str]:
    """Yield decoded lines from an uncompressed text feed."""
    with Path(path).open("r", encoding=encoding, errors="replace") as fh:
        for line in fh:
            yield line.rstrip("\r\n")
