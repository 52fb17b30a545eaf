"""
Conditional HTTP downloads of remote archives.

Works like a mirror: an already cached copy is revalidated with
``If-Modified-Since`` and only replaced when the server sends a new one.
"""
from __future__ import annotations

import os
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from release_indexer.utils.errors import ArchiveAcquisitionError
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)


class MirrorClient:
    """
    HTTP client for mirroring archives to local files.

    Features:
    - Conditional GET against the cached copy (HTTP 304 keeps it)
    - Retry with exponential backoff on transport errors
    - Proxy settings from the environment
    - Atomic replacement of the cached file

    Example:
        >>> with MirrorClient(user_agent="release-indexer") as client:
        ...     client.mirror(
        ...         "https://cpan.metacpan.org/authors/id/D/DA/DAGOLDEN/CPAN-Meta-2.110580.tar.gz",
        ...         Path("var/tmp/http/authors/id/D/DA/DAGOLDEN/CPAN-Meta-2.110580.tar.gz"),
        ...     )
        200
    """

    def __init__(
        self,
        user_agent: str = "release-indexer",
        timeout: int = 30,
        max_retries: int = 3,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize mirror client.

        Args:
            user_agent: User-Agent header sent with every request
            timeout: Request timeout in seconds
            max_retries: Attempts per download on transport errors
            transport: Optional httpx transport (used by tests)
        """
        self.max_retries = max_retries
        self.client = httpx.Client(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=True,
            trust_env=True,
            transport=transport,
        )

    def __enter__(self) -> "MirrorClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _get(self, url: str, headers: dict) -> httpx.Response:
        for attempt in Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                return self.client.get(url, headers=headers)

    def mirror(self, url: str, destination: Path) -> int:
        """
        Download ``url`` into ``destination`` unless the cached copy is current.

        Args:
            url: Remote archive URL
            destination: Local file to create or refresh

        Returns:
            HTTP status code of the final response (200 or 304)

        Raises:
            ArchiveAcquisitionError: On HTTP errors or exhausted retries
        """
        destination = Path(destination)
        headers = {}
        if destination.exists():
            headers["If-Modified-Since"] = formatdate(destination.stat().st_mtime, usegmt=True)

        try:
            response = self._get(url, headers)
        except httpx.HTTPError as e:
            raise ArchiveAcquisitionError(url, str(e)) from e

        if response.status_code == 304:
            logger.debug(f"{destination.name} is up to date")
            return response.status_code

        if response.status_code != 200:
            raise ArchiveAcquisitionError(url, f"HTTP {response.status_code}")

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(f"{destination.name}.part")
        partial.write_bytes(response.content)
        os.replace(partial, destination)

        last_modified = response.headers.get("Last-Modified")
        if last_modified:
            try:
                mtime = parsedate_to_datetime(last_modified).timestamp()
            except (TypeError, ValueError):
                logger.debug(f"Ignoring unparsable Last-Modified: {last_modified}")
            else:
                os.utime(destination, (mtime, mtime))

        logger.debug(f"Stored {len(response.content)} bytes in {destination}")
        return response.status_code
