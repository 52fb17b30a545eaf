"""
CDN cache purging.

After an import run the CDN is told to drop cached pages of every
distribution and author that was touched. Pages are tagged with surrogate
keys ``dist=<Distribution>`` and ``author=<AUTHOR>``.
"""
from __future__ import annotations

import os
from typing import Iterable, List, Optional, Protocol, Sequence

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from release_indexer.models.identity import ArchiveIdentity
from release_indexer.utils.config import PurgeConfig
from release_indexer.utils.errors import CachePurgeError
from release_indexer.utils.logger import get_logger

logger = get_logger(__name__)

# Fastly accepts at most 256 surrogate keys per request
MAX_KEYS_PER_REQUEST = 256


class CachePurger(Protocol):
    def purge(self, identities: Sequence[ArchiveIdentity]) -> List[str]:
        ...


def surrogate_keys(identities: Iterable[ArchiveIdentity]) -> List[str]:
    """Sorted, unique surrogate keys for a set of archives."""
    keys = set()
    for identity in identities:
        keys.add(f"dist={identity.distribution}")
        keys.add(f"author={identity.author_id}")
    return sorted(keys)


class LoggingCachePurger:
    """Purger used when no CDN is configured: only reports the keys."""

    def purge(self, identities: Sequence[ArchiveIdentity]) -> List[str]:
        keys = surrogate_keys(identities)
        if keys:
            logger.info(f"Cache purge disabled, would purge {len(keys)} keys")
            logger.debug(" ".join(keys))
        return keys


class HttpCachePurger:
    """
    Purges surrogate keys through the CDN's HTTP API.

    Example:
        >>> purger = HttpCachePurger(PurgeConfig(enabled=True, service_id="abc"))
        >>> purger.purge([parse_distname("D/DA/DAGOLDEN/CPAN-Meta-2.110580.tar.gz")])
        ['author=DAGOLDEN', 'dist=CPAN-Meta']
    """

    def __init__(self, config: PurgeConfig, transport: Optional[httpx.BaseTransport] = None):
        if not config.service_id:
            raise ValueError("A service_id is required to purge the CDN cache")
        self.config = config
        self.api_key = os.getenv(config.api_key_env, "")
        self.client = httpx.Client(
            base_url=config.api_url,
            timeout=config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    def _send(self, keys: List[str]) -> httpx.Response:
        return self.client.post(
            f"/service/{self.config.service_id}/purge",
            headers={
                "Fastly-Key": self.api_key,
                "Surrogate-Key": " ".join(keys),
                "Accept": "application/json",
            },
        )

    def purge(self, identities: Sequence[ArchiveIdentity]) -> List[str]:
        """
        Purge all keys of ``identities``.

        Raises:
            CachePurgeError: If any request fails
        """
        keys = surrogate_keys(identities)
        for start in range(0, len(keys), MAX_KEYS_PER_REQUEST):
            batch = keys[start:start + MAX_KEYS_PER_REQUEST]
            try:
                response = self._send(batch)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise CachePurgeError(f"Purging {len(batch)} keys failed: {e}") from e
            logger.info(f"Purged {len(batch)} surrogate keys")
        return keys


def create_purger(config: PurgeConfig) -> CachePurger:
    if config.enabled:
        return HttpCachePurger(config)
    return LoggingCachePurger()
