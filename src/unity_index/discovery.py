"""Interface to the layer that discovers available Unity versions.

Discoverers fetch release metadata from somewhere else and hand it to the
versions cache as :class:`VersionMetadata` records. Parsing Unity's own
remote catalogs is left to other discoverer implementations; this module
ships one that reads a versions cache file published on a mirror.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Iterable, Optional

import aiohttp

from unity_index.cache import VersionsCache
from unity_index.models import VersionMetadata
from unity_index.version import ReleaseType

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when a discoverer cannot fetch release metadata."""


class BaseDiscoverer(ABC):
    """Abstract base class for version discoverers.

    Discoverers may return records with only some platform lists populated;
    the cache merges them into what it already knows.
    """

    @abstractmethod
    async def discover(self, release_type: ReleaseType) -> list[VersionMetadata]:
        """Discover available versions of a release type.

        Args:
            release_type: Release type to look for.

        Returns:
            Discovered versions, in any order.

        Raises:
            DiscoveryError: If the source could not be read.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the discoverer name for logging/debugging."""
        ...


class MirrorDiscoverer(BaseDiscoverer):
    """Discovers versions from a versions cache file served over HTTP.

    Lets several machines share one refreshed index: the file written by
    :meth:`VersionsCache.save` on one machine is published and read here.

    Manages its own aiohttp.ClientSession; use it as an async context
    manager or call :meth:`close` when done.
    """

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        """Initialize the mirror discoverer.

        Args:
            url: URL of the published versions cache JSON file.
            timeout: Total request timeout in seconds.
        """
        self.url = url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._payload: Optional[dict] = None

    @property
    def name(self) -> str:
        return "Mirror"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def _fetch(self) -> dict:
        """Fetch the mirror file once and keep it for further release types."""
        if self._payload is not None:
            return self._payload

        session = await self._get_session()
        try:
            async with session.get(self.url) as response:
                if response.status != 200:
                    raise DiscoveryError(
                        f"Mirror {self.url} returned HTTP {response.status}"
                    )
                payload = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise DiscoveryError(f"Could not fetch mirror {self.url}: {e}") from e
        except asyncio.TimeoutError as e:
            raise DiscoveryError(f"Timed out fetching mirror {self.url}") from e
        except ValueError as e:
            raise DiscoveryError(f"Mirror {self.url} did not return JSON: {e}") from e

        if not isinstance(payload, dict):
            raise DiscoveryError(f"Mirror {self.url} returned an unexpected document")
        if payload.get("format") != VersionsCache.CACHE_FORMAT:
            raise DiscoveryError(
                f"Mirror {self.url} uses cache format {payload.get('format')}, "
                f"expected {VersionsCache.CACHE_FORMAT}"
            )

        self._payload = payload
        return payload

    async def discover(self, release_type: ReleaseType) -> list[VersionMetadata]:
        payload = await self._fetch()

        versions = []
        for item in payload.get("versions") or []:
            try:
                metadata = VersionMetadata.from_dict(item)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid version entry from {self.url}: {e}")
                continue
            if metadata.version.type == release_type:
                versions.append(metadata)

        logger.debug(
            f"Discovered {len(versions)} {release_type.key} versions from {self.url}"
        )
        return versions

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "MirrorDiscoverer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def refresh(
    cache: VersionsCache,
    discoverer: BaseDiscoverer,
    release_types: Iterable[ReleaseType],
    now: Optional[datetime] = None,
) -> list[VersionMetadata]:
    """Discover versions and merge them into the cache.

    Each release type is stamped with ``now`` after its versions were added.
    If the discoverer fails, the error propagates; release types handled
    before the failure stay merged and stamped.

    Args:
        cache: Cache to update.
        discoverer: Discoverer to fetch versions from.
        release_types: Release types to refresh.
        now: Time to record as the update time. Defaults to the current time.

    Returns:
        The versions that weren't in the cache before.
    """
    now = now or datetime.now(UTC)
    new_versions: list[VersionMetadata] = []

    for release_type in release_types:
        logger.info(f"Refreshing {release_type.key} versions using {discoverer.name}")
        discovered = await discoverer.discover(release_type)
        added = cache.add_many(discovered)
        cache.set_last_update(release_type, now)
        logger.info(
            f"Found {len(discovered)} {release_type.key} versions, {len(added)} new"
        )
        new_versions.extend(added)

    return new_versions


def needs_refresh(
    cache: VersionsCache,
    release_type: ReleaseType,
    max_age: timedelta,
    now: Optional[datetime] = None,
) -> bool:
    """Check whether a release type's versions are older than ``max_age``."""
    now = now or datetime.now(UTC)
    return now - cache.get_last_update(release_type) > max_age
