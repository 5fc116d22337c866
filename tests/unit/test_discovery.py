"""Unit tests for version discovery and cache refresh."""

from datetime import UTC, datetime, timedelta
from typing import Optional

import pytest
from aioresponses import aioresponses

from unity_index.cache import VersionsCache
from unity_index.discovery import (
    BaseDiscoverer,
    DiscoveryError,
    MirrorDiscoverer,
    needs_refresh,
    refresh,
)
from unity_index.models import VersionMetadata
from unity_index.version import ReleaseType, UnityVersion

MIRROR_URL = "https://mirror.example.com/unity/versions.json"


class StaticDiscoverer(BaseDiscoverer):
    """Discoverer returning fixed versions per release type."""

    def __init__(
        self,
        versions: dict[ReleaseType, list[VersionMetadata]],
        fail_on: Optional[ReleaseType] = None,
    ) -> None:
        self.versions = versions
        self.fail_on = fail_on
        self.calls: list[ReleaseType] = []

    @property
    def name(self) -> str:
        return "Static"

    async def discover(self, release_type: ReleaseType) -> list[VersionMetadata]:
        self.calls.append(release_type)
        if release_type == self.fail_on:
            raise DiscoveryError("catalog unavailable")
        return self.versions.get(release_type, [])


@pytest.fixture
def mirror_payload(make_version):
    return {
        "format": VersionsCache.CACHE_FORMAT,
        "versions": [
            make_version("2022.1.0b3", win=["Unity"]).to_dict(),
            make_version("2021.2.0f1", mac=["Unity"]).to_dict(),
            make_version("2021.1.0f1", linux=["Unity"]).to_dict(),
            {"version": "not a version"},
        ],
        "updated": {},
    }


@pytest.mark.asyncio
async def test_refresh_adds_versions_and_stamps_update(cache, make_version):
    now = datetime(2026, 10, 17, 8, 0, tzinfo=UTC)
    cache.add(make_version("2021.1.0f1", mac=["Unity"]))
    discoverer = StaticDiscoverer(
        {
            ReleaseType.FINAL: [
                make_version("2021.1.0f1", win=["Unity"]),
                make_version("2021.2.0f1"),
            ],
            ReleaseType.BETA: [make_version("2022.1.0b1")],
        }
    )

    added = await refresh(cache, discoverer, [ReleaseType.FINAL, ReleaseType.BETA], now=now)

    assert [str(m.version) for m in added] == ["2021.2.0f1", "2022.1.0b1"]
    assert len(cache) == 3
    assert cache.get_last_update(ReleaseType.FINAL) == now
    assert cache.get_last_update(ReleaseType.BETA) == now
    assert cache.find(UnityVersion.parse("2021.1.0f1")).mac_packages is not None


@pytest.mark.asyncio
async def test_refresh_failure_keeps_earlier_types(cache, make_version):
    now = datetime(2026, 10, 17, 8, 0, tzinfo=UTC)
    discoverer = StaticDiscoverer(
        {ReleaseType.FINAL: [make_version("2021.2.0f1")]},
        fail_on=ReleaseType.BETA,
    )

    with pytest.raises(DiscoveryError):
        await refresh(cache, discoverer, [ReleaseType.FINAL, ReleaseType.BETA], now=now)

    assert len(cache) == 1
    assert cache.get_last_update(ReleaseType.FINAL) == now
    assert cache.get_last_update(ReleaseType.BETA) < now


def test_needs_refresh(cache):
    now = datetime(2026, 10, 17, 8, 0, tzinfo=UTC)
    assert needs_refresh(cache, ReleaseType.FINAL, timedelta(hours=24), now=now)

    cache.set_last_update(ReleaseType.FINAL, now - timedelta(hours=1))
    assert not needs_refresh(cache, ReleaseType.FINAL, timedelta(hours=24), now=now)

    cache.set_last_update(ReleaseType.FINAL, now - timedelta(days=2))
    assert needs_refresh(cache, ReleaseType.FINAL, timedelta(hours=24), now=now)


@pytest.mark.asyncio
async def test_mirror_discover_filters_by_type(mirror_payload):
    with aioresponses() as m:
        m.get(MIRROR_URL, payload=mirror_payload)

        async with MirrorDiscoverer(MIRROR_URL) as discoverer:
            finals = await discoverer.discover(ReleaseType.FINAL)
            betas = await discoverer.discover(ReleaseType.BETA)

    assert [str(x.version) for x in finals] == ["2021.2.0f1", "2021.1.0f1"]
    assert [str(x.version) for x in betas] == ["2022.1.0b3"]


@pytest.mark.asyncio
async def test_mirror_http_error():
    with aioresponses() as m:
        m.get(MIRROR_URL, status=404)

        async with MirrorDiscoverer(MIRROR_URL) as discoverer:
            with pytest.raises(DiscoveryError, match="HTTP 404"):
                await discoverer.discover(ReleaseType.FINAL)


@pytest.mark.asyncio
async def test_mirror_format_mismatch(mirror_payload):
    mirror_payload["format"] = 1
    with aioresponses() as m:
        m.get(MIRROR_URL, payload=mirror_payload)

        async with MirrorDiscoverer(MIRROR_URL) as discoverer:
            with pytest.raises(DiscoveryError, match="cache format"):
                await discoverer.discover(ReleaseType.FINAL)


@pytest.mark.asyncio
async def test_mirror_refresh_into_cache(cache, mirror_payload):
    with aioresponses() as m:
        m.get(MIRROR_URL, payload=mirror_payload)

        async with MirrorDiscoverer(MIRROR_URL) as discoverer:
            added = await refresh(cache, discoverer, [ReleaseType.FINAL])

    assert len(added) == 2
    assert [str(x.version) for x in cache] == ["2021.2.0f1", "2021.1.0f1"]
    assert cache.get_last_update(ReleaseType.FINAL) > datetime(2026, 1, 1, tzinfo=UTC)
