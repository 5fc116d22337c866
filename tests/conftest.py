"""Pytest configuration and fixtures."""

from typing import Optional

import pytest

from unity_index.cache import VersionsCache
from unity_index.models import PackageMetadata, VersionMetadata
from unity_index.version import UnityVersion


def _make_package(name: str, **kwargs) -> PackageMetadata:
    """Build a PackageMetadata with a URL derived from its name."""
    kwargs.setdefault("url", f"https://download.unity3d.com/download_unity/{name}.pkg")
    kwargs.setdefault("title", name)
    return PackageMetadata(name=name, **kwargs)


def _make_version(
    version: str,
    base_url: Optional[str] = None,
    mac: Optional[list[str]] = None,
    win: Optional[list[str]] = None,
    linux: Optional[list[str]] = None,
) -> VersionMetadata:
    """Build a VersionMetadata with packages named per platform."""
    return VersionMetadata(
        version=UnityVersion.parse(version),
        base_url=base_url,
        mac_packages=None if mac is None else tuple(_make_package(n) for n in mac),
        win_packages=None if win is None else tuple(_make_package(n) for n in win),
        linux_packages=None if linux is None else tuple(_make_package(n) for n in linux),
    )


@pytest.fixture
def make_package():
    """Factory for PackageMetadata records."""
    return _make_package


@pytest.fixture
def make_version():
    """Factory for VersionMetadata records."""
    return _make_version


@pytest.fixture
def cache_path(tmp_path):
    """Path to a versions cache file in a temporary directory."""
    return tmp_path / ".cache" / "unity_index" / "versions.json"


@pytest.fixture
def cache(cache_path):
    """Create an empty VersionsCache with temporary storage."""
    return VersionsCache(cache_path)


@pytest.fixture
def populated_cache(cache):
    """A cache holding a few final releases and one beta."""
    cache.add_many(
        [
            _make_version("2021.1.0f1", mac=["Unity"]),
            _make_version("2021.2.0f1", mac=["Unity"]),
            _make_version("2021.1.5f1 (abc123)", mac=["Unity", "Android"]),
            _make_version("2022.1.0b3", win=["Unity"]),
        ]
    )
    return cache
