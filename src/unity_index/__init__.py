"""Unity Index - Persistent local index of installable Unity versions.

This package keeps the Unity releases and per-platform packages discovered
from remote catalogs in a local JSON file, and answers exact and partial
version queries against it.
"""

__version__ = "0.1.0"

from unity_index.cache import NEVER, VersionsCache
from unity_index.models import (
    InvalidPlatformError,
    PackageMetadata,
    Platform,
    VersionMetadata,
    merge_versions,
)
from unity_index.version import ReleaseType, UnityVersion, VersionParseError

__all__ = [
    "__version__",
    "InvalidPlatformError",
    "NEVER",
    "PackageMetadata",
    "Platform",
    "ReleaseType",
    "UnityVersion",
    "VersionMetadata",
    "VersionParseError",
    "VersionsCache",
    "merge_versions",
]
