"""JSON file-based index of known Unity versions.

This module provides a persistent cache of release metadata so the installer
doesn't have to re-fetch remote catalogs on every run. The whole index lives
in a single JSON file that is read once on construction and written back
with :meth:`VersionsCache.save`.
"""

import json
import logging
import os
import stat
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from unity_index.models import VersionMetadata, merge_versions
from unity_index.version import ReleaseType, UnityVersion

logger = logging.getLogger(__name__)

# Returned by get_last_update() for release types that were never updated
NEVER = datetime.min.replace(tzinfo=UTC)


class VersionsCache:
    """Index of available Unity versions backed by a JSON file.

    Versions are kept sorted newest first and each version appears at most
    once. Records are immutable, so the values handed out by lookups and
    iteration can't alter the index.

    Attributes:
        data_file_path: Path to the JSON file.
        load_error: The error that prevented reading an existing file,
            or None if the file was missing or loaded fine.
    """

    CACHE_FORMAT = 2

    def __init__(
        self,
        data_file_path: Path,
        logger: Optional[logging.Logger] = None,
    ):
        """Load the versions cache.

        A missing file gives an empty cache. A file that can't be read or
        parsed is reported through ``load_error`` and also gives an empty
        cache. A file written with a different cache format is discarded.

        Args:
            data_file_path: Path to the JSON file.
            logger: Optional logger for cache events. Defaults to the module
                logger.
        """
        self.data_file_path = Path(data_file_path)
        self.logger = logger or logging.getLogger(__name__)
        self.load_error: Optional[Exception] = None
        self._versions: list[VersionMetadata] = []
        self._updated: dict[ReleaseType, datetime] = {}
        self._load()

    def _load(self) -> None:
        """Read the data file if it exists."""
        if not self.data_file_path.exists():
            self.logger.info("Creating a new empty versions cache")
            return

        try:
            raw = json.loads(self.data_file_path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("Versions cache root is not an object")

            if raw.get("format") != self.CACHE_FORMAT:
                self.logger.info("Cache format is outdated, resetting cache.")
                return

            versions = [VersionMetadata.from_dict(item) for item in raw.get("versions") or []]
            updated = _parse_updated(raw.get("updated") or {})
        except (
            OSError,
            ValueError,
            KeyError,
            TypeError,
            AttributeError,
            RecursionError,
        ) as e:
            self.load_error = e
            self.logger.error(
                f"Could not read versions cache file '{self.data_file_path}': {e}"
            )
            return

        self._versions = _deduplicate(versions)
        self._updated = updated
        self._sort_versions()
        self.logger.info(f"Loaded versions cache from '{self.data_file_path}'")

    def _sort_versions(self) -> None:
        """Sort versions in descending order."""
        self._versions.sort(key=lambda metadata: metadata.version, reverse=True)

    def save(self) -> bool:
        """Write the versions cache to its data file.

        Returns:
            True if the file was written, False if writing failed.
        """
        data = {
            "format": self.CACHE_FORMAT,
            "versions": [metadata.to_dict() for metadata in self._versions],
            "updated": {
                release_type.key: time.isoformat()
                for release_type, time in self._updated.items()
            },
        }

        tmp_name = None
        try:
            self.data_file_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.data_file_path.parent,
                prefix=f".{self.data_file_path.name}.",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(data, f, indent=2)
            os.chmod(tmp_name, _file_mode(self.data_file_path))
            os.replace(tmp_name, self.data_file_path)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(
                f"Could not save versions cache file '{self.data_file_path}': {e}"
            )
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False

        self.logger.debug(f"Saved versions cache to '{self.data_file_path}'")
        return True

    def clear(self) -> None:
        """Remove all versions and update times from the cache."""
        self._versions.clear()
        self._updated.clear()
        self.logger.debug("Cleared versions cache")

    def _index_of(self, version: UnityVersion) -> Optional[int]:
        for index, metadata in enumerate(self._versions):
            if metadata.version == version:
                return index
        return None

    def _add(self, metadata: VersionMetadata) -> bool:
        """Merge or append a version without re-sorting."""
        index = self._index_of(metadata.version)
        if index is not None:
            self._versions[index] = merge_versions(self._versions[index], metadata)
            self.logger.debug(f"Updated version in cache: {metadata.version}")
            return False

        self._versions.append(metadata)
        self.logger.debug(f"Added version to cache: {metadata.version}")
        return True

    def add(self, metadata: VersionMetadata) -> bool:
        """Add a version to the cache, merging it into an existing entry.

        Args:
            metadata: Version to add.

        Returns:
            True if the version wasn't in the cache, False if it was updated.
        """
        inserted = self._add(metadata)
        if inserted:
            self._sort_versions()
        return inserted

    def add_many(self, metadatas: Iterable[VersionMetadata]) -> list[VersionMetadata]:
        """Add multiple versions to the cache.

        Args:
            metadatas: Versions to add, in the order they should be applied.

        Returns:
            The versions that weren't in the cache before, in input order.
        """
        new_versions = []
        for metadata in metadatas:
            if self._add(metadata):
                new_versions.append(metadata)

        self._sort_versions()
        return new_versions

    def find(self, version: UnityVersion) -> Optional[VersionMetadata]:
        """Get a version from the cache.

        A version carrying a build hash returns the version with that hash if
        there is one. Otherwise a full version is matched exactly, and for a
        partial version the newest version matching the given components is
        returned.

        Args:
            version: Version to look up.

        Returns:
            The matching version, or None if none matches.
        """
        if version.hash:
            for metadata in self._versions:
                if metadata.version.hash == version.hash:
                    return metadata

        if version.is_full_version:
            matches = version.matches_exact_or_hash
        else:
            matches = version.fuzzy_matches

        for metadata in self._versions:
            if matches(metadata.version):
                return metadata
        return None

    def get_last_update(self, release_type: ReleaseType) -> datetime:
        """Get the time versions of a release type were last updated.

        Returns:
            The last update time, or NEVER if the type was never updated.
        """
        return self._updated.get(release_type, NEVER)

    def set_last_update(self, release_type: ReleaseType, time: datetime) -> None:
        """Set the time versions of a release type were last updated.

        Naive datetimes are taken to be in UTC.
        """
        if time.tzinfo is None:
            time = time.replace(tzinfo=UTC)
        self._updated[release_type] = time

    @property
    def versions(self) -> tuple[VersionMetadata, ...]:
        """Snapshot of all versions, newest first."""
        return tuple(self._versions)

    def info(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache information:
                - path: Path to the data file
                - count: Number of cached versions
                - size_bytes: Data file size in bytes (0 if not saved yet)
                - updated: Last update time per release type key
        """
        size_bytes = (
            self.data_file_path.stat().st_size if self.data_file_path.exists() else 0
        )
        return {
            "path": str(self.data_file_path),
            "count": len(self._versions),
            "size_bytes": size_bytes,
            "updated": {
                release_type.key: time for release_type, time in self._updated.items()
            },
        }

    def __iter__(self) -> Iterator[VersionMetadata]:
        return iter(tuple(self._versions))

    def __len__(self) -> int:
        return len(self._versions)

    def __contains__(self, version: object) -> bool:
        if not isinstance(version, UnityVersion):
            return False
        return self._index_of(version) is not None


def _parse_updated(data: dict[str, Any]) -> dict[ReleaseType, datetime]:
    """Parse the persisted update times, skipping unknown release types."""
    updated = {}
    for key, value in data.items():
        try:
            release_type = ReleaseType.from_key(key)
        except ValueError:
            logger.debug(f"Ignoring update time of unknown release type: {key}")
            continue
        time = datetime.fromisoformat(value)
        if time.tzinfo is None:
            time = time.replace(tzinfo=UTC)
        updated[release_type] = time
    return updated


def _deduplicate(versions: list[VersionMetadata]) -> list[VersionMetadata]:
    """Merge entries of a hand-edited file that repeat a version."""
    unique: dict[UnityVersion, VersionMetadata] = {}
    for metadata in versions:
        if metadata.version in unique:
            unique[metadata.version] = merge_versions(unique[metadata.version], metadata)
        else:
            unique[metadata.version] = metadata
    return list(unique.values())


def _file_mode(path: Path) -> int:
    """Permissions for a rewritten data file: the current ones, else the umask default."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask
