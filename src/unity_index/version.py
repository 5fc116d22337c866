"""Unity version identifiers.

This module defines the comparable, partially specifiable version value used
to key the versions index, e.g. ``2021.1.5f1``, ``2021.1`` or
``2022.2.0b3 (abc123def456)``.
"""

import functools
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VersionParseError(ValueError):
    """Raised when a string cannot be parsed as a Unity version."""


class ReleaseType(Enum):
    """Release channel of a Unity version, keyed by its version suffix."""

    UNDEFINED = ""
    ALPHA = "a"
    BETA = "b"
    FINAL = "f"
    PATCH = "p"

    @property
    def sort_order(self) -> int:
        """Rank used when ordering versions that share major.minor.patch."""
        return _TYPE_ORDER[self]

    @property
    def key(self) -> str:
        """Lower-case name used when persisting the release type."""
        return self.name.lower()

    @classmethod
    def from_key(cls, key: str) -> "ReleaseType":
        """Look up a release type by its persisted key or its suffix letter.

        Raises:
            ValueError: If the key names no release type.
        """
        normalized = key.strip().lower()
        for release_type in cls:
            if release_type is cls.UNDEFINED:
                continue
            if normalized in (release_type.key, release_type.value):
                return release_type
        raise ValueError(f"Unknown release type: {key!r}")


_TYPE_ORDER = {
    ReleaseType.UNDEFINED: 0,
    ReleaseType.ALPHA: 1,
    ReleaseType.BETA: 2,
    ReleaseType.FINAL: 3,
    ReleaseType.PATCH: 4,
}

_VERSION_RE = re.compile(
    r"""
    ^\s*
    (?P<major>\d+)
    (?:\.(?P<minor>\d+))?
    (?:\.(?P<patch>\d+))?
    (?:(?P<type>[abfp])(?P<build>\d+)?)?
    (?:\s*\(\s*(?P<hash1>[0-9a-fA-F]+)\s*\)|\s+(?P<hash2>[0-9a-fA-F]{6,}))?
    \s*$
    """,
    re.VERBOSE,
)


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class UnityVersion:
    """A Unity editor version, possibly only partially specified.

    Unspecified components are ``None``. The build hash is metadata: it is
    not part of equality or ordering, but a matching hash identifies a
    version whose numeric components are unknown or differ.

    Attributes:
        major: Major version (e.g. 2021).
        minor: Minor version.
        patch: Patch version.
        type: Release type (alpha, beta, final, patch).
        build: Build number following the type letter.
        hash: Hexadecimal build hash identifying the exact build.
    """

    major: Optional[int] = None
    minor: Optional[int] = None
    patch: Optional[int] = None
    type: ReleaseType = ReleaseType.UNDEFINED
    build: Optional[int] = None
    hash: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "UnityVersion":
        """Parse a version string such as ``2021.1.5f1 (abc123)``.

        Args:
            text: Version string to parse.

        Returns:
            Parsed UnityVersion.

        Raises:
            VersionParseError: If the string is not a valid Unity version.
        """
        if not isinstance(text, str):
            raise VersionParseError(f"Expected a version string, got {type(text).__name__}")

        match = _VERSION_RE.match(text)
        if match is None:
            raise VersionParseError(f"Invalid Unity version: {text!r}")

        groups = match.groupdict()
        release_type = (
            ReleaseType(groups["type"]) if groups["type"] else ReleaseType.UNDEFINED
        )
        build_hash = groups["hash1"] or groups["hash2"]

        return cls(
            major=_to_int(groups["major"]),
            minor=_to_int(groups["minor"]),
            patch=_to_int(groups["patch"]),
            type=release_type,
            build=_to_int(groups["build"]),
            hash=build_hash.lower() if build_hash else None,
        )

    @property
    def is_full_version(self) -> bool:
        """True if all components up to the build number are specified."""
        return (
            self.major is not None
            and self.minor is not None
            and self.patch is not None
            and self.type is not ReleaseType.UNDEFINED
            and self.build is not None
        )

    def matches_exact_or_hash(self, other: "UnityVersion") -> bool:
        """Check whether ``other`` is the same release as this version.

        Versions carrying the same build hash match whatever their numeric
        components. Otherwise all numeric components, the type and the build
        must match, as they do for index equality.
        """
        if self.hash and other.hash and self.hash == other.hash:
            return True

        return (
            self.major == other.major
            and self.minor == other.minor
            and self.patch == other.patch
            and self.type == other.type
            and self.build == other.build
        )

    def fuzzy_matches(self, other: "UnityVersion") -> bool:
        """Check whether ``other`` agrees with every component given here.

        Components that are unspecified on this version act as wildcards.
        A candidate with the same build hash always matches.
        """
        if self.hash and other.hash and self.hash == other.hash:
            return True

        if self.major is not None and self.major != other.major:
            return False
        if self.minor is not None and self.minor != other.minor:
            return False
        if self.patch is not None and self.patch != other.patch:
            return False
        if self.type is not ReleaseType.UNDEFINED and self.type != other.type:
            return False
        if self.build is not None and self.build != other.build:
            return False

        return True

    def _sort_key(self) -> tuple[int, int, int, int, int]:
        # Unspecified components sort below any given value
        return (
            -1 if self.major is None else self.major,
            -1 if self.minor is None else self.minor,
            -1 if self.patch is None else self.patch,
            self.type.sort_order,
            -1 if self.build is None else self.build,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnityVersion):
            return NotImplemented
        return self._sort_key() == other._sort_key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, UnityVersion):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __hash__(self) -> int:
        return hash(self._sort_key())

    def __str__(self) -> str:
        text = ""
        if self.major is not None:
            text = str(self.major)
            if self.minor is not None:
                text += f".{self.minor}"
                if self.patch is not None:
                    text += f".{self.patch}"
        text += self.type.value
        if self.build is not None:
            text += str(self.build)
        if self.hash:
            text += f" ({self.hash})"
        return text


def _to_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value is not None else None
