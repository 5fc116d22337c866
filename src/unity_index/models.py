"""Core data models for unity_index.

This module defines the records stored in the versions index: the
per-platform packages a Unity release offers, and the release itself with
its three platform package lists.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Iterable, Optional
from urllib.parse import unquote, urlsplit

from unity_index.version import UnityVersion

LEGACY_INSTALLER_EXTENSION = "pkg"


class InvalidPlatformError(ValueError):
    """Raised when a platform-specific accessor gets no valid platform."""


class Platform(Enum):
    """Platforms a release can offer packages for."""

    NONE = "none"
    MAC_OS = "mac"
    WINDOWS = "win"
    LINUX = "linux"

    @classmethod
    def from_name(cls, name: str) -> "Platform":
        """Look up a platform by its short name (``mac``, ``win``, ``linux``).

        Raises:
            InvalidPlatformError: If the name does not denote a real platform.
        """
        try:
            platform = cls(name.strip().lower())
        except ValueError:
            platform = cls.NONE
        if platform is cls.NONE:
            raise InvalidPlatformError(f"Invalid platform name: {name}")
        return platform


@dataclass(frozen=True)
class PackageMetadata:
    """A downloadable component of a Unity release on one platform.

    Attributes:
        name: Package identifier, unique within a platform's package list.
        title: Human-readable title.
        description: Human-readable description.
        url: Relative or absolute URL of the package download.
        install: Whether the package is installed by default.
        mandatory: Whether the package is mandatory.
        size: Download size in bytes.
        installed_size: Installed size in bytes.
        version: Version of the package.
        extension: File extension to use for the download, if known.
        hidden: Whether the package is hidden from listings.
        sync: Name of another package this one is installed together with.
        md5: MD5 checksum of the download.
        requires_unity: Whether the package needs the editor to be installed.
        app_identifier: Bundle identifier of the app in the package.
        eula_message: Message shown for extra EULA terms.
        eula_label1: Label of the first extra EULA.
        eula_url1: URL of the first extra EULA.
        eula_label2: Label of the second extra EULA.
        eula_url2: URL of the second extra EULA.
    """

    EDITOR_PACKAGE_NAME = "Unity"

    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    install: bool = False
    mandatory: bool = False
    size: int = 0
    installed_size: int = 0
    version: Optional[str] = None
    extension: Optional[str] = None
    hidden: bool = False
    sync: Optional[str] = None
    md5: Optional[str] = None
    requires_unity: bool = False
    app_identifier: Optional[str] = None
    eula_message: Optional[str] = None
    eula_label1: Optional[str] = None
    eula_url1: Optional[str] = None
    eula_label2: Optional[str] = None
    eula_url2: Optional[str] = None

    @property
    def is_editor(self) -> bool:
        """True if this is the main editor package."""
        return self.name == self.EDITOR_PACKAGE_NAME

    @property
    def extra_eulas(self) -> list[tuple[str, str]]:
        """Return the extra EULAs as ``(label, url)`` pairs."""
        eulas = []
        for label, url in (
            (self.eula_label1, self.eula_url1),
            (self.eula_label2, self.eula_url2),
        ):
            if label or url:
                eulas.append((label or "", url or ""))
        return eulas

    def resolve_file_name(self) -> str:
        """Get the local file name to save the package download as.

        The name is taken from the URL. If the package declares an extension
        that the URL's file doesn't have, ``<name>.<extension>`` is used
        instead. Older releases that give neither get the legacy installer
        extension.
        """
        url = self.url or ""
        parts = urlsplit(url)
        path = unquote(parts.path) if parts.scheme and parts.netloc else url
        # Decoded separators must not leave the download directory
        file_name = PurePosixPath(path.replace("\\", "/")).name
        if file_name in (".", ".."):
            file_name = ""

        suffix = PurePosixPath(file_name).suffix
        if self.extension is not None:
            if suffix.lower() != "." + self.extension.lower():
                file_name = f"{self.name}.{self.extension}"
        elif not suffix:
            file_name = f"{self.name}.{LEGACY_INSTALLER_EXTENSION}"

        return file_name

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {field.name: getattr(self, field.name) for field in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageMetadata":
        """Create a PackageMetadata from a dictionary, ignoring unknown keys.

        Explicit ``null`` values are treated like missing keys, so the field
        keeps its default.

        Raises:
            KeyError: If the package name is missing.
            ValueError: If the package name is not a string.
        """
        known = {field.name for field in fields(cls)}
        values = {
            key: value
            for key, value in data.items()
            if key in known and value is not None
        }
        name = data["name"]
        if not isinstance(name, str):
            raise ValueError(f"Invalid package name: {name!r}")
        values["name"] = name
        return cls(**values)


PackageList = tuple[PackageMetadata, ...]

_PLATFORM_FIELDS = {
    Platform.MAC_OS: "mac_packages",
    Platform.WINDOWS: "win_packages",
    Platform.LINUX: "linux_packages",
}


def _platform_field(platform: Platform) -> str:
    try:
        return _PLATFORM_FIELDS[platform]
    except (KeyError, TypeError):
        raise InvalidPlatformError(f"Invalid platform name: {platform}") from None


@dataclass(frozen=True)
class VersionMetadata:
    """A Unity release and the packages it offers per platform.

    A platform list of ``None`` means nothing is known about that platform,
    which is different from an empty tuple (known to offer no packages).

    Attributes:
        version: Version of the release.
        base_url: Base URL the release metadata was discovered at.
        mac_packages: macOS packages.
        win_packages: Windows packages.
        linux_packages: Linux packages.
    """

    version: UnityVersion
    base_url: Optional[str] = None
    mac_packages: Optional[PackageList] = None
    win_packages: Optional[PackageList] = None
    linux_packages: Optional[PackageList] = None

    def __post_init__(self) -> None:
        # Accept any iterable of packages but store tuples
        for name in _PLATFORM_FIELDS.values():
            packages = getattr(self, name)
            if packages is not None and not isinstance(packages, tuple):
                object.__setattr__(self, name, tuple(packages))

    @property
    def platforms(self) -> list[Platform]:
        """Platforms this record has package information for."""
        return [
            platform
            for platform, name in _PLATFORM_FIELDS.items()
            if getattr(self, name) is not None
        ]

    def get_packages(self, platform: Platform) -> Optional[PackageList]:
        """Get the package list for a platform.

        Raises:
            InvalidPlatformError: If platform is Platform.NONE or not a Platform.
        """
        return getattr(self, _platform_field(platform))

    def with_packages(
        self, platform: Platform, packages: Optional[Iterable[PackageMetadata]]
    ) -> "VersionMetadata":
        """Return a copy with the package list of one platform replaced.

        Raises:
            InvalidPlatformError: If platform is Platform.NONE or not a Platform.
        """
        name = _platform_field(platform)
        return replace(self, **{name: None if packages is None else tuple(packages)})

    def find_package(self, platform: Platform, name: str) -> Optional[PackageMetadata]:
        """Find a package by name, ignoring case.

        Returns:
            The package, or None if the platform doesn't offer it.

        Raises:
            InvalidPlatformError: If platform is Platform.NONE or not a Platform.
        """
        wanted = name.casefold()
        for package in self.get_packages(platform) or ():
            if package.name.casefold() == wanted:
                return package
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        data: dict[str, Any] = {
            "version": str(self.version),
            "base_url": self.base_url,
        }
        for name in _PLATFORM_FIELDS.values():
            packages = getattr(self, name)
            data[name] = (
                None if packages is None else [package.to_dict() for package in packages]
            )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionMetadata":
        """Create a VersionMetadata from a dictionary, ignoring unknown keys.

        Raises:
            KeyError: If the version is missing.
            VersionParseError: If the version cannot be parsed.
        """
        values: dict[str, Any] = {
            "version": UnityVersion.parse(data["version"]),
            "base_url": data.get("base_url"),
        }
        for name in _PLATFORM_FIELDS.values():
            packages = data.get(name)
            if packages is not None:
                values[name] = tuple(PackageMetadata.from_dict(p) for p in packages)
        return cls(**values)


def merge_versions(existing: VersionMetadata, incoming: VersionMetadata) -> VersionMetadata:
    """Merge newly discovered data for a release into an existing record.

    The version of ``existing`` is kept. The base URL and each platform's
    package list are taken from ``incoming`` only where it has a value, so
    missing information never erases what is already known.

    Args:
        existing: Record currently in the index.
        incoming: Record describing the same release with new information.

    Returns:
        The merged record.
    """
    merged = existing
    if incoming.base_url is not None:
        merged = replace(merged, base_url=incoming.base_url)
    for platform in _PLATFORM_FIELDS:
        packages = incoming.get_packages(platform)
        if packages is not None:
            merged = merged.with_packages(platform, packages)
    return merged
