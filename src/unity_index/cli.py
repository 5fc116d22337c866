"""Command-line interface for unity_index.

Provides subcommands for listing and inspecting known Unity versions,
refreshing the index from a mirror and managing the cache file.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from unity_index.cache import NEVER, VersionsCache
from unity_index.config import (
    DEFAULT_MAX_AGE,
    ENV_CACHE_FILE,
    ENV_MIRROR_URL,
    default_cache_path,
)
from unity_index.discovery import DiscoveryError, MirrorDiscoverer, needs_refresh, refresh
from unity_index.models import InvalidPlatformError, Platform, VersionMetadata
from unity_index.version import ReleaseType, UnityVersion, VersionParseError

app = typer.Typer(
    name="unity-index",
    help="Local index of installable Unity versions and their packages.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger("unity_index")

CacheFileOption = Annotated[
    Optional[Path],
    typer.Option(
        "--cache-file",
        "-c",
        envvar=ENV_CACHE_FILE,
        help="Path to the versions cache file",
    ),
]

VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
]


def _setup_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("unity_index").setLevel(level)


def _open_cache(cache_file: Optional[Path]) -> VersionsCache:
    """Load the versions cache, warning if an existing file was unreadable."""
    cache = VersionsCache(cache_file or default_cache_path())
    if cache.load_error is not None:
        err_console.print(
            f"[yellow]Warning:[/yellow] Versions cache was unreadable and has "
            f"been reset: {cache.load_error}"
        )
    return cache


def _parse_version(text: str) -> UnityVersion:
    try:
        return UnityVersion.parse(text)
    except VersionParseError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


def _parse_release_types(types: Optional[list[str]]) -> list[ReleaseType]:
    if not types:
        return [ReleaseType.FINAL, ReleaseType.PATCH, ReleaseType.BETA, ReleaseType.ALPHA]
    try:
        return [ReleaseType.from_key(value) for value in types]
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


def _find_or_exit(cache: VersionsCache, text: str) -> VersionMetadata:
    version = _parse_version(text)
    metadata = cache.find(version)
    if metadata is None:
        err_console.print(f"[red]Error:[/red] No known Unity version matches {text}")
        raise typer.Exit(code=1)
    return metadata


def _format_size(size: int) -> str:
    return f"{size / (1024 * 1024):.1f} MB"


@app.command("list")
def list_versions(
    release_type: Annotated[
        Optional[list[str]],
        typer.Option(
            "--type",
            "-t",
            help="Only list this release type (final, patch, beta, alpha)",
        ),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option(
            "--limit",
            "-n",
            min=1,
            help="Maximum number of versions to list",
        ),
    ] = None,
    cache_file: CacheFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List known Unity versions, newest first."""
    _setup_logging(verbose)
    types = set(_parse_release_types(release_type))
    cache = _open_cache(cache_file)

    versions = [metadata for metadata in cache if metadata.version.type in types]
    if limit is not None:
        versions = versions[:limit]

    if not versions:
        console.print("[yellow]No known versions[/yellow]")
        return

    for metadata in versions:
        platforms = ", ".join(platform.value for platform in metadata.platforms)
        console.print(f"{metadata.version}  [dim]{platforms}[/dim]")


@app.command()
def show(
    version: Annotated[
        str,
        typer.Argument(help="Full or partial Unity version, e.g. 2021.3 or 2021.3.5f1"),
    ],
    cache_file: CacheFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show the newest known version matching VERSION."""
    _setup_logging(verbose)
    cache = _open_cache(cache_file)
    metadata = _find_or_exit(cache, version)

    console.print(f"[bold]Version:[/bold] {metadata.version}")
    console.print(f"[bold]Base URL:[/bold] {metadata.base_url or '-'}")
    for platform in (Platform.MAC_OS, Platform.WINDOWS, Platform.LINUX):
        packages = metadata.get_packages(platform)
        count = "unknown" if packages is None else f"{len(packages)} packages"
        console.print(f"[bold]{platform.value}:[/bold] {count}")


@app.command()
def packages(
    version: Annotated[
        str,
        typer.Argument(help="Full or partial Unity version"),
    ],
    platform: Annotated[
        str,
        typer.Option(
            "--platform",
            "-p",
            help="Platform to list packages for (mac, win, linux)",
        ),
    ] = "mac",
    show_hidden: Annotated[
        bool,
        typer.Option(
            "--hidden",
            help="Include hidden packages",
        ),
    ] = False,
    cache_file: CacheFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List the packages a version offers on a platform."""
    _setup_logging(verbose)
    try:
        target = Platform.from_name(platform)
    except InvalidPlatformError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    cache = _open_cache(cache_file)
    metadata = _find_or_exit(cache, version)

    package_list = metadata.get_packages(target)
    if package_list is None:
        console.print(
            f"[yellow]No package information for {metadata.version} on {target.value}[/yellow]"
        )
        return

    table = Table(title=f"Unity {metadata.version} ({target.value})")
    table.add_column("Name")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Default")

    for package in package_list:
        if package.hidden and not show_hidden:
            continue
        table.add_row(
            package.name,
            package.resolve_file_name(),
            _format_size(package.size),
            "yes" if package.install or package.mandatory else "",
        )

    console.print(table)


async def _run_update(
    cache: VersionsCache,
    mirror: str,
    release_types: list[ReleaseType],
) -> list[VersionMetadata]:
    async with MirrorDiscoverer(mirror) as discoverer:
        return await refresh(cache, discoverer, release_types)


@app.command()
def update(
    mirror: Annotated[
        str,
        typer.Option(
            "--mirror",
            "-m",
            envvar=ENV_MIRROR_URL,
            help="URL of a published versions cache file",
        ),
    ],
    release_type: Annotated[
        Optional[list[str]],
        typer.Option(
            "--type",
            "-t",
            help="Release type to refresh (final, patch, beta, alpha)",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Refresh even if the cache was updated recently",
        ),
    ] = False,
    cache_file: CacheFileOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Refresh the index from a mirror and save it."""
    _setup_logging(verbose)
    types = _parse_release_types(release_type)
    cache = _open_cache(cache_file)

    if not force:
        types = [t for t in types if needs_refresh(cache, t, DEFAULT_MAX_AGE)]
        if not types:
            console.print("[green]Versions cache is up to date[/green]")
            return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Refreshing versions...", total=None)
        try:
            new_versions = asyncio.run(_run_update(cache, mirror, types))
        except DiscoveryError as e:
            err_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=1)
        progress.update(task, completed=True)

    if new_versions:
        console.print(f"Found [bold]{len(new_versions)}[/bold] new versions:")
        for metadata in sorted(new_versions, key=lambda m: m.version, reverse=True):
            console.print(f"  - {metadata.version}")
    else:
        console.print("No new versions found")

    if not cache.save():
        err_console.print("[red]Error:[/red] Could not save versions cache")
        raise typer.Exit(code=1)


@app.command()
def cache(
    action: Annotated[
        str,
        typer.Argument(help="Cache action: 'show' or 'clear'"),
    ],
    cache_file: CacheFileOption = None,
) -> None:
    """Manage the versions cache file.

    Actions:
        show  - Display cache location, version count, size and update times
        clear - Remove all cached versions
    """
    cache_instance = _open_cache(cache_file)

    if action == "show":
        info = cache_instance.info()
        console.print(f"[bold]Cache Location:[/bold] {info['path']}")
        console.print(f"[bold]Versions:[/bold] {info['count']}")
        console.print(f"[bold]Size:[/bold] {info['size_bytes'] / 1024:.1f} KB")
        for release_type in ReleaseType:
            if release_type is ReleaseType.UNDEFINED:
                continue
            updated = cache_instance.get_last_update(release_type)
            when = "never" if updated == NEVER else updated.isoformat()
            console.print(f"[bold]Updated ({release_type.key}):[/bold] {when}")

    elif action == "clear":
        cache_instance.clear()
        if not cache_instance.save():
            err_console.print("[red]Error:[/red] Could not save versions cache")
            raise typer.Exit(code=1)
        console.print("[green]Cache cleared[/green]")

    else:
        err_console.print(f"[red]Unknown action:[/red] {action}")
        err_console.print("Valid actions: show, clear")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
