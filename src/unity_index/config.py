"""Configuration defaults for unity_index."""

import os
from datetime import timedelta
from pathlib import Path

# Environment variable names
ENV_CACHE_FILE = "UNITY_INDEX_CACHE"
ENV_MIRROR_URL = "UNITY_INDEX_MIRROR"

CACHE_FILE_NAME = "versions.json"

# How old a release type's versions may get before `update` refetches them
DEFAULT_MAX_AGE = timedelta(hours=24)


def default_cache_path() -> Path:
    """Get the path of the versions cache file.

    Returns:
        The path from the UNITY_INDEX_CACHE environment variable if set,
        else ~/.cache/unity_index/versions.json.
    """
    value = os.getenv(ENV_CACHE_FILE)
    if value:
        return Path(value).expanduser()
    return Path.home() / ".cache" / "unity_index" / CACHE_FILE_NAME
