"""Check whether a newer release of this tool is available."""

from __future__ import annotations

import json
import urllib.request
from importlib import metadata

__all__ = [
    "RELEASES_URL",
    "TAG_PREFIX",
    "extract_version",
    "get_latest_version",
    "check_update",
]

RELEASES_URL = "https://api.github.com/repos/relplz/relplz/releases/latest"
TAG_PREFIX = "release-plz-v"
_USER_AGENT = "release-plz"
_REQUEST_TIMEOUT = 30.0


def extract_version(tag: str) -> str | None:
    """The version in a release tag such as ``release-plz-v0.2.37``."""
    if tag.startswith(TAG_PREFIX):
        return tag[len(TAG_PREFIX) :]
    return None


def _current_version() -> str:
    try:
        return metadata.version("relplz")
    except metadata.PackageNotFoundError:
        return "unknown"


def get_latest_version() -> str:
    """Version of the latest published release.

    Raises ``OSError`` if the request fails and ``ValueError`` if the
    response cannot be understood.
    """
    request = urllib.request.Request(RELEASES_URL, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=_REQUEST_TIMEOUT) as response:
            body = response.read()
    except OSError as exc:
        raise OSError(f"error while sending request: {exc}") from exc
    try:
        tag_name = json.loads(body)["tag_name"]
    except (ValueError, KeyError, TypeError) as exc:
        raise ValueError("can't parse response") from exc
    if not isinstance(tag_name, str):
        raise ValueError("can't parse response")
    version = extract_version(tag_name)
    if version is None:
        raise ValueError(f"can't extract latest release-plz version from tag name {tag_name}")
    return version


def check_update() -> None:
    """Print whether the installed version is the latest one."""
    current = _current_version()
    latest = get_latest_version()
    if latest != current:
        print(f"Your release-plz version is {current}. A newer version ({latest}) is available")
    else:
        print(f"Your release-plz version ({current}) is up to date")