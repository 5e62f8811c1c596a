"""Run cargo and check whether a package version is published in a registry."""

from __future__ import annotations

import concurrent.futures
import json
import logging
import os
import subprocess
import sys
import threading
import time
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import Protocol

__all__ = [
    "PublishTimeoutError",
    "SparseIndex",
    "run_cargo",
    "is_version_present",
    "is_published",
    "wait_until_published",
]

logger = logging.getLogger(__name__)

_SLEEP_TIME = 2.0


class PublishTimeoutError(TimeoutError):
    """A package did not show up in the registry in time."""


class _Index(Protocol):
    def crate_versions(self, crate_name: str) -> list[str] | None: ...


def _index_path(name: str) -> str:
    name = name.lower()
    if len(name) == 1:
        return f"1/{name}"
    if len(name) == 2:
        return f"2/{name}"
    if len(name) == 3:
        return f"3/{name[0]}/{name}"
    return f"{name[:2]}/{name[2:4]}/{name}"


class SparseIndex:
    """A registry index served over HTTP with the sparse protocol."""

    def __init__(self, url: str, request_timeout: float | None = 30.0) -> None:
        url = url.removeprefix("sparse+")
        self.url = url if url.endswith("/") else url + "/"
        self.request_timeout = request_timeout

    def crate_versions(self, crate_name: str) -> list[str] | None:
        """Versions listed for ``crate_name``, or ``None`` if it is unknown."""
        request = urllib.request.Request(
            self.url + _index_path(crate_name), headers={"User-Agent": "relplz"}
        )
        try:
            with urllib.request.urlopen(request, timeout=self.request_timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            if exc.code in (404, 410, 451):
                return None
            raise
        versions = []
        for line in body.splitlines():
            if line.strip():
                versions.append(json.loads(line)["vers"])
        return versions


def _seconds(timeout: float | timedelta) -> float:
    return timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)


def run_cargo(root: str | os.PathLike[str], args: Sequence[str]) -> tuple[str, str]:
    """Run cargo in ``root``, echoing its stderr; return trimmed (stdout, stderr)."""
    logger.debug("cargo %s", " ".join(args))
    cargo = os.environ.get("CARGO", "cargo")
    try:
        child = subprocess.Popen(
            [cargo, *args],
            cwd=os.fspath(root),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise OSError(f"cannot run cargo: {exc}") from exc

    stdout_chunks: list[bytes] = []
    reader = threading.Thread(target=lambda: stdout_chunks.append(child.stdout.read()))
    reader.start()
    stderr_lines = []
    for raw in child.stderr:
        line = raw.decode("utf-8").rstrip("\r\n")
        print(line, file=sys.stderr)
        stderr_lines.append(line)
    reader.join()
    child.wait()
    child.stdout.close()
    child.stderr.close()

    stdout = b"".join(stdout_chunks).decode("utf-8")
    stderr = "\n".join(stderr_lines)
    logger.debug("cargo stderr: %s", stderr)
    logger.debug("cargo stdout: %s", stdout)
    return stdout.strip(), stderr.strip()


def is_version_present(version: object, versions: Iterable[str]) -> bool:
    """``True`` if ``version`` is among ``versions``."""
    wanted = str(version)
    return any(v == wanted for v in versions)


def is_published(index: _Index, name: str, version: object, timeout: float | timedelta) -> bool:
    """``True`` if ``name`` at ``version`` is in ``index``; fails after ``timeout``."""
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(index.crate_versions, name)
        try:
            versions = future.result(timeout=_seconds(timeout))
        except concurrent.futures.TimeoutError:
            raise PublishTimeoutError(f"timeout while publishing {name}") from None
    finally:
        executor.shutdown(wait=False)
    return versions is not None and is_version_present(version, versions)


def wait_until_published(
    index: _Index, name: str, version: object, timeout: float | timedelta
) -> None:
    """Poll ``index`` until the version appears, or raise after ``timeout``."""
    start = time.monotonic()
    limit = _seconds(timeout)
    logged = False
    while not is_published(index, name, version, timeout):
        if limit < time.monotonic() - start:
            raise PublishTimeoutError(
                f"timeout of {timeout} elapsed while publishing the package {name}. "
                "You can increase this timeout by editing the `publish_timeout` field "
                "in the `release-plz.toml` file"
            )
        if not logged:
            logger.info("waiting for the package %s to be published...", name)
            logged = True
        time.sleep(_SLEEP_TIME)