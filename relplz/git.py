"""Run ``git`` in a directory and interpret its output."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

__all__ = [
    "GitError",
    "Repo",
    "changed_files",
    "git_in_dir",
    "string_from_bytes",
]

logger = logging.getLogger(__name__)

_NO_COMMIT_MESSAGE = (
    "fatal: ambiguous argument 'HEAD': unknown revision or path not in the working tree."
)
_NO_UPSTREAM_MESSAGE = "fatal: no upstream configured for branch"


class GitError(Exception):
    """A git command failed or its output could not be understood."""


def _debug_list(items: Iterable[str]) -> str:
    quoted = ", ".join('"' + item.replace("\\", "\\\\").replace('"', '\\"') + '"' for item in items)
    return f"[{quoted}]"


def string_from_bytes(data: bytes) -> str:
    """Decode ``data`` as UTF-8 and strip surrounding whitespace."""
    try:
        return data.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise GitError("cannot extract stderr") from exc


def git_in_dir(directory: str | os.PathLike[str], args: Sequence[str]) -> str:
    """Run ``git -C directory args`` and return its trimmed stdout."""
    trimmed = [str(arg).strip() for arg in args]
    try:
        output = subprocess.run(
            ["git", "-C", os.fspath(directory), *trimmed],
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        raise GitError(
            f"error while running git in directory `{os.fspath(directory)!r}` "
            f"with args `{_debug_list(trimmed)}`"
        ) from exc
    logger.debug("git %s: output = %r", trimmed, output)
    stdout = string_from_bytes(output.stdout)
    if output.returncode == 0:
        return stdout
    stderr = string_from_bytes(output.stderr)
    error = f"error while running git with args `{_debug_list(trimmed)}"
    if stdout or stderr:
        error += ":"
    if stdout:
        error += f"\n- stdout: {stdout}"
    if stderr:
        error += f"\n- stderr: {stderr}"
    raise GitError(error)


def changed_files(output: str) -> list[str]:
    """Files listed by ``git status --porcelain``, without type changes."""
    lines = (line.strip() for line in output.splitlines())
    return [line.rsplit(" ", 1)[-1] for line in lines if not line.startswith("T ")]


def _current_branch(directory: Path) -> str:
    try:
        return git_in_dir(directory, ["rev-parse", "--abbrev-ref", "HEAD"])
    except GitError as exc:
        if _NO_COMMIT_MESSAGE in str(exc):
            raise GitError("git repository does not contain any commit.") from exc
        raise


def _current_remote_and_branch(directory: Path) -> tuple[str, str]:
    try:
        output = git_in_dir(
            directory,
            ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"],
        )
    except GitError as exc:
        message = str(exc)
        if _NO_UPSTREAM_MESSAGE in message:
            branch = _current_branch(directory)
            logger.warning("no upstream configured for branch %s", branch)
            return "origin", branch
        if _NO_COMMIT_MESSAGE in message:
            raise GitError("git repository does not contain any commit.") from exc
        raise
    remote, sep, branch = output.partition("/")
    if not sep:
        raise GitError("cannot determine current remote and branch")
    return remote, branch


class Repo:
    """A git repository, remembering the branch and remote it started on."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        directory = Path(directory)
        logger.debug("initializing directory %s", directory)
        try:
            remote, branch = _current_remote_and_branch(directory)
        except GitError as exc:
            raise GitError(f"cannot determine current branch: {exc}") from exc
        self._directory = directory
        self._original_branch = branch
        self._original_remote = remote

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def original_branch(self) -> str:
        """Branch checked out when the repository was opened."""
        return self._original_branch

    @property
    def original_remote(self) -> str:
        """Remote in use when the repository was opened."""
        return self._original_remote

    def git(self, *args: str) -> str:
        """Run a git command in the repository directory."""
        return git_in_dir(self._directory, args)

    def is_clean(self) -> None:
        """Raise ``GitError`` if there are uncommitted changes."""
        changes = self.changes_except_typechanges()
        if changes:
            raise GitError(
                "the working directory of this project has uncommitted changes. "
                f"Please commit or stash these changes:\n{_debug_list(changes)}"
            )

    def checkout_new_branch(self, branch: str) -> None:
        self.git("checkout", "-b", branch)

    def add_all_and_commit(self, message: str) -> None:
        self.git("add", ".")
        self.git("commit", "-m", message)

    def changes_except_typechanges(self) -> list[str]:
        return changed_files(self.git("status", "--porcelain"))

    def add(self, paths: Iterable[str | os.PathLike[str]]) -> None:
        self.git("add", *(os.fspath(p) for p in paths))

    def commit(self, message: str) -> None:
        self.git("commit", "-m", message)

    def commit_signed(self, message: str) -> None:
        self.git("commit", "-s", "-m", message)

    def push(self, obj: str) -> None:
        self.git("push", self._original_remote, obj)

    def fetch(self, obj: str) -> None:
        self.git("fetch", self._original_remote, obj)

    def force_push(self, obj: str) -> None:
        self.git("push", self._original_remote, obj, "--force")

    def checkout_head(self) -> None:
        """Go back to the branch checked out when the repository was opened."""
        self.checkout(self._original_branch)

    def stash_pop(self) -> None:
        self.git("stash", "pop")

    def checkout_last_commit_at_path(self, path: str | os.PathLike[str]) -> None:
        """Check out the latest commit that touched ``path``."""
        self.checkout(self._nth_commit_at_path(1, path))

    def checkout_previous_commit_at_path(self, path: str | os.PathLike[str]) -> None:
        """Check out the second latest commit that touched ``path``."""
        self.checkout(self._nth_commit_at_path(2, path))

    def checkout(self, obj: str) -> None:
        self.git("checkout", obj)

    def _nth_commit_at_path(self, nth: int, path: str | os.PathLike[str]) -> str:
        commit_list = self.git("log", "--format=%H", "-n", str(nth), "--", os.fspath(path))
        commits = commit_list.splitlines()
        if len(commits) < nth:
            raise GitError("not enough commits")
        commit = commits[nth - 1]
        logger.debug("nth_commit found: %s", commit)
        return commit

    def current_commit_message(self) -> str:
        return self.git("log", "-1", "--pretty=format:%B")

    def current_commit_hash(self) -> str:
        return self.git("log", "-1", "--pretty=format:%H")

    def tag(self, name: str) -> str:
        """Create a git tag."""
        return self.git("tag", name)

    def get_tag_commit(self, tag: str) -> str | None:
        """Commit hash the tag points to, or ``None``."""
        try:
            return self.git("rev-list", "-n", "1", tag)
        except GitError:
            return None

    def is_ancestor(self, maybe_ancestor_commit: str, descendant_commit: str) -> bool:
        """``True`` if the first commit comes before the second one."""
        try:
            self.git("merge-base", "--is-ancestor", maybe_ancestor_commit, descendant_commit)
        except GitError:
            return False
        return True

    def original_remote_url(self) -> str:
        """URL of the remote in use when the repository was opened."""
        return self.git("config", "--get", f"remote.{self._original_remote}.url")

    def tag_exists(self, tag: str) -> bool:
        try:
            output = self.git("tag", "-l", tag)
        except GitError as exc:
            raise GitError(f"cannot determine if git tag exists: {exc}") from exc
        return len(output.splitlines()) >= 1