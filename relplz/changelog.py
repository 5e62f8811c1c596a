"""Generate and update Keep-a-Changelog files from commit messages."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from datetime import time as dtime
from typing import Any

import jinja2

from relplz.changelog_parser import parse_header

__all__ = [
    "CHANGELOG_HEADER",
    "CHANGELOG_FILENAME",
    "NO_COMMIT_ID",
    "Commit",
    "CommitParser",
    "GitConfig",
    "ChangelogConfig",
    "CliffConfig",
    "Changelog",
    "ChangelogBuilder",
    "default_changelog_config",
    "default_git_config",
    "commit_parsers",
]

logger = logging.getLogger(__name__)

CHANGELOG_HEADER = """# Changelog
All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

## [Unreleased]
"""

CHANGELOG_FILENAME = "CHANGELOG.md"

NO_COMMIT_ID = "N/A"

_SUMMARY_RE = re.compile(
    r"(?P<type>[A-Za-z][\w-]*)(?:\((?P<scope>[^()\r\n]+)\))?(?P<bang>!)?: (?P<description>\S.*)"
)
_FOOTER_RE = re.compile(r"(?P<token>BREAKING[ -]CHANGE|[\w-]+)(?:: | #)(?P<value>.*)")
_BREAKING_TOKENS = ("BREAKING CHANGE", "BREAKING-CHANGE")


class _CommitSkipped(ValueError):
    """The commit is left out of the changelog."""


@dataclass(frozen=True)
class _Conventional:
    type: str
    scope: str | None
    description: str
    body: str | None
    footers: tuple[tuple[str, str], ...]
    breaking: bool
    breaking_description: str | None


def _parse_conventional(message: str) -> _Conventional | None:
    text = message.strip()
    if not text:
        return None
    summary, _, rest = text.partition("\n")
    match = _SUMMARY_RE.fullmatch(summary.rstrip("\r"))
    if match is None:
        return None

    paragraphs = [p.strip() for p in re.split(r"\r?\n\s*\r?\n", rest.strip()) if p.strip()]
    footers: list[tuple[str, str]] = []
    if paragraphs and _FOOTER_RE.match(paragraphs[-1].splitlines()[0]):
        for line in paragraphs.pop().splitlines():
            footer = _FOOTER_RE.match(line)
            if footer:
                footers.append((footer["token"], footer["value"].strip()))
            elif footers:
                token, value = footers[-1]
                footers[-1] = (token, f"{value}\n{line.strip()}")
    body = "\n\n".join(paragraphs) or None

    breaking_footer = next((value for token, value in footers if token in _BREAKING_TOKENS), None)
    breaking = match["bang"] is not None or breaking_footer is not None
    breaking_description = None
    if breaking:
        breaking_description = breaking_footer if breaking_footer is not None else match["description"]
    return _Conventional(
        type=match["type"],
        scope=match["scope"],
        description=match["description"].strip(),
        body=body,
        footers=tuple(footers),
        breaking=breaking,
        breaking_description=breaking_description,
    )


def _compile(pattern: str | re.Pattern[str] | None) -> re.Pattern[str] | None:
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


@dataclass
class CommitParser:
    """Assigns a group to the commits whose message or body matches."""

    message: re.Pattern[str] | str | None = None
    body: re.Pattern[str] | str | None = None
    group: str | None = None
    default_scope: str | None = None
    scope: str | None = None
    skip: bool | None = None

    def __post_init__(self) -> None:
        self.message = _compile(self.message)
        self.body = _compile(self.body)


@dataclass
class GitConfig:
    """How commits are parsed, grouped, filtered and sorted."""

    conventional_commits: bool | None = None
    filter_unconventional: bool | None = None
    commit_parsers: list[CommitParser] | None = None
    protect_breaking_commits: bool | None = None
    filter_commits: bool | None = None
    sort_commits: str | None = None


@dataclass
class ChangelogConfig:
    """Header, body template, footer and trimming of the changelog."""

    header: str | None = None
    body: str | None = None
    footer: str | None = None
    trim: bool | None = None


@dataclass
class CliffConfig:
    """Changelog and git settings together."""

    changelog: ChangelogConfig = field(default_factory=ChangelogConfig)
    git: GitConfig = field(default_factory=GitConfig)


@dataclass
class Commit:
    """A commit: its id, its message and what processing found out about it."""

    id: str
    message: str
    group: str | None = None
    scope: str | None = None
    default_scope: str | None = None
    conv: _Conventional | None = field(default=None, repr=False)

    def process(self, config: GitConfig) -> Commit:
        """Parse and group the commit; raises ``ValueError`` if it is left out."""
        commit = replace(self)
        if config.conventional_commits is not False:
            conv = _parse_conventional(commit.message)
            if conv is not None:
                commit.conv = conv
            elif config.filter_unconventional is not False:
                raise _CommitSkipped(f"not a conventional commit: {commit.message!r}")
        if config.commit_parsers is not None:
            commit = commit._apply_parsers(
                config.commit_parsers,
                protect_breaking=bool(config.protect_breaking_commits),
                filter_commits=bool(config.filter_commits),
            )
        return commit

    def _apply_parsers(
        self, parsers: Iterable[CommitParser], protect_breaking: bool, filter_commits: bool
    ) -> Commit:
        body = self.conv.body if self.conv is not None and self.conv.body is not None else ""
        breaking = self.conv is not None and self.conv.breaking
        for parser in parsers:
            checks = []
            if parser.message is not None:
                checks.append((parser.message, self.message))
            if parser.body is not None:
                checks.append((parser.body, body))
            for regex, text in checks:
                if regex.search(text):
                    if parser.skip and not (protect_breaking and breaking):
                        raise _CommitSkipped("commit skipped by a parser")
                    return replace(
                        self,
                        group=parser.group,
                        scope=parser.scope,
                        default_scope=parser.default_scope,
                    )
        if filter_commits:
            raise _CommitSkipped("no commit parser matched")
        return self

    def _context(self) -> dict[str, Any]:
        conv = self.conv
        group = self.group
        scope = self.scope
        if conv is not None:
            if group is None:
                group = conv.type
            if scope is None:
                scope = conv.scope
        if scope is None:
            scope = self.default_scope
        return {
            "id": self.id,
            "message": conv.description if conv is not None else self.message,
            "body": conv.body if conv is not None else None,
            "footers": [
                {"token": token, "value": value, "breaking": token in _BREAKING_TOKENS}
                for token, value in (conv.footers if conv is not None else ())
            ],
            "group": group,
            "scope": scope,
            "breaking": conv is not None and conv.breaking,
            "breaking_description": conv.breaking_description if conv is not None else None,
            "conventional": conv is not None,
            "links": [],
        }


@dataclass
class _Release:
    version: str | None
    commits: list[Commit]
    commit_id: str | None
    timestamp: int
    previous: _Release | None = None

    def _context(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "commits": [c._context() for c in self.commits],
            "commit_id": self.commit_id,
            "timestamp": self.timestamp,
            "previous": None if self.previous is None else self.previous._context(),
        }


def _lookup(item: Any, attribute: str) -> Any:
    for part in attribute.split("."):
        if not isinstance(item, Mapping):
            return None
        item = item.get(part)
    return item


def _group_by(items: Iterable[Any], attribute: str) -> list[tuple[str, list[Any]]]:
    groups: dict[str, list[Any]] = {}
    for item in items:
        key = _lookup(item, attribute)
        if key is not None:
            groups.setdefault(str(key), []).append(item)
    return sorted(groups.items())


def _upper_first(value: Any) -> str:
    text = str(value)
    return text[:1].upper() + text[1:]


def _trim_start_matches(value: Any, pat: str) -> str:
    text = str(value)
    if pat:
        while text.startswith(pat):
            text = text[len(pat) :]
    return text


def _trim_end_matches(value: Any, pat: str) -> str:
    text = str(value)
    if pat:
        while text.endswith(pat):
            text = text[: -len(pat)]
    return text


def _date(value: Any, format: str = "%Y-%m-%d") -> str:
    return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime(format)


def _split(value: Any, pat: str) -> list[str]:
    return str(value).split(pat)


def _environment() -> jinja2.Environment:
    env = jinja2.Environment(keep_trailing_newline=True, autoescape=False)
    env.filters.update(
        group_by=_group_by,
        upper_first=_upper_first,
        trim_start_matches=_trim_start_matches,
        trim_end_matches=_trim_end_matches,
        trim_start=lambda value: str(value).lstrip(),
        trim_end=lambda value: str(value).rstrip(),
        date=_date,
        split=_split,
    )
    return env


_ENV = _environment()


def _render(template: str, trim: bool, context: Mapping[str, Any]) -> str:
    if trim:
        lines = template.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        template = "\n".join(line.strip() for line in lines)
    try:
        return _ENV.from_string(template).render(context)
    except jinja2.TemplateError as exc:
        raise ValueError(f"error while rendering changelog template: {exc}") from exc


def _render_changelog(releases: list[_Release], config: CliffConfig) -> str:
    changelog = config.changelog
    trim = changelog.trim is not False
    releases = [r for r in releases if r.commits]
    parts = []
    if changelog.header is not None:
        parts.append(changelog.header)
    parts.extend(_render(changelog.body or "", trim, r._context()) for r in releases)
    if changelog.footer is not None:
        parts.append(_render(changelog.footer, trim, {"releases": [r._context() for r in releases]}))
    return "".join(parts)


def _is_version_unchanged(release: _Release) -> bool:
    previous = release.previous.version if release.previous is not None else None
    return previous == release.version


def _default_cliff_config(header: str | None, release_link: str | None) -> CliffConfig:
    return CliffConfig(
        changelog=default_changelog_config(header, release_link),
        git=default_git_config(),
    )


@dataclass
class Changelog:
    """The changelog entry of one release, ready to be rendered."""

    release: _Release
    config: CliffConfig | None = None
    release_link: str | None = None

    def generate(self) -> str:
        """The full changelog: header and this release."""
        config = self.config or _default_cliff_config(None, self.release_link)
        return _render_changelog([self.release], config)

    def prepend(self, old_changelog: str) -> str:
        """Add this release on top of an existing changelog."""
        old_changelog = str(old_changelog)
        if _is_version_unchanged(self.release):
            return old_changelog
        config = self.config or _default_cliff_config(
            parse_header(old_changelog), self.release_link
        )
        header = config.changelog.header
        if header is not None:
            old_changelog = old_changelog.replace(header, "", 1)
        return _render_changelog([self.release], config) + old_changelog


@dataclass
class ChangelogBuilder:
    """Collects what is needed to build a :class:`Changelog`."""

    commits: list[Commit]
    version: str
    previous_version: str | None = None
    config: CliffConfig | None = None
    release_date: date | None = None
    release_link: str | None = None

    def with_previous_version(self, previous_version: str) -> ChangelogBuilder:
        return replace(self, previous_version=str(previous_version))

    def with_release_date(self, release_date: date) -> ChangelogBuilder:
        return replace(self, release_date=release_date)

    def with_release_link(self, release_link: str) -> ChangelogBuilder:
        return replace(self, release_link=str(release_link))

    def with_config(self, config: CliffConfig) -> ChangelogBuilder:
        return replace(self, config=config)

    def build(self) -> Changelog:
        """Process the commits and assemble the release."""
        git_config = self.config.git if self.config is not None else default_git_config()
        commits = []
        for commit in self.commits:
            try:
                commits.append(commit.process(git_config))
            except ValueError:
                continue

        sort = git_config.sort_commits.lower() if git_config.sort_commits is not None else None
        if sort == "oldest":
            commits.reverse()
        elif sort not in (None, "newest"):
            logger.warning(
                "Invalid setting for sort_commits: '%s'. Valid values are 'newest' and 'oldest'.",
                sort,
            )

        previous = None
        if self.previous_version is not None:
            previous = _Release(
                version=self.previous_version, commits=[], commit_id=None, timestamp=0
            )
        release = _Release(
            version=self.version,
            commits=commits,
            commit_id=None,
            timestamp=self._release_timestamp(),
            previous=previous,
        )
        return Changelog(release=release, config=self.config, release_link=self.release_link)

    def _release_timestamp(self) -> int:
        if self.release_date is None:
            return int(time.time())
        midnight = datetime.combine(self.release_date, dtime(), tzinfo=timezone.utc)
        return int(midnight.timestamp())


def default_git_config() -> GitConfig:
    """Conventional commits grouped the Keep-a-Changelog way."""
    return GitConfig(
        conventional_commits=True,
        filter_unconventional=False,
        commit_parsers=commit_parsers(),
        filter_commits=True,
    )


def commit_parsers() -> list[CommitParser]:
    """Parsers for the Keep-a-Changelog sections."""
    return [
        CommitParser(message="^feat", group="added"),
        CommitParser(message="^changed", group="changed"),
        CommitParser(message="^deprecated", group="deprecated"),
        CommitParser(message="^removed", group="removed"),
        CommitParser(message="^fix", group="fixed"),
        CommitParser(message="^security", group="security"),
        CommitParser(message=".*", group="other"),
    ]


_BODY_PRE = '\n    ## [{{ version | trim_start_matches(pat="v") }}]'
_BODY_POST = (
    ' - {{ timestamp | date(format="%Y-%m-%d") }}\n'
    '{% for group, commits in commits | group_by(attribute="group") %}\n'
    "### {{ group | upper_first }}\n"
    "{% for commit in commits %}\n"
    "{%- if commit.scope -%}\n"
    "- *({{commit.scope}})* {% if commit.breaking %}[**breaking**] {% endif %}"
    "{{ commit.message }}{%- if commit.links %} ({% for link in commit.links %}"
    "[{{link.text}}]({{link.href}}) {% endfor -%}){% endif %}\n"
    "{% else -%}\n"
    "- {% if commit.breaking %}[**breaking**] {% endif %}{{ commit.message }}\n"
    "{% endif -%}\n"
    "{% endfor -%}\n"
    "{% endfor %}"
)


def _default_body(release_link: str | None) -> str:
    if release_link is not None:
        return f"{_BODY_PRE}({release_link}){_BODY_POST}"
    return _BODY_PRE + _BODY_POST


def default_changelog_config(
    header: str | None = None, release_link: str | None = None
) -> ChangelogConfig:
    """Keep-a-Changelog layout, optionally with a custom header and a release link."""
    return ChangelogConfig(
        header=header if header is not None else CHANGELOG_HEADER,
        body=_default_body(release_link),
        footer=None,
        trim=True,
    )