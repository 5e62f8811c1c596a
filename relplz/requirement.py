"""Cargo-style version requirements and their upgrade to a new version."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace

import semver

__all__ = [
    "UnsupportedRequirementError",
    "Op",
    "Comparator",
    "VersionReq",
    "upgrade_requirement",
]

_IDENT = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_PART = r"\d+|[*xX]"
_COMPARATOR_RE = re.compile(
    rf"(?P<op>>=|<=|=|>|<|~|\^)?\s*"
    rf"(?P<major>{_PART})"
    rf"(?:\.(?P<minor>{_PART})"
    rf"(?:\.(?P<patch>{_PART})"
    rf"(?:-(?P<pre>{_IDENT}))?"
    rf"(?:\+(?P<build>{_IDENT}))?"
    rf")?)?"
)
_WILDCARDS = frozenset("*xX")


class UnsupportedRequirementError(ValueError):
    """The requirement uses an operator that cannot be upgraded."""

    def __init__(self, requirement: str) -> None:
        super().__init__(f"Support for modifying {requirement} is currently unsupported")
        self.requirement = requirement


class Op(enum.Enum):
    """Comparison operator of a requirement comparator."""

    EXACT = "="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    TILDE = "~"
    CARET = "^"
    WILDCARD = ""


_OPS_BY_SYMBOL = {op.value: op for op in Op if op is not Op.WILDCARD}


@dataclass(frozen=True)
class Comparator:
    """One comparator of a version requirement, such as ``^1.2``."""

    op: Op
    major: int
    minor: int | None = None
    patch: int | None = None
    pre: str = ""

    def __str__(self) -> str:
        text = f"{self.op.value}{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += f"-{self.pre}"
            elif self.op is Op.WILDCARD:
                text += ".*"
        elif self.op is Op.WILDCARD:
            text += ".*"
        return text


def _number(text: str, original: str) -> int:
    if len(text) > 1 and text.startswith("0"):
        raise ValueError(f"invalid leading zero in version requirement {original!r}")
    return int(text)


def _check_pre(pre: str, original: str) -> None:
    for ident in pre.split("."):
        if ident.isdigit() and len(ident) > 1 and ident.startswith("0"):
            raise ValueError(f"invalid leading zero in pre-release of {original!r}")


def _parse_comparator(text: str) -> Comparator:
    match = _COMPARATOR_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid version requirement {text!r}")
    explicit_op = _OPS_BY_SYMBOL[match["op"]] if match["op"] else None
    major, minor, patch = match["major"], match["minor"], match["patch"]
    pre = match["pre"] or ""

    if major in _WILDCARDS:
        raise ValueError(f"unexpected wildcard in version requirement {text!r}")

    def wildcard_op() -> Op:
        if pre:
            raise ValueError(f"unexpected pre-release after wildcard in {text!r}")
        if explicit_op in (None, Op.EXACT):
            return Op.WILDCARD
        return explicit_op

    if minor is not None and minor in _WILDCARDS:
        if patch is not None and patch not in _WILDCARDS:
            raise ValueError(f"unexpected version after wildcard in {text!r}")
        return Comparator(wildcard_op(), _number(major, text))
    if patch is not None and patch in _WILDCARDS:
        return Comparator(wildcard_op(), _number(major, text), _number(minor, text))

    if pre:
        _check_pre(pre, text)
    return Comparator(
        explicit_op or Op.CARET,
        _number(major, text),
        None if minor is None else _number(minor, text),
        None if patch is None else _number(patch, text),
        pre,
    )


@dataclass(frozen=True)
class VersionReq:
    """A version requirement: comparators that must all match."""

    comparators: tuple[Comparator, ...] = ()

    @classmethod
    def parse(cls, text: str) -> VersionReq:
        """Parse a comma-separated requirement; ``ValueError`` if invalid."""
        stripped = text.strip()
        if stripped in _WILDCARDS:
            return cls(())
        if not stripped:
            raise ValueError("empty version requirement")
        parts = [part.strip() for part in stripped.split(",")]
        if any(not part for part in parts):
            raise ValueError(f"empty comparator in version requirement {text!r}")
        return cls(tuple(_parse_comparator(part) for part in parts))

    def __str__(self) -> str:
        if not self.comparators:
            return "*"
        return ", ".join(str(c) for c in self.comparators)


def _assign_version(comparator: Comparator, version: semver.Version, *, with_pre: bool) -> Comparator:
    return replace(
        comparator,
        major=version.major,
        minor=None if comparator.minor is None else version.minor,
        patch=None if comparator.patch is None else version.patch,
        pre=(version.prerelease or "") if with_pre else comparator.pre,
    )


def _set_comparator(comparator: Comparator, version: semver.Version) -> Comparator:
    if comparator.op is Op.WILDCARD:
        return _assign_version(comparator, version, with_pre=False)
    if comparator.op in (Op.EXACT, Op.TILDE, Op.CARET):
        return _assign_version(comparator, version, with_pre=True)
    raise UnsupportedRequirementError(str(comparator))


def upgrade_requirement(req: str, version: semver.Version | str) -> str | None:
    """Rewrite ``req`` so that it points at ``version``.

    Returns ``None`` when the requirement would not change. Raises
    ``UnsupportedRequirementError`` for comparison operators such as ``>=``.
    """
    target = version if isinstance(version, semver.Version) else semver.Version.parse(version)
    raw = VersionReq.parse(req)
    if not raw.comparators:
        return None
    new_req = VersionReq(tuple(_set_comparator(c, target) for c in raw.comparators))
    text = str(new_req)
    if text.startswith("^") and not req.startswith("^"):
        text = text[1:]
    return None if text == req else text