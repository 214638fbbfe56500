"""
L1 Domain — Semantic version parsing and ordering (pure).

Accepts ``MAJOR[.MINOR[.PATCH]][-PRERELEASE][+BUILD]`` with an optional
leading ``v``. Android version names often append a build number with an
underscore (``1.28.0_4124311467``); that suffix is treated as build
metadata, like ``+BUILD``.

Precedence follows semver: build metadata is ignored, a pre-release sorts
below its release, pre-release identifiers compare numerically when both
are numeric and lexically otherwise.

Parsing failure raises ``VersionParseFailure``. Nothing here ever
substitutes a default version; ``compare_versions`` returns None when
either side cannot be parsed and callers must handle that case.
No I/O, no subprocess.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

_VERSION_RE = re.compile(
    r"""
    ^v?
    (?P<major>0|[1-9]\d*)
    (?:\.(?P<minor>0|[1-9]\d*))?
    (?:\.(?P<patch>0|[1-9]\d*))?
    (?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    (?:[+_](?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    $
    """,
    re.VERBOSE,
)


class VersionParseFailure(ValueError):
    """Raised when a version string is not a valid semantic version."""

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Cannot parse version {raw!r}")


@total_ordering
@dataclass(frozen=True, eq=False)
class SemVer:
    """A parsed, totally ordered semantic version."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: tuple[str, ...] = ()
    build: str = ""
    raw: str = ""

    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def _precedence_key(self) -> tuple:
        # A release (no pre-release) sorts above any of its pre-releases.
        if not self.prerelease:
            return (self.core, 1, ())
        idents = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in self.prerelease
        )
        return (self.core, 0, idents)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() == other._precedence_key()

    def __lt__(self, other: SemVer) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() < other._precedence_key()

    def __hash__(self) -> int:
        return hash(self._precedence_key())

    def __str__(self) -> str:
        if self.raw:
            return self.raw
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text


def parse_version(raw: str | None) -> SemVer:
    """Parse a version string.

    Raises:
        VersionParseFailure: If ``raw`` is empty, not a string, or malformed.
    """
    if not isinstance(raw, str):
        raise VersionParseFailure(raw)
    text = raw.strip()
    match = _VERSION_RE.match(text)
    if match is None:
        raise VersionParseFailure(raw)

    pre = match.group("pre")
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor") or 0),
        patch=int(match.group("patch") or 0),
        prerelease=tuple(pre.split(".")) if pre else (),
        build=match.group("build") or "",
        raw=text,
    )


def try_parse_version(raw: str | None) -> SemVer | None:
    """Parse a version string, returning None instead of raising."""
    try:
        return parse_version(raw)
    except VersionParseFailure:
        return None


def compare_versions(a: str | None, b: str | None) -> int | None:
    """Three-way compare two version strings.

    Returns:
        -1, 0 or 1, or None when either side is unparsable (incomparable).
    """
    left = try_parse_version(a)
    right = try_parse_version(b)
    if left is None or right is None:
        return None
    if left < right:
        return -1
    if left > right:
        return 1
    return 0
