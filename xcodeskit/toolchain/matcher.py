"""
Resolution of loosely formatted version tokens.

A token is either an absolute path or a version such as "11 Beta 7". Version
tokens are resolved against a sequence of candidates (catalog entries or
installed toolchains, anything with a ``version`` attribute):

1. Every written component must match; unwritten components are wildcards.
   A token without a label matches releases and pre-releases alike.
2. Among matches, prefer the highest numeric version, then a release over any
   pre-release, then the higher-ranked label, then the highest index.
3. Candidates still tied after that are reported as ambiguous.

Everything here is pure: no filesystem or network access.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, TypeVar, Union

from xcodeskit.core.exceptions import (
    AmbiguousVersionError,
    InvalidPathError,
    NotFoundError,
)
from xcodeskit.toolchain.version import Version

T = TypeVar("T")


@dataclass(frozen=True)
class VersionQuery:
    """Parsed user input: exactly one of ``version`` or ``path`` is set."""

    token: str
    version: Optional[Version] = None
    path: Optional[Path] = None

    def __post_init__(self):
        if (self.version is None) == (self.path is None):
            raise ValueError("VersionQuery needs exactly one of version or path")

    @property
    def is_path(self) -> bool:
        return self.path is not None


def parse_query(token: str) -> VersionQuery:
    """
    Parse a user token into a query.

    Tokens that are absolute paths (after ``~`` expansion) become path
    queries, normalised so ``..`` segments compare equal to installed
    paths; everything else must parse as a Version.

    Raises:
        InvalidVersionError: If the token is neither a path nor a version
    """
    stripped = token.strip()
    expanded = os.path.expanduser(stripped)
    if os.path.isabs(expanded):
        return VersionQuery(token=stripped, path=Path(os.path.abspath(expanded)))
    return VersionQuery(token=stripped, version=Version.parse(stripped))


def matches(query: Version, candidate: Version) -> bool:
    """Check whether candidate satisfies every component written in query."""
    if query.major != candidate.major:
        return False
    if query.minor is not None and query.minor != (candidate.minor or 0):
        return False
    if query.patch is not None and query.patch != (candidate.patch or 0):
        return False
    if query.prerelease is not None and query.prerelease != candidate.prerelease:
        return False
    if query.index is not None and query.index != candidate.index:
        return False
    return True


def _preference(candidate) -> tuple:
    return candidate.version.sort_key()


def describe_candidate(candidate) -> str:
    """One-line description used when listing tied candidates."""
    where = getattr(candidate, "path", None) or getattr(candidate, "url", None)
    if where:
        return f"{candidate.version.description} ({where})"
    return candidate.version.description


def resolve(query: Union[VersionQuery, str], candidates: Sequence[T]) -> T:
    """
    Resolve a query against candidates.

    Path queries bypass version matching: the candidate whose ``path`` equals
    the query path is returned.

    Args:
        query: Parsed query or raw token
        candidates: Objects with a ``version`` attribute (and optionally ``path``)

    Returns:
        The single best candidate

    Raises:
        NotFoundError: If no candidate matches
        AmbiguousVersionError: If the best candidates are tied
        InvalidPathError: If a path query names no candidate
    """
    if isinstance(query, str):
        query = parse_query(query)

    if query.is_path:
        for candidate in candidates:
            candidate_path = getattr(candidate, "path", None)
            if candidate_path is not None and Path(candidate_path) == query.path:
                return candidate
        raise InvalidPathError(query.path, "is not an installed Xcode")

    matching: List[T] = [c for c in candidates if matches(query.version, c.version)]
    if not matching:
        raise NotFoundError(f"Version {query.token} not found")

    best = max(_preference(c) for c in matching)
    tied = [c for c in matching if _preference(c) == best]
    if len(tied) > 1:
        raise AmbiguousVersionError(
            query.token, [describe_candidate(c) for c in tied]
        )
    return tied[0]
