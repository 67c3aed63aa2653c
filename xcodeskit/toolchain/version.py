"""
Version value type for Xcode releases.

Versions are a numeric part (major, optional minor, optional patch) plus an
optional pre-release label such as "Beta" or "GM Seed" with an optional index.

Supported spellings:
- "10.2.1", "11", "11.4"           : releases
- "11 Beta 7", "11.2 GM seed"      : user input, case-insensitive labels
- "11.0.0-Beta.7", "11.2.0-GM.Seed": bundle file name form
"""

import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from xcodeskit.core.exceptions import InvalidVersionError

# Ranked lowest to highest; a release ranks above all of them
KNOWN_PRERELEASE_LABELS = (
    "developer preview",
    "beta",
    "release candidate",
    "gm seed",
    "gm",
)

LABEL_ALIASES = {
    "rc": "release candidate",
    "dp": "developer preview",
}

LABEL_DISPLAY_NAMES = {
    "developer preview": "Developer Preview",
    "beta": "Beta",
    "release candidate": "Release Candidate",
    "gm seed": "GM Seed",
    "gm": "GM",
}

BUNDLE_PREFIX = "Xcode-"
BUNDLE_SUFFIX = ".app"

_NUMERIC_RE = re.compile(r"^([0-9]+)(?:\.([0-9]+))?(?:\.([0-9]+))?$")
_INDEX_RE = re.compile(r"^[0-9]+$")


def normalize_label(label: Optional[str]) -> Optional[str]:
    """Lower-case a pre-release label and collapse whitespace; None stays None."""
    if label is None:
        return None
    normalized = " ".join(label.split()).lower()
    if not normalized:
        return None
    return LABEL_ALIASES.get(normalized, normalized)


@dataclass(frozen=True)
class Version:
    """
    An Xcode version.

    ``minor`` and ``patch`` are None when they were not written; they compare
    as 0 but let the matcher treat them as wildcards.
    """

    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None
    prerelease: Optional[str] = None
    index: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "prerelease", normalize_label(self.prerelease))

    @classmethod
    def parse(cls, text: str) -> "Version":
        """
        Parse a version token.

        Raises:
            InvalidVersionError: If the leading component is not numeric or the
                trailing components don't form a label

        Example:
            >>> Version.parse("11 Beta 7")
            Version(major=11, minor=None, patch=None, prerelease='beta', index=7)
        """
        words = text.strip().split()
        if not words:
            raise InvalidVersionError("No version given")

        head, rest = words[0], words[1:]
        if "-" in head:
            head, suffix = head.split("-", 1)
            rest = suffix.replace(".", " ").split() + rest

        match = _NUMERIC_RE.match(head)
        if not match:
            raise InvalidVersionError(
                f"Invalid version: '{text.strip()}'. "
                "Expected MAJOR[.MINOR[.PATCH]] optionally followed by a label, "
                "e.g. '11 Beta 7'"
            )

        index = None
        if rest and _INDEX_RE.match(rest[-1]):
            index = int(rest[-1])
            rest = rest[:-1]
        if index is not None and not rest:
            raise InvalidVersionError(
                f"Invalid version: '{text.strip()}'. A number after the version "
                "must follow a pre-release label"
            )
        if any(not word.isalpha() for word in rest):
            raise InvalidVersionError(
                f"Invalid version: '{text.strip()}'. Separate the pre-release "
                "label from its number, e.g. '11 Beta 7'"
            )

        major, minor, patch = match.groups()
        return cls(
            major=int(major),
            minor=int(minor) if minor is not None else None,
            patch=int(patch) if patch is not None else None,
            prerelease=" ".join(rest) if rest else None,
            index=index,
        )

    @classmethod
    def from_bundle_name(cls, name: str) -> Optional["Version"]:
        """
        Parse a bundle name such as ``Xcode-11.0.0-Beta.7.app``.

        Returns None for names that don't carry a version (``Xcode.app``).
        """
        if not name.endswith(BUNDLE_SUFFIX) or not name.startswith(BUNDLE_PREFIX):
            return None
        try:
            return cls.parse(name[len(BUNDLE_PREFIX):-len(BUNDLE_SUFFIX)])
        except InvalidVersionError:
            return None

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    @property
    def components(self) -> Tuple[int, int, int]:
        return (self.major, self.minor or 0, self.patch or 0)

    @property
    def label_rank(self) -> int:
        """Release > known labels (by position) > unknown labels."""
        if self.prerelease is None:
            return len(KNOWN_PRERELEASE_LABELS) + 1
        if self.prerelease in KNOWN_PRERELEASE_LABELS:
            return KNOWN_PRERELEASE_LABELS.index(self.prerelease) + 1
        return 0

    def sort_key(self) -> tuple:
        return (*self.components, self.label_rank, self.index or 0)

    def is_equivalent(self, other: "Version") -> bool:
        """Same release once unspecified components are read as 0."""
        return (
            self.components == other.components
            and self.prerelease == other.prerelease
            and (self.index or 0) == (other.index or 0)
        )

    def filled(self) -> "Version":
        """Copy with unspecified minor/patch set to 0."""
        return replace(self, minor=self.minor or 0, patch=self.patch or 0)

    @property
    def label_display(self) -> Optional[str]:
        if self.prerelease is None:
            return None
        return LABEL_DISPLAY_NAMES.get(self.prerelease, self.prerelease.title())

    @property
    def description(self) -> str:
        """Human form: ``11.0 Beta 7``, ``10.2.1``."""
        text = f"{self.major}.{self.minor or 0}"
        if self.patch:
            text += f".{self.patch}"
        if self.label_display:
            text += f" {self.label_display}"
            if self.index is not None:
                text += f" {self.index}"
        return text

    @property
    def filename_component(self) -> str:
        """File name form: ``11.0.0-Beta.7``."""
        text = ".".join(str(part) for part in self.components)
        if self.label_display:
            text += "-" + self.label_display.replace(" ", ".")
            if self.index is not None:
                text += f".{self.index}"
        return text

    @property
    def bundle_name(self) -> str:
        return f"{BUNDLE_PREFIX}{self.filename_component}{BUNDLE_SUFFIX}"

    def __str__(self) -> str:
        return self.description
