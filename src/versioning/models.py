"""Data models for versions and installed store entries."""

from dataclasses import dataclass, field
from functools import total_ordering
from typing import List, Optional

import semantic_version


@total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """Release version: numeric triple plus an optional release-candidate number.

    ``literal`` keeps the text the version was parsed from (``2.4.0-rc1`` and
    ``2.4.0_rc1`` are equal versions but name different archives); it does not
    take part in equality or ordering.
    """
    major: int
    minor: int
    patch: int
    rc: Optional[int] = None
    literal: Optional[str] = field(default=None, compare=False)

    @property
    def is_prerelease(self) -> bool:
        return self.rc is not None

    @property
    def is_stable(self) -> bool:
        """Even minor means a stable release series."""
        return self.minor % 2 == 0

    def final(self) -> "SemanticVersion":
        """Same triple with the release-candidate tag dropped."""
        return SemanticVersion(self.major, self.minor, self.patch)

    def sort_key(self) -> semantic_version.Version:
        # "rc.N" so that rc2 < rc10 under semver's numeric identifier rule
        prerelease = ("rc", str(self.rc)) if self.rc is not None else ()
        return semantic_version.Version(
            major=self.major, minor=self.minor, patch=self.patch, prerelease=prerelease
        )

    def __lt__(self, other):
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        if self.literal:
            return self.literal
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-rc{self.rc}" if self.rc is not None else base


@dataclass(frozen=True)
class InstalledVersion:
    """A version present in the store.

    ``config`` is the literal build-option list recorded at install time, or
    None when the entry carries no sidecar.
    """
    version: SemanticVersion
    path: str
    config: Optional[List[str]] = None

    def is_active(self, activation) -> bool:
        """Derived on demand by probing the live binary; never stored."""
        return activation.is_active(self)
