"""Version extraction from arbitrary text.

This is the single scraping boundary: everything else in mvm consumes
``SemanticVersion`` values, so swapping the remote listing for a structured
API only touches this module.
"""

import re
from typing import Iterable, List, Optional

from errors import InvalidVersion
from .models import SemanticVersion

# major.minor.patch with an optional -rcN / _rcN marker
VERSION_PATTERN = re.compile(r"(?<![\d.])(\d+)\.(\d+)\.(\d+)(?:[-_]rc(\d+))?")
_EXACT_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:[-_]rc(\d+))?$")


def _from_match(match) -> SemanticVersion:
    major, minor, patch, rc = match.group(1, 2, 3, 4)
    return SemanticVersion(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        rc=int(rc) if rc is not None else None,
        literal=match.group(0),
    )


def _unique_sorted(versions: Iterable[SemanticVersion]) -> List[SemanticVersion]:
    """Drop repeated literals, then sort ascending (stable for equal versions)."""
    seen = set()
    unique = []
    for v in versions:
        key = str(v)
        if key in seen:
            continue
        seen.add(key)
        unique.append(v)
    return sorted(unique)


def extract_versions(text: str) -> List[SemanticVersion]:
    """Return every version mentioned in ``text``, ascending, without duplicates.

    Text with no matches yields an empty list.
    """
    return _unique_sorted(_from_match(m) for m in VERSION_PATTERN.finditer(text or ""))


def extract_stable_versions(text: str) -> List[SemanticVersion]:
    """Like ``extract_versions`` but even-minor only, with rc markers stripped."""
    return _unique_sorted(
        v.final()
        for v in (_from_match(m) for m in VERSION_PATTERN.finditer(text or ""))
        if v.is_stable
    )


def first_version(text: str) -> Optional[SemanticVersion]:
    """First version appearing in ``text`` (e.g. ``db version v2.4.1``), or None."""
    match = VERSION_PATTERN.search(text or "")
    return _from_match(match) if match else None


def parse_version(text: str) -> SemanticVersion:
    """Parse a single version literal as typed by a user.

    A leading ``v`` is tolerated and dropped.

    Raises:
        InvalidVersion: ``text`` is not ``major.minor.patch[-rcN]``.
    """
    s = (text or "").strip()
    match = _EXACT_PATTERN.match(s)
    if not match:
        raise InvalidVersion(text)
    major, minor, patch, rc = match.group(1, 2, 3, 4)
    return SemanticVersion(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        rc=int(rc) if rc is not None else None,
        literal=s[1:] if s.startswith("v") else s,
    )
