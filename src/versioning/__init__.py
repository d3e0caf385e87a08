"""Version parsing, ordering and remote catalog."""

from .models import InstalledVersion, SemanticVersion
from .parser import extract_stable_versions, extract_versions, first_version, parse_version
from .catalog import VersionCatalog

__all__ = [
    "InstalledVersion",
    "SemanticVersion",
    "VersionCatalog",
    "extract_stable_versions",
    "extract_versions",
    "first_version",
    "parse_version",
]
