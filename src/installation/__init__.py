"""Version store, build, install and activation."""

from .store import VersionStore
from .builder import BuildResult, BuildToolchain
from .activation import ActivationManager
from .installer import Installer, extract_archive

__all__ = [
    "ActivationManager",
    "BuildResult",
    "BuildToolchain",
    "Installer",
    "VersionStore",
    "extract_archive",
]
