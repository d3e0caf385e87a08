"""On-disk store of installed versions.

Layout::

    <root>/<version>/bin/<entry point>
    <root>/<version>/build.conf      # build options, one per line

Entries whose names start with ``.`` are staging or scratch directories
and are never reported as installed.
"""

import logging
import os
import shutil
import tempfile
from typing import List, Optional, Sequence

from constants import Constants, store_root
from errors import InvalidVersion, NotInstalled
from versioning.models import InstalledVersion, SemanticVersion
from versioning.parser import parse_version

logger = logging.getLogger(__name__)


class VersionStore:
    """One directory per installed version under a single root."""

    def __init__(self, root: Optional[str] = None, entry_point: Optional[str] = None):
        self.root = root or store_root()
        self.entry_point = entry_point or Constants.ENTRY_POINT

    def path(self, version: SemanticVersion) -> str:
        """Store directory for ``version``; does not touch the filesystem."""
        return os.path.join(self.root, str(version))

    def _bin_dir(self, version: SemanticVersion) -> str:
        return os.path.join(self.path(version), Constants.BIN_DIR_NAME)

    def has(self, version: SemanticVersion) -> bool:
        """True iff the entry exists and carries the binary entry point."""
        return os.path.isfile(os.path.join(self._bin_dir(version), self.entry_point))

    def bin_path(self, version: SemanticVersion) -> str:
        """Binaries directory of an installed version.

        Raises:
            NotInstalled: ``version`` has no valid store entry.
        """
        if not self.has(version):
            raise NotInstalled(version)
        return self._bin_dir(version)

    def place(self, version: SemanticVersion, source_dir: str, config: Sequence[str]) -> InstalledVersion:
        """Copy a build output tree into the store and record its config.

        The tree is assembled in a hidden staging directory under the store
        root and renamed into place only once complete, so an interrupted
        placement never produces an entry ``has`` accepts. An existing entry
        for the same version is replaced wholesale, and is put back if the
        new tree cannot be moved into place.
        """
        os.makedirs(self.root, exist_ok=True)
        staging_parent = tempfile.mkdtemp(prefix=f".place-{version}-", dir=self.root)
        try:
            staged = os.path.join(staging_parent, "entry")
            shutil.copytree(source_dir, staged, symlinks=True)
            self._write_config(staged, config)

            dest = self.path(version)
            previous = os.path.join(staging_parent, "previous")
            if os.path.lexists(dest):
                # Move the old entry aside first: rename cannot replace a non-empty dir
                os.rename(dest, previous)
            try:
                os.rename(staged, dest)
            except OSError:
                if os.path.lexists(previous) and not os.path.lexists(dest):
                    os.rename(previous, dest)
                raise
        finally:
            shutil.rmtree(staging_parent, ignore_errors=True)

        logger.debug("Placed %s at %s", version, self.path(version))
        return InstalledVersion(version=version, path=self.path(version), config=list(config))

    @staticmethod
    def _write_config(entry_dir: str, config: Sequence[str]) -> None:
        config_path = os.path.join(entry_dir, Constants.CONFIG_FILE_NAME)
        with open(config_path, "w", encoding="utf-8", newline="") as fh:
            for token in config:
                fh.write(f"{token}\n")

    def config_of(self, version: SemanticVersion) -> Optional[List[str]]:
        """Build options recorded for ``version``; None when no sidecar exists."""
        config_path = os.path.join(self.path(version), Constants.CONFIG_FILE_NAME)
        try:
            with open(config_path, "r", encoding="utf-8", newline="") as fh:
                # One token per line, written with a trailing newline each
                return fh.read().split("\n")[:-1]
        except FileNotFoundError:
            return None

    def remove(self, version: SemanticVersion) -> bool:
        """Delete the entry for ``version``.

        Returns False (not an error) when there was nothing to remove.
        """
        dest = self.path(version)
        if not os.path.lexists(dest):
            logger.debug("Nothing to remove for %s", version)
            return False
        if os.path.isdir(dest) and not os.path.islink(dest):
            shutil.rmtree(dest)
        else:
            os.unlink(dest)
        logger.info("Removed %s", version)
        return True

    def installed(self) -> List[InstalledVersion]:
        """Every valid entry in the store, ascending by version."""
        try:
            names = os.listdir(self.root)
        except FileNotFoundError:
            return []

        entries = []
        for name in names:
            if name.startswith("."):
                continue
            try:
                version = parse_version(name)
            except InvalidVersion:
                logger.debug("Skipping unrecognised store entry %s", name)
                continue
            if not self.has(version):
                continue
            entries.append(
                InstalledVersion(version=version, path=self.path(version), config=self.config_of(version))
            )
        return sorted(entries, key=lambda e: e.version)
