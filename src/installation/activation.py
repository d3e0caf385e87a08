"""Active-version probing and switching.

The active version is whatever the entry point in the system bin directory
reports about itself. Nothing is cached: every ``current()`` call runs the
binary again.
"""

import logging
import os
import shutil
import subprocess
from typing import List, Optional, Sequence

from constants import Constants, bin_dir
from errors import ActivationFailed
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import InstalledVersion, SemanticVersion
from versioning.parser import first_version
from .store import VersionStore

logger = logging.getLogger(__name__)

_STAGE_SUFFIX = ".mvm-new"


class ActivationManager:
    """Switches which store entry's binaries live in the system bin dir."""

    def __init__(self, store: VersionStore, target_dir: Optional[str] = None):
        self.store = store
        self.bin_dir = target_dir or bin_dir()

    @property
    def live_binary(self) -> str:
        return os.path.join(self.bin_dir, self.store.entry_point)

    def current(self) -> Optional[SemanticVersion]:
        """Probe the live binary; None when there is nothing runnable."""
        exe = self.live_binary
        if not os.path.isfile(exe):
            return None
        try:
            proc = subprocess.run(
                [exe, Constants.VERSION_FLAG],
                capture_output=True,
                text=True,
                timeout=Constants.PROBE_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug("Probe of %s failed: %s", exe, exc)
            return None
        if proc.returncode != 0:
            logger.debug("Probe of %s exited with %s", exe, proc.returncode)
            return None
        return first_version(proc.stdout)

    def is_active(self, installed: InstalledVersion) -> bool:
        return self.current() == installed.version

    def _owned_names(self) -> set:
        """Command names shipped by any installed version."""
        names = set()
        for entry in self.store.installed():
            names.update(os.listdir(os.path.join(entry.path, Constants.BIN_DIR_NAME)))
        return names

    def activate(self, version: SemanticVersion) -> None:
        """Make ``version`` the active one.

        New binaries are first copied next to their targets, then swapped in
        with ``os.replace``; the entry point goes last so a probe never sees
        the new version before the rest of its commands are in place.

        Raises:
            NotInstalled: ``version`` has no valid store entry.
            ActivationFailed: the bin directory could not be rewritten.
        """
        source_bin = self.store.bin_path(version)
        if self.current() == version:
            logger.info("%s is already active", version)
            return

        names = sorted(
            n for n in os.listdir(source_bin) if os.path.isfile(os.path.join(source_bin, n))
        )
        names.sort(key=lambda n: n == self.store.entry_point)
        staged: List[str] = []
        try:
            os.makedirs(self.bin_dir, exist_ok=True)
            for name in names:
                tmp = os.path.join(self.bin_dir, name + _STAGE_SUFFIX)
                shutil.copy2(os.path.join(source_bin, name), tmp)
                staged.append(name)
            for name in staged:
                os.replace(
                    os.path.join(self.bin_dir, name + _STAGE_SUFFIX),
                    os.path.join(self.bin_dir, name),
                )
            for stale in sorted(self._owned_names() - set(names)):
                stale_path = os.path.join(self.bin_dir, stale)
                if os.path.isfile(stale_path):
                    os.unlink(stale_path)
                    logger.debug("Removed stale command %s", stale_path)
        except OSError as exc:
            for name in staged:
                tmp = os.path.join(self.bin_dir, name + _STAGE_SUFFIX)
                if os.path.exists(tmp):
                    os.unlink(tmp)
            raise ActivationFailed(version, exc) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "Activated",
                extra=extra_context(
                    event="activate",
                    component="activation",
                    action="activate",
                    target=str(version),
                    count=len(names),
                ),
            )
        logger.info("Activated %s", version)

    def run(self, version: SemanticVersion, args: Sequence[str] = ()) -> int:
        """Execute a specific installed version's entry point; returns its exit status."""
        exe = os.path.join(self.store.bin_path(version), self.store.entry_point)
        logger.debug("Executing %s %s", exe, " ".join(args))
        return subprocess.call([exe, *args])
