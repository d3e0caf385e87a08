"""Build-toolchain collaborator.

Runs the external source build (SCons by default) against an extracted
tree. User options are passed through verbatim; the install prefix is
always appended by this module.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from constants import Constants, log_dir
from common.logging_utils import extra_context, is_debug_enabled, Timer

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Outcome of one toolchain invocation."""

    returncode: int
    log_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class BuildToolchain:
    """Invokes ``<command> <options...> --prefix=<prefix> install``."""

    def __init__(self, command: Optional[Sequence[str]] = None, logs_dir: Optional[str] = None):
        self.command: List[str] = list(command or Constants.BUILD_COMMAND)
        self.logs_dir = logs_dir or log_dir()

    def command_line(self, install_prefix: str, options: Sequence[str]) -> List[str]:
        return [*self.command, *options, f"--prefix={install_prefix}", "install"]

    def build(self, source_dir: str, install_prefix: str, options: Sequence[str],
              label: str = "build") -> BuildResult:
        """Run the build; output goes to ``<logs_dir>/<label>.log``.

        A toolchain that cannot be started is reported as a failed build
        with exit code 127 (missing) or 126 (not executable), like a shell
        would.
        """
        os.makedirs(self.logs_dir, exist_ok=True)
        log_path = os.path.join(self.logs_dir, f"{label}.log")
        cmd = self.command_line(install_prefix, options)
        logger.info("Building in %s (log: %s)", source_dir, log_path)
        if is_debug_enabled(logger):
            logger.debug(
                "Build command",
                extra=extra_context(
                    event="build_start",
                    component="builder",
                    action="build",
                    target=" ".join(cmd),
                ),
            )

        with Timer() as t, open(log_path, "w", encoding="utf-8") as log_fh:
            try:
                proc = subprocess.run(
                    cmd,
                    cwd=source_dir,
                    stdout=log_fh,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
                returncode = proc.returncode
            except FileNotFoundError as exc:
                log_fh.write(f"{exc}\n")
                returncode = 127
            except OSError as exc:
                log_fh.write(f"{exc}\n")
                returncode = 126

        logger.debug("Build finished with %s in %sms", returncode, t.duration_ms())
        return BuildResult(returncode=returncode, log_path=log_path)
