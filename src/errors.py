"""Error taxonomy for mvm.

Library code raises these; only the CLI entry point turns them into log
lines and exit codes (see ``exit_code_for``).
"""

from typing import Optional

from constants import ExitCodes


class MvmError(Exception):
    """Base class for all mvm errors."""

    exit_code = ExitCodes.INSTALL_ERROR


class CatalogEmpty(MvmError):
    """The remote listing parsed to no versions."""

    exit_code = ExitCodes.CATALOG_EMPTY

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No versions found in listing at {url}")


class FetchFailed(MvmError):
    """Transport-level failure talking to the remote."""

    exit_code = ExitCodes.CONNECTION_ERROR

    def __init__(self, url: str, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Fetch of {url} failed: {cause}")


class InstallFailed(MvmError):
    """Extraction or build failure for a concrete version."""

    exit_code = ExitCodes.INSTALL_ERROR

    def __init__(self, version, cause, log_path: Optional[str] = None):
        self.version = version
        self.cause = cause
        self.log_path = log_path
        msg = f"Install of {version} failed: {cause}"
        if log_path:
            msg += f" (build log: {log_path})"
        super().__init__(msg)


class NotInstalled(MvmError):
    """Operation requires a store entry that does not exist."""

    exit_code = ExitCodes.NOT_INSTALLED

    def __init__(self, version):
        self.version = version
        super().__init__(f"Version {version} is not installed")


class ActivationFailed(MvmError):
    """The binary switch failed; the store entry itself is intact."""

    exit_code = ExitCodes.ACTIVATION_ERROR

    def __init__(self, version, cause):
        self.version = version
        self.cause = cause
        super().__init__(f"Activation of {version} failed: {cause}")


class InvalidVersion(MvmError, ValueError):
    """A version string that does not look like major.minor.patch[-rcN]."""

    exit_code = ExitCodes.INVALID_VERSION

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Invalid version: {text!r}")


def exit_code_for(exc: BaseException) -> int:
    """Map an exception to the process exit status."""
    if isinstance(exc, MvmError):
        return exc.exit_code.value
    return ExitCodes.INSTALL_ERROR.value
