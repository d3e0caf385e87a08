"""Command handlers for the mvm CLI.

Each handler takes the wired components plus parsed arguments, prints its
user-facing output to stdout and returns an exit code. Errors propagate as
``MvmError`` to the entry point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from constants import ExitCodes
from installation.activation import ActivationManager
from installation.builder import BuildToolchain
from installation.installer import Installer
from installation.store import VersionStore
from versioning.catalog import VersionCatalog
from versioning.parser import parse_version

logger = logging.getLogger(__name__)

ACTIVE_MARKER = "*"


@dataclass
class Components:
    """The wired-up core objects one command works with."""

    catalog: VersionCatalog
    store: VersionStore
    activation: ActivationManager
    installer: Installer


def build_components(store_root: Optional[str] = None, bin_dir: Optional[str] = None) -> Components:
    """Wire the core from the current configuration."""
    catalog = VersionCatalog()
    store = VersionStore(root=store_root)
    activation = ActivationManager(store, target_dir=bin_dir)
    installer = Installer(catalog, store, activation, builder=BuildToolchain())
    return Components(catalog=catalog, store=store, activation=activation, installer=installer)


def cmd_installed(c: Components, _args=None) -> int:
    """Print installed versions, marking the active one."""
    entries = c.store.installed()
    if not entries:
        logger.info("No versions installed")
        return ExitCodes.SUCCESS.value
    current = c.activation.current()
    for entry in entries:
        marker = ACTIVE_MARKER if entry.version == current else " "
        line = f"  {marker} {entry.version}"
        if entry.config:
            line += f"  ({' '.join(entry.config)})"
        print(line)
    return ExitCodes.SUCCESS.value


def cmd_ls(c: Components, _args=None) -> int:
    """Print remote versions annotated with local status."""
    versions = c.catalog.list()
    installed = {str(e.version) for e in c.store.installed()}
    current = c.activation.current()
    for v in versions:
        status = []
        if str(v) in installed:
            status.append("installed")
        if current is not None and v == current:
            status.append("active")
        print(f"  {str(v):<14}{' '.join(status)}".rstrip())
    return ExitCodes.SUCCESS.value


def cmd_install(c: Components, args) -> int:
    target = args.action if args.action in ("latest", "stable") else args.TARGET
    c.installer.install(target, args.BUILD_OPTIONS, force=getattr(args, "FORCE", False))
    return ExitCodes.SUCCESS.value


def cmd_custom(c: Components, args) -> int:
    c.installer.install_custom(args.VERSION, args.ARCHIVE, args.BUILD_OPTIONS,
                               force=getattr(args, "FORCE", False))
    return ExitCodes.SUCCESS.value


def cmd_activate(c: Components, args) -> int:
    c.activation.activate(parse_version(args.VERSION))
    return ExitCodes.SUCCESS.value


def cmd_use(c: Components, args) -> int:
    """Run a specific version's server binary; its status becomes ours."""
    return c.activation.run(parse_version(args.VERSION), args.RUN_ARGS)


def cmd_bin(c: Components, args) -> int:
    print(c.store.bin_path(parse_version(args.VERSION)))
    return ExitCodes.SUCCESS.value


def cmd_rm(c: Components, args) -> int:
    """Remove versions; missing ones are skipped silently."""
    versions = [parse_version(v) for v in args.VERSIONS]
    current = c.activation.current()
    for version in versions:
        if current is not None and version == current and c.store.has(version):
            logger.warning("%s is the active version; its binaries stay in place", version)
        c.store.remove(version)
    return ExitCodes.SUCCESS.value


def cmd_show_latest(c: Components, _args=None) -> int:
    print(c.catalog.latest())
    return ExitCodes.SUCCESS.value


def cmd_show_stable(c: Components, _args=None) -> int:
    print(c.catalog.latest_stable())
    return ExitCodes.SUCCESS.value


HANDLERS = {
    "installed": cmd_installed,
    "ls": cmd_ls,
    "install": cmd_install,
    "latest": cmd_install,
    "stable": cmd_install,
    "custom": cmd_custom,
    "activate": cmd_activate,
    "use": cmd_use,
    "bin": cmd_bin,
    "rm": cmd_rm,
}


def dispatch(c: Components, args) -> int:
    """Route parsed arguments to a handler."""
    if getattr(args, "SHOW_LATEST", False):
        return cmd_show_latest(c, args)
    if getattr(args, "SHOW_STABLE", False):
        return cmd_show_stable(c, args)
    return HANDLERS[args.action](c, args)
