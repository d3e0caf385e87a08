"""Install pipeline: resolve, fetch, extract, build, place, activate."""

from __future__ import annotations

import logging
import os
import tarfile
import tempfile
import zlib
from typing import Callable, ContextManager, IO, Optional, Sequence

from constants import Constants
from errors import FetchFailed, InstallFailed
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from versioning.catalog import VersionCatalog
from versioning.models import InstalledVersion, SemanticVersion
from versioning.parser import parse_version
from .activation import ActivationManager
from .builder import BuildToolchain
from .store import VersionStore

logger = logging.getLogger(__name__)

ArchiveOpener = Callable[[], ContextManager[IO[bytes]]]

# Python >= 3.12 (and security backports) understand extraction filters
_EXTRACT_KWARGS = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}


def _strip_leading_component(name: str) -> str:
    parts = [p for p in name.replace("\\", "/").split("/") if p not in ("", ".")]
    return "/".join(parts[1:])


def extract_archive(stream: IO[bytes], dest: str) -> int:
    """Unpack a (possibly compressed) tar stream into ``dest``.

    The archive is read sequentially, never seeked, so it can come straight
    off the network. The top-level directory every source tarball carries is
    stripped. Returns the number of members written.

    Raises:
        tarfile.TarError: corrupt archive or a member escaping ``dest``.
    """
    count = 0
    with tarfile.open(fileobj=stream, mode="r|*") as tar:
        for member in tar:
            stripped = _strip_leading_component(member.name)
            if not stripped:
                continue
            if os.path.isabs(stripped) or ".." in stripped.split("/"):
                raise tarfile.TarError(f"refusing unsafe member path {member.name!r}")
            if member.isdev():
                continue
            member.name = stripped
            if member.islnk():
                member.linkname = _strip_leading_component(member.linkname)
            tar.extract(member, dest, **_EXTRACT_KWARGS)
            count += 1
    return count


class Installer:
    """Orchestrates one install per call.

    Each build runs in its own temporary directory which is removed on every
    exit path. Directories left behind by a killed process are not swept on
    later runs.

    The toolchain's ``--prefix`` is a scratch ``prefix/`` directory inside
    that temporary directory, not the store path. The finished tree is then
    copied into the store by ``VersionStore.place``.
    """

    def __init__(
        self,
        catalog: VersionCatalog,
        store: VersionStore,
        activation: ActivationManager,
        builder: Optional[BuildToolchain] = None,
        fetch_stream: Optional[Callable[[str], ContextManager[IO[bytes]]]] = None,
        url_template: Optional[str] = None,
        tmp_root: Optional[str] = None,
    ):
        if fetch_stream is None:
            from common.http_client import open_stream  # pylint: disable=import-outside-toplevel
            fetch_stream = open_stream
        self.catalog = catalog
        self.store = store
        self.activation = activation
        self.builder = builder or BuildToolchain()
        self.fetch_stream = fetch_stream
        self.url_template = url_template or Constants.SOURCE_URL_TEMPLATE
        self.tmp_root = tmp_root

    def source_url(self, version: SemanticVersion) -> str:
        return self.url_template.format(version=str(version))

    def install(self, target: str, build_options: Sequence[str] = (), force: bool = False) -> InstalledVersion:
        """Install ``target`` (a version, "latest" or "stable") and activate it.

        An already-installed version is only activated unless ``force`` is set.

        Raises:
            CatalogEmpty, FetchFailed: resolving a symbolic target failed.
            InstallFailed: fetch, extraction or build failed; nothing was stored.
            ActivationFailed: the install completed but the switch did not.
        """
        version = self.catalog.resolve(target)
        url = self.source_url(version)
        return self._install(version, lambda: self.fetch_stream(url), build_options, force, safe_url(url))

    def install_custom(self, version: str, archive_path: str, build_options: Sequence[str] = (),
                       force: bool = False) -> InstalledVersion:
        """Install ``version`` from a local source tarball instead of the remote.

        The archive itself is left untouched.
        """
        resolved = parse_version(version)
        return self._install(resolved, lambda: open(archive_path, "rb"), build_options, force, archive_path)

    def _install(self, version: SemanticVersion, open_archive: ArchiveOpener, build_options: Sequence[str],
                 force: bool, origin: str) -> InstalledVersion:
        options = list(build_options)
        if self.store.has(version) and not force:
            logger.info("%s is already installed", version)
            installed = InstalledVersion(
                version=version, path=self.store.path(version), config=self.store.config_of(version)
            )
        else:
            installed = self._build_and_place(version, open_archive, options, origin)
        self.activation.activate(version)
        return installed

    def _build_and_place(self, version: SemanticVersion, open_archive: ArchiveOpener,
                         options: Sequence[str], origin: str) -> InstalledVersion:
        with tempfile.TemporaryDirectory(prefix=f"mvm-{version}-", dir=self.tmp_root) as work_dir:
            source_dir = os.path.join(work_dir, "src")
            prefix_dir = os.path.join(work_dir, "prefix")
            os.makedirs(source_dir)

            logger.info("Fetching %s from %s", version, origin)
            with Timer() as t:
                try:
                    with open_archive() as stream:
                        members = extract_archive(stream, source_dir)
                except FetchFailed as exc:
                    raise InstallFailed(version, exc) from exc
                except (tarfile.TarError, EOFError, zlib.error, OSError) as exc:
                    raise InstallFailed(version, f"extraction failed: {exc}") from exc
            if is_debug_enabled(logger):
                logger.debug(
                    "Extracted source",
                    extra=extra_context(
                        event="extract",
                        component="installer",
                        action="extract",
                        target=str(version),
                        count=members,
                        duration_ms=t.duration_ms(),
                    ),
                )

            try:
                result = self.builder.build(source_dir, prefix_dir, options, label=str(version))
            except OSError as exc:
                raise InstallFailed(version, f"build could not run: {exc}") from exc
            if not result.ok:
                raise InstallFailed(version, f"build exited with status {result.returncode}", result.log_path)
            entry = os.path.join(prefix_dir, Constants.BIN_DIR_NAME, self.store.entry_point)
            if not os.path.isfile(entry):
                raise InstallFailed(version, f"build produced no {self.store.entry_point} binary", result.log_path)

            try:
                installed = self.store.place(version, prefix_dir, options)
            except OSError as exc:
                raise InstallFailed(version, f"could not place build output: {exc}") from exc

        logger.info("Installed %s into %s", version, installed.path)
        return installed
