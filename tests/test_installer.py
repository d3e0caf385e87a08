"""Tests for the install pipeline."""

import io
import os
import tarfile
from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest

from conftest import FakeToolchain, make_source_tarball
from errors import ActivationFailed, FetchFailed, InstallFailed
from installation.builder import BuildToolchain
from installation.installer import Installer, extract_archive
from versioning.catalog import VersionCatalog
from versioning.parser import parse_version

TEMPLATE = "https://example.test/src/mongodb-src-r{version}.tar.gz"


class FakeRemote:
    """Serves source tarballs by URL, recording each request."""

    def __init__(self, archives=None, error=None):
        self.archives = archives or {}
        self.error = error
        self.requested = []

    @contextmanager
    def __call__(self, url):
        self.requested.append(url)
        if self.error is not None:
            raise self.error
        if url not in self.archives:
            raise FetchFailed(url, "HTTP 404")
        yield io.BytesIO(self.archives[url])


def _url(version):
    return TEMPLATE.format(version=version)


@pytest.fixture
def work_root(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return str(path)


def _installer(store, activation, work_root, remote, builder=None, listing="2.4.1 2.5.0 2.6.0"):
    catalog = VersionCatalog(fetch=MagicMock(return_value=listing), listing_url="https://example.test/")
    return Installer(
        catalog,
        store,
        activation,
        builder=builder or FakeToolchain(),
        fetch_stream=remote,
        url_template=TEMPLATE,
        tmp_root=work_root,
    )


class TestInstall:
    """Happy paths and idempotence."""

    def test_install_explicit_version(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        builder = FakeToolchain()
        installer = _installer(store, activation, work_root, remote, builder)

        installed = installer.install("2.4.1", ["--ssl"])

        assert remote.requested == [_url("2.4.1")]
        assert store.has(parse_version("2.4.1"))
        assert store.config_of(parse_version("2.4.1")) == ["--ssl"]
        assert installed.config == ["--ssl"]
        assert activation.current() == parse_version("2.4.1")
        assert builder.calls[0][2] == ["--ssl"]

    def test_second_install_only_activates(self, store, activation, work_root):
        remote = FakeRemote({
            _url("2.4.1"): make_source_tarball("2.4.1"),
            _url("2.6.0"): make_source_tarball("2.6.0"),
        })
        builder = FakeToolchain()
        installer = _installer(store, activation, work_root, remote, builder)

        installer.install("2.4.1")
        installer.install("2.6.0")
        installer.install("2.4.1")

        assert len(builder.calls) == 2
        assert remote.requested == [_url("2.4.1"), _url("2.6.0")]
        assert activation.current() == parse_version("2.4.1")

    def test_force_rebuilds(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        builder = FakeToolchain()
        installer = _installer(store, activation, work_root, remote, builder)

        installer.install("2.4.1", ["--old"])
        installer.install("2.4.1", ["--new"], force=True)

        assert len(builder.calls) == 2
        assert store.config_of(parse_version("2.4.1")) == ["--new"]

    def test_latest_resolves_through_catalog(self, store, activation, work_root):
        remote = FakeRemote({
            _url("2.5.0"): make_source_tarball("2.5.0"),
            _url("2.6.0"): make_source_tarball("2.6.0"),
        })
        installer = _installer(store, activation, work_root, remote, listing="2.4.1 2.5.0 2.6.0")

        installer.install("latest")
        assert activation.current() == parse_version("2.6.0")

    def test_stable_skips_development_series(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        installer = _installer(store, activation, work_root, remote, listing="2.4.1 2.5.9")

        installer.install("stable")
        assert remote.requested == [_url("2.4.1")]

    def test_build_receives_staging_prefix(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        builder = FakeToolchain()
        _installer(store, activation, work_root, remote, builder).install("2.4.1")

        source_dir, prefix, _, label = builder.calls[0]
        assert source_dir.startswith(work_root)
        assert prefix.startswith(work_root)
        assert label == "2.4.1"

    def test_temp_dir_removed_after_success(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        _installer(store, activation, work_root, remote).install("2.4.1")
        assert os.listdir(work_root) == []


class TestInstallFailures:
    """Failures abort with no store entry and no leftover temp dirs."""

    def test_unknown_remote_version(self, store, activation, work_root):
        installer = _installer(store, activation, work_root, FakeRemote())
        with pytest.raises(InstallFailed) as excinfo:
            installer.install("9.9.9")
        assert isinstance(excinfo.value.cause, FetchFailed)
        assert store.installed() == []
        assert os.listdir(work_root) == []

    def test_corrupt_archive(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): b"\x1f\x8b this is not gzip data"})
        builder = FakeToolchain()
        installer = _installer(store, activation, work_root, remote, builder)
        with pytest.raises(InstallFailed):
            installer.install("2.4.1")
        assert builder.calls == []
        assert not store.has(parse_version("2.4.1"))
        assert os.listdir(work_root) == []

    def test_truncated_archive(self, store, activation, work_root):
        data = make_source_tarball("2.4.1", extra_members={"mongodb-src-r2.4.1/blob.bin": os.urandom(64 * 1024)})
        remote = FakeRemote({_url("2.4.1"): data[: len(data) // 2]})
        installer = _installer(store, activation, work_root, remote)
        with pytest.raises(InstallFailed):
            installer.install("2.4.1")
        assert not store.has(parse_version("2.4.1"))

    def test_build_failure(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        builder = FakeToolchain(returncode=2, log_path="/var/log/mvm/2.4.1.log")
        installer = _installer(store, activation, work_root, remote, builder)
        with pytest.raises(InstallFailed) as excinfo:
            installer.install("2.4.1")
        assert excinfo.value.log_path == "/var/log/mvm/2.4.1.log"
        assert "/var/log/mvm/2.4.1.log" in str(excinfo.value)
        assert store.installed() == []
        assert os.listdir(work_root) == []
        assert activation.current() is None

    def test_toolchain_not_executable(self, store, activation, work_root, tmp_path):
        script = tmp_path / "scons"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o644)
        builder = BuildToolchain(command=[str(script)], logs_dir=str(tmp_path / "logs"))
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        with pytest.raises(InstallFailed) as excinfo:
            _installer(store, activation, work_root, remote, builder).install("2.4.1")
        assert excinfo.value.log_path == str(tmp_path / "logs" / "2.4.1.log")
        assert "126" in str(excinfo.value)
        assert store.installed() == []
        assert os.listdir(work_root) == []

    def test_unusable_log_directory(self, store, activation, work_root, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        builder = BuildToolchain(command=["true"], logs_dir=str(blocker / "logs"))
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        with pytest.raises(InstallFailed) as excinfo:
            _installer(store, activation, work_root, remote, builder).install("2.4.1")
        assert "build could not run" in str(excinfo.value)
        assert store.installed() == []
        assert os.listdir(work_root) == []

    def test_failed_install_is_retryable(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        failing = FakeToolchain(returncode=1)
        with pytest.raises(InstallFailed):
            _installer(store, activation, work_root, remote, failing).install("2.4.1")

        working = FakeToolchain()
        _installer(store, activation, work_root, remote, working).install("2.4.1")
        assert len(working.calls) == 1
        assert activation.current() == parse_version("2.4.1")

    def test_activation_failure_keeps_install(self, store, activation, work_root):
        remote = FakeRemote({_url("2.4.1"): make_source_tarball("2.4.1")})
        installer = _installer(store, activation, work_root, remote)
        activation.activate = MagicMock(side_effect=ActivationFailed("2.4.1", "permission denied"))
        with pytest.raises(ActivationFailed):
            installer.install("2.4.1")
        assert store.has(parse_version("2.4.1"))


class TestInstallCustom:
    """install_custom() from a local tarball."""

    def test_custom_archive(self, store, activation, work_root, tmp_path):
        archive = tmp_path / "mongo-custom.tar.gz"
        archive.write_bytes(make_source_tarball("2.4.1", top="custom-tree"))
        remote = FakeRemote()
        installer = _installer(store, activation, work_root, remote)

        installer.install_custom("2.4.1", str(archive), ["--js-engine=v8"])

        assert remote.requested == []
        assert archive.exists()
        assert store.config_of(parse_version("2.4.1")) == ["--js-engine=v8"]
        assert activation.current() == parse_version("2.4.1")

    def test_missing_archive(self, store, activation, work_root, tmp_path):
        installer = _installer(store, activation, work_root, FakeRemote())
        with pytest.raises(InstallFailed):
            installer.install_custom("2.4.1", str(tmp_path / "missing.tar.gz"))


class TestExtractArchive:
    """extract_archive() stream extraction."""

    def test_strips_top_level_directory(self, tmp_path):
        dest = tmp_path / "dest"
        dest.mkdir()
        count = extract_archive(io.BytesIO(make_source_tarball("2.4.1")), str(dest))
        assert count == 3
        assert (dest / "VERSION").read_text() == "2.4.1"
        assert (dest / "src" / "mongo" / "db" / "db.cpp").exists()

    def test_rejects_parent_traversal(self, tmp_path):
        dest = tmp_path / "dest"
        dest.mkdir()
        data = make_source_tarball("2.4.1", extra_members={"top/../../evil": b"x"})
        with pytest.raises(tarfile.TarError):
            extract_archive(io.BytesIO(data), str(dest))
        assert not (tmp_path / "evil").exists()

    def test_reads_stream_sequentially(self, tmp_path):
        class NoSeek(io.RawIOBase):
            def __init__(self, data):
                self._buf = io.BytesIO(data)

            def readable(self):
                return True

            def readinto(self, b):
                chunk = self._buf.read(len(b))
                b[:len(chunk)] = chunk
                return len(chunk)

            def seekable(self):
                return False

        dest = tmp_path / "dest"
        dest.mkdir()
        extract_archive(io.BufferedReader(NoSeek(make_source_tarball("2.4.1"))), str(dest))
        assert (dest / "SConstruct").exists()
