"""Shared fixtures: fake server binaries, source tarballs and a fake toolchain."""

import io
import os
import stat
import tarfile

import pytest

from constants import Constants
from installation.activation import ActivationManager
from installation.builder import BuildResult
from installation.store import VersionStore


def write_server_binary(path, version, exit_code=0):
    """Write an executable stand-in for mongod that reports ``version``."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write("#!/bin/sh\n")
        fh.write(f'echo "db version v{version}"\n')
        fh.write('echo "git version: 0123456789abcdef"\n')
        fh.write(f"exit {exit_code}\n")
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def make_build_output(root, version, extra_commands=("mongo",)):
    """Create a prefix tree as a finished build would leave it."""
    bin_dir = os.path.join(root, "bin")
    write_server_binary(os.path.join(bin_dir, "mongod"), version)
    for name in extra_commands:
        write_server_binary(os.path.join(bin_dir, name), version)
    return root


def make_source_tarball(version, top=None, extra_members=None):
    """Gzipped source tarball bytes with a single top-level directory."""
    top = top or f"mongodb-src-r{version}"
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        files = {
            f"{top}/VERSION": version.encode(),
            f"{top}/SConstruct": b"# build file\n",
            f"{top}/src/mongo/db/db.cpp": b"int main() { return 0; }\n",
        }
        files.update(extra_members or {})
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class FakeToolchain:
    """Stands in for BuildToolchain; installs fake binaries into the prefix."""

    def __init__(self, returncode=0, log_path=None, extra_commands=("mongo",)):
        self.returncode = returncode
        self.log_path = log_path
        self.extra_commands = extra_commands
        self.calls = []

    def build(self, source_dir, install_prefix, options, label="build"):
        self.calls.append((source_dir, install_prefix, list(options), label))
        if self.returncode != 0:
            return BuildResult(returncode=self.returncode, log_path=self.log_path)
        with open(os.path.join(source_dir, "VERSION"), encoding="utf-8") as fh:
            version = fh.read().strip()
        make_build_output(install_prefix, version, self.extra_commands)
        return BuildResult(returncode=0, log_path=self.log_path)


@pytest.fixture(autouse=True)
def restore_constants():
    """Undo any Constants mutation a test performs."""
    saved = {k: v for k, v in vars(Constants).items() if k.isupper()}
    yield
    for key, value in saved.items():
        setattr(Constants, key, value)


@pytest.fixture
def store(tmp_path):
    return VersionStore(root=str(tmp_path / "versions"))


@pytest.fixture
def bin_dir(tmp_path):
    path = tmp_path / "bin"
    path.mkdir()
    return str(path)


@pytest.fixture
def activation(store, bin_dir):
    return ActivationManager(store, target_dir=bin_dir)
