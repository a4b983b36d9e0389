"""Shared fixtures for the debpax test suite."""

import os
from pathlib import Path

import pytest

from debpax.models.packages import FileEntry, PackageSpec

# 2023-11-14T22:13:20Z
BUILD_TIME = 1_700_000_000


@pytest.fixture
def build_time() -> int:
    return BUILD_TIME


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A small directory tree::

    src/
      a/
        b/
          file1.txt
        file2.txt
      link -> a/file2.txt
    """
    root = tmp_path / "src"
    (root / "a" / "b").mkdir(parents=True)
    (root / "a" / "b" / "file1.txt").write_bytes(b"first file\n")
    (root / "a" / "file2.txt").write_bytes(b"second file, a bit longer\n")
    os.symlink("a/file2.txt", root / "link")
    return root


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    path = tmp_path / "x.txt"
    path.write_bytes(b"hello\n")
    return path


@pytest.fixture
def make_spec():
    """Factory for a buildable spec; keyword arguments override the defaults."""

    def _make(files: list[FileEntry | str] | None = None, **kwargs) -> PackageSpec:
        fields = {
            "package": "x",
            "version": "1.0",
            "author": "a",
            "email": "b@c",
            "files": files or [],
        }
        fields.update(kwargs)
        return PackageSpec.model_validate(fields)

    return _make
