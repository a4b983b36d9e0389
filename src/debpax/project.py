"""Higher-level helper for assembling a package step by step."""

import logging
import shutil
import tarfile
from os import PathLike
from pathlib import Path, PurePosixPath
from typing import Any

from debian.arfile import ArError
from debian.debfile import DebFile

from debpax import constants
from debpax.build import BuildResult, build_package
from debpax.errors import ArchiveFormatError, ArchiveIOError, ValidationError
from debpax.models.packages import AptSource, FileEntry, PackageSpec
from debpax.models.version import Version
from debpax.utils import new_md5

logger = logging.getLogger(__name__)

BUILDNO_FILE = "buildno.txt"


class Project:
    """A package under construction.

    Wraps a `PackageSpec` with install locations for binaries and man pages,
    a per-package cache directory, and optional automatic build numbers.

    The cache lives at ``<cache>/project/<package>/<id>``, where the id is the
    md5 of the package name and version, so each version keeps its own build
    counter.
    """

    def __init__(
        self,
        spec: PackageSpec,
        base_dir: str = "/usr",
        man_dir: str = "/usr/share/man",
        cache_root: str | PathLike | None = None,
    ):
        self.spec = spec
        self.base_dir = base_dir
        self.man_dir = man_dir
        self.cache_root = Path(cache_root) if cache_root is not None else constants.CACHE_DIR
        self.buildno: int | None = None

        md5 = new_md5()
        md5.update(spec.package.encode("utf-8"))
        md5.update(spec.version.encode("utf-8"))
        self.id = md5.hexdigest()

    def __repr__(self) -> str:
        return f"Project({self.spec.package!r}, {self.spec.version!r}, files={len(self.spec.files)})"

    @property
    def cache_dir(self) -> Path:
        return self.cache_root / "project" / self.spec.package / self.id

    @property
    def files(self) -> list[FileEntry]:
        return list(self.spec.files)

    def validate_version(self) -> Version:
        """Parse the package version, raising `VersionParseError` when malformed."""
        return Version.parse(self.spec.version)

    def add_file(self, *entries: FileEntry | str | dict[str, Any]) -> None:
        """Append manifest entries; strings use the ``"src:dst"`` shorthand."""
        new = [FileEntry.model_validate(e) for e in entries]
        self.spec = self.spec.model_copy(update={"files": [*self.spec.files, *new]})

    def add_binary(self, path: str | PathLike, mode: int = 0o755) -> None:
        """Install an executable as ``<base_dir>/bin/<file name>``."""
        name = Path(path).name
        if not name:
            raise ValidationError(f"could not get a file name from {str(path)!r}")
        dst = PurePosixPath(self.base_dir) / "bin" / name
        self.add_file(FileEntry.from_paths(path, dst, mode))

    def add_apt_source(self, source: AptSource | dict[str, Any]) -> None:
        source = AptSource.model_validate(source)
        sources = [*(self.spec.apt_sources or []), source]
        self.spec = self.spec.model_copy(update={"apt_sources": sources})

    def merge_deb(self, path: str | PathLike) -> Path:
        """Unpack another package's payload and install it at the root.

        The data member is extracted into ``<cache_dir>/debs/<name>``, replacing
        any previous extraction, and the whole tree is added as a directory
        source.

        Returns:
            The directory the payload was extracted into
        """
        path = Path(path)
        name = path.name.removesuffix(".deb")
        if not name:
            raise ValidationError(f"failed to get a package file name from {str(path)!r}")

        base = self.cache_dir / "debs" / name
        try:
            shutil.rmtree(base, ignore_errors=True)
            base.mkdir(parents=True)
        except OSError as e:
            raise ArchiveIOError("create directory", base, e) from e

        try:
            deb = DebFile(filename=str(path))
        except OSError as e:
            raise ArchiveIOError("open", path, e) from e
        except ArError as e:
            raise ArchiveFormatError(f"{path}: {e}") from e

        try:
            with deb.data.tgz() as tar:
                tar.extractall(base, filter="tar")
        except tarfile.TarError as e:
            raise ArchiveFormatError(f"{path}: {e}") from e
        finally:
            deb.close()

        logger.info(f"Merged {path} into {self.spec.package}")
        self.add_file(FileEntry.from_paths(base, "/"))
        return base

    def _buildno_path(self) -> Path:
        return self.cache_dir / BUILDNO_FILE

    def _read_build_number(self) -> int:
        path = self._buildno_path()
        if not path.exists():
            self._write_build_number(0)
            return 0
        text = path.read_text().strip()
        try:
            return int(text)
        except ValueError:
            raise ValidationError(f"{path}: invalid build number {text!r}") from None

    def _write_build_number(self, n: int) -> None:
        path = self._buildno_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(n))

    def enable_auto_build_numbers(self) -> int:
        """Number builds from the stored counter; each build increments it."""
        self.buildno = self._read_build_number()
        return self.buildno

    def reset_build_number(self) -> None:
        self._write_build_number(0)
        self.buildno = 0

    def build(
        self,
        dist: str | PathLike | None = None,
        files_base: str | None = None,
        build_time=None,
    ) -> BuildResult:
        """Build the package into ``dist`` (default `constants.DIST_DIR`).

        Entries without a destination are installed under ``files_base``, or
        `base_dir` when it is not given.
        """
        spec = self.spec
        if self.buildno is not None:
            spec = spec.model_copy(update={"buildno": self.buildno})

        result = build_package(
            spec,
            dist if dist is not None else constants.DIST_DIR,
            files_base=files_base or self.base_dir,
            build_time=build_time,
        )

        if self.buildno is not None:
            self.buildno += 1
            self._write_build_number(self.buildno)
            logger.debug(f"{self.spec.package}: next build number is {self.buildno}")
        return result
