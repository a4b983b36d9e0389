"""Build a .deb file from a `PackageSpec`."""

import datetime
import logging
import os
from os import PathLike
from pathlib import Path
from typing import NamedTuple

from debpax.archive import DebArchive
from debpax.constants import CONTROL_MEMBER, DATA_MEMBER, DIST_DIR
from debpax.control import build_control_tarball
from debpax.errors import ArchiveIOError
from debpax.models.packages import PackageSpec
from debpax.payload import HashRecord, build_data_tarball
from debpax.utils import resolve_build_time

logger = logging.getLogger(__name__)


class BuildResult(NamedTuple):
    path: Path
    installed_size: int
    version: str
    hashes: list[HashRecord]


def build_package(
    spec: PackageSpec,
    dist_dir: str | PathLike = DIST_DIR,
    files_base: str | None = None,
    build_time: int | str | datetime.datetime | None = None,
) -> BuildResult:
    """Build a binary package and write it into ``dist_dir``.

    The package is copied before any processing, so the caller's value is left
    untouched. Both tarballs are built in memory first; the output file is only
    created once they are complete, so a package that fails validation or
    references a missing file leaves nothing on disk.

    Args:
        spec: The package to build
        dist_dir: Output directory, created if needed
        files_base: Install directory for entries that have no destination
        build_time: Timestamp for every archive member (see `resolve_build_time`)

    Returns:
        Path, installed size, full version and payload hashes of the package

    Raises:
        ValidationError: The package description is incomplete
        UnsupportedFileType: A source is neither a file nor a directory
        ArchiveIOError: A source could not be read or the output not written
        ArchiveFormatError: A member header could not be encoded
    """
    spec = spec.model_copy(deep=True).pre_process(files_base)
    spec.validate_spec()
    mtime = resolve_build_time(build_time)

    logger.info(f"Building {spec.package} {spec.full_version} ({spec.arch})")
    data = build_data_tarball(spec.sorted_files(), mtime)
    control = build_control_tarball(spec, data.hashes, data.size, mtime)

    dist_dir = Path(dist_dir)
    path = dist_dir / spec.filename
    try:
        dist_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o666)
    except OSError as e:
        raise ArchiveIOError("create", path, e) from e

    with os.fdopen(fd, "wb") as f:
        archive = DebArchive(f, mtime)
        try:
            archive.init()
            archive.append(CONTROL_MEMBER, control)
            archive.append(DATA_MEMBER, data.data)
        except OSError as e:
            if isinstance(e, ArchiveIOError):
                raise
            raise ArchiveIOError("write", path, e) from e

    logger.info(f"Wrote {path} ({len(data.hashes)} files, {data.size} bytes installed)")
    return BuildResult(path, data.size, spec.full_version, data.hashes)
