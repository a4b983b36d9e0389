"""Streaming builder for the ``data.tar`` payload member."""

import io
import logging
import os
import stat
import tarfile
from collections.abc import Iterable, Iterator
from os import PathLike
from pathlib import Path, PurePosixPath
from typing import BinaryIO, NamedTuple

from debpax.constants import COPY_BUFSIZE, DEFAULT_DIR_MODE
from debpax.errors import ArchiveFormatError, ArchiveIOError, UnsupportedFileType
from debpax.models.packages import FileEntry
from debpax.utils import HashReader, open_gzip, strip_leading_slash

logger = logging.getLogger(__name__)

ROOT = PurePosixPath(".")


class HashRecord(NamedTuple):
    """MD5 digest of one installed regular file and its archive-relative path."""

    digest: bytes
    path: str

    @property
    def hexdigest(self) -> str:
        return self.digest.hex()


class DataTarball(NamedTuple):
    data: bytes
    hashes: list[HashRecord]
    size: int


def _lstat(path: str | PathLike) -> os.stat_result:
    try:
        return os.lstat(path)
    except OSError as e:
        raise ArchiveIOError("stat", path, e) from e


class DataBuilder:
    """Writes package files into a tar stream, hashing each file as it is copied.

    Parent directories are synthesized on first use so every file in the
    archive has its directories listed before it. Regular file sizes are
    summed into `size` for the Installed-Size control field.
    """

    def __init__(self, fileobj: BinaryIO, mtime: int):
        self.mtime = mtime
        self.size = 0
        self.dirs: set[PurePosixPath] = set()
        self.hashes: list[HashRecord] = []
        self.tar = tarfile.open(
            fileobj=fileobj,
            mode="w",
            format=tarfile.GNU_FORMAT,
            copybufsize=COPY_BUFSIZE,
        )

    def __enter__(self) -> "DataBuilder":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self.tar.close()

    def add_entry(self, entry: FileEntry) -> None:
        if entry.is_directory_marker:
            self.add_dir(entry.dst, entry.mode if entry.mode is not None else DEFAULT_DIR_MODE)
        else:
            self.add_path(entry.src, entry.dst, entry.mode)

    def add_path(self, source: str | PathLike, dest: str | PathLike, mode: int | None = None) -> None:
        """Add a regular file, or every file and symlink below a directory.

        Args:
            source: File or directory on the local filesystem
            dest: Install location; a leading "/" is stripped. A directory may be
                installed at "/"
            mode: Permission bits for a regular file; defaults to the source's own

        Raises:
            UnsupportedFileType: The source is a symlink or a special file
            ArchiveIOError: The source could not be stat'ed, opened or read
        """
        dst = self._archive_path(dest)
        st = _lstat(source)
        if stat.S_ISLNK(st.st_mode):
            raise UnsupportedFileType(source, "symlinks are not supported file types")
        elif stat.S_ISREG(st.st_mode):
            if dst == ROOT:
                raise ArchiveFormatError(f"{dest!r}: destination does not name a file")
            self._add_file(source, dst, st, mode)
        elif stat.S_ISDIR(st.st_mode):
            self._add_tree(Path(source), dst)
        else:
            raise UnsupportedFileType(source, "directories and files are the only supported file types")

    def add_dir(self, dest: str | PathLike, mode: int = DEFAULT_DIR_MODE) -> None:
        dst = self._archive_path(dest)
        if dst == ROOT:
            return
        self._add_parent_directories(dst)
        if dst not in self.dirs:
            self.dirs.add(dst)
            self._directory(dst, mode)

    def _archive_path(self, dest: str | PathLike) -> PurePosixPath:
        dst = strip_leading_slash(dest)
        if ".." in dst.parts:
            raise ArchiveFormatError(f"{dest}: destination must not contain '..'")
        return dst

    def _header(self, path: PurePosixPath, kind: bytes, mode: int, size: int = 0) -> tarfile.TarInfo:
        info = tarfile.TarInfo(str(path))
        info.type = kind
        info.mode = mode
        info.size = size
        info.mtime = self.mtime
        info.uid = 0
        info.gid = 0
        return info

    def _append(self, info: tarfile.TarInfo, fileobj=None) -> None:
        try:
            self.tar.addfile(info, fileobj)
        except (tarfile.TarError, ValueError) as e:
            raise ArchiveFormatError(f"{info.name}: {e}") from e

    def _directory(self, path: PurePosixPath, mode: int) -> None:
        logger.debug(f"dir  {path}/")
        self._append(self._header(path, tarfile.DIRTYPE, mode))

    def _add_parent_directories(self, path: PurePosixPath) -> None:
        directory = PurePosixPath()
        for part in path.parent.parts:
            directory = directory / part
            if directory not in self.dirs:
                self.dirs.add(directory)
                self._directory(directory, DEFAULT_DIR_MODE)

    def _add_file(self, source: str | PathLike, dst: PurePosixPath, st: os.stat_result, mode: int | None) -> None:
        self._add_parent_directories(dst)
        try:
            f = open(source, "rb")
        except OSError as e:
            raise ArchiveIOError("open", source, e) from e

        with f:
            reader = HashReader(f)
            perms = mode if mode is not None else stat.S_IMODE(st.st_mode)
            info = self._header(dst, tarfile.REGTYPE, perms, st.st_size)
            try:
                self._append(info, reader)
            except OSError as e:
                raise ArchiveIOError("read", source, e) from e

        logger.debug(f"file {dst} ({st.st_size} bytes)")
        self.size += st.st_size
        self.hashes.append(HashRecord(reader.hasher.digest(), str(dst)))

    def _add_symlink(self, source: Path, dst: PurePosixPath) -> None:
        try:
            target = os.readlink(source)
        except OSError as e:
            raise ArchiveIOError("read link", source, e) from e
        self._add_parent_directories(dst)
        info = self._header(dst, tarfile.SYMTYPE, 0o777)
        info.linkname = target
        logger.debug(f"link {dst} -> {target}")
        self._append(info)

    def _add_tree(self, source: Path, dst: PurePosixPath) -> None:
        for path, st in _walk(source):
            d = dst / PurePosixPath(*path.relative_to(source).parts)
            if stat.S_ISLNK(st.st_mode):
                self._add_symlink(path, d)
            elif stat.S_ISREG(st.st_mode):
                self._add_file(path, d, st, None)
            else:
                raise UnsupportedFileType(path, "only files, directories and symlinks can be packaged")


def _walk(directory: Path) -> Iterator[tuple[Path, os.stat_result]]:
    """Yield every non-directory below ``directory``, depth first, sorted by name."""
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise ArchiveIOError("read directory", directory, e) from e

    for entry in entries:
        try:
            st = entry.stat(follow_symlinks=False)
        except OSError as e:
            raise ArchiveIOError("stat", entry.path, e) from e
        if stat.S_ISDIR(st.st_mode):
            yield from _walk(Path(entry.path))
        else:
            yield Path(entry.path), st


def build_data_tarball(entries: Iterable[FileEntry], mtime: int) -> DataTarball:
    """Stream ``entries`` into a gzip-compressed tarball held in memory.

    Entries are written in the order given; callers sort them by destination.
    """
    buf = io.BytesIO()
    with open_gzip(buf, mtime) as gz, DataBuilder(gz, mtime) as builder:
        for entry in entries:
            builder.add_entry(entry)
    logger.debug(f"data.tar.gz: {len(builder.hashes)} files, {builder.size} bytes installed")
    return DataTarball(buf.getvalue(), builder.hashes, builder.size)
