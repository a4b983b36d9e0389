"""Outer ``ar`` container of a .deb file."""

import logging
import stat
from typing import BinaryIO, NamedTuple

from debpax.constants import DEBIAN_BINARY, DEBIAN_BINARY_VERSION, DEFAULT_FILE_MODE
from debpax.errors import ArchiveFormatError

logger = logging.getLogger(__name__)

AR_MAGIC = b"!<arch>\n"
AR_FMAG = b"`\n"
AR_NAME_LEN = 16
AR_HEADER_LEN = 60


class ArchiveMember(NamedTuple):
    name: str
    mode: int
    mtime: int
    data: bytes


def _field(value: str | int, width: int, what: str, name: str) -> bytes:
    text = str(value).encode("ascii")
    if len(text) > width:
        raise ArchiveFormatError(f"ar member {name!r}: {what} {value!r} does not fit in {width} bytes")
    return text.ljust(width)


def ar_header(member: ArchiveMember) -> bytes:
    """Render the fixed 60-byte ar header for ``member``."""
    try:
        name = member.name.encode("ascii")
    except UnicodeEncodeError:
        raise ArchiveFormatError(f"ar member name {member.name!r} must be ASCII") from None
    if not name or len(name) > AR_NAME_LEN or b"/" in name or b" " in name:
        raise ArchiveFormatError(f"invalid ar member name {member.name!r} (1-16 bytes, no '/' or spaces)")

    header = b"".join(
        [
            name.ljust(AR_NAME_LEN),
            _field(member.mtime, 12, "mtime", member.name),
            _field(0, 6, "uid", member.name),
            _field(0, 6, "gid", member.name),
            _field(f"{stat.S_IFREG | member.mode:o}", 8, "mode", member.name),
            _field(len(member.data), 10, "size", member.name),
            AR_FMAG,
        ]
    )
    assert len(header) == AR_HEADER_LEN
    return header


class DebArchive:
    """Sequential writer for the members of a Debian binary package.

    Members are written exactly in call order: `init` first, then
    ``append("control.tar.gz", ...)``, then ``append("data.tar.gz", ...)``.
    dpkg reads the members sequentially, so the order is part of the format.
    """

    def __init__(self, fileobj: BinaryIO, mtime: int):
        self.fileobj = fileobj
        self.mtime = mtime
        self.members: list[str] = []

    def init(self) -> None:
        if self.members:
            raise ArchiveFormatError("archive already initialized")
        self.fileobj.write(AR_MAGIC)
        self._write(ArchiveMember(DEBIAN_BINARY, DEFAULT_FILE_MODE, self.mtime, DEBIAN_BINARY_VERSION))

    def append(self, name: str, data: bytes) -> None:
        if not self.members:
            raise ArchiveFormatError(f"cannot append {name!r} before {DEBIAN_BINARY!r}")
        self._write(ArchiveMember(name, DEFAULT_FILE_MODE, self.mtime, data))

    def _write(self, member: ArchiveMember) -> None:
        self.fileobj.write(ar_header(member))
        self.fileobj.write(member.data)
        if len(member.data) % 2:
            self.fileobj.write(b"\n")
        self.members.append(member.name)
        logger.debug(f"ar member {member.name} ({len(member.data)} bytes)")
