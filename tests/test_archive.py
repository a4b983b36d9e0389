"""Tests for the ar container writer."""

import io

import pytest
from debian.arfile import ArFile

from debpax.archive import AR_HEADER_LEN, AR_MAGIC, ArchiveMember, DebArchive, ar_header
from debpax.errors import ArchiveFormatError


def write_archive(mtime: int) -> bytes:
    buf = io.BytesIO()
    archive = DebArchive(buf, mtime)
    archive.init()
    archive.append("control.tar.gz", b"abc")
    archive.append("data.tar.gz", b"de")
    return buf.getvalue()


class TestHeader:
    def test_layout(self, build_time):
        header = ar_header(ArchiveMember("debian-binary", 0o644, build_time, b"2.0\n"))
        assert len(header) == AR_HEADER_LEN
        assert header == b"debian-binary   1700000000  0     0     100644  4         `\n"

    @pytest.mark.parametrize("name", ["", "a-name-that-is-too-long", "a/b", "café"])
    def test_bad_names(self, name):
        with pytest.raises(ArchiveFormatError):
            ar_header(ArchiveMember(name, 0o644, 0, b""))

    def test_mtime_overflow(self):
        member = ArchiveMember("late", 0o644, 10**12, b"")
        with pytest.raises(ArchiveFormatError):
            ar_header(member)


class TestDebArchive:
    def test_layout(self, build_time):
        data = write_archive(build_time)
        assert data.startswith(AR_MAGIC)
        offset = len(AR_MAGIC)
        assert data[offset : offset + 16] == b"debian-binary   "
        offset += AR_HEADER_LEN
        assert data[offset : offset + 4] == b"2.0\n"
        offset += 4
        assert data[offset : offset + 16] == b"control.tar.gz  "
        offset += AR_HEADER_LEN
        # odd-sized members are padded to an even offset
        assert data[offset : offset + 4] == b"abc\n"
        offset += 4
        assert data[offset : offset + 16] == b"data.tar.gz     "
        offset += AR_HEADER_LEN
        assert data[offset:] == b"de"

    def test_readable(self, build_time):
        ar = ArFile(fileobj=io.BytesIO(write_archive(build_time)))
        assert ar.getnames() == ["debian-binary", "control.tar.gz", "data.tar.gz"]
        assert ar.getmember("control.tar.gz").read() == b"abc"

    def test_append_before_init(self):
        archive = DebArchive(io.BytesIO(), 0)
        with pytest.raises(ArchiveFormatError):
            archive.append("control.tar.gz", b"")

    def test_double_init(self):
        archive = DebArchive(io.BytesIO(), 0)
        archive.init()
        with pytest.raises(ArchiveFormatError):
            archive.init()

    def test_members_recorded(self, build_time):
        archive = DebArchive(io.BytesIO(), build_time)
        archive.init()
        archive.append("control.tar.gz", b"")
        assert archive.members == ["debian-binary", "control.tar.gz"]
