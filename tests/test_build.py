"""End-to-end package builds, read back with python-debian."""

import hashlib
from pathlib import Path

import pytest
from debian.arfile import ArFile
from debian.debfile import DebFile

from debpax.build import build_package
from debpax.errors import ArchiveIOError, MissingMaintainer, ValidationError
from debpax.models.packages import FileEntry


@pytest.fixture
def dist(tmp_path: Path) -> Path:
    return tmp_path / "dist"


class TestBuildPackage:
    def test_single_file(self, make_spec, sample_file: Path, dist: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(sample_file, "/usr/share/x.txt")])
        result = build_package(spec, dist, build_time=build_time)

        assert result.path == dist / "x-v1.0_all.deb"
        assert result.path.is_file()
        assert result.installed_size == 6
        assert result.version == "1.0"

        assert ArFile(str(result.path)).getnames() == ["debian-binary", "control.tar.gz", "data.tar.gz"]

        deb = DebFile(str(result.path))
        try:
            control = deb.control.debcontrol()
            assert control["Package"] == "x"
            assert control["Maintainer"] == "a <b@c>"
            assert control["Installed-Size"] == "1"
            assert deb.md5sums(encoding="utf-8") == {"usr/share/x.txt": hashlib.md5(b"hello\n").hexdigest()}
            data = deb.data.tgz()
            assert data.getnames() == ["usr", "usr/share", "usr/share/x.txt"]
            assert data.extractfile("usr/share/x.txt").read() == b"hello\n"
        finally:
            deb.close()

    def test_md5sums_row(self, make_spec, sample_file: Path, dist: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(sample_file, "/usr/share/x.txt")])
        result = build_package(spec, dist, build_time=build_time)
        deb = DebFile(str(result.path))
        try:
            md5sums = deb.control.get_content("md5sums")
        finally:
            deb.close()
        digest = hashlib.md5(b"hello\n").hexdigest()
        assert md5sums == f"{digest}  usr/share/x.txt\n".encode()

    def test_manifest_sorted_by_destination(self, make_spec, sample_file: Path, dist: Path, build_time):
        spec = make_spec(
            files=[
                FileEntry.from_paths(sample_file, "/usr/share/z.txt"),
                FileEntry.from_paths(sample_file, "/etc/a.conf"),
            ]
        )
        result = build_package(spec, dist, build_time=build_time)
        assert [h.path for h in result.hashes] == ["etc/a.conf", "usr/share/z.txt"]
        assert result.installed_size == 12

    def test_files_base(self, make_spec, sample_file: Path, dist: Path, build_time):
        spec = make_spec(files=[str(sample_file)])
        result = build_package(spec, dist, files_base="/usr/share/x", build_time=build_time)
        assert [h.path for h in result.hashes] == ["usr/share/x/x.txt"]
        # the caller's spec is not modified
        assert spec.files[0].dst == ""

    def test_build_number(self, make_spec, sample_file: Path, dist: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(sample_file, "/x")], buildno=2, arch="amd64")
        result = build_package(spec, dist, build_time=build_time)
        assert result.path.name == "x-v1.0-2_amd64.deb"
        assert result.version == "1.0-2"
        deb = DebFile(str(result.path))
        try:
            assert deb.control.debcontrol()["Version"] == "1.0-2"
        finally:
            deb.close()

    def test_reproducible(self, make_spec, source_tree: Path, tmp_path: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(source_tree, "/opt/app")])
        first = build_package(spec, tmp_path / "one", build_time=build_time)
        second = build_package(spec, tmp_path / "two", build_time=build_time)
        assert first.path.read_bytes() == second.path.read_bytes()

    def test_symlinks_in_tree(self, make_spec, source_tree: Path, dist: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(source_tree, "/opt/app")])
        result = build_package(spec, dist, build_time=build_time)
        deb = DebFile(str(result.path))
        try:
            link = deb.data.tgz().getmember("opt/app/link")
            assert link.issym()
            assert link.size == 0
            assert "opt/app/link" not in deb.md5sums(encoding="utf-8")
        finally:
            deb.close()


class TestBuildFailures:
    def test_missing_maintainer_writes_nothing(self, make_spec, sample_file: Path, dist: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(sample_file, "/x")], author=None, email=None)
        with pytest.raises(MissingMaintainer):
            build_package(spec, dist, build_time=build_time)
        assert not dist.exists()

    def test_missing_source_writes_nothing(self, make_spec, tmp_path: Path, dist: Path, build_time):
        spec = make_spec(files=[FileEntry.from_paths(tmp_path / "gone", "/x")])
        with pytest.raises(ArchiveIOError):
            build_package(spec, dist, build_time=build_time)
        assert not dist.exists()

    def test_package_name_cannot_leave_dist(self, make_spec, sample_file: Path, tmp_path: Path, build_time):
        dist = tmp_path / "a" / "dist"
        spec = make_spec(files=[FileEntry.from_paths(sample_file, "/x")], package="../../escaped")
        with pytest.raises(ValidationError):
            build_package(spec, dist, build_time=build_time)
        assert list(tmp_path.rglob("*.deb")) == []

    def test_multiline_field_fails_before_payload(self, make_spec, tmp_path: Path, dist: Path, build_time):
        # the missing source would raise ArchiveIOError if the payload were built first
        spec = make_spec(files=[FileEntry.from_paths(tmp_path / "gone", "/x")], homepage="https://x\nEssential: yes")
        with pytest.raises(ValidationError):
            build_package(spec, dist, build_time=build_time)
        assert not dist.exists()


class TestDirectoryMarkers:
    def test_marker_mode_kept_when_listed_without_slash(
        self, make_spec, sample_file: Path, dist: Path, build_time
    ):
        spec = make_spec(
            files=[
                FileEntry.from_paths(sample_file, "/opt/app/x.txt"),
                {"dir": "opt/app", "mode": "0700"},
            ]
        )
        result = build_package(spec, dist, build_time=build_time)
        deb = DebFile(str(result.path))
        try:
            data = deb.data.tgz()
            assert data.getnames() == ["opt", "opt/app", "opt/app/x.txt"]
            assert data.getmember("opt/app").mode == 0o700
        finally:
            deb.close()
