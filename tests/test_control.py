"""Tests for the control tarball."""

import io
import tarfile

from debpax.control import build_control_tarball, render_apt_scripts, render_md5sums
from debpax.models.packages import AptSource, MaintainerScripts
from debpax.payload import HashRecord

EMPTY_MD5 = "d41d8cd98f00b204e9800998ecf8427e"

SOURCE = AptSource(
    name="example",
    url="https://apt.example.com",
    components="stable main",
    gpg_key_url="https://apt.example.com/key.gpg",
)


def read_members(data: bytes) -> dict[str, tarfile.TarInfo]:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        return {m.name: m for m in tar.getmembers()}


def read_file(data: bytes, name: str) -> bytes:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        return tar.extractfile(name).read()


def test_render_md5sums():
    hashes = [
        HashRecord(bytes.fromhex(EMPTY_MD5), "usr/share/x.txt"),
        HashRecord(bytes.fromhex(EMPTY_MD5), "/etc/y"),
    ]
    assert render_md5sums(hashes) == f"{EMPTY_MD5}  usr/share/x.txt\n{EMPTY_MD5}  etc/y\n".encode()


def test_render_apt_scripts():
    preinst, postrm = render_apt_scripts([SOURCE])
    assert preinst.startswith("#!/bin/sh\n")
    assert "sudo wget -q -O '/usr/share/keyrings/example.gpg' 'https://apt.example.com/key.gpg'" in preinst
    assert "signed-by=/usr/share/keyrings/example.gpg" in preinst
    assert "https://apt.example.com stable main\" | sudo tee /etc/apt/sources.list.d/example.list" in preinst
    assert "rm -f /usr/share/keyrings/example.gpg /etc/apt/sources.list.d/example.list" in postrm


class TestControlTarball:
    def test_members(self, make_spec, build_time):
        data = build_control_tarball(make_spec(), [], 0, build_time)
        members = read_members(data)
        assert list(members) == ["control", "md5sums"]
        assert members["control"].mode == 0o644
        assert members["control"].mtime == build_time
        assert read_file(data, "md5sums") == b""
        assert read_file(data, "control").startswith(b"Package: x\nVersion: 1.0\n")

    def test_installed_size(self, make_spec, build_time):
        data = build_control_tarball(make_spec(), [], 1, build_time)
        assert b"Installed-Size: 1\n" in read_file(data, "control")

    def test_maintainer_scripts(self, make_spec, build_time):
        spec = make_spec(scripts=MaintainerScripts(postinst="  echo hi  \n", postrm="echo bye"))
        data = build_control_tarball(spec, [], 0, build_time)
        members = read_members(data)
        assert list(members) == ["control", "md5sums", "postinst", "postrm"]
        assert members["postinst"].mode == 0o755
        assert members["postinst"].size == len("echo hi")
        assert read_file(data, "postinst") == b"echo hi"

    def test_apt_sources_replace_scripts(self, make_spec, build_time):
        spec = make_spec(apt_sources=[SOURCE], scripts=MaintainerScripts(postinst="echo hi"))
        data = build_control_tarball(spec, [], 0, build_time)
        members = read_members(data)
        assert list(members) == ["control", "md5sums", "preinst", "postrm"]
        assert b"sources.list.d/example.list" in read_file(data, "preinst")

    def test_deterministic(self, make_spec, build_time):
        hashes = [HashRecord(bytes.fromhex(EMPTY_MD5), "usr/share/x.txt")]
        first = build_control_tarball(make_spec(), hashes, 0, build_time)
        assert first == build_control_tarball(make_spec(), hashes, 0, build_time)
