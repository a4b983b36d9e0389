"""Builder for the ``control.tar`` member: control file, md5sums, maintainer scripts."""

import io
import logging
import tarfile
from collections.abc import Iterable

from debpax.constants import DEFAULT_FILE_MODE, SCRIPT_MODE
from debpax.errors import ArchiveFormatError
from debpax.models.packages import AptSource, PackageSpec
from debpax.payload import HashRecord
from debpax.utils import open_gzip

logger = logging.getLogger(__name__)

KEYRING_DIR = "/usr/share/keyrings"
SOURCES_LIST_DIR = "/etc/apt/sources.list.d"


def render_md5sums(hashes: Iterable[HashRecord]) -> bytes:
    """One ``<md5>  <path>`` line per payload file, in archive order."""
    lines = [f"{record.hexdigest}  {record.path.lstrip('/')}\n" for record in hashes]
    return "".join(lines).encode("utf-8")


def render_apt_scripts(sources: Iterable[AptSource]) -> tuple[str, str]:
    """Generate the preinst/postrm pair that registers and removes apt sources.

    Returns:
        (preinst, postrm) script bodies
    """
    preinst = ["#!/bin/sh", "set -eu", f"mkdir -p {KEYRING_DIR}/"]
    postrm = ["#!/bin/sh", "set -eu"]
    for source in sources:
        keyring = f"{KEYRING_DIR}/{source.name}.gpg"
        source_list = f"{SOURCES_LIST_DIR}/{source.name}.list"
        preinst.append(f"sudo wget -q -O '{keyring}' '{source.gpg_key_url}'")
        preinst.append(f"sudo chmod a+r {keyring}")
        preinst.append(
            f'echo "deb [signed-by={keyring} arch=$(dpkg --print-architecture)] '
            f'{source.url} {source.components}" | sudo tee {source_list}'
        )
        postrm.append(f"rm -f {keyring} {source_list}")
    return "\n".join(preinst) + "\n", "\n".join(postrm) + "\n"


class ControlBuilder:
    """Writes the members of ``control.tar`` in the order dpkg-deb uses."""

    def __init__(self, fileobj, mtime: int):
        self.mtime = mtime
        self.names: list[str] = []
        self.tar = tarfile.open(fileobj=fileobj, mode="w", format=tarfile.GNU_FORMAT)

    def __enter__(self) -> "ControlBuilder":
        return self

    def __exit__(self, *exc) -> None:
        self.tar.close()

    def add(self, name: str, data: bytes, mode: int = DEFAULT_FILE_MODE) -> None:
        info = tarfile.TarInfo(name)
        info.size = len(data)
        info.mode = mode
        info.mtime = self.mtime
        info.uid = 0
        info.gid = 0
        try:
            self.tar.addfile(info, io.BytesIO(data))
        except (tarfile.TarError, ValueError) as e:
            raise ArchiveFormatError(f"control.tar: {name}: {e}") from e
        self.names.append(name)

    def add_spec(self, spec: PackageSpec, hashes: list[HashRecord], install_size: int) -> None:
        self.add("control", spec.generate_control(install_size).encode("utf-8"))
        self.add("md5sums", render_md5sums(hashes))

        if spec.apt_sources:
            preinst, postrm = render_apt_scripts(spec.apt_sources)
            self.add("preinst", preinst.encode("utf-8"), SCRIPT_MODE)
            self.add("postrm", postrm.encode("utf-8"), SCRIPT_MODE)
        elif spec.scripts is not None:
            for name, body in spec.scripts.items():
                self.add(name, body.encode("utf-8"), SCRIPT_MODE)


def build_control_tarball(spec: PackageSpec, hashes: list[HashRecord], install_size: int, mtime: int) -> bytes:
    """Build the gzip-compressed control tarball in memory."""
    buf = io.BytesIO()
    with open_gzip(buf, mtime) as gz, ControlBuilder(gz, mtime) as builder:
        builder.add_spec(spec, hashes, install_size)
    logger.debug(f"control.tar.gz: {', '.join(builder.names)}")
    return buf.getvalue()
