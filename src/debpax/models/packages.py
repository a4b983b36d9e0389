"""Models for package descriptions: metadata, file manifest, maintainer hooks."""

import logging
import math
import re
import tomllib
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Any, Self

from debian import deb822
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from debpax.errors import ConfigError, EmptyVersion, MissingMaintainer, UnknownVariantError, ValidationError
from debpax.utils import strip_leading_slash

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "misc"
DEFAULT_ARCH = "all"

# Debian policy allows lowercase letters, digits, "+", "-" and "."
PACKAGE_NAME_RE = re.compile(r"[a-z0-9][a-z0-9.+-]*")
ARCH_PART_RE = re.compile(r"[a-z0-9_]+")


class _Variant(StrEnum):
    """StrEnum with a strict string/ordinal mapping.

    The lowercase value is the control-file spelling; the ordinal is the
    declaration index.
    """

    @classmethod
    def parse(cls, value: "str | int | _Variant") -> Self:
        if isinstance(value, cls):
            return value
        members = list(cls)
        if isinstance(value, int) and not isinstance(value, bool):
            if 0 <= value < len(members):
                return members[value]
        elif isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnknownVariantError(cls.__name__.lower(), value, [m.value for m in members])

    @classmethod
    def from_ordinal(cls, ordinal: int) -> Self:
        return cls.parse(ordinal)

    @property
    def ordinal(self) -> int:
        return list(type(self)).index(self)


class Priority(_Variant):
    REQUIRED = "required"
    IMPORTANT = "important"
    STANDARD = "standard"
    OPTIONAL = "optional"
    EXTRA = "extra"  # deprecated in policy, use optional


class Urgency(_Variant):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"
    CRITICAL = "critical"


class Architecture(_Variant):
    """The architecture wildcards dpkg understands besides concrete CPU names."""

    ALL = "all"
    ANY = "any"
    SOURCE = "source"


class ArchTriple(BaseModel):
    """A dpkg architecture name split into ``vendor-os-cpu`` parts.

    Examples:
        >>> ArchTriple.parse("musl-linux-powerpc")
        ArchTriple(vendor='musl', os='linux', cpu='powerpc')
    """

    model_config = ConfigDict(frozen=True)

    vendor: str = ""
    os: str = ""
    cpu: str = ""

    @classmethod
    def parse(cls, value: str) -> "ArchTriple":
        parts = value.split("-")
        if not all(ARCH_PART_RE.fullmatch(part) for part in parts):
            raise UnknownVariantError("architecture", value)
        match parts:
            case [cpu]:
                return cls(cpu=cpu)
            case [os, cpu]:
                return cls(os=os, cpu=cpu)
            case [vendor, os, cpu]:
                return cls(vendor=vendor, os=os, cpu=cpu)
            case _:
                raise UnknownVariantError("architecture", value)

    def __str__(self) -> str:
        if self.vendor and self.os and self.cpu:
            return f"{self.vendor}-{self.os}-{self.cpu}"
        if self.os and self.cpu:
            return f"{self.os}-{self.cpu}"
        if self.cpu and not self.vendor:
            return self.cpu
        raise UnknownVariantError("architecture", self.model_dump())


def _parse_mode(value: Any) -> int | None:
    """Accept octal strings such as "0755" alongside plain integers."""
    if value is None or isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().lower().removeprefix("0o")
        try:
            return int(text, 8)
        except ValueError:
            raise ValueError(f"invalid octal file mode {value!r}") from None
    raise ValueError(f"invalid file mode {value!r}")


class FileEntry(BaseModel):
    """One manifest entry: a source file or directory and its install location.

    Accepts the shorthand strings ``"src"`` and ``"src:dst"``. An entry with no
    source (or with ``dir`` set) is a directory marker.
    """

    model_config = ConfigDict(frozen=True)

    src: str = ""
    dst: str = ""
    mode: int | None = None
    dir: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            src, _, dst = data.partition(":")
            return {"src": src, "dst": dst}
        if isinstance(data, dict) and data.get("dir") and not data.get("dst"):
            return {**data, "src": "", "dst": data["dir"]}
        return data

    @field_validator("mode", mode="before")
    @classmethod
    def _octal_mode(cls, value: Any) -> int | None:
        return _parse_mode(value)

    @classmethod
    def from_paths(cls, src: str | Path, dst: str | PurePosixPath, mode: int | None = None) -> "FileEntry":
        return cls(src=str(src), dst=str(dst), mode=mode)

    @property
    def is_directory_marker(self) -> bool:
        return self.dir is not None or not self.src


class AptSource(BaseModel):
    """An apt repository registered by the package's maintainer scripts."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    components: str
    gpg_key_url: str


class MaintainerScripts(BaseModel):
    model_config = ConfigDict(frozen=True)

    preinst: str | None = None
    postinst: str | None = None
    prerm: str | None = None
    postrm: str | None = None

    def items(self) -> list[tuple[str, str]]:
        """Return ``(name, trimmed body)`` for each script that is set, in install order."""
        scripts = []
        for name in ("preinst", "postinst", "prerm", "postrm"):
            body = getattr(self, name)
            if body is not None:
                scripts.append((name, body.strip()))
        return scripts


def format_description(text: str) -> str:
    """Fold a free-form description into a control-file field value.

    The first line is the synopsis; following lines become continuation lines
    with a leading space, and blank lines become " .".
    """
    lines = text.strip().splitlines()
    if not lines:
        return ""
    body = [f" {line.rstrip()}" if line.strip() else " ." for line in lines[1:]]
    return "\n".join([lines[0].strip(), *body])


def unfold_description(value: str) -> str:
    lines = value.splitlines()
    if not lines:
        return ""
    body = ["" if line.strip() == "." else line.removeprefix(" ") for line in lines[1:]]
    return "\n".join([lines[0].strip(), *body])


def _split_relations(value: str | None) -> list[str]:
    if not value:
        return []
    return [rel.strip() for rel in value.replace("\n", " ").split(",") if rel.strip()]


class PackageSpec(BaseModel):
    """Declarative description of a single binary package.

    Instances are frozen: helpers such as `pre_process` and `merge_in` return
    updated copies.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    package: str
    name: str | None = None
    version: str
    description: str | None = None
    essential: bool = False
    author: str | None = None
    email: str | None = None
    maintainer: str | None = None
    homepage: str | None = None
    files: list[FileEntry] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    recommends: list[str] | None = None
    suggests: list[str] | None = None
    priority: Priority = Priority.OPTIONAL
    arch: str = DEFAULT_ARCH
    urgency: Urgency | None = None
    section: str | None = None
    apt_sources: list[AptSource] | None = None
    scripts: MaintainerScripts | None = None
    buildno: int | None = Field(default=None, ge=0)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> Priority:
        return Priority.parse(value)

    @field_validator("urgency", mode="before")
    @classmethod
    def _parse_urgency(cls, value: Any) -> Urgency | None:
        return None if value is None else Urgency.parse(value)

    @field_validator("arch", mode="before")
    @classmethod
    def _parse_arch(cls, value: Any) -> str:
        """Accept a wildcard such as ``all`` or a concrete ``[vendor-][os-]cpu`` name."""
        if not isinstance(value, str):
            raise UnknownVariantError("architecture", value)
        try:
            return str(Architecture.parse(value))
        except UnknownVariantError:
            return str(ArchTriple.parse(value.strip()))

    @property
    def full_version(self) -> str:
        """Version string with the build number appended when it is positive."""
        if self.buildno:
            return f"{self.version}-{self.buildno}"
        return self.version

    @property
    def filename(self) -> str:
        return f"{self.package}-v{self.full_version}_{self.arch}.deb"

    def resolve_maintainer(self) -> str:
        if self.maintainer:
            return self.maintainer
        match (self.author, self.email):
            case (str() as author, str() as email) if author and email:
                return f"{author} <{email}>"
            case (str() as author, _) if author:
                return author
            case (_, str() as email) if email:
                return email
        raise MissingMaintainer(self.package)

    def validate_spec(self) -> None:
        """Check the package can be built.

        Raises:
            ValidationError: Illegal package name, a control value spanning
                several lines, or an unfilled destination
            EmptyVersion: Empty version string
            MissingMaintainer: No way to produce the Maintainer field
        """
        if not self.package:
            raise ValidationError("package name must not be empty")
        if not PACKAGE_NAME_RE.fullmatch(self.package):
            raise ValidationError(
                f"invalid package name {self.package!r}: use lowercase letters, digits, '+', '-' and '.'"
            )
        if not self.version:
            raise EmptyVersion(self.version)
        if any(c.isspace() or c == "/" for c in self.version):
            raise ValidationError(f"{self.package}: invalid version {self.version!r}")
        maintainer = self.resolve_maintainer()

        # only the description may span several lines
        single_line = {
            "Section": self.section,
            "Maintainer": maintainer,
            "Homepage": self.homepage,
            "Depends": ", ".join(self.dependencies),
            "Recommends": ", ".join(self.recommends or []),
            "Suggests": ", ".join(self.suggests or []),
        }
        for field, value in single_line.items():
            if value and ("\n" in value or "\r" in value):
                raise ValidationError(f"{self.package}: {field} must be a single line, got {value!r}")
        for entry in self.files:
            if not entry.dst:
                raise ValidationError(f"{self.package}: file {entry.src!r} has no destination")

    def pre_process(self, files_base: str | None = None) -> "PackageSpec":
        """Fill in empty destinations.

        With a base directory, an entry without a destination is installed as
        ``files_base/<source file name>``; otherwise the source path is reused.
        """
        files = []
        for entry in self.files:
            if not entry.dst and entry.src:
                name = PurePosixPath(entry.src).name
                if files_base and name:
                    dst = str(PurePosixPath(files_base) / name)
                else:
                    dst = entry.src
                entry = entry.model_copy(update={"dst": dst})
            files.append(entry)
        return self.model_copy(update={"files": files})

    def sorted_files(self) -> list[FileEntry]:
        """Manifest in archive order, so parent directories precede their contents."""
        return sorted(self.files, key=lambda f: str(strip_leading_slash(f.dst)))

    def merge_in(self, defaults: "PackageSpec | dict[str, Any]") -> "PackageSpec":
        """Fill a missing author or email from ``defaults``."""
        if isinstance(defaults, PackageSpec):
            defaults = {"author": defaults.author, "email": defaults.email}
        update = {}
        if self.author is None and defaults.get("author"):
            update["author"] = defaults["author"]
        if self.email is None and defaults.get("email"):
            update["email"] = defaults["email"]
        return self.model_copy(update=update) if update else self

    def generate_control(self, install_size: int = 0) -> str:
        """Render the control paragraph.

        Args:
            install_size: Total payload size in bytes; written as KiB, rounded up

        Returns:
            The control file text, one ``Key: value`` line per field
        """
        control = deb822.Deb822()
        control["Package"] = self.package
        control["Version"] = self.full_version
        control["Section"] = self.section or DEFAULT_SECTION
        control["Priority"] = str(self.priority)
        control["Architecture"] = self.arch
        control["Maintainer"] = self.resolve_maintainer()
        if self.urgency is not None:
            control["Urgency"] = str(self.urgency)
        if install_size > 0:
            control["Installed-Size"] = str(math.ceil(install_size / 1024))
        if self.homepage:
            control["Homepage"] = self.homepage
        if self.essential:
            control["Essential"] = "yes"
        if self.dependencies:
            control["Depends"] = ", ".join(self.dependencies)
        if self.description:
            control["Description"] = format_description(self.description)
        if self.recommends:
            control["Recommends"] = ", ".join(self.recommends)
        if self.suggests:
            control["Suggests"] = ", ".join(self.suggests)
        return control.dump()

    @classmethod
    def from_control(cls, text: str) -> "PackageSpec":
        """Build a package description (without files) from an existing control paragraph."""
        paragraph = deb822.Deb822(text.splitlines())
        package = paragraph.get("Package")
        if not package:
            raise ValidationError("control paragraph has no Package field")

        description = paragraph.get("Description")
        urgency = paragraph.get("Urgency")
        return cls(
            package=package,
            version=paragraph.get("Version", ""),
            maintainer=paragraph.get("Maintainer"),
            homepage=paragraph.get("Homepage"),
            section=paragraph.get("Section"),
            priority=paragraph.get("Priority", Priority.OPTIONAL),
            arch=paragraph.get("Architecture", DEFAULT_ARCH),
            urgency=urgency,
            essential=paragraph.get("Essential", "no").strip().lower() == "yes",
            dependencies=_split_relations(paragraph.get("Depends")),
            recommends=_split_relations(paragraph.get("Recommends")) or None,
            suggests=_split_relations(paragraph.get("Suggests")) or None,
            description=unfold_description(description) if description else None,
        )

    @classmethod
    def from_cargo_toml(cls, crate_dir: str | Path, overrides: dict[str, Any] | None = None) -> "PackageSpec":
        """Describe a Rust crate's release binary as a package.

        Metadata comes from ``[package]`` in ``Cargo.toml``; anything missing
        there (or not a plain string, e.g. workspace-inherited values) is taken
        from ``overrides``. The binary ``target/release/<name>`` is installed at
        ``/usr/bin/<name>``. The crate must already be built.
        """
        crate_dir = Path(crate_dir)
        manifest = crate_dir / "Cargo.toml"
        overrides = dict(overrides or {})
        try:
            with manifest.open("rb") as f:
                conf = tomllib.load(f)
        except OSError as e:
            raise ConfigError(manifest, e.strerror or str(e)) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(manifest, str(e)) from e

        pkg = conf.get("package", {})

        def pick(key: str) -> str | None:
            value = pkg.get(key)
            return value if isinstance(value, str) else overrides.pop(key, None)

        package = pkg.get("name")
        if not isinstance(package, str) or not package:
            raise ConfigError(manifest, "missing [package] name")
        version = pick("version")
        if not version:
            raise ConfigError(manifest, "no version in Cargo.toml or overrides")

        maintainer = None
        authors = pkg.get("authors")
        if isinstance(authors, list) and authors and isinstance(authors[0], str):
            maintainer = authors[0]

        files = list(overrides.pop("files", []))
        files.append(
            FileEntry.from_paths(
                crate_dir / "target" / "release" / package,
                PurePosixPath("/usr/bin") / package,
                0o775,
            )
        )
        logger.debug(f"Loaded crate {package} {version} from {manifest}")
        return cls(
            **{
                "arch": DEFAULT_ARCH,
                "maintainer": maintainer,
                **overrides,
                "package": package,
                "name": package,
                "version": version,
                "homepage": pick("homepage"),
                "description": pick("description"),
                "files": files,
            }
        )
