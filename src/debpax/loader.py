"""Load package descriptions from a TOML file.

A description holds an optional ``[options]`` table, optional ``[defaults]``
merged into every package, and one ``[[package]]`` table per package::

    [options]
    files_base = "/usr/share/hello"

    [defaults]
    author = "Jane Doe"
    email = "jane@example.com"

    [[package]]
    package = "hello"
    version = "1.0.0"
    description = "Says hello"
    files = ["README.md", "conf/hello.conf:/etc/hello.conf"]
    binaries = ["build/hello"]
    auto_build_number = true

Relative source paths are resolved against the directory holding the file.
"""

import logging
import tomllib
from os import PathLike
from pathlib import Path
from typing import Any, NamedTuple

import pydantic
from pydantic import BaseModel, ConfigDict

from debpax.errors import ConfigError, DebpaxError
from debpax.models.packages import FileEntry, PackageSpec
from debpax.project import Project

logger = logging.getLogger(__name__)


class BuildOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    files_base: str | None = None
    dist: str | None = None


class Defaults(BaseModel):
    model_config = ConfigDict(extra="forbid")

    author: str | None = None
    email: str | None = None


class Description(NamedTuple):
    options: BuildOptions
    projects: list[Project]


def _resolve(root: Path, path: str) -> str:
    p = Path(path).expanduser()
    return str(p if p.is_absolute() else root / p)


def _resolve_files(root: Path, files: list[Any]) -> list[FileEntry]:
    entries = []
    for item in files:
        entry = FileEntry.model_validate(item)
        if entry.src:
            entry = entry.model_copy(update={"src": _resolve(root, entry.src)})
        entries.append(entry)
    return entries


def _load_project(root: Path, table: dict[str, Any], defaults: Defaults, cache_root: Path | None) -> Project:
    table = dict(table)
    # handled by Project rather than PackageSpec
    binaries = table.pop("binaries", [])
    merge_debs = table.pop("merge_debs", [])
    auto_build_number = table.pop("auto_build_number", False)

    table["files"] = _resolve_files(root, table.get("files", []))
    spec = PackageSpec.model_validate(table).merge_in(defaults.model_dump())

    project = Project(spec, cache_root=cache_root)
    for binary in binaries:
        project.add_binary(_resolve(root, binary))
    for deb in merge_debs:
        project.merge_deb(_resolve(root, deb))
    if auto_build_number:
        project.enable_auto_build_numbers()
    return project


def load_description(config_file: str | PathLike, cache_root: str | PathLike | None = None) -> Description:
    """Read a description file and prepare one `Project` per package.

    Args:
        config_file: Path to the TOML description
        cache_root: Cache directory for the projects; defaults to DEBPAX_CACHE_DIR

    Returns:
        The build options and the projects, in file order

    Raises:
        ConfigError: The file is unreadable, not TOML, or describes invalid packages
    """
    config_file = Path(config_file)
    try:
        with config_file.open("rb") as f:
            conf = tomllib.load(f)
    except OSError as e:
        raise ConfigError(config_file, e.strerror or str(e)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(config_file, str(e)) from e

    unknown = set(conf) - {"options", "defaults", "package"}
    if unknown:
        raise ConfigError(config_file, f"unknown top-level keys: {', '.join(sorted(unknown))}")

    packages = conf.get("package", [])
    if not isinstance(packages, list) or not packages:
        raise ConfigError(config_file, "expected at least one [[package]] table")
    if not all(isinstance(table, dict) for table in packages):
        raise ConfigError(config_file, "every package must be a table")

    root = config_file.parent
    cache = Path(cache_root) if cache_root is not None else None
    try:
        options = BuildOptions.model_validate(conf.get("options", {}))
        defaults = Defaults.model_validate(conf.get("defaults", {}))
        projects = [_load_project(root, table, defaults, cache) for table in packages]
    except pydantic.ValidationError as e:
        raise ConfigError(config_file, str(e)) from e
    except DebpaxError as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_file, str(e)) from e

    logger.debug(f"Loaded {len(projects)} package(s) from {config_file}")
    return Description(options, projects)
