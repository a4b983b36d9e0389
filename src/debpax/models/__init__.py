"""Expose package description models."""

from .packages import (
    AptSource,
    Architecture,
    ArchTriple,
    FileEntry,
    MaintainerScripts,
    PackageSpec,
    Priority,
    Urgency,
)
from .version import Version, compare_versions

__all__ = [
    "AptSource",
    "ArchTriple",
    "Architecture",
    "FileEntry",
    "MaintainerScripts",
    "PackageSpec",
    "Priority",
    "Urgency",
    "Version",
    "compare_versions",
]
