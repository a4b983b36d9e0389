"""Debian-style version strings: ``[epoch:]upstream_version[-debian_revision]``.

This is a structural model, not dpkg's comparator. Ordering compares the
numeric fields and then falls back to a plain string comparison of the
revision suffix, so revisions with letters interleaved with digits can order
differently than ``dpkg --compare-versions`` would.
"""

import operator
from dataclasses import dataclass
from typing import Any, Callable

from debpax.errors import EmptyVersion, InvalidVersionComponent, TooManySections, VersionParseError

# largest value accepted for a single numeric field (unsigned 32 bit)
MAX_COMPONENT = 0xFFFFFFFF

REVISION_MARKERS = ("~", "+", "-")


def _parse_number(version: str, component: str) -> int:
    if not (component.isascii() and component.isdigit()):
        raise InvalidVersionComponent(version, component)
    value = int(component)
    if value > MAX_COMPONENT:
        raise InvalidVersionComponent(version, component)
    return value


@dataclass(frozen=True, order=True)
class Version:
    """A parsed package version.

    Field order matters: dataclass ordering compares ``(epoch, major, minor,
    patch, revision)`` lexicographically.
    """

    epoch: int = 0
    major: int = 0
    minor: int = 0
    patch: int = 0
    revision: str = ""

    @classmethod
    def parse(cls, value: str) -> "Version":
        """Parse a version string.

        Args:
            value: Version string such as ``2:7.3.429-2ubuntu2.1`` or ``v1.2``

        Returns:
            The parsed version

        Raises:
            EmptyVersion: The input is empty
            TooManySections: More than three dot-separated upstream components
            InvalidVersionComponent: A component (or the epoch) is not a number
        """
        if not value:
            raise EmptyVersion(value)

        epoch = 0
        rest = value
        if ":" in rest:
            epoch_str, rest = rest.split(":", 1)
            epoch = _parse_number(value, epoch_str)

        revision = ""
        markers = [ix for ix in (rest.find(m) for m in REVISION_MARKERS) if ix >= 0]
        if markers:
            ix = min(markers)
            revision = rest[ix:]
            rest = rest[:ix]

        if rest[:1] in ("v", "V"):
            rest = rest[1:]

        numbers = [0, 0, 0]
        for i, component in enumerate(rest.split(".")):
            if i >= len(numbers):
                raise TooManySections(value)
            numbers[i] = _parse_number(value, component)

        major, minor, patch = numbers
        return cls(epoch=epoch, major=major, minor=minor, patch=patch, revision=revision)

    @classmethod
    def new(cls, major: int, minor: int = 0, patch: int = 0, epoch: int = 0, revision: str = "") -> "Version":
        for value in (epoch, major, minor, patch):
            if not 0 <= value <= MAX_COMPONENT:
                raise InvalidVersionComponent(f"{epoch}:{major}.{minor}.{patch}{revision}", str(value))
        return cls(epoch=epoch, major=major, minor=minor, patch=patch, revision=revision)

    @classmethod
    def from_int(cls, major: int) -> "Version":
        return cls.new(major)

    @classmethod
    def coerce(cls, value: Any) -> "Version":
        """Build a version from a string, integer, mapping, or existing Version."""
        match value:
            case Version():
                return value
            case None:
                return cls()
            case bool():
                raise VersionParseError(str(value), "versions must be a string, number or table")
            case int():
                return cls.from_int(value)
            case float():
                return cls.from_int(int(value))
            case str():
                return cls.parse(value)
            case dict():
                return cls.new(
                    epoch=int(value.get("epoch", 0)),
                    major=int(value.get("major", 0)),
                    minor=int(value.get("minor", 0)),
                    patch=int(value.get("patch", 0)),
                    revision=str(value.get("revision", "")),
                )
            case _:
                raise VersionParseError(repr(value), "versions must be a string, number or table")

    def __str__(self) -> str:
        return f"{self.epoch}:{self.major}.{self.minor}.{self.patch}{self.revision}"


# dpkg --compare-versions style relation names
OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "lt": operator.lt,
    "<<": operator.lt,
    "le": operator.le,
    "<=": operator.le,
    "eq": operator.eq,
    "=": operator.eq,
    "ne": operator.ne,
    "ge": operator.ge,
    ">=": operator.ge,
    "gt": operator.gt,
    ">>": operator.gt,
}


def compare_versions(a: str, op: str, b: str) -> bool:
    """Evaluate ``a op b`` using the structural version ordering."""
    try:
        relation = OPERATORS[op]
    except KeyError:
        raise ValueError(f"unknown relation {op!r}, expected one of: {', '.join(OPERATORS)}") from None
    return relation(Version.parse(a), Version.parse(b))
