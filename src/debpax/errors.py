"""Exception hierarchy for package building."""

from os import PathLike


class DebpaxError(Exception):
    """Base exception for all debpax errors."""


class ValidationError(DebpaxError):
    """A package description is incomplete or inconsistent."""


class MissingMaintainer(ValidationError):
    """Raised when neither a maintainer nor an author/email pair is set."""

    def __init__(self, package: str | None = None):
        self.package = package
        msg = "need a maintainer, or an author and email to infer the Maintainer field"
        if package:
            msg = f"{package}: {msg}"
        super().__init__(msg)


class UnknownVariantError(ValidationError, ValueError):
    """Raised when a string or ordinal does not name a known enum variant.

    Attributes:
        kind: The enum being parsed (e.g. "priority")
        value: The rejected input
    """

    def __init__(self, kind: str, value: object, choices: list[str] | None = None):
        self.kind = kind
        self.value = value
        msg = f"unknown {kind} {value!r}"
        if choices:
            msg += f" (expected one of: {', '.join(choices)})"
        super().__init__(msg)


class VersionParseError(DebpaxError, ValueError):
    """A version string could not be parsed."""

    def __init__(self, version: str, reason: str):
        self.version = version
        self.reason = reason
        super().__init__(f"invalid version {version!r}: {reason}")


class EmptyVersion(VersionParseError, ValidationError):
    def __init__(self, version: str = ""):
        super().__init__(version, "empty version value")


class TooManySections(VersionParseError):
    def __init__(self, version: str):
        super().__init__(version, "version has too many sections")


class InvalidVersionComponent(VersionParseError):
    def __init__(self, version: str, component: str):
        self.component = component
        super().__init__(version, f"{component!r} is not a number")


class UnsupportedFileType(DebpaxError):
    """Raised for payload sources that are neither regular files nor directories.

    Attributes:
        path: The offending source path
        reason: Human-readable explanation
    """

    def __init__(self, path: str | PathLike, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class ArchiveIOError(DebpaxError, OSError):
    """An I/O failure while reading sources or writing the archive.

    The original ``OSError`` is chained as ``__cause__``.

    Attributes:
        operation: What was being attempted ("stat", "open", "read", ...)
        path: The path the operation was applied to
    """

    def __init__(self, operation: str, path: str | PathLike, error: OSError | None = None):
        self.operation = operation
        self.path = str(path)
        msg = f"failed to {operation} {self.path!r}"
        if error is not None:
            msg += f": {error.strerror or error}"
        super().__init__(msg)


class ArchiveFormatError(DebpaxError):
    """An ar or tar header could not be constructed."""


class ConfigError(DebpaxError):
    """A package description file could not be loaded.

    Attributes:
        config_file: Path to the description file
        reason: Explanation of the failure
    """

    def __init__(self, config_file: str | PathLike, reason: str):
        self.config_file = str(config_file)
        self.reason = reason
        super().__init__(f"failed to load {self.config_file!r}: {reason}")
