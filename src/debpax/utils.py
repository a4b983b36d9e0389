import datetime
import gzip
import hashlib
import logging
import time
from os import PathLike
from pathlib import PurePosixPath
from typing import BinaryIO

from dateutil.parser import parse as parse_date

from debpax import constants
from debpax.errors import ValidationError

logger = logging.getLogger(__name__)


def try_parse_date(date_str: str | None) -> datetime.datetime | None:
    """Try to parse a date string into a timestamp.

    Args:
        date_str: The date string to parse (e.g. "2024-05-01T12:00:00Z")

    Returns:
        The parsed timestamp, or None if parsing failed or date_str is None
    """

    try:
        return parse_date(date_str) if date_str else None
    except (ValueError, OverflowError) as e:
        logger.debug(f"Failed to parse date '{date_str}': {e}")
        return None


def resolve_build_time(value: int | str | datetime.datetime | None = None) -> int:
    """Work out the timestamp stamped on every archive member.

    Args:
        value: Epoch seconds, a digit string, a date string, or a datetime.
            When None, SOURCE_DATE_EPOCH is used if set, else the current time.

    Returns:
        Seconds since the epoch

    Raises:
        ValidationError: The value is neither a number nor a parseable date
    """
    if value is None:
        value = constants.SOURCE_DATE_EPOCH
        if value is None:
            return int(time.time())

    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, int) and not isinstance(value, bool):
        parsed = None
        seconds = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = None
        seconds = int(value.strip())
    else:
        parsed = try_parse_date(value) if isinstance(value, str) else None
        if parsed is None:
            raise ValidationError(f"invalid build time {value!r}")

    if parsed is not None:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.UTC)
        seconds = int(parsed.timestamp())
    if seconds < 0:
        raise ValidationError(f"build time must not be negative: {value!r}")
    return seconds


def strip_leading_slash(path: str | PathLike) -> PurePosixPath:
    """Make an install path archive-relative ("/usr/bin/x" -> "usr/bin/x")."""
    p = PurePosixPath(path)
    if p.is_absolute():
        return PurePosixPath(*p.parts[1:])
    return p


def new_md5():
    return hashlib.md5(usedforsecurity=False)


class HashReader:
    """File-like wrapper that hashes and counts every byte read through it.

    The tar writer pulls data through ``read`` in fixed-size chunks, so the
    digest always covers exactly the bytes that went into the archive.
    """

    def __init__(self, reader: BinaryIO, hasher=None):
        self.reader = reader
        self.hasher = hasher if hasher is not None else new_md5()
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        data = self.reader.read(size)
        self.hasher.update(data)
        self.count += len(data)
        return data


def open_gzip(buffer: BinaryIO, mtime: int) -> gzip.GzipFile:
    """Gzip writer with a fixed header timestamp and no embedded file name."""
    return gzip.GzipFile(filename="", mode="wb", fileobj=buffer, mtime=mtime)
