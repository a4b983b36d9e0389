"""Tests for build-time resolution and streaming helpers."""

import datetime
import hashlib
import io
from pathlib import PurePosixPath

import pytest

from debpax import constants
from debpax.errors import ValidationError
from debpax.utils import HashReader, resolve_build_time, strip_leading_slash, try_parse_date


class TestResolveBuildTime:
    @pytest.mark.parametrize(
        "value",
        [
            1_700_000_000,
            "1700000000",
            " 1700000000 ",
            "2023-11-14T22:13:20Z",
            "2023-11-14 23:13:20+01:00",
            datetime.datetime(2023, 11, 14, 22, 13, 20),
            datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.UTC),
        ],
    )
    def test_accepted_values(self, value):
        assert resolve_build_time(value) == 1_700_000_000

    def test_source_date_epoch(self, monkeypatch):
        monkeypatch.setattr(constants, "SOURCE_DATE_EPOCH", "1234567890")
        assert resolve_build_time() == 1234567890

    def test_defaults_to_now(self, monkeypatch):
        monkeypatch.setattr(constants, "SOURCE_DATE_EPOCH", None)
        monkeypatch.setattr("debpax.utils.time.time", lambda: 42.9)
        assert resolve_build_time() == 42

    @pytest.mark.parametrize("value", ["not a date", -5, True, 3.5])
    def test_rejected_values(self, value):
        with pytest.raises(ValidationError):
            resolve_build_time(value)


class TestHelpers:
    def test_try_parse_date(self):
        assert try_parse_date(None) is None
        assert try_parse_date("garbage here") is None
        assert try_parse_date("2024-05-01").year == 2024

    @pytest.mark.parametrize(
        "path,expected",
        [("/usr/bin/x", "usr/bin/x"), ("usr/bin/x", "usr/bin/x"), ("/", "."), ("//opt", "opt")],
    )
    def test_strip_leading_slash(self, path, expected):
        assert strip_leading_slash(path) == PurePosixPath(expected)

    def test_hash_reader(self):
        data = b"x" * 10_000
        reader = HashReader(io.BytesIO(data))
        chunks = []
        while chunk := reader.read(4096):
            chunks.append(chunk)
        assert b"".join(chunks) == data
        assert reader.count == len(data)
        assert reader.hasher.hexdigest() == hashlib.md5(data).hexdigest()
