"""
Unit tests for SendConfig and duration parsing.
"""

import dataclasses
import math
from pathlib import Path

import pytest

from filesend.config import MAX_MAX_AGE, SendConfig, parse_duration, parse_max_age


class TestParseDuration:
    """Tests for parse_duration()."""

    @pytest.mark.parametrize("value,expected", [
        ("100", 100),
        ("1.5s", 1500),
        ("2 minutes", 120000),
        ("1h", 3600000),
        ("1d", 86400000),
        ("1w", 604800000),
        ("1y", 31557600000),
        ("3 MS", 3),
        ("-1s", -1000),
    ])
    def test_units(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "1 fortnight", "s"])
    def test_invalid(self, value):
        assert parse_duration(value) is None


class TestParseMaxAge:
    """Tests for parse_max_age()."""

    def test_seconds(self):
        assert parse_max_age(3600) == 3600

    def test_floored(self):
        assert parse_max_age(10.9) == 10
        assert parse_max_age("1500ms") == 1

    def test_clamped(self):
        """Test max-age stays within zero and one year."""
        assert parse_max_age(-5) == 0
        assert parse_max_age("2y") == MAX_MAX_AGE
        assert parse_max_age(10 ** 12) == MAX_MAX_AGE

    @pytest.mark.parametrize("value", [None, True, "nonsense", math.nan])
    def test_unusable(self, value):
        assert parse_max_age(value) == 0


class TestSendConfig:
    """Tests for SendConfig."""

    def test_defaults(self):
        config = SendConfig()

        assert config.root == Path(".").resolve().as_posix()
        assert config.index == ("index.html",)
        assert config.ignore == ()
        assert config.ignore_access == "deny"
        assert config.max_age == 0
        assert config.etag and config.last_modified and config.cache_control
        assert config.accept_ranges
        assert config.cache_control_value == "public, max-age=0"

    def test_normalization(self, tmp_path):
        """Test names, access mode and max-age are normalized."""
        config = SendConfig(
            root=str(tmp_path),
            index="default.htm",
            ignore=["*.bak", ""],
            ignore_access="bogus",
            max_age="1h",
            immutable=True,
            charset="",
        )

        assert config.root == tmp_path.resolve().as_posix()
        assert config.index == ("default.htm",)
        assert config.ignore == ("*.bak",)
        assert config.ignore_access == "deny"
        assert config.charset is None
        assert config.cache_control_value == "public, max-age=3600, immutable"

    def test_index_disabled(self):
        assert SendConfig(index=False).index == ()

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            SendConfig().max_age = 5

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            SendConfig(chunk_size=0)

    def test_hook_must_be_callable(self):
        with pytest.raises(ValueError):
            SendConfig(on_error="not callable")

    def test_replace_keeps_normalization(self):
        config = dataclasses.replace(SendConfig(max_age="1d"), immutable=True)

        assert config.max_age == 86400
        assert config.immutable


class TestFromEnv:
    """Tests for SendConfig.from_env()."""

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FILESEND_ROOT", str(tmp_path))
        monkeypatch.setenv("FILESEND_INDEX", "index.html, index.htm")
        monkeypatch.setenv("FILESEND_IGNORE", "**/.*,*.bak")
        monkeypatch.setenv("FILESEND_IGNORE_ACCESS", "ignore")
        monkeypatch.setenv("FILESEND_MAX_AGE", "1d")
        monkeypatch.setenv("FILESEND_IMMUTABLE", "yes")
        monkeypatch.setenv("FILESEND_ETAG", "0")

        config = SendConfig.from_env()

        assert config.root == tmp_path.resolve().as_posix()
        assert config.index == ("index.html", "index.htm")
        assert config.ignore == ("**/.*", "*.bak")
        assert config.ignore_access == "ignore"
        assert config.max_age == 86400
        assert config.immutable
        assert not config.etag

    def test_numeric_max_age_is_seconds(self, monkeypatch):
        monkeypatch.setenv("FILESEND_MAX_AGE", "600")

        assert SendConfig.from_env().max_age == 600

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("FILESEND_MAX_AGE", "600")

        assert SendConfig.from_env(max_age=5).max_age == 5

    def test_bad_boolean(self, monkeypatch):
        monkeypatch.setenv("FILESEND_IMMUTABLE", "maybe")

        with pytest.raises(ValueError):
            SendConfig.from_env()
