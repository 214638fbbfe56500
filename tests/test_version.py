"""
Tests for version parsing and ordering.
"""

import pytest

from modpatcher.core.domain.version import (
    VersionParseFailure,
    compare_versions,
    parse_version,
    try_parse_version,
)


class TestParse:
    def test_full(self):
        v = parse_version("1.28.0")
        assert v.core == (1, 28, 0)
        assert v.prerelease == ()

    def test_missing_parts_default_to_zero(self):
        assert parse_version("1").core == (1, 0, 0)
        assert parse_version("1.2").core == (1, 2, 0)

    def test_leading_v(self):
        assert parse_version("v0.3.1").core == (0, 3, 1)

    def test_android_build_suffix(self):
        v = parse_version("1.28.0_4124311467")
        assert v.core == (1, 28, 0)
        assert v.build == "4124311467"

    def test_prerelease_and_build(self):
        v = parse_version("2.0.0-beta.2+sha.abc")
        assert v.prerelease == ("beta", "2")
        assert v.build == "sha.abc"

    def test_str_keeps_raw(self):
        assert str(parse_version("1.28.0_4124311467")) == "1.28.0_4124311467"

    @pytest.mark.parametrize("raw", ["", "abc", "1.x", "01.2.3", None, 3])
    def test_rejects(self, raw):
        with pytest.raises(VersionParseFailure):
            parse_version(raw)

    def test_try_parse(self):
        assert try_parse_version("nope") is None
        assert try_parse_version("1.0.0") is not None


class TestOrdering:
    def test_numeric_not_lexical(self):
        assert parse_version("1.10.0") > parse_version("1.9.0")

    def test_prerelease_below_release(self):
        assert parse_version("1.0.0-rc.1") < parse_version("1.0.0")

    def test_prerelease_identifiers(self):
        assert parse_version("1.0.0-alpha.2") < parse_version("1.0.0-alpha.10")
        assert parse_version("1.0.0-alpha") < parse_version("1.0.0-beta")

    def test_build_ignored(self):
        assert parse_version("1.0.0+a") == parse_version("1.0.0+b")
        assert parse_version("1.28.0_1") == parse_version("1.28.0")


class TestCompare:
    def test_three_way(self):
        assert compare_versions("1.0.0", "2.0.0") == -1
        assert compare_versions("2.0.0", "2.0.0") == 0
        assert compare_versions("2.1.0", "2.0.0") == 1

    def test_unparsable_is_incomparable(self):
        assert compare_versions("1.0.0", "latest") is None
        assert compare_versions(None, "1.0.0") is None
