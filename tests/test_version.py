"""Tests for :mod:`component.modules.version`."""

from __future__ import annotations

import pytest

from component.modules.errors import InvalidVersion
from component.modules.version import Version, is_valid, parse_versions


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.2.3", "1.2.3"),
        ("v1.2.3", "1.2.3"),
        ("1", "1.0.0"),
        ("1.4", "1.4.0"),
        (" 0.0.0-dev\n", "0.0.0-dev"),
        ("2.0.0-rc.1+build.7", "2.0.0-rc.1+build.7"),
    ],
)
def test_parse_accepts_loose_forms(raw: str, expected: str) -> None:
    assert str(Version.parse(raw)) == expected


@pytest.mark.parametrize("raw", ["", "abc", "1.2.3.4", "1..2", "1.2.x", "1.0.0-"])
def test_parse_rejects_invalid(raw: str) -> None:
    with pytest.raises(InvalidVersion):
        Version.parse(raw)
    assert not is_valid(raw)


def test_ordering_follows_semver_precedence() -> None:
    ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-alpha.beta", "1.0.0-beta",
               "1.0.0-beta.2", "1.0.0-beta.11", "1.0.0-rc.1", "1.0.0", "1.0.1", "1.10.0", "2.0.0"]
    parsed = [Version.parse(v) for v in ordered]
    assert sorted(reversed(parsed)) == parsed


def test_build_metadata_is_ignored_in_comparison() -> None:
    assert Version.parse("1.2.3+a") == Version.parse("1.2.3+b")
    assert not Version.parse("1.2.3+a") < Version.parse("1.2.3")


def test_compares_with_strings() -> None:
    assert Version.parse("1.1.1") > "1.0.9"
    assert Version.parse("1.1.1") == "v1.1.1"


def test_parse_versions_fails_on_any_invalid_entry() -> None:
    assert [str(v) for v in parse_versions(["1.0.0", "1.1.0"])] == ["1.0.0", "1.1.0"]
    with pytest.raises(InvalidVersion):
        parse_versions(["1.0.0", "latest"])
