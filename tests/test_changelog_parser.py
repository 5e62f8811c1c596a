import pytest

from relplz.changelog_parser import (
    ChangelogParser,
    ChangelogRelease,
    last_changes,
    last_changes_from_str,
    last_release_from_str,
    last_version_from_str,
    parse_header,
)

WITH_UNRELEASED = """\
# Changelog
All notable changes to this project will be documented in this file.

The format is based on Keep a Changelog,
and this project adheres to Semantic Versioning.

## [Unreleased]

## [0.2.5] - 2022-12-16

### Added
- Add function to retrieve default branch (#372)

## [0.2.4] - 2022-12-12

### Changed
- improved error message
"""

WITHOUT_UNRELEASED = """\
# Changelog
All notable changes to this project will be documented in this file.

The format is based on Keep a Changelog,
and this project adheres to Semantic Versioning.

## [0.2.5](https://example.com/compare/v0.2.4...v0.2.5) - 2022-12-16

### Added
- Add function to retrieve default branch (#372)

## [0.2.4] - 2022-12-12

### Changed
- improved error message
"""

EXPECTED_CHANGES = """\
### Added
- Add function to retrieve default branch (#372)"""


def test_changelog_header_is_parsed():
    changelog = "# Changelog\n\nMy custom changelog header\n\n## [Unreleased]\n"
    assert parse_header(changelog) == changelog


def test_changelog_header_with_crlf_parsed_will_contain_crlf():
    changelog = "# Changelog\r\n\r\nMy custom changelog header\r\n\r\n## [Unreleased]\r\n"
    assert (parse_header(changelog) or "") == changelog


def test_changelog_header_without_unreleased_is_parsed():
    changelog = "# Changelog\n\nMy custom changelog header\n\n## [0.2.5] - 2022-12-16\n"
    assert parse_header(changelog) == "# Changelog\n\nMy custom changelog header\n"


def test_changelog_header_without_unreleased_and_two_previous_versions_is_parsed():
    changelog = """\
# Changelog

My custom changelog header

## [0.2.5] - 2022-12-16

### Added
- Incredible feature

## [0.2.5] - 2022-12-16

### Fixed
- Incredible bug
"""
    assert parse_header(changelog) == "# Changelog\n\nMy custom changelog header\n"


def test_changelog_header_with_versions_is_parsed():
    changelog = """\
# Changelog

My custom changelog header

## [Unreleased]

## [0.2.5] - 2022-12-16
"""
    expected = "# Changelog\n\nMy custom changelog header\n\n## [Unreleased]\n"
    assert parse_header(changelog) == expected


def test_changelog_header_isnt_recognized():
    assert parse_header("# Changelog\n\nMy custom changelog header\n") is None


def test_changelog_with_unreleased_section_is_parsed():
    assert last_changes_from_str(WITH_UNRELEASED) == EXPECTED_CHANGES


def test_changelog_without_unreleased_section_is_parsed():
    assert last_changes_from_str(WITHOUT_UNRELEASED) == EXPECTED_CHANGES


def test_last_version_skips_unreleased():
    assert last_version_from_str(WITH_UNRELEASED) == "0.2.5"
    assert last_version_from_str(WITHOUT_UNRELEASED) == "0.2.5"


def test_last_release_has_title_and_notes():
    release = last_release_from_str(WITHOUT_UNRELEASED)
    assert release == ChangelogRelease(
        title="[0.2.5](https://example.com/compare/v0.2.4...v0.2.5) - 2022-12-16",
        notes=EXPECTED_CHANGES,
    )


def test_only_unreleased_has_no_last_release():
    changelog = "# Changelog\n\n## [Unreleased]\n\n### Added\n- thing\n"
    assert last_changes_from_str(changelog) is None


def test_changelog_without_releases_cannot_be_parsed():
    with pytest.raises(ValueError, match="can't parse changelog"):
        ChangelogParser("# Changelog\n\nnothing here\n")


def test_duplicate_releases_cannot_be_parsed():
    changelog = "# Changelog\n\n## [0.2.5]\n- a\n\n## [0.2.5]\n- b\n"
    with pytest.raises(ValueError):
        last_changes_from_str(changelog)


def test_headings_in_code_blocks_are_ignored():
    changelog = "# Changelog\n\n## [1.0.0]\n```\n## [0.9.0]\n```\n"
    assert last_changes_from_str(changelog) == "```\n## [0.9.0]\n```"


def test_last_changes_reads_file(tmp_path):
    path = tmp_path / "CHANGELOG.md"
    path.write_text(WITH_UNRELEASED)
    assert last_changes(path) == EXPECTED_CHANGES