import pytest
import semver

from relplz.next_version import (
    VersionIncrement,
    increment_major,
    increment_minor,
    increment_patch,
    increment_prerelease,
    next_version,
    parse_conventional_commit,
)

V = semver.Version


# Cases of the normal tests.

def test_commit_without_semver_prefix_increments_patch_version():
    assert next_version(V(1, 2, 3), ["my change"]) == V(1, 2, 4)


def test_commit_with_fix_semver_prefix_increments_patch_version():
    assert next_version(V(1, 2, 3), ["my change", "fix: serious bug"]) == V(1, 2, 4)


def test_commit_with_feat_semver_prefix_increments_minor_version():
    assert next_version(V(1, 3, 3), ["feat: make coffe"]) == V(1, 4, 0)


def test_commit_with_breaking_change_increments_major_version():
    assert next_version(V(1, 2, 3), ["feat!: break user"]) == V(2, 0, 0)


def test_commit_with_breaking_change_increments_minor_version_when_major_is_zero():
    assert next_version(V(0, 2, 3), ["feat!: break user"]) == V(0, 3, 0)


# Cases of the pre-release tests.

def test_commit_without_semver_prefix_increments_pre_release_version():
    assert next_version(V.parse("1.0.0-alpha.2"), ["my change"]) == V.parse("1.0.0-alpha.3")


def test_commit_with_breaking_change_increments_pre_release_version():
    result = next_version(V.parse("1.0.0-alpha.2"), ["feat!: break user"])
    assert result == V.parse("1.0.0-alpha.3")


def test_dot_1_is_added_to_unversioned_pre_release():
    result = next_version(V.parse("1.0.0-alpha"), ["feat!: break user"])
    assert result == V.parse("1.0.0-alpha.1")


def test_dot_1_is_added_to_last_identifier_in_pre_release():
    result = next_version(V.parse("1.0.0-beta.1.2"), ["feat!: break user"])
    assert result == V.parse("1.0.0-beta.1.3")


def test_dot_1_is_added_to_character_identifier_in_pre_release():
    result = next_version(V.parse("1.0.0-beta.1.a"), ["feat!: break user"])
    assert result == V.parse("1.0.0-beta.1.a.1")


# Documented examples.

def test_no_commits_leaves_version_unchanged():
    assert next_version(V(1, 2, 3), []) == V(1, 2, 3)
    assert VersionIncrement.from_commits(V(1, 2, 3), []) is None


def test_zero_zero_versions_increment_patch():
    assert next_version(V(0, 0, 4), ["my change"]) == V(0, 0, 5)
    assert next_version(V(0, 0, 1), ["feat!: break user"]) == V(0, 0, 2)


def test_features_with_zero_major_increment_patch():
    commits = ["my change", "feat: make coffe"]
    assert next_version(V(1, 2, 4), commits) == V(1, 3, 0)
    assert next_version(V(0, 2, 4), commits) == V(0, 2, 5)
    assert next_version(V(0, 3, 3), ["feat: make coffe"]) == V(0, 3, 4)


def test_breaking_change_examples():
    commits = ["feat!: break user"]
    assert next_version(V(1, 2, 4), commits) == V(2, 0, 0)
    assert next_version(V(0, 4, 4), commits) == V(0, 5, 0)


def test_breaking_change_in_footer():
    breaking_commit = "feat: make coffe\n\nmy change\n\nBREAKING CHANGE: user will be broken\n"
    assert next_version(V(1, 2, 4), [breaking_commit]) == V(2, 0, 0)


def test_pre_release_examples():
    commits = ["feat!: break user"]
    assert next_version(V.parse("1.0.0-alpha.1.2"), commits) == V.parse("1.0.0-alpha.1.3")
    assert next_version(V.parse("1.0.0-beta"), commits) == V.parse("1.0.0-beta.1")


def test_build_metadata_is_preserved():
    commits = ["my change"]
    assert str(next_version(V.parse("1.0.0-beta.1+1.1.0"), commits)) == "1.0.0-beta.2+1.1.0"
    assert str(next_version(V.parse("1.0.0+abcd"), commits)) == "1.0.1+abcd"


@pytest.mark.parametrize(
    ("version", "expected"),
    [
        (V(0, 3, 3), VersionIncrement.MINOR),
        (V(1, 3, 3), VersionIncrement.MAJOR),
        (V.parse("1.3.3-alpha.1"), VersionIncrement.PRERELEASE),
    ],
)
def test_breaking_increment(version, expected):
    assert VersionIncrement.breaking(version) == expected


def test_breaking_increment_for_zero_zero_is_patch():
    assert VersionIncrement.breaking(V(0, 0, 7)) == VersionIncrement.PATCH


def test_next_version_accepts_strings():
    assert next_version("1.2.3", ["fix: bug"]) == V(1, 2, 4)


def test_from_commits_prerelease_wins_over_conventional_commits():
    increment = VersionIncrement.from_commits(V.parse("2.0.0-rc.1"), ["feat!: x"])
    assert increment == VersionIncrement.PRERELEASE


def test_bump_dispatches_to_increment_functions():
    version = V.parse("1.2.3+meta")
    assert VersionIncrement.MAJOR.bump(version) == increment_major(version)
    assert VersionIncrement.MINOR.bump(version) == increment_minor(version)
    assert VersionIncrement.PATCH.bump(version) == increment_patch(version)


def test_increments_reset_lower_parts_and_prerelease():
    version = V.parse("1.2.3-alpha.1+build")
    major = increment_major(version)
    assert (major.major, major.minor, major.patch, major.prerelease) == (2, 0, 0, None)
    assert major.build == "build"
    minor = increment_minor(version)
    assert (minor.major, minor.minor, minor.patch, minor.prerelease) == (1, 3, 0, None)
    patch = increment_patch(version)
    assert (patch.major, patch.minor, patch.patch, patch.prerelease) == (1, 2, 4, None)


def test_increment_prerelease_without_prerelease_fails():
    with pytest.raises(ValueError):
        increment_prerelease(V(1, 0, 0))


def test_parse_conventional_commit_fields():
    commit = parse_conventional_commit("feat(parser)!: add thing\n\nsome body\n\nRefs: 42")
    assert commit.commit_type == "feat"
    assert commit.scope == "parser"
    assert commit.summary == "add thing"
    assert commit.body == "some body"
    assert commit.footers == (("Refs", "42"),)
    assert commit.is_breaking_change
    assert commit.is_feature


def test_parse_conventional_commit_breaking_footer():
    commit = parse_conventional_commit("fix: x\n\nBREAKING-CHANGE: api removed")
    assert commit.is_breaking_change
    assert not commit.is_feature
    assert commit.body is None


@pytest.mark.parametrize("message", ["my change", "", "feat:nospace", "feat: "])
def test_parse_conventional_commit_rejects_invalid(message):
    with pytest.raises(ValueError):
        parse_conventional_commit(message)