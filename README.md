# relplz

A library of building blocks for automating releases of Cargo projects.

| Module | What it does |
| --- | --- |
| `relplz.next_version` | Next semantic version from conventional commit messages |
| `relplz.requirement` | Parse Cargo version requirements and upgrade them to a new version |
| `relplz.manifest` | Find, read, edit and write `Cargo.toml`, keeping its formatting |
| `relplz.registry` | Registry index URL from Cargo configuration files, following source replacement |
| `relplz.workspace` | Workspace members from `cargo metadata`, plus small fake packages for tests |
| `relplz.git` | Run `git` in a repository directory and interpret its output |
| `relplz.cargo` | Run `cargo`; check a sparse registry index for a published version |
| `relplz.config` | The `release-plz.toml` configuration model, TOML reading and writing |
| `relplz.config_loader` | Locate the project manifest and load the configuration file |
| `relplz.changelog_parser` | Header and latest release notes of a Keep a Changelog file |
| `relplz.changelog` | Generate a changelog entry and prepend it to an existing changelog |
| `relplz.update_checker` | Ask the releases API for the latest published version |

Python 3.11 or newer is required. The runtime dependencies are `tomlkit`,
`semver` and `jinja2`. `relplz.git` needs `git` on the `PATH`;
`relplz.workspace.workspace_members` and `relplz.cargo.run_cargo` run the
program named by the `CARGO` environment variable, or `cargo`.

## Computing the next version

```python
from semver import Version
from relplz.next_version import next_version, VersionIncrement

next_version(Version.parse("1.2.3"), ["my change"])         # 1.2.4
next_version(Version.parse("1.3.3"), ["feat: make coffe"])  # 1.4.0
next_version(Version.parse("1.2.3"), ["feat!: break user"]) # 2.0.0
next_version(Version.parse("0.2.3"), ["feat!: break user"]) # 0.3.0
next_version(Version.parse("1.0.0-alpha.2"), ["my change"]) # 1.0.0-alpha.3
next_version(Version.parse("1.0.0-beta"), ["my change"])    # 1.0.0-beta.1

VersionIncrement.breaking(Version.parse("0.3.3"))  # VersionIncrement.MINOR
```

Rules:

- no commits: the version is unchanged;
- a pre-release version only has its last numeric pre-release identifier
  incremented (or `.1` appended);
- `0.0.x` versions only ever get a patch bump;
- a feature bumps the minor version (the patch when the major is `0`);
- a breaking change (`!` or a `BREAKING CHANGE` footer) bumps the major
  version (the minor when the major is `0`);
- anything else bumps the patch.

Build metadata is kept. `increment_major`, `increment_minor`,
`increment_patch` and `increment_prerelease` are available on their own, and
`parse_conventional_commit` returns a `ConventionalCommit` or raises
`ValueError`.

## Upgrading a version requirement

```python
from semver import Version
from relplz.requirement import upgrade_requirement

upgrade_requirement("1.0", Version.parse("2.3.1"))  # "2.3"
upgrade_requirement("*", Version.parse("2.3.1"))    # None: nothing to change
```

Exact, tilde, caret and wildcard comparators are upgraded; other operators
such as `>=` raise `UnsupportedRequirementError`.

## Editing a manifest

```python
from semver import Version
from relplz.manifest import LocalManifest

manifest = LocalManifest.find(None)   # searches upwards from the current directory
manifest.set_package_version(Version.parse("0.2.0"))
manifest.gc_dep("old_dependency")     # drop stale feature activations
manifest.write()
```

`get_dependency_tables()` yields every dependency table, including those in
`[workspace]` and `[target.*]`. Failures raise `ManifestError`.

## Registry URL

```python
from relplz.registry import registry_url

registry_url("/path/to/Cargo.toml")              # crates.io index unless replaced
registry_url("/path/to/Cargo.toml", "my-registry")
```

`.cargo/config` or `.cargo/config.toml` are read from the manifest directory
upwards and then from the Cargo home (`$CARGO_HOME` or `~/.cargo`). Errors
raise `RegistryError`.

## Git

```python
from relplz.git import Repo

repo = Repo("/path/to/repo")
repo.is_clean()                 # raises GitError on uncommitted changes
repo.add_all_and_commit("chore: release")
repo.tag("v1.0.0")
repo.tag_exists("v1.0.0")       # True
```

## Checking publication

```python
from relplz.cargo import SparseIndex, wait_until_published

index = SparseIndex("sparse+https://index.example.com/")
wait_until_published(index, "my-crate", "0.2.0", timeout=300)
```

`wait_until_published` polls every two seconds and raises
`PublishTimeoutError` when the timeout elapses.

## Release configuration

```python
from relplz.config_loader import parse_config

config = parse_config(None)   # release-plz.toml, then .release-plz.toml, else defaults
config.workspace.publish_timeout_duration()   # 30 minutes unless configured
config.packages()                             # package-specific settings by name
print(config.to_toml())
```

Package settings are merged with the workspace defaults through the `merge`
methods. Invalid files raise `ConfigError`.

## Changelogs

```python
import datetime
from relplz.changelog import ChangelogBuilder, Commit
from relplz.changelog_parser import parse_header, last_changes_from_str

changelog = (
    ChangelogBuilder([Commit("N/A", "fix: myfix"), Commit("N/A", "simple update")], "1.1.1")
    .with_release_date(datetime.date(2015, 5, 15))
    .build()
)
text = changelog.generate()

parse_header(text)            # the "# Changelog ... ## [Unreleased]" header
last_changes_from_str(text)   # "### Fixed\n- myfix\n\n### Other\n- simple update"
```

`Changelog.prepend(old)` puts the new entry under the header of an existing
changelog, and leaves it untouched when the version has not changed. A custom
`CliffConfig` (with `ChangelogConfig` and `GitConfig`) selects the Jinja
body template, commit parsers and commit ordering.

## What it does not do

relplz is a library only. It has no command-line program, does not open or
update pull requests, does not create releases on a git host and does not run
`cargo publish` itself. It does not configure logging: its modules log through
the standard `logging` module and leave the set-up to the application.

## Running the tests

Install the `test` extra and run `pytest` from the project root. Some tests
need `git` to be installed.