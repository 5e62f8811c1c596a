import pytest

from relplz.registry import CRATES_IO_INDEX, RegistryError, cargo_home, registry_url


@pytest.fixture
def project(tmp_path, monkeypatch):
    home = tmp_path / "cargo-home"
    home.mkdir()
    monkeypatch.setenv("CARGO_HOME", str(home))
    root = tmp_path / "proj"
    root.mkdir()
    manifest = root / "Cargo.toml"
    manifest.write_text('[package]\nname = "a"\n')
    return root, manifest, home


def write_config(directory, text, name="config.toml"):
    cargo_dir = directory / ".cargo"
    cargo_dir.mkdir(exist_ok=True)
    (cargo_dir / name).write_text(text)


def test_default_is_crates_io(project):
    _, manifest, _ = project
    assert registry_url(manifest) == CRATES_IO_INDEX
    assert registry_url(manifest, CRATES_IO_INDEX) == CRATES_IO_INDEX


def test_named_registry(project):
    root, manifest, _ = project
    write_config(root, '[registries.my]\nindex = "https://example.com/index"\n')
    assert registry_url(manifest, "my") == "https://example.com/index"


def test_unknown_registry_raises(project):
    _, manifest, _ = project
    with pytest.raises(RegistryError, match="could not be found"):
        registry_url(manifest, "nope")


def test_source_replacement(project):
    root, manifest, _ = project
    write_config(
        root,
        '[source.crates-io]\nreplace-with = "mirror"\n\n'
        '[source.mirror]\nregistry = "https://example.com/mirror"\n',
    )
    assert registry_url(manifest) == "https://example.com/mirror"


def test_missing_replacement_source_raises(project):
    root, manifest, _ = project
    write_config(root, '[source.crates-io]\nreplace-with = "missing"\n')
    with pytest.raises(RegistryError, match="The source 'missing' could not be found"):
        registry_url(manifest)


def test_invalid_toml_raises(project):
    root, manifest, _ = project
    write_config(root, "[registries\n")
    with pytest.raises(RegistryError):
        registry_url(manifest, "my")


def test_invalid_url_raises(project):
    root, manifest, _ = project
    write_config(root, '[registries.bad]\nindex = "not a url"\n')
    with pytest.raises(RegistryError, match="Invalid cargo config"):
        registry_url(manifest, "bad")


def test_nearest_config_wins(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("CARGO_HOME", str(home))
    outer = tmp_path / "outer"
    inner = outer / "inner"
    inner.mkdir(parents=True)
    write_config(outer, '[registries.my]\nindex = "https://example.com/outer"\n')
    write_config(inner, '[registries.my]\nindex = "https://example.com/inner"\n')
    assert registry_url(inner / "Cargo.toml", "my") == "https://example.com/inner"


def test_legacy_config_preferred(project):
    root, manifest, _ = project
    write_config(root, '[registries.my]\nindex = "https://example.com/legacy"\n', name="config")
    write_config(root, '[registries.my]\nindex = "https://example.com/modern"\n')
    assert registry_url(manifest, "my") == "https://example.com/legacy"


def test_cargo_home_config_is_used(project):
    _, manifest, home = project
    (home / "config.toml").write_text('[registries.home]\nindex = "https://example.com/home"\n')
    assert registry_url(manifest, "home") == "https://example.com/home"


def test_cargo_home_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CARGO_HOME", str(tmp_path))
    assert cargo_home() == tmp_path