import json
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from relplz.manifest import DepKind, ManifestError
from relplz.workspace import (
    FakeDependency,
    FakePackage,
    parse_metadata,
    workspace_members,
)


def metadata(tmp_path):
    member_dir = tmp_path / "member"
    member_dir.mkdir()
    (member_dir / "Cargo.toml").write_text('[package]\nname = "member"\n')
    return {
        "workspace_members": ["member 0.1.0"],
        "packages": [
            {
                "name": "member",
                "version": "0.1.0",
                "id": "member 0.1.0",
                "manifest_path": str(member_dir / "." / "Cargo.toml"),
                "dependencies": [
                    {
                        "name": "local",
                        "req": "*",
                        "kind": None,
                        "optional": False,
                        "uses_default_features": True,
                        "features": [],
                        "path": str(member_dir / ".."),
                    },
                    {
                        "name": "tool",
                        "req": "^1",
                        "kind": "dev",
                        "optional": True,
                        "uses_default_features": False,
                        "features": ["x"],
                        "path": str(tmp_path / "missing"),
                    },
                ],
                "features": {},
                "targets": [],
            },
            {
                "name": "external",
                "version": "1.0.0",
                "id": "external 1.0.0",
                "manifest_path": "/nowhere/Cargo.toml",
                "dependencies": [],
                "features": {},
                "targets": [],
            },
        ],
    }


def test_only_members_are_returned(tmp_path):
    packages = parse_metadata(metadata(tmp_path))
    assert [p.name for p in packages] == ["member"]


def test_paths_are_canonicalized(tmp_path):
    (package,) = parse_metadata(json.dumps(metadata(tmp_path)))
    assert package.manifest_path == (tmp_path / "member" / "Cargo.toml").resolve()
    local, tool = package.dependencies
    assert local.path == tmp_path.resolve()
    assert tool.path == tmp_path / "missing"
    assert local.kind is DepKind.NORMAL
    assert tool.kind is DepKind.DEVELOPMENT
    assert tool.features == ["x"]
    assert tool.optional is True


def test_invalid_metadata_raises():
    with pytest.raises(ManifestError):
        parse_metadata("{not json")
    with pytest.raises(ManifestError):
        parse_metadata({"packages": []})


def test_workspace_members_runs_cargo(tmp_path, monkeypatch):
    monkeypatch.delenv("CARGO", raising=False)
    output = json.dumps(metadata(tmp_path))
    completed = subprocess.CompletedProcess([], 0, stdout=output, stderr="")
    with mock.patch("relplz.workspace.subprocess.run", return_value=completed) as run:
        packages = workspace_members(tmp_path / "Cargo.toml")
    command = run.call_args.args[0]
    assert command[0] == "cargo"
    assert "--no-deps" in command
    assert command[-2:] == ["--manifest-path", str(tmp_path / "Cargo.toml")]
    assert [p.name for p in packages] == ["member"]


def test_workspace_members_failure_raises(tmp_path):
    completed = subprocess.CompletedProcess([], 101, stdout="", stderr="bad manifest")
    with mock.patch("relplz.workspace.subprocess.run", return_value=completed):
        with pytest.raises(ManifestError, match="Invalid manifest"):
            workspace_members()


def test_fake_dependency():
    dep = FakeDependency("serde")
    assert dep.to_dependency().kind is DepKind.NORMAL
    dev = dep.dev().to_dependency()
    assert dev.kind is DepKind.DEVELOPMENT
    assert dev.name == "serde"
    assert dev.req == "0.1.0"
    assert dev.optional is False
    assert dev.uses_default_features is True


def test_fake_package():
    package = (
        FakePackage("mypkg")
        .with_dependencies([FakeDependency("a"), FakeDependency("b").dev()])
        .to_package()
    )
    assert package.name == "mypkg"
    assert package.id == "mypkg"
    assert package.version == "0.1.0"
    assert package.manifest_path == Path("mypkg/Cargo.toml")
    assert [(d.name, d.kind) for d in package.dependencies] == [
        ("a", DepKind.NORMAL),
        ("b", DepKind.DEVELOPMENT),
    ]
    assert package.features == {}