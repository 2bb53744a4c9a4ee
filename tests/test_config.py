"""Tests for settings loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from nuspec_builder.config import PackConfig, PathsConfig, load_settings


def write_settings(tmp_path, payload):
    path = tmp_path / "configs" / "settings.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_manifest_defaults_match_legacy_metadata(tmp_path):
    settings = load_settings(write_settings(tmp_path, {}))

    assert settings.scan.bundle_marker == "imports"
    assert settings.scan.vcs_marker == ".svn"
    assert settings.manifest.binary_extensions == [".dll", ".exe"]
    assert settings.manifest.owners == "NICE Systems"
    assert settings.pack.concurrency == 1
    assert settings.pack.timeout_seconds is None


def test_relative_paths_resolve_against_project_root(tmp_path):
    settings = load_settings(write_settings(tmp_path, {"paths": {"input_root": "checkout", "output_root": "out"}}))

    assert settings.paths.input_root == (tmp_path / "checkout").resolve()
    assert settings.paths.output_root == (tmp_path / "out").resolve()
    assert settings.paths.nuget_path is None


def test_env_overrides_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("NUSPEC_BUILDER_PACK__CONCURRENCY", "3")
    monkeypatch.setenv("NUSPEC_BUILDER_PATHS__NUGET_PATH", str(tmp_path / "nuget.exe"))

    settings = load_settings(write_settings(tmp_path, {"pack": {"concurrency": 1}}))

    assert settings.pack.concurrency == 3
    assert settings.paths.nuget_path == tmp_path / "nuget.exe"


def test_missing_required_paths_are_named():
    paths = PathsConfig(input_root=Path("in"))

    assert paths.missing_required() == ["output_root", "nuget_path"]


def test_with_paths_only_replaces_given_values(tmp_path):
    settings = load_settings(write_settings(tmp_path, {"paths": {"output_root": "out"}}))

    updated = settings.with_paths(input_root=Path("/src"), output_root=None)

    assert updated.paths.input_root == Path("/src")
    assert updated.paths.output_root == settings.paths.output_root


def test_pack_limits_are_validated():
    with pytest.raises(ValidationError):
        PackConfig(concurrency=0)
    with pytest.raises(ValidationError):
        PackConfig(timeout_seconds=0)
