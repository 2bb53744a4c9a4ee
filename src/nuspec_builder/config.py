"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "NUSPEC_BUILDER_SETTINGS_FILE"
REQUIRED_PATH_FIELDS: tuple[str, ...] = ("input_root", "output_root", "nuget_path")


class ProjectConfig(BaseModel):
    """Project metadata settings."""

    name: str = "nuspec_builder"
    env: str = "dev"


class PathsConfig(BaseModel):
    """Filesystem locations for input, generated manifests and run artifacts."""

    input_root: Path | None = None
    output_root: Path | None = None
    nuget_path: Path | None = None
    artifacts_root: Path = Path("./artifacts")
    logs_root: Path = Path("./logs")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path | None] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if value is None:
                updates[field_name] = None
                continue
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)

    def missing_required(self) -> list[str]:
        """Names of required path values that are unset."""

        return [name for name in REQUIRED_PATH_FIELDS if getattr(self, name) is None]


class ScanConfig(BaseModel):
    """Directory-name markers used while walking the working tree."""

    bundle_marker: str = Field(default="imports", min_length=1)
    vcs_marker: str = Field(default=".svn", min_length=1)
    max_depth: int = Field(default=64, ge=1)


class ManifestConfig(BaseModel):
    """Fixed metadata and naming rules for generated manifests."""

    extension: str = "nuspec"
    binary_extensions: list[str] = Field(default_factory=lambda: [".dll", ".exe"], min_length=1)
    description_suffix: str = "Nuget Package"
    authors: str = "CSS Applications"
    owners: str = "NICE Systems"
    copyright: str = "Copyright © 2016 NICE Systems, All rights reserved"


class PackConfig(BaseModel):
    """External packaging tool invocation policy."""

    concurrency: int = Field(default=1, ge=1)
    timeout_seconds: float | None = Field(default=None, gt=0.0)
    extra_args: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Console and log-file verbosity."""

    level: str = "INFO"
    file_name: str = "nuspec_builder.log"


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    pack: PackConfig = Field(default_factory=PackConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="NUSPEC_BUILDER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")

    def with_paths(self, **overrides: Path | None) -> "AppSettings":
        """Return a copy with the given path fields replaced when not None."""

        updates = {key: value for key, value in overrides.items() if value is not None}
        if not updates:
            return self
        return self.model_copy(update={"paths": self.paths.model_copy(update=updates)})


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / "configs/settings.yaml").exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    return settings.model_copy(update={"paths": resolved_paths})
