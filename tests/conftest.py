import logging
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest
import yaml

from nuspec_builder.config import load_settings
from nuspec_builder.logging_utils import DEFAULT_LOG_FORMAT

FAKE_TOOL_SOURCE = textwrap.dedent(
    """
    import os
    import sys
    import time

    verb, manifest = sys.argv[1], sys.argv[2]
    name = os.path.basename(manifest)
    print(f"Attempting to build package from '{manifest}'.", flush=True)
    if "slow" in name:
        time.sleep(5)
    time.sleep(0.05)
    if "broken" in name:
        print("Error: invalid manifest", flush=True)
        sys.exit(1)
    print(f"Successfully created package for {verb}.", flush=True)
    """
)


def fake_tool_launcher(command, **kwargs):
    """Run the fake packaging tool under the current interpreter."""
    return subprocess.Popen([sys.executable, "-c", FAKE_TOOL_SOURCE, *command[1:]], **kwargs)


def make_dirs(root: Path, *relative_paths: str) -> None:
    for relative in relative_paths:
        (root / relative).mkdir(parents=True, exist_ok=True)


def make_files(root: Path, *relative_paths: str) -> None:
    for relative in relative_paths:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"payload")


@pytest.fixture
def launcher():
    return fake_tool_launcher


@pytest.fixture
def working_tree(tmp_path: Path) -> Path:
    """A small checkout with one bundle folder holding two units."""
    root = tmp_path / "checkout"
    make_files(
        root,
        "product/imports/Alpha/Alpha.dll",
        "product/imports/Alpha/lib/net45/Alpha.Core.dll",
        "product/imports/Alpha/readme.txt",
        "product/imports/Beta/tools/Beta.exe",
        "product/imports/Beta/.svn/entries",
        "product/src/Program.cs",
    )
    return root


@pytest.fixture
def settings_factory(tmp_path: Path):
    def _factory(**paths):
        payload = {
            "paths": {
                "input_root": None,
                "output_root": str(tmp_path / "out"),
                "nuget_path": None,
                "artifacts_root": str(tmp_path / "artifacts"),
                "logs_root": str(tmp_path / "logs"),
            }
        }
        for key, value in paths.items():
            payload["paths"][key] = None if value is None else str(value)
        config_file = tmp_path / "configs" / "settings.yaml"
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(yaml.safe_dump(payload), encoding="utf-8")
        return load_settings(config_file=config_file)

    return _factory


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """CLI commands install root handlers; drop them again after each test."""
    root_logger = logging.getLogger()
    saved_level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        formatter = handler.formatter
        if formatter is not None and formatter._fmt == DEFAULT_LOG_FORMAT:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(saved_level)
