"""Recursive file listing for a packageable unit."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from nuspec_builder.scan.bundles import DEFAULT_VCS_MARKER

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64


def collect_files(
    unit_root: Path,
    *,
    vcs_marker: str = DEFAULT_VCS_MARKER,
    max_depth: int = DEFAULT_MAX_DEPTH,
    logger: logging.Logger | None = None,
) -> list[Path]:
    """List every regular file under ``unit_root``.

    Files of a directory come before the files of its subdirectories. Subtrees
    whose name contains ``vcs_marker`` are skipped. Directory cycles are cut by
    tracking visited real paths, and descent stops at ``max_depth``.
    """

    effective_logger = logger or LOGGER
    files: list[Path] = []
    visited: set[str] = set()

    def _collect(path: Path, depth: int) -> None:
        real_path = os.path.realpath(path)
        if real_path in visited:
            effective_logger.warning("collect.cycle_skipped path=%s", path)
            return
        visited.add(real_path)

        subdirectories: list[Path] = []
        with os.scandir(path) as entries:
            for entry in entries:
                if entry.is_file():
                    files.append(Path(entry.path))
                elif entry.is_dir():
                    subdirectories.append(Path(entry.path))

        for directory in subdirectories:
            if vcs_marker in directory.name:
                continue
            if depth >= max_depth:
                effective_logger.warning("collect.max_depth_reached path=%s max_depth=%s", directory, max_depth)
                continue
            _collect(directory, depth + 1)

    _collect(unit_root, 0)
    return files
