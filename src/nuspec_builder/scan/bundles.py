"""Locate dependency bundle folders inside a working tree."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

LOGGER = logging.getLogger(__name__)

DEFAULT_BUNDLE_MARKER = "imports"
DEFAULT_VCS_MARKER = ".svn"


@dataclass(frozen=True, slots=True)
class BundleGroup:
    """Immediate child directories of one bundle marker directory."""

    marker_dir: Path
    units: tuple[Path, ...]


@dataclass(frozen=True, slots=True)
class PackageableUnit:
    """One directory subtree that becomes exactly one package."""

    root: Path
    package_id: str

    @classmethod
    def from_root(cls, root: Path) -> "PackageableUnit":
        return cls(root=root, package_id=root.name)


def list_subdirectories(path: Path) -> list[Path]:
    """Return child directories in the filesystem's native enumeration order."""

    with os.scandir(path) as entries:
        return [Path(entry.path) for entry in entries if entry.is_dir()]


def _walk(
    path: Path,
    groups: list[BundleGroup],
    visited: set[str],
    *,
    bundle_marker: str,
    vcs_marker: str,
    logger: logging.Logger,
) -> None:
    real_path = os.path.realpath(path)
    if real_path in visited:
        logger.warning("scan.cycle_skipped path=%s", path)
        return
    visited.add(real_path)

    try:
        children = list_subdirectories(path)
    except OSError as exc:
        logger.warning("scan.list_failed path=%s error=%s", path, exc)
        return

    # Scoped to this call: a VCS folder only stops descent into its later siblings.
    repo_dir_found = False
    for directory in children:
        if vcs_marker in directory.name:
            repo_dir_found = True
            continue
        if bundle_marker in directory.name:
            try:
                units = tuple(list_subdirectories(directory))
            except OSError as exc:
                logger.warning("scan.list_failed path=%s error=%s", directory, exc)
                continue
            logger.debug("scan.bundle_found marker_dir=%s units=%s", directory, len(units))
            groups.append(BundleGroup(marker_dir=directory, units=units))
            continue
        if repo_dir_found:
            continue
        _walk(
            directory,
            groups,
            visited,
            bundle_marker=bundle_marker,
            vcs_marker=vcs_marker,
            logger=logger,
        )


def discover_bundles(
    root: Path,
    *,
    bundle_marker: str = DEFAULT_BUNDLE_MARKER,
    vcs_marker: str = DEFAULT_VCS_MARKER,
    logger: logging.Logger | None = None,
) -> list[BundleGroup]:
    """Walk ``root`` depth-first and collect one group per bundle marker directory.

    Traversal never descends below a marker directory, so groups are disjoint.
    A missing root is logged and yields no groups.
    """

    effective_logger = logger or LOGGER
    groups: list[BundleGroup] = []
    if not root.is_dir():
        effective_logger.warning("scan.root_missing root=%s", root)
        return groups

    _walk(
        root.resolve(strict=False),
        groups,
        set(),
        bundle_marker=bundle_marker,
        vcs_marker=vcs_marker,
        logger=effective_logger,
    )
    effective_logger.info(
        "scan.bundles_discovered root=%s groups=%s units=%s",
        root,
        len(groups),
        sum(len(group.units) for group in groups),
    )
    return groups


def iter_units(groups: Iterable[BundleGroup]) -> list[PackageableUnit]:
    """Flatten bundle groups into packageable units, preserving discovery order."""

    return [PackageableUnit.from_root(unit_root) for group in groups for unit_root in group.units]
