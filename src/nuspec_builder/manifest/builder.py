"""Per-unit manifest generation with contained failures."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Sequence

import pefile

from nuspec_builder.config import ManifestConfig, ScanConfig
from nuspec_builder.manifest.nuspec import ManifestDocument, build_manifest, manifest_path_for, write_manifest
from nuspec_builder.manifest.version import VersionReader, derive_version, read_product_version
from nuspec_builder.scan.bundles import PackageableUnit
from nuspec_builder.scan.files import collect_files

LOGGER = logging.getLogger(__name__)

UnitStatus = Literal["WRITTEN", "SKIPPED", "FAILED"]
UNIT_STATUS_VALUES: tuple[UnitStatus, ...] = ("WRITTEN", "SKIPPED", "FAILED")


@dataclass(frozen=True, slots=True)
class ManifestRecord:
    """A manifest persisted for one unit and ready to be packed."""

    package_id: str
    unit_root: Path
    manifest_path: Path
    version: str
    file_count: int


@dataclass(frozen=True, slots=True)
class UnitResult:
    """Outcome of manifest generation for a single unit."""

    unit: PackageableUnit
    status: UnitStatus
    record: ManifestRecord | None = None
    document: ManifestDocument | None = None
    error_message: str | None = None


def build_unit_manifest(
    unit: PackageableUnit,
    *,
    output_dir: Path,
    manifest_config: ManifestConfig | None = None,
    scan_config: ScanConfig | None = None,
    dry_run: bool = False,
    version_reader: VersionReader = read_product_version,
    logger: logging.Logger | None = None,
) -> UnitResult:
    """Collect files, derive the version, and write one manifest.

    Filesystem and metadata errors are reported as a ``FAILED`` result instead of
    propagating, so one broken unit never stops its siblings.
    """

    effective_logger = logger or LOGGER
    manifest_cfg = manifest_config or ManifestConfig()
    scan_cfg = scan_config or ScanConfig()
    try:
        files = collect_files(
            unit.root,
            vcs_marker=scan_cfg.vcs_marker,
            max_depth=scan_cfg.max_depth,
            logger=effective_logger,
        )
        version = derive_version(
            files,
            extensions=manifest_cfg.binary_extensions,
            reader=version_reader,
            logger=effective_logger,
        )
        document = build_manifest(
            unit.root,
            files,
            version=version,
            description_suffix=manifest_cfg.description_suffix,
            authors=manifest_cfg.authors,
            owners=manifest_cfg.owners,
            copyright=manifest_cfg.copyright,
        )
        if dry_run:
            record = ManifestRecord(
                package_id=unit.package_id,
                unit_root=unit.root,
                manifest_path=manifest_path_for(output_dir, unit.package_id, manifest_cfg.extension),
                version=version,
                file_count=len(files),
            )
            effective_logger.info("manifest.dry_run package_id=%s files=%s version=%s", unit.package_id, len(files), version)
            return UnitResult(unit=unit, status="SKIPPED", record=record, document=document)

        manifest_path = write_manifest(document, output_dir, extension=manifest_cfg.extension)
    except (OSError, ValueError, pefile.PEFormatError) as exc:
        effective_logger.exception("manifest.unit_failed package_id=%s root=%s", unit.package_id, unit.root)
        return UnitResult(unit=unit, status="FAILED", error_message=str(exc))

    effective_logger.info(
        "manifest.written package_id=%s unit_root=%s path=%s files=%s version=%s",
        unit.package_id,
        unit.root,
        manifest_path,
        len(files),
        version or "<empty>",
    )
    record = ManifestRecord(
        package_id=unit.package_id,
        unit_root=unit.root,
        manifest_path=manifest_path,
        version=version,
        file_count=len(files),
    )
    return UnitResult(unit=unit, status="WRITTEN", record=record, document=document)


def build_all_manifests(
    units: Sequence[PackageableUnit],
    *,
    output_dir: Path,
    manifest_config: ManifestConfig | None = None,
    scan_config: ScanConfig | None = None,
    dry_run: bool = False,
    version_reader: VersionReader = read_product_version,
    logger: logging.Logger | None = None,
) -> list[UnitResult]:
    """Generate manifests for every unit in order.

    Units from different bundle folders can share a directory name and therefore a
    manifest path. The first unit claims the path; later ones are reported as
    ``FAILED`` without touching the manifest already on disk.
    """

    effective_logger = logger or LOGGER
    extension = (manifest_config or ManifestConfig()).extension
    claimed: dict[str, PackageableUnit] = {}
    results: list[UnitResult] = []
    for unit in units:
        target = manifest_path_for(output_dir, unit.package_id, extension)
        claim_key = os.path.normcase(str(target))
        owner = claimed.get(claim_key)
        if owner is not None:
            effective_logger.warning(
                "manifest.duplicate_id package_id=%s root=%s path=%s claimed_by=%s",
                unit.package_id,
                unit.root,
                target,
                owner.root,
            )
            results.append(
                UnitResult(
                    unit=unit,
                    status="FAILED",
                    error_message=f"manifest {target} already generated for {owner.root}",
                )
            )
            continue
        claimed[claim_key] = unit
        results.append(
            build_unit_manifest(
                unit,
                output_dir=output_dir,
                manifest_config=manifest_config,
                scan_config=scan_config,
                dry_run=dry_run,
                version_reader=version_reader,
                logger=effective_logger,
            )
        )
    effective_logger.info("manifest.summary %s", unit_status_counts(results))
    return results


def unit_status_counts(results: Sequence[UnitResult]) -> dict[str, int]:
    """Return WRITTEN/SKIPPED/FAILED counts."""

    counts = {status: 0 for status in UNIT_STATUS_VALUES}
    for result in results:
        counts[result.status] += 1
    return counts


def written_records(results: Sequence[UnitResult]) -> list[ManifestRecord]:
    """Records of units whose manifest reached disk, in generation order."""

    return [result.record for result in results if result.status == "WRITTEN" and result.record is not None]
