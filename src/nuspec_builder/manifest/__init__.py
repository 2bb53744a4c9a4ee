"""Manifest generation: version heuristic, nuspec documents and per-unit builds."""

from nuspec_builder.manifest.builder import (
    UNIT_STATUS_VALUES,
    ManifestRecord,
    UnitResult,
    UnitStatus,
    build_all_manifests,
    build_unit_manifest,
    unit_status_counts,
    written_records,
)
from nuspec_builder.manifest.nuspec import (
    NUSPEC_NAMESPACE,
    FileEntry,
    ManifestDocument,
    ManifestMetadata,
    build_manifest,
    file_target,
    load_manifest,
    manifest_path_for,
    render_manifest,
    write_manifest,
)
from nuspec_builder.manifest.version import binary_candidates, derive_version, read_product_version

__all__ = [
    "UNIT_STATUS_VALUES",
    "ManifestRecord",
    "UnitResult",
    "UnitStatus",
    "build_all_manifests",
    "build_unit_manifest",
    "unit_status_counts",
    "written_records",
    "NUSPEC_NAMESPACE",
    "FileEntry",
    "ManifestDocument",
    "ManifestMetadata",
    "build_manifest",
    "file_target",
    "load_manifest",
    "manifest_path_for",
    "render_manifest",
    "write_manifest",
    "binary_candidates",
    "derive_version",
    "read_product_version",
]
