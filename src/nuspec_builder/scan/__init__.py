"""Working-tree scanning: bundle discovery and file collection."""

from nuspec_builder.scan.bundles import (
    DEFAULT_BUNDLE_MARKER,
    DEFAULT_VCS_MARKER,
    BundleGroup,
    PackageableUnit,
    discover_bundles,
    iter_units,
    list_subdirectories,
)
from nuspec_builder.scan.files import DEFAULT_MAX_DEPTH, collect_files

__all__ = [
    "DEFAULT_BUNDLE_MARKER",
    "DEFAULT_VCS_MARKER",
    "DEFAULT_MAX_DEPTH",
    "BundleGroup",
    "PackageableUnit",
    "discover_bundles",
    "iter_units",
    "list_subdirectories",
    "collect_files",
]
