"""Pick a package version from the product versions embedded in its binaries."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Callable, Iterable, Sequence

import pefile

LOGGER = logging.getLogger(__name__)

DEFAULT_BINARY_EXTENSIONS: tuple[str, ...] = (".dll", ".exe")
PRODUCT_VERSION_KEY = b"ProductVersion"

VersionReader = Callable[[Path], "str | None"]


def _decode(value: bytes | str) -> str:
    text = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value
    return text.strip("\x00").strip()


def read_product_version(path: Path) -> str | None:
    """Return the ``ProductVersion`` string of a PE file, or None when absent.

    Raises ``pefile.PEFormatError`` for non-PE content and ``OSError`` for
    unreadable files.
    """

    pe = pefile.PE(str(path), fast_load=True)
    try:
        pe.parse_data_directories(directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]])
        for file_info_list in getattr(pe, "FileInfo", None) or []:
            for file_info in file_info_list:
                if getattr(file_info, "Key", b"") != b"StringFileInfo":
                    continue
                for string_table in getattr(file_info, "StringTable", []):
                    value = string_table.entries.get(PRODUCT_VERSION_KEY)
                    if value:
                        decoded = _decode(value)
                        if decoded:
                            return decoded
    finally:
        pe.close()
    return None


def binary_candidates(files: Iterable[Path], extensions: Sequence[str] = DEFAULT_BINARY_EXTENSIONS) -> list[Path]:
    """Filter to executables and libraries, keeping input order."""

    wanted = {extension.lower() for extension in extensions}
    return [path for path in files if path.suffix.lower() in wanted]


def derive_version(
    files: Sequence[Path],
    *,
    extensions: Sequence[str] = DEFAULT_BINARY_EXTENSIONS,
    reader: VersionReader = read_product_version,
    logger: logging.Logger | None = None,
) -> str:
    """Return the most frequent product version among binary files.

    Ties go to the value seen first. Files whose metadata cannot be read are
    skipped. With no usable candidates the version is the empty string.
    """

    effective_logger = logger or LOGGER
    versions: list[str] = []
    for path in binary_candidates(files, extensions):
        try:
            version = reader(path)
        except (OSError, pefile.PEFormatError) as exc:
            effective_logger.warning("version.read_failed path=%s error=%s", path, exc)
            continue
        if version is None:
            effective_logger.debug("version.missing path=%s", path)
            continue
        versions.append(version)

    if not versions:
        return ""
    # most_common keeps first-encountered order among equal counts.
    return Counter(versions).most_common(1)[0][0]
