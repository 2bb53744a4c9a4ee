"""Build, render, persist and reload ``.nuspec`` manifest documents."""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import astuple, dataclass, fields
from pathlib import Path
from typing import Sequence

from nuspec_builder.utils.paths import write_text_atomically

LOGGER = logging.getLogger(__name__)

NUSPEC_NAMESPACE = "http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd"
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8" standalone="yes"?>'
MANIFEST_EXTENSION = "nuspec"

DEFAULT_DESCRIPTION_SUFFIX = "Nuget Package"
DEFAULT_AUTHORS = "CSS Applications"
DEFAULT_OWNERS = "NICE Systems"
DEFAULT_COPYRIGHT = "Copyright © 2016 NICE Systems, All rights reserved"


@dataclass(frozen=True, slots=True)
class ManifestMetadata:
    """Single-valued metadata fields, in document order."""

    id: str
    version: str
    description: str
    title: str
    authors: str
    owners: str
    copyright: str


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Mapping of a source file to its folder inside the package."""

    src: Path
    target: str


@dataclass(frozen=True, slots=True)
class ManifestDocument:
    """Metadata block plus ordered file mappings."""

    metadata: ManifestMetadata
    files: tuple[FileEntry, ...]


def _tag(name: str) -> str:
    return f"{{{NUSPEC_NAMESPACE}}}{name}"


def file_target(file: Path, unit_root: Path) -> str:
    """Return the package folder for ``file``: its parent relative to the unit root.

    Files directly at the root map to the empty string; nested files map to the
    containing directory with a trailing separator.
    """

    relative_parent = file.relative_to(unit_root).parent
    if relative_parent == Path("."):
        return ""
    return f"{relative_parent}{os.sep}"


def build_manifest(
    unit_root: Path,
    files: Sequence[Path],
    *,
    version: str,
    description_suffix: str = DEFAULT_DESCRIPTION_SUFFIX,
    authors: str = DEFAULT_AUTHORS,
    owners: str = DEFAULT_OWNERS,
    copyright: str = DEFAULT_COPYRIGHT,
) -> ManifestDocument:
    """Combine a unit's directory name, version and files into a manifest."""

    package_id = unit_root.name
    metadata = ManifestMetadata(
        id=package_id,
        version=version,
        description=f"{package_id}{description_suffix}",
        title=package_id,
        authors=authors,
        owners=owners,
        copyright=copyright,
    )
    entries = tuple(FileEntry(src=path, target=file_target(path, unit_root)) for path in files)
    return ManifestDocument(metadata=metadata, files=entries)


def render_manifest(document: ManifestDocument) -> str:
    """Serialize a manifest as namespaced XML text with declaration."""

    # Children stay unqualified; the xmlns attribute puts them in the nuspec namespace.
    package = ET.Element("package", {"xmlns": NUSPEC_NAMESPACE})
    metadata_element = ET.SubElement(package, "metadata")
    for field, value in zip(fields(ManifestMetadata), astuple(document.metadata)):
        ET.SubElement(metadata_element, field.name).text = value

    files_element = ET.SubElement(package, "files")
    for entry in document.files:
        ET.SubElement(files_element, "file", {"src": str(entry.src), "target": entry.target})

    ET.indent(package)
    body = ET.tostring(package, encoding="unicode")
    return f"{XML_DECLARATION}\n{body}\n"


def manifest_path_for(output_dir: Path, package_id: str, extension: str = MANIFEST_EXTENSION) -> Path:
    """Return ``<output_dir>/<package_id>.<extension>``."""

    return output_dir / f"{package_id}.{extension}"


def write_manifest(
    document: ManifestDocument,
    output_dir: Path,
    *,
    extension: str = MANIFEST_EXTENSION,
) -> Path:
    """Write the manifest atomically, creating ``output_dir`` when missing."""

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = manifest_path_for(output_dir, document.metadata.id, extension)
    return write_text_atomically(output_path, render_manifest(document))


def load_manifest(path: Path) -> ManifestDocument:
    """Parse a manifest file written by ``write_manifest``."""

    root = ET.parse(path).getroot()
    if root.tag != _tag("package"):
        raise ValueError(f"Not a nuspec package document: {path} (root={root.tag})")

    metadata_element = root.find(_tag("metadata"))
    files_element = root.find(_tag("files"))
    if metadata_element is None or files_element is None:
        raise ValueError(f"Manifest missing metadata or files section: {path}")

    values: dict[str, str] = {}
    for field in fields(ManifestMetadata):
        element = metadata_element.find(_tag(field.name))
        if element is None:
            raise ValueError(f"Manifest metadata missing '{field.name}': {path}")
        values[field.name] = element.text or ""

    entries = tuple(
        FileEntry(src=Path(element.get("src", "")), target=element.get("target", ""))
        for element in files_element.findall(_tag("file"))
    )
    return ManifestDocument(metadata=ManifestMetadata(**values), files=entries)
