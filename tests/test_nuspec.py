"""Tests for manifest documents: targets, rendering, persistence and reload."""

import os
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from conftest import make_files
from nuspec_builder.manifest.nuspec import (
    NUSPEC_NAMESPACE,
    DEFAULT_AUTHORS,
    DEFAULT_COPYRIGHT,
    DEFAULT_OWNERS,
    build_manifest,
    file_target,
    load_manifest,
    render_manifest,
    write_manifest,
)
from nuspec_builder.scan.files import collect_files

NS = {"n": NUSPEC_NAMESPACE}


class TestFileTarget:
    def test_file_at_unit_root_has_empty_target(self, tmp_path):
        assert file_target(tmp_path / "Alpha.dll", tmp_path) == ""

    def test_nested_file_targets_its_directory(self, tmp_path):
        target = file_target(tmp_path / "lib" / "net45" / "Alpha.dll", tmp_path)

        assert target == f"lib{os.sep}net45{os.sep}"

    def test_target_ignores_file_name(self, tmp_path):
        first = file_target(tmp_path / "tools" / "a.exe", tmp_path)
        second = file_target(tmp_path / "tools" / "b.config", tmp_path)

        assert first == second == f"tools{os.sep}"

    def test_file_outside_unit_is_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            file_target(Path("/elsewhere/a.dll"), tmp_path / "unit")


class TestBuildManifest:
    def test_metadata_derived_from_directory_name(self, tmp_path):
        unit = tmp_path / "Contoso.Logging"

        document = build_manifest(unit, [], version="2.1.0")

        metadata = document.metadata
        assert metadata.id == "Contoso.Logging"
        assert metadata.title == "Contoso.Logging"
        assert metadata.description == "Contoso.LoggingNuget Package"
        assert metadata.version == "2.1.0"
        assert metadata.authors == DEFAULT_AUTHORS
        assert metadata.owners == DEFAULT_OWNERS
        assert metadata.copyright == DEFAULT_COPYRIGHT
        assert document.files == ()

    def test_configurable_constants(self, tmp_path):
        document = build_manifest(
            tmp_path / "Pkg",
            [],
            version="",
            description_suffix=" package",
            authors="Build Team",
            owners="Platform",
            copyright="(c) Platform",
        )

        assert document.metadata.description == "Pkg package"
        assert (document.metadata.authors, document.metadata.owners) == ("Build Team", "Platform")
        assert document.metadata.copyright == "(c) Platform"

    def test_file_entries_keep_discovery_order(self, tmp_path):
        unit = tmp_path / "Pkg"
        files = [unit / "b.dll", unit / "lib" / "a.dll"]

        document = build_manifest(unit, files, version="1.0")

        assert [entry.src for entry in document.files] == files
        assert [entry.target for entry in document.files] == ["", f"lib{os.sep}"]


class TestRenderManifest:
    def test_document_layout(self, tmp_path):
        unit = tmp_path / "Pkg"
        document = build_manifest(unit, [unit / "a.dll", unit / "lib" / "b.dll"], version="1.2")

        text = render_manifest(document)
        root = ET.fromstring(text.split("\n", 1)[1])

        assert text.startswith('<?xml version="1.0" encoding="utf-8" standalone="yes"?>')
        assert f'<package xmlns="{NUSPEC_NAMESPACE}">' in text
        assert root.tag == f"{{{NUSPEC_NAMESPACE}}}package"
        assert [child.tag.split("}")[1] for child in root] == ["metadata", "files"]
        metadata = root.find("n:metadata", NS)
        assert [child.tag.split("}")[1] for child in metadata] == [
            "id",
            "version",
            "description",
            "title",
            "authors",
            "owners",
            "copyright",
        ]
        file_elements = root.findall("n:files/n:file", NS)
        assert [element.get("target") for element in file_elements] == ["", f"lib{os.sep}"]
        assert file_elements[0].get("src") == str(unit / "a.dll")

    def test_empty_files_section_is_present(self, tmp_path):
        text = render_manifest(build_manifest(tmp_path / "Empty", [], version=""))
        root = ET.fromstring(text.split("\n", 1)[1])

        assert root.find("n:files", NS) is not None
        assert root.findall("n:files/n:file", NS) == []


class TestPersistence:
    def test_write_creates_output_directory(self, tmp_path):
        output_dir = tmp_path / "nested" / "out"
        document = build_manifest(tmp_path / "Pkg", [], version="1.0")

        path = write_manifest(document, output_dir)

        assert path == output_dir / "Pkg.nuspec"
        assert path.is_file()
        assert list(output_dir.iterdir()) == [path]

    def test_rewrite_is_idempotent(self, tmp_path):
        document = build_manifest(tmp_path / "Pkg", [], version="1.0")

        first = write_manifest(document, tmp_path / "out").read_text(encoding="utf-8")
        second = write_manifest(document, tmp_path / "out").read_text(encoding="utf-8")

        assert first == second

    def test_round_trip_matches_collected_files(self, tmp_path):
        unit = tmp_path / "Contoso.Data"
        make_files(unit, "Contoso.Data.dll", "lib/net45/Contoso.Data.Sql.dll", "content/app.config")
        files = collect_files(unit)
        document = build_manifest(unit, files, version="5.0.1")

        loaded = load_manifest(write_manifest(document, tmp_path / "out"))

        assert loaded.metadata == document.metadata
        assert {(entry.src, entry.target) for entry in loaded.files} == {
            (path, file_target(path, unit)) for path in files
        }

    def test_round_trip_with_empty_version(self, tmp_path):
        document = build_manifest(tmp_path / "NoBinaries", [], version="")

        loaded = load_manifest(write_manifest(document, tmp_path / "out"))

        assert loaded.metadata.version == ""

    def test_load_rejects_foreign_documents(self, tmp_path):
        path = tmp_path / "other.xml"
        path.write_text("<project><metadata/></project>", encoding="utf-8")

        with pytest.raises(ValueError):
            load_manifest(path)
