"""Tests for the product-version heuristic."""

from pathlib import Path

import pefile
import pytest

from nuspec_builder.manifest.version import binary_candidates, derive_version, read_product_version


def reader_from(mapping):
    def _reader(path: Path):
        value = mapping[path.name]
        if isinstance(value, Exception):
            raise value
        return value

    return _reader


def test_majority_version_wins():
    files = [Path("a.dll"), Path("b.dll"), Path("c.exe")]
    reader = reader_from({"a.dll": "1.0", "b.dll": "1.0", "c.exe": "2.0"})

    assert derive_version(files, reader=reader) == "1.0"


def test_tie_goes_to_first_encountered_version():
    files = [Path("a.dll"), Path("b.dll"), Path("c.dll"), Path("d.dll")]
    reader = reader_from({"a.dll": "3.1", "b.dll": "2.0", "c.dll": "2.0", "d.dll": "3.1"})

    assert derive_version(files, reader=reader) == "3.1"


def test_no_binaries_gives_empty_version():
    files = [Path("readme.txt"), Path("config.xml")]

    assert derive_version(files, reader=reader_from({})) == ""


def test_only_binary_extensions_are_read():
    seen = []

    def reader(path):
        seen.append(path.name)
        return "1.0"

    derive_version([Path("a.dll"), Path("b.pdb"), Path("c.EXE"), Path("d.txt")], reader=reader)

    assert seen == ["a.dll", "c.EXE"]


def test_unreadable_binaries_are_skipped():
    files = [Path("bad.dll"), Path("good.dll"), Path("none.dll")]
    reader = reader_from(
        {
            "bad.dll": PermissionError("denied"),
            "good.dll": "4.2.0",
            "none.dll": None,
        }
    )

    assert derive_version(files, reader=reader) == "4.2.0"


def test_all_unreadable_gives_empty_version():
    reader = reader_from({"bad.dll": pefile.PEFormatError("DOS Header magic not found.")})

    assert derive_version([Path("bad.dll")], reader=reader) == ""


def test_custom_extensions():
    reader = reader_from({"native.so": "9.9"})

    assert derive_version([Path("native.so")], extensions=[".so"], reader=reader) == "9.9"


def test_binary_candidates_preserves_order():
    files = [Path("z.exe"), Path("a.txt"), Path("b.dll")]

    assert binary_candidates(files) == [Path("z.exe"), Path("b.dll")]


def test_read_product_version_rejects_non_pe_content(tmp_path):
    fake = tmp_path / "fake.dll"
    fake.write_bytes(b"not a portable executable" * 8)

    with pytest.raises(pefile.PEFormatError):
        read_product_version(fake)


def test_default_reader_skips_non_pe_files(tmp_path):
    fake = tmp_path / "fake.dll"
    fake.write_bytes(b"MZ but truncated")

    assert derive_version([fake]) == ""
