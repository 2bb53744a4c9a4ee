"""Shared utility helpers."""

from nuspec_builder.utils.paths import atomic_temp_path, write_text_atomically

__all__ = [
    "atomic_temp_path",
    "write_text_atomically",
]
