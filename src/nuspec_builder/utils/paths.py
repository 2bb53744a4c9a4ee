"""Path and filesystem helper functions."""

from __future__ import annotations

import os
from pathlib import Path
from uuid import uuid4


def atomic_temp_path(target_path: Path) -> Path:
    """Create a temp path in the same directory for atomic replacement."""

    return target_path.parent / f".{target_path.name}.{uuid4().hex}.tmp"


def write_text_atomically(path: Path, content: str) -> Path:
    """Write UTF-8 text to a sibling temp file, then swap it into place."""

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = atomic_temp_path(path)
    try:
        temp_path.write_text(content, encoding="utf-8")
        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return path
