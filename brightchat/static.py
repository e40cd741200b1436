"""Serves the built UI bundle, falling back to the entry page for unknown routes."""

import os
from pathlib import Path
from typing import Optional

from fastapi.responses import FileResponse

ENTRY_PAGE = "index.html"


def resolve_static_file(static_dir: Optional[str], url_path: str) -> Optional[Path]:
    """
    Returns the file to serve for url_path, or None when there is no bundle.
    Paths escaping static_dir, and paths that do not name a file, resolve to
    the entry page.
    """
    if not static_dir or not os.path.isdir(static_dir):
        return None

    root = Path(static_dir).resolve()
    entry = root / ENTRY_PAGE
    candidate = (root / url_path.lstrip("/")).resolve()

    if candidate.is_relative_to(root) and candidate.is_file():
        return candidate
    if entry.is_file():
        return entry
    return None


def static_response(static_dir: Optional[str], url_path: str) -> Optional[FileResponse]:
    target = resolve_static_file(static_dir, url_path)
    if target is None:
        return None
    return FileResponse(target)
