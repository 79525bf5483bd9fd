"""Project export: ZIP archives and self-contained HTML previews.

Quick usage::

    from peaks.export import build_archive, render_preview

    data = build_archive(project.files, project.name)
    html = render_preview(project.files, project.type)
"""

from peaks.export.archive import (
    NothingToExportError,
    build_archive,
    ensure_exportable,
    extract_archive,
)
from peaks.export.preview import find_entry, render_placeholder, render_preview

__all__ = [
    "NothingToExportError",
    "build_archive",
    "ensure_exportable",
    "extract_archive",
    "find_entry",
    "render_placeholder",
    "render_preview",
]
