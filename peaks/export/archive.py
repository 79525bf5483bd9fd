"""ZIP export of a project file tree.

``build_archive`` walks the tree depth-first and writes one directory entry
per folder and one entry per file (UTF-8 encoded), all nested under a single
top-level folder named after the project. ``extract_archive`` is its inverse
and rebuilds an isomorphic ``FileNode`` tree.
"""

from __future__ import annotations

import io
import time
import zipfile
from collections.abc import Sequence

from peaks.filetree import FileNode, NodeKind, parse_tree, walk
from peaks.utils import sanitize_name


class NothingToExportError(Exception):
    """Raised when asked to export a project that has no files."""

    def __init__(self, project_name: str = "") -> None:
        self.project_name = project_name
        label = f"Project {project_name!r}" if project_name else "Project"
        super().__init__(f"{label} has no files to export")


_DIR_ATTRS = (0o40755 << 16) | 0x10  # drwxr-xr-x + MS-DOS directory flag
_FILE_ATTRS = 0o100644 << 16


def ensure_exportable(files: Sequence[FileNode], project_name: str = "") -> None:
    """Fail fast with ``NothingToExportError`` for an empty tree."""
    if not files:
        raise NothingToExportError(project_name)


def archive_root(project_name: str) -> str:
    """Top-level folder name used inside the archive."""
    return sanitize_name(project_name)


def build_archive(
    files: Sequence[FileNode],
    root_name: str,
    *,
    date_time: tuple[int, int, int, int, int, int] | None = None,
) -> bytes:
    """Serialise *files* into an in-memory ZIP archive.

    Args:
        files: Root-level nodes of the project tree.
        root_name: Project name; sanitised into the archive's top folder.
        date_time: Timestamp stamped on every entry (defaults to now).

    Returns:
        The archive bytes.

    Raises:
        NothingToExportError: If *files* is empty.
    """
    ensure_exportable(files, root_name)
    root = archive_root(root_name)
    stamp = date_time or time.localtime(time.time())[:6]

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        root_info = zipfile.ZipInfo(f"{root}/", date_time=stamp)
        root_info.external_attr = _DIR_ATTRS
        zf.writestr(root_info, b"")

        for path, node, _depth in walk(files):
            if node.is_folder:
                info = zipfile.ZipInfo(f"{root}/{path}/", date_time=stamp)
                info.external_attr = _DIR_ATTRS
                zf.writestr(info, b"")
            else:
                info = zipfile.ZipInfo(f"{root}/{path}", date_time=stamp)
                info.external_attr = _FILE_ATTRS
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, (node.content or "").encode("utf-8"))
    return buffer.getvalue()


def extract_archive(data: bytes) -> tuple[str, list[FileNode]]:
    """Rebuild ``(root_name, files)`` from an archive made by ``build_archive``.

    Entry order is preserved, so sibling order matches the original tree.
    Missing intermediate directory entries are created on the fly.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        infos = zf.infolist()
        if not infos:
            return "", []
        root = infos[0].filename.split("/", 1)[0]

        top: list[dict] = []
        folders: dict[str, list[dict]] = {"": top}

        def _folder(path: str) -> list[dict]:
            if path in folders:
                return folders[path]
            parent, _, name = path.rpartition("/")
            children: list[dict] = []
            _folder(parent).append(
                {"name": name, "type": NodeKind.FOLDER.value, "children": children}
            )
            folders[path] = children
            return children

        for info in infos:
            name = info.filename
            if not name.startswith(f"{root}/"):
                raise ValueError(f"archive entry {name!r} is outside the {root!r} root folder")
            rel = name[len(root) + 1 :]
            if not rel:
                continue
            if info.is_dir():
                _folder(rel.rstrip("/"))
            else:
                parent, _, file_name = rel.rpartition("/")
                _folder(parent).append({
                    "name": file_name,
                    "type": NodeKind.FILE.value,
                    "content": zf.read(info).decode("utf-8"),
                })

    return root, parse_tree(top)
