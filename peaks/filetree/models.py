"""Pydantic v2 models for project file trees.

A project's files are an ordered sequence of ``FileNode`` objects. Folders own
their children outright (there are no back-references and no sharing between
parents), so every helper here that hands a tree to another component returns
a deep copy rather than an alias.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


PATH_SEPARATOR = "/"


class FileTreeError(ValueError):
    """Raised when a file tree violates its structural invariants."""


# ---------------------------------------------------------------------------
# Node model
# ---------------------------------------------------------------------------

class NodeKind(str, Enum):
    """Whether a node is a file or a folder."""
    FILE = "file"
    FOLDER = "folder"


class FileNode(BaseModel):
    """One entry (file or folder) in a project's file tree.

    Serialised with the ``type`` key used on the wire and in storage::

        {"name": "src", "type": "folder", "children": [...]}
        {"name": "App.jsx", "type": "file", "content": "..."}
    """

    name: str = Field(..., description="Entry name, unique among its siblings")
    type: NodeKind = Field(..., description="File or folder")
    content: Optional[str] = Field(default=None, description="File body (files only)")
    children: Optional[list[FileNode]] = Field(
        default=None, description="Ordered child entries (folders only)"
    )

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("node name must not be empty")
        if PATH_SEPARATOR in value or "\\" in value:
            raise ValueError(f"node name must not contain a path separator: {value!r}")
        if value in (".", ".."):
            raise ValueError(f"node name must not be a relative path component: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_kind(self) -> "FileNode":
        if self.type is NodeKind.FILE:
            if self.children is not None:
                raise ValueError(f"file {self.name!r} must not have children")
            if self.content is None:
                self.content = ""
        else:
            if self.content is not None:
                raise ValueError(f"folder {self.name!r} must not have content")
            if self.children is None:
                self.children = []
            _check_unique_names(self.children, parent=self.name)
        return self

    # -- Convenience -------------------------------------------------------

    @property
    def is_file(self) -> bool:
        return self.type is NodeKind.FILE

    @property
    def is_folder(self) -> bool:
        return self.type is NodeKind.FOLDER

    @classmethod
    def file(cls, name: str, content: str = "") -> "FileNode":
        """Build a file node."""
        return cls(name=name, type=NodeKind.FILE, content=content)

    @classmethod
    def folder(cls, name: str, children: Iterable["FileNode"] = ()) -> "FileNode":
        """Build a folder node owning deep copies of *children*."""
        return cls(
            name=name,
            type=NodeKind.FOLDER,
            children=[c.model_copy(deep=True) for c in children],
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready dict form (``None`` fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)


FileNode.model_rebuild()


def _check_unique_names(nodes: list[FileNode], parent: str | None = None) -> None:
    seen: set[str] = set()
    for node in nodes:
        if node.name in seen:
            where = f"folder {parent!r}" if parent else "the project root"
            raise ValueError(f"duplicate name {node.name!r} in {where}")
        seen.add(node.name)


# ---------------------------------------------------------------------------
# Construction / validation
# ---------------------------------------------------------------------------

def parse_tree(raw: Any) -> list[FileNode]:
    """Validate raw JSON-like data into an ordered list of ``FileNode``.

    Accepts a list of node dicts (or already-built nodes). Every structural
    invariant is checked, including unique names at the root level.

    Raises:
        FileTreeError: If *raw* is not a list or any node is invalid.
    """
    if not isinstance(raw, list):
        raise FileTreeError(f"file tree must be a list, got {type(raw).__name__}")
    try:
        nodes = [
            n.model_copy(deep=True) if isinstance(n, FileNode) else FileNode.model_validate(n)
            for n in raw
        ]
        _check_unique_names(nodes)
    except ValidationError as exc:
        raise FileTreeError(_summarise_validation_error(exc)) from exc
    except ValueError as exc:
        raise FileTreeError(str(exc)) from exc
    return nodes


def _summarise_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    msg = first.get("msg", "invalid node")
    return f"{loc}: {msg}" if loc else msg


def tree_payload(nodes: Iterable[FileNode]) -> list[dict[str, Any]]:
    """Serialise a tree back to plain JSON-ready dicts."""
    return [node.to_payload() for node in nodes]


def copy_tree(nodes: Iterable[FileNode]) -> list[FileNode]:
    """Deep-copy a tree so the result shares no node with the input."""
    return [node.model_copy(deep=True) for node in nodes]


# ---------------------------------------------------------------------------
# Paths & traversal
# ---------------------------------------------------------------------------

def join_path(*parts: str) -> str:
    """Join ancestor names into a full path (``"src/App.jsx"``)."""
    return PATH_SEPARATOR.join(p for p in parts if p)


def walk(
    nodes: Iterable[FileNode],
    parent_path: str = "",
    depth: int = 0,
) -> Iterator[tuple[str, FileNode, int]]:
    """Depth-first traversal yielding ``(path, node, depth)`` triples.

    Order follows declaration order in the tree (not sorted); a folder is
    yielded before its children.
    """
    for node in nodes:
        path = join_path(parent_path, node.name)
        yield path, node, depth
        if node.is_folder and node.children:
            yield from walk(node.children, path, depth + 1)


def all_paths(nodes: Iterable[FileNode]) -> list[str]:
    """Return every full path in traversal order."""
    return [path for path, _, _ in walk(nodes)]


def file_map(nodes: Iterable[FileNode]) -> dict[str, str]:
    """Map each file's full path to its content."""
    return {path: node.content or "" for path, node, _ in walk(nodes) if node.is_file}


def count_files(nodes: Iterable[FileNode]) -> int:
    """Number of file (not folder) entries in the tree."""
    return sum(1 for _, node, _ in walk(nodes) if node.is_file)


def find_node(nodes: Iterable[FileNode], path: str) -> FileNode | None:
    """Resolve a ``/``-separated path to its node, or ``None``.

    Leading ``/`` and ``./`` prefixes and empty or ``.`` segments are ignored,
    and ``..`` walks one level up, so paths taken from HTML references resolve
    naturally. Paths escaping the root resolve to ``None``.
    """
    segments: list[str] = []
    for part in path.replace("\\", PATH_SEPARATOR).split(PATH_SEPARATOR):
        if part in ("", "."):
            continue
        if part == "..":
            if not segments:
                return None
            segments.pop()
            continue
        segments.append(part)
    if not segments:
        return None

    level: list[FileNode] = list(nodes)
    current: FileNode | None = None
    for segment in segments:
        current = next((n for n in level if n.name == segment), None)
        if current is None:
            return None
        level = current.children or []
    return current


# ---------------------------------------------------------------------------
# Path-level diff
# ---------------------------------------------------------------------------

class TreeDiff(BaseModel):
    """Path-level comparison of two trees' files."""
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified)


def diff_trees(old: Iterable[FileNode], new: Iterable[FileNode]) -> TreeDiff:
    """Compare the files of *old* and *new* by full path.

    Paths are reported in the traversal order of the tree they come from
    (``removed`` follows *old*, everything else follows *new*).
    """
    old_files = file_map(old)
    new_files = file_map(new)
    diff = TreeDiff()
    for path, content in new_files.items():
        if path not in old_files:
            diff.added.append(path)
        elif old_files[path] == content:
            diff.unchanged.append(path)
        else:
            diff.modified.append(path)
    diff.removed = [p for p in old_files if p not in new_files]
    return diff
