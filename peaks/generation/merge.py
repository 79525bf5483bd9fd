"""Structure merge engine.

Reconciles a project's current file tree with freshly generated oracle output.
The flow is chosen by whether the project already has files:

- **create**: the generated ``files`` replace the (empty) tree wholesale.
- **enhance**: the oracle returns the complete new tree and it replaces the
  old one. With ``preserve_unchanged`` on, files the oracle only re-emitted
  with whitespace or line-ending noise keep their previous bytes exactly.

On enhancement failure the service returns an unchanged copy of the current
tree, so a failed cycle never loses data.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel, Field

from peaks.filetree import FileNode, copy_tree, diff_trees, find_node, join_path
from peaks.generation.service import GenerationService


class MergeFlow(str, Enum):
    """Which generation path produced a merge outcome."""
    CREATE = "create"
    ENHANCE = "enhance"


class MergeOutcome(BaseModel):
    """Result of one generation cycle, ready to be persisted."""
    files: list[FileNode] = Field(default_factory=list)
    flow: MergeFlow
    project_type: str
    used_fallback: bool = False
    preserved_paths: list[str] = Field(default_factory=list)
    added_paths: list[str] = Field(default_factory=list)
    removed_paths: list[str] = Field(default_factory=list)
    modified_paths: list[str] = Field(default_factory=list)


class MergeEngine:
    """Selects the create or enhance flow and produces the new tree."""

    def __init__(self, service: GenerationService, preserve_unchanged: bool = True) -> None:
        self.service = service
        self.preserve_unchanged = preserve_unchanged

    async def merge(
        self,
        current_files: Sequence[FileNode],
        message: str,
        project_type: str,
    ) -> MergeOutcome:
        """Run one generation cycle against *current_files*.

        The input tree is never mutated; the outcome owns deep copies only.
        """
        if not current_files:
            return await self._create(message, project_type)
        return await self._enhance(current_files, message, project_type)

    async def _create(self, message: str, project_type: str) -> MergeOutcome:
        result = await self.service.generate_project_structure(message, project_type)
        files = copy_tree(result.files)
        return MergeOutcome(
            files=files,
            flow=MergeFlow.CREATE,
            project_type=project_type,
            used_fallback=result.used_fallback,
            added_paths=diff_trees([], files).added,
        )

    async def _enhance(
        self,
        current_files: Sequence[FileNode],
        message: str,
        project_type: str,
    ) -> MergeOutcome:
        snapshot = copy_tree(current_files)
        new_files, used_fallback = await self.service.enhance_project(
            snapshot, message, project_type
        )
        if used_fallback:
            return MergeOutcome(
                files=copy_tree(current_files),
                flow=MergeFlow.ENHANCE,
                project_type=project_type,
                used_fallback=True,
            )

        diff = diff_trees(current_files, new_files)
        files = copy_tree(new_files)
        modified = list(diff.modified)
        preserved: list[str] = []
        if self.preserve_unchanged:
            cosmetic = cosmetic_changes(current_files, new_files, diff.modified)
            preserved = carry_over_unchanged(current_files, files, cosmetic)
            modified = [p for p in modified if p not in preserved]

        return MergeOutcome(
            files=files,
            flow=MergeFlow.ENHANCE,
            project_type=project_type,
            preserved_paths=preserved,
            added_paths=diff.added,
            removed_paths=diff.removed,
            modified_paths=modified,
        )


def carry_over_unchanged(
    old_files: Sequence[FileNode],
    new_files: list[FileNode],
    paths: Sequence[str],
) -> list[str]:
    """Replace nodes at *paths* in *new_files* with copies from *old_files*.

    Modifies *new_files* in place and returns the paths actually replaced.
    """
    wanted = set(paths)
    replaced: list[str] = []

    def _visit(level: list[FileNode], parent: str) -> None:
        for index, node in enumerate(level):
            path = join_path(parent, node.name)
            if node.is_folder:
                _visit(node.children or [], path)
            elif path in wanted:
                old = find_node(old_files, path)
                if old is not None and old.is_file:
                    level[index] = old.model_copy(deep=True)
                    replaced.append(path)

    _visit(new_files, "")
    return replaced


def _normalise(content: str) -> str:
    lines = content.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).strip("\n")


def cosmetic_changes(
    old_files: Sequence[FileNode],
    new_files: Sequence[FileNode],
    paths: Sequence[str],
) -> list[str]:
    """Return the *paths* whose old and new content differ only in whitespace.

    Line endings, trailing spaces and leading/trailing blank lines are ignored.
    """
    cosmetic: list[str] = []
    for path in paths:
        old = find_node(old_files, path)
        new = find_node(new_files, path)
        if old is None or new is None or not (old.is_file and new.is_file):
            continue
        if _normalise(old.content or "") == _normalise(new.content or ""):
            cosmetic.append(path)
    return cosmetic
