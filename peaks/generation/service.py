"""Oracle-backed project generation with per-call-site fallbacks.

Every public method here is total: oracle failures (transport, remote,
network, malformed JSON, or an answer that fails validation) are absorbed into
a deterministic fallback and reported on the console.

- ``analyze_request`` falls back to ``ProjectAnalysis.fallback()``.
- ``generate_project_structure`` falls back to a baked-in template.
- ``enhance_project`` falls back to an unchanged copy of the current tree.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from peaks.filetree import FileNode, FileTreeError, copy_tree, parse_tree
from peaks.generation.defaults import default_project_structure
from peaks.generation.models import GenerationResult, ProjectAnalysis
from peaks.generation.prompts import (
    build_classify_prompt,
    build_enhance_prompt,
    build_generate_prompt,
)
from peaks.oracle_client import OracleClient, OracleError
from peaks.utils import print_warning

# Failures absorbed by the fallbacks below.
_ABSORBED = (OracleError, ValidationError, FileTreeError)


class GenerationService:
    """Runs the classify / generate / enhance prompts against the oracle."""

    def __init__(self, oracle: OracleClient) -> None:
        self.oracle = oracle

    async def analyze_request(self, message: str) -> ProjectAnalysis:
        """Classify a free-text request into project type, analysis and complexity."""
        try:
            data = await self.oracle.complete_json(build_classify_prompt(message))
            if not isinstance(data, dict):
                raise FileTreeError("classification answer is not a JSON object")
            return ProjectAnalysis.model_validate(data)
        except _ABSORBED as exc:
            print_warning(f"Classification failed, using generic analysis: {exc}")
            return ProjectAnalysis.fallback()

    async def generate_project_structure(
        self,
        message: str,
        project_type: str,
    ) -> GenerationResult:
        """Generate a new project; on any failure return the template for *project_type*."""
        try:
            data = await self.oracle.complete_json(build_generate_prompt(message, project_type))
            result = _coerce_generation(data, project_type)
            if not result.files:
                raise FileTreeError("generated project contains no files")
            return result
        except _ABSORBED as exc:
            print_warning(f"Generation failed, using the default {project_type!r} template: {exc}")
            return default_project_structure(project_type)

    async def enhance_project(
        self,
        current_files: Sequence[FileNode],
        message: str,
        project_type: str,
    ) -> tuple[list[FileNode], bool]:
        """Ask the oracle for the updated tree.

        Returns:
            ``(files, used_fallback)``. On failure ``files`` is a deep copy of
            *current_files* and ``used_fallback`` is ``True``.
        """
        try:
            data = await self.oracle.complete_json(
                build_enhance_prompt(current_files, message, project_type)
            )
            return _coerce_enhancement(data), False
        except _ABSORBED as exc:
            print_warning(f"Enhancement failed, keeping the current files: {exc}")
            return copy_tree(current_files), True


def _coerce_generation(data: Any, project_type: str) -> GenerationResult:
    if isinstance(data, list):
        # A bare file list is still a usable generation answer.
        return GenerationResult(project_type=project_type, files=data)
    if not isinstance(data, dict):
        raise FileTreeError("generation answer is neither an object nor a file list")
    payload = dict(data)
    if not payload.get("type"):
        payload["type"] = project_type
    return GenerationResult.model_validate(payload)


def _coerce_enhancement(data: Any) -> list[FileNode]:
    """Accept either a bare node list or an object carrying ``files``."""
    if isinstance(data, list):
        raw = data
    elif isinstance(data, dict) and isinstance(data.get("files"), list):
        raw = data["files"]
    else:
        raise FileTreeError("enhancement answer carries no file list")
    files = parse_tree(raw)
    if not files:
        raise FileTreeError("enhancement answer is an empty file list")
    return files
