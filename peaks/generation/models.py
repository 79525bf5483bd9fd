"""Pydantic v2 models for oracle answers.

Oracle output is untrusted text, so every answer is validated into one of
these models at the boundary. Field aliases accept the camelCase keys the
oracle is asked to produce while the Python side uses snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from peaks.filetree import FileNode, parse_tree


FALLBACK_PROJECT_TYPE = "Web Application"
FALLBACK_ANALYSIS = "Creating a basic web application based on your request"


class Complexity(str, Enum):
    """Estimated size of the requested project."""
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class ProjectAnalysis(BaseModel):
    """Classification of a free-text project request."""

    model_config = ConfigDict(populate_by_name=True)

    project_type: str = Field(default=FALLBACK_PROJECT_TYPE, alias="projectType")
    analysis: str = Field(default=FALLBACK_ANALYSIS)
    complexity: Complexity = Field(default=Complexity.MEDIUM)
    used_fallback: bool = Field(default=False, exclude=True)

    @field_validator("project_type", "analysis", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return FALLBACK_PROJECT_TYPE if info.field_name == "project_type" else FALLBACK_ANALYSIS
        return value

    @field_validator("complexity", mode="before")
    @classmethod
    def _unknown_complexity(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in {c.value for c in Complexity}:
            return value.strip().lower()
        return Complexity.MEDIUM

    @classmethod
    def fallback(cls) -> "ProjectAnalysis":
        """The deterministic answer used whenever classification fails."""
        return cls(used_fallback=True)


class ProjectCommands(BaseModel):
    """Shell commands for working with a generated project."""
    install: Optional[str] = None
    dev: Optional[str] = None
    build: Optional[str] = None


class GenerationResult(BaseModel):
    """A generated project structure (transient, reduced to ``files`` on merge)."""

    model_config = ConfigDict(populate_by_name=True)

    project_type: str = Field(default=FALLBACK_PROJECT_TYPE, alias="type")
    name: str = Field(default="")
    description: str = Field(default="")
    files: list[FileNode] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    commands: ProjectCommands = Field(default_factory=ProjectCommands)
    used_fallback: bool = Field(default=False, exclude=True)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("files", mode="before")
    @classmethod
    def _validate_tree(cls, value: Any) -> list[FileNode]:
        return parse_tree(value)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _dependencies_list(cls, value: Any) -> Any:
        # Some answers use {"package": "version"} instead of a list.
        if isinstance(value, dict):
            return list(value)
        if value is None:
            return []
        return value

    @field_validator("commands", mode="before")
    @classmethod
    def _commands_object(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ProjectCommands)) else {}
