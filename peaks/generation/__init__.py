"""Project generation: prompts, oracle-backed service, fallbacks and merging.

Usage::

    from peaks.generation import GenerationService, MergeEngine

    engine = MergeEngine(GenerationService(oracle))
    outcome = await engine.merge(project.files, "Add a contact page", "Website")
"""

from peaks.generation.defaults import default_project_structure
from peaks.generation.merge import MergeEngine, MergeFlow, MergeOutcome
from peaks.generation.models import (
    Complexity,
    GenerationResult,
    ProjectAnalysis,
    ProjectCommands,
)
from peaks.generation.service import GenerationService

__all__ = [
    "Complexity",
    "GenerationResult",
    "GenerationService",
    "MergeEngine",
    "MergeFlow",
    "MergeOutcome",
    "ProjectAnalysis",
    "ProjectCommands",
    "default_project_structure",
]
