"""Chat / project state controller.

Drives one "send message" action through its states::

    IDLE -> CLASSIFYING -> GENERATING -> IDLE

1. The user's text is appended to the chat log.
2. The request is classified (with the generic fallback on failure).
3. The merge engine runs the create or enhance flow.
4. The project's files are replaced, then the AI summary is appended.

At most one generation may be in flight per project; a submission arriving
while the project is not idle is rejected, not queued. The guard is a plain
per-project state flag: requests for one project are serialised through a
single user-facing input, so no lock is needed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from peaks.generation import GenerationService, MergeEngine, MergeFlow, MergeOutcome, ProjectAnalysis
from peaks.realtime import ProjectHub, error_event, message_event, typing_event
from peaks.storage import ChatMessage, JsonProjectStore, Project, Sender, ensure_owner
from peaks.utils import print_error, print_success


class GenerationInProgressError(Exception):
    """Raised when a project already has a generation in flight."""

    def __init__(self, project_id: int) -> None:
        self.project_id = project_id
        super().__init__(f"A generation is already running for project {project_id}")


class EmptyMessageError(ValueError):
    """Raised when a chat submission has no text."""

    def __init__(self) -> None:
        super().__init__("Message is required")


class ControllerState(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    GENERATING = "generating"


class GenerationTurn(BaseModel):
    """Everything one completed generation cycle produced."""
    project: Project
    outcome: MergeOutcome
    analysis: ProjectAnalysis | None = None
    user_message: ChatMessage | None = None
    ai_message: ChatMessage


def summarize_outcome(outcome: MergeOutcome) -> str:
    """AI chat text describing a merge outcome."""
    if outcome.flow is MergeFlow.ENHANCE and outcome.used_fallback:
        return (
            f"I couldn't apply those changes to your {outcome.project_type} right now, "
            "so your project was left unchanged. Please try again."
        )
    if outcome.flow is MergeFlow.CREATE and outcome.used_fallback:
        return (
            f"I've created your {outcome.project_type} with default starter files. "
            "You can keep chatting to customise it."
        )
    verb = "enhanced" if outcome.flow is MergeFlow.ENHANCE else "created"
    return (
        f"I've {verb} your {outcome.project_type}! "
        "The project structure has been updated with new files and functionality."
    )


def _outcome_metadata(outcome: MergeOutcome, analysis: ProjectAnalysis | None) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "flow": outcome.flow.value,
        "projectType": outcome.project_type,
        "usedFallback": outcome.used_fallback,
        "added": outcome.added_paths,
        "removed": outcome.removed_paths,
        "modified": outcome.modified_paths,
        "preserved": outcome.preserved_paths,
    }
    if analysis is not None:
        metadata["analysis"] = analysis.analysis
        metadata["complexity"] = analysis.complexity.value
    return metadata


class ChatController:
    """Orchestrates classify -> generate/enhance -> persist -> notify."""

    def __init__(
        self,
        store: JsonProjectStore,
        service: GenerationService,
        engine: MergeEngine,
        hub: ProjectHub | None = None,
    ) -> None:
        self.store = store
        self.service = service
        self.engine = engine
        self.hub = hub or ProjectHub()
        self._states: dict[int, ControllerState] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def state_of(self, project_id: int) -> ControllerState:
        return self._states.get(project_id, ControllerState.IDLE)

    def is_busy(self, project_id: int) -> bool:
        return self.state_of(project_id) is not ControllerState.IDLE

    def _begin(self, project_id: int, state: ControllerState) -> None:
        if self.is_busy(project_id):
            raise GenerationInProgressError(project_id)
        self._states[project_id] = state

    def _finish(self, project_id: int) -> None:
        self._states.pop(project_id, None)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def analyze(self, message: str) -> ProjectAnalysis:
        """Classify free text; never fails (falls back to a generic analysis)."""
        return await self.service.analyze_request(message)

    async def record_user_message(self, project_id: int, user_id: str, content: str) -> ChatMessage:
        """Append a user message without starting a generation."""
        if not content or not content.strip():
            raise EmptyMessageError()
        ensure_owner(await self.store.get_project(project_id), user_id)
        return await self.store.append_message(project_id, Sender.USER, content)

    async def send_message(
        self,
        project_id: int,
        user_id: str,
        content: str,
        project_type: str | None = None,
    ) -> GenerationTurn:
        """Run the full chat cycle for one user submission.

        *project_type* overrides the classified type when the caller already
        knows it.

        Raises:
            EmptyMessageError: *content* is blank.
            NotFoundError / AccessDeniedError: unknown project or not the owner.
            GenerationInProgressError: the project is not idle.
        """
        if not content or not content.strip():
            raise EmptyMessageError()
        project = ensure_owner(await self.store.get_project(project_id), user_id)

        self._begin(project_id, ControllerState.CLASSIFYING)
        try:
            user_message = await self.store.append_message(project_id, Sender.USER, content)
            await self.hub.broadcast(project_id, typing_event(True))
            analysis = await self.analyze(content)

            self._states[project_id] = ControllerState.GENERATING
            return await self._generate(
                project, content, project_type or analysis.project_type, analysis, user_message
            )
        finally:
            self._finish(project_id)

    async def generate(
        self,
        project_id: int,
        user_id: str,
        message: str,
        project_type: str | None = None,
    ) -> GenerationTurn:
        """Run only the generation step (create or enhance) for *project_id*.

        Used when the caller has already classified the request. Defaults the
        project type to the project's current type label.
        """
        if not message or not message.strip():
            raise EmptyMessageError()
        project = ensure_owner(await self.store.get_project(project_id), user_id)

        self._begin(project_id, ControllerState.GENERATING)
        try:
            await self.hub.broadcast(project_id, typing_event(True))
            return await self._generate(project, message, project_type or project.type)
        finally:
            self._finish(project_id)

    async def _generate(
        self,
        project: Project,
        message: str,
        project_type: str,
        analysis: ProjectAnalysis | None = None,
        user_message: ChatMessage | None = None,
    ) -> GenerationTurn:
        try:
            outcome = await self.engine.merge(project.files, message, project_type)
            updated = await self.store.update_project(
                project.id, files=outcome.files, type=project_type
            )
            summary = summarize_outcome(outcome)
            ai_message = await self.store.append_message(
                project.id, Sender.AI, summary, _outcome_metadata(outcome, analysis)
            )
        except Exception as exc:
            print_error(f"Generation for project {project.id} failed: {exc}")
            await self.hub.broadcast(project.id, typing_event(False))
            await self.hub.broadcast(project.id, error_event("Unable to generate project. Please try again."))
            raise

        await self.hub.broadcast(project.id, typing_event(False))
        await self.hub.broadcast(project.id, message_event(summary))
        print_success(
            f"Project {project.id}: {outcome.flow.value} flow finished "
            f"({len(outcome.added_paths)} added, {len(outcome.modified_paths)} modified, "
            f"{len(outcome.removed_paths)} removed)"
        )
        return GenerationTurn(
            project=updated,
            outcome=outcome,
            analysis=analysis,
            user_message=user_message,
            ai_message=ai_message,
        )
