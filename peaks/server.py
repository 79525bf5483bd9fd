"""HTTP and WebSocket surface for PEAKS.

Build the application with :func:`create_app` (tests inject an in-memory
store and a mock-transport oracle) or run it from the command line::

    python -m peaks.server --host 0.0.0.0 --port 23010 --data-dir ./data

Authentication is handled upstream; the authenticated user id arrives in the
``X-User-Id`` header (or the ``userId`` query parameter for sockets).
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from peaks import __version__
from peaks.config import Config
from peaks.controller import ChatController, EmptyMessageError, GenerationInProgressError
from peaks.export import NothingToExportError, build_archive, ensure_exportable, render_preview
from peaks.export.archive import archive_root
from peaks.filetree import FileNode, FileTreeError, parse_tree, tree_payload
from peaks.generation import GenerationService, MergeEngine
from peaks.oracle_client import OracleClient
from peaks.realtime import ProjectHub, error_event, message_event, typing_event
from peaks.storage import (
    AccessDeniedError,
    JsonProjectStore,
    NotFoundError,
    ensure_owner,
    ensure_readable,
)
from peaks.utils import print_error, print_summary_table, print_warning


ANONYMOUS_CHAT_REPLY = "I'm working on your request..."


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectCreate(_Body):
    name: str = Field(..., min_length=1)
    description: str = ""
    type: str = "Web Application"
    is_public: bool = False
    files: list[FileNode] = Field(default_factory=list)

    @field_validator("files", mode="before")
    @classmethod
    def _validate_tree(cls, value: Any) -> list[FileNode]:
        return parse_tree(value if value is not None else [])


class ProjectUpdate(_Body):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    is_public: Optional[bool] = None
    files: Optional[list[FileNode]] = None

    @field_validator("files", mode="before")
    @classmethod
    def _validate_tree(cls, value: Any) -> Optional[list[FileNode]]:
        return None if value is None else parse_tree(value)


class ChatRequest(_Body):
    message: str = ""


class AnalyzeRequest(_Body):
    message: str = ""


class GenerateRequest(_Body):
    message: str = ""
    project_type: Optional[str] = None
    project_id: int


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Authenticated user id, or 401."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def optional_user(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_user_id or None


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: dict[type[Exception], int] = {
    NotFoundError: 404,
    AccessDeniedError: 403,
    NothingToExportError: 400,
    GenerationInProgressError: 409,
    EmptyMessageError: 400,
    FileTreeError: 400,
}


def status_for(exc: Exception) -> int:
    """HTTP status for a domain error, matching the nearest registered base class."""
    for klass in type(exc).__mro__:
        if klass in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[klass]
    return 500


def _install_error_handlers(app: FastAPI) -> None:
    async def _domain_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc), content={"message": str(exc)})

    for error_type in _STATUS_BY_ERROR:
        app.add_exception_handler(error_type, _domain_error)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        ]
        return JSONResponse(status_code=422, content={"message": "; ".join(problems)})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    config: Config | None = None,
    store: JsonProjectStore | None = None,
    oracle: OracleClient | None = None,
) -> FastAPI:
    """Wire store, oracle, generation and realtime hub into a FastAPI app."""
    config = config or Config()
    store = store if store is not None else JsonProjectStore(config.storage.data_dir)
    oracle = oracle or OracleClient(config.oracle)
    service = GenerationService(oracle)
    engine = MergeEngine(service, preserve_unchanged=config.preserve_unchanged_files)
    hub = ProjectHub()
    controller = ChatController(store, service, engine, hub)

    app = FastAPI(title="PEAKS", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.state.config = config
    app.state.store = store
    app.state.oracle = oracle
    app.state.hub = hub
    app.state.controller = controller

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "version": __version__}

    # -- projects -------------------------------------------------------

    @app.get("/api/projects")
    async def list_projects(user_id: str = Depends(current_user)) -> list[dict[str, Any]]:
        return [p.to_api() for p in await store.list_projects(user_id)]

    @app.post("/api/projects")
    async def create_project(body: ProjectCreate, user_id: str = Depends(current_user)) -> dict[str, Any]:
        project = await store.create_project(
            user_id,
            body.name,
            description=body.description,
            type=body.type,
            is_public=body.is_public,
            files=body.files,
        )
        return project.to_api()

    @app.get("/api/projects/{project_id}")
    async def get_project(project_id: int, user_id: str = Depends(current_user)) -> dict[str, Any]:
        project = ensure_readable(await store.get_project(project_id), user_id)
        return project.to_api()

    @app.put("/api/projects/{project_id}")
    async def update_project(
        project_id: int, body: ProjectUpdate, user_id: str = Depends(current_user)
    ) -> dict[str, Any]:
        ensure_owner(await store.get_project(project_id), user_id)
        fields = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
        if "files" in fields:
            fields["files"] = body.files
        updated = await store.update_project(project_id, **fields)
        return updated.to_api()

    @app.delete("/api/projects/{project_id}")
    async def delete_project(project_id: int, user_id: str = Depends(current_user)) -> dict[str, str]:
        ensure_owner(await store.get_project(project_id), user_id)
        await store.delete_project(project_id)
        return {"message": "Project deleted successfully"}

    # -- chat -----------------------------------------------------------

    @app.get("/api/projects/{project_id}/messages")
    async def list_messages(project_id: int, user_id: str = Depends(current_user)) -> list[dict[str, Any]]:
        ensure_readable(await store.get_project(project_id), user_id)
        return [m.to_api() for m in await store.list_messages(project_id)]

    @app.post("/api/projects/{project_id}/chat")
    async def post_chat(
        project_id: int, body: ChatRequest, user_id: str = Depends(current_user)
    ) -> dict[str, Any]:
        message = await controller.record_user_message(project_id, user_id, body.message)
        return {"message": message.to_api()}

    # -- ai ---------------------------------------------------------------

    @app.post("/api/ai/analyze")
    async def analyze(body: AnalyzeRequest, user_id: str = Depends(current_user)) -> dict[str, Any]:
        if not body.message.strip():
            raise EmptyMessageError()
        analysis = await controller.analyze(body.message)
        return analysis.model_dump(mode="json", by_alias=True)

    @app.post("/api/ai/generate")
    async def generate(body: GenerateRequest, user_id: str = Depends(current_user)) -> dict[str, Any]:
        turn = await controller.generate(body.project_id, user_id, body.message, body.project_type)
        return {"project": turn.project.to_api(), "files": tree_payload(turn.outcome.files)}

    # -- export -----------------------------------------------------------

    @app.get("/api/projects/{project_id}/download")
    async def download(project_id: int, user_id: str = Depends(current_user)) -> Response:
        project = ensure_owner(await store.get_project(project_id), user_id)
        ensure_exportable(project.files, project.name)
        root = archive_root(project.name)
        return Response(
            content=build_archive(project.files, root),
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{root}.zip"'},
        )

    @app.get("/api/projects/{project_id}/preview", response_class=HTMLResponse)
    async def preview(project_id: int, user_id: Optional[str] = Depends(optional_user)) -> HTMLResponse:
        project = ensure_readable(await store.get_project(project_id), user_id)
        return HTMLResponse(render_preview(project.files, project.type))

    # -- realtime ---------------------------------------------------------

    @app.websocket(config.server.ws_path)
    async def realtime(websocket: WebSocket) -> None:
        await websocket.accept()
        user_id = websocket.query_params.get("userId") or None
        try:
            while True:
                raw = await websocket.receive_text()
                await _handle_frame(websocket, raw, user_id, hub, controller)
        except WebSocketDisconnect:
            pass
        finally:
            await hub.leave(websocket)

    return app


# ---------------------------------------------------------------------------
# Socket frames
# ---------------------------------------------------------------------------


async def _handle_frame(
    websocket: WebSocket,
    raw: str,
    user_id: str | None,
    hub: ProjectHub,
    controller: ChatController,
) -> None:
    try:
        frame = json.loads(raw)
    except ValueError:
        await websocket.send_json(error_event("Frame is not valid JSON"))
        return
    if not isinstance(frame, dict) or "type" not in frame:
        await websocket.send_json(error_event("Frame must be an object with a 'type'"))
        return

    kind = frame["type"]
    if kind == "join_project":
        if frame.get("projectId") is None:
            await websocket.send_json(error_event("join_project requires a projectId"))
            return
        await hub.join(websocket, frame["projectId"])
    elif kind == "ai_chat":
        await _handle_chat(websocket, frame, user_id, hub, controller)
    else:
        await websocket.send_json(error_event(f"Unknown message type: {kind}"))


async def _handle_chat(
    websocket: WebSocket,
    frame: dict[str, Any],
    user_id: str | None,
    hub: ProjectHub,
    controller: ChatController,
) -> None:
    project_key = frame.get("projectId")
    content = frame.get("content")
    if project_key is None or not isinstance(content, str):
        await websocket.send_json(error_event("ai_chat requires projectId and content"))
        return

    if user_id is None:
        # Unauthenticated sockets only get the acknowledgement.
        await hub.broadcast(project_key, typing_event(True))
        await hub.broadcast(project_key, typing_event(False))
        await hub.broadcast(project_key, message_event(ANONYMOUS_CHAT_REPLY))
        return

    try:
        await controller.send_message(
            int(project_key), user_id, content, frame.get("projectType") or None
        )
    except (ValueError, NotFoundError, AccessDeniedError, GenerationInProgressError) as exc:
        await websocket.send_json(error_event(str(exc)))
    except Exception as exc:  # noqa: BLE001
        # Already reported to the room by the controller; keep the socket open.
        print_error(f"ai_chat failed for project {project_key}: {exc}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Run the service under uvicorn."""
    import uvicorn

    parser = argparse.ArgumentParser(prog="peaks", description="PEAKS AI project builder service")
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Bind port")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory for persisted projects")
    args = parser.parse_args(argv)

    config = Config.from_env()
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.data_dir:
        config.storage.data_dir = args.data_dir
    config.ensure_directories()

    oracle = OracleClient(config.oracle)
    reachable = asyncio.run(oracle.is_available())
    if not reachable:
        print_warning(f"Oracle at {config.oracle.url} is not reachable; generation will use defaults")

    print_summary_table(
        {
            "Version": __version__,
            "Listening": f"http://{config.server.host}:{config.server.port}",
            "WebSocket": config.server.ws_path,
            "Data dir": str(config.storage.data_dir),
            "Oracle": config.oracle.url,
            "Oracle reachable": "yes" if reachable else "no",
            "Preserve unchanged files": str(config.preserve_unchanged_files),
        },
        title="PEAKS",
    )

    app = create_app(config, oracle=oracle)
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
