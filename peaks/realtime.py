"""Publish/subscribe fan-out of chat events keyed by project id.

Each connected socket is joined to at most one project at a time; a broadcast
for a project reaches every socket currently joined to it and no other.
Delivery is best-effort: a socket that fails on send is dropped.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from peaks.utils import print_warning


class JsonSocket(Protocol):
    """The part of a WebSocket the hub needs."""

    async def send_json(self, data: Any) -> None: ...


def typing_event(is_typing: bool) -> dict[str, Any]:
    return {"type": "ai_typing", "isTyping": is_typing}


def message_event(content: str) -> dict[str, Any]:
    return {"type": "ai_message", "content": content}


def error_event(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


class ProjectHub:
    """Tracks which socket is joined to which project and broadcasts to them."""

    def __init__(self) -> None:
        self._rooms: dict[JsonSocket, str] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def room_key(project_id: Any) -> str:
        """Normalise a project id so ``3`` and ``"3"`` address the same room."""
        return str(project_id)

    async def join(self, socket: JsonSocket, project_id: Any) -> None:
        """Bind *socket* to *project_id*, replacing any earlier binding."""
        async with self._lock:
            self._rooms[socket] = self.room_key(project_id)

    async def leave(self, socket: JsonSocket) -> None:
        async with self._lock:
            self._rooms.pop(socket, None)

    def project_of(self, socket: JsonSocket) -> str | None:
        return self._rooms.get(socket)

    def subscribers(self, project_id: Any) -> list[JsonSocket]:
        key = self.room_key(project_id)
        return [s for s, room in self._rooms.items() if room == key]

    async def broadcast(self, project_id: Any, payload: dict[str, Any]) -> int:
        """Send *payload* to every socket joined to *project_id*.

        Returns:
            Number of sockets the payload was delivered to.
        """
        async with self._lock:
            targets = self.subscribers(project_id)
        delivered = 0
        for socket in targets:
            try:
                await socket.send_json(payload)
                delivered += 1
            except Exception as exc:  # noqa: BLE001
                print_warning(f"Dropping socket from project {project_id}: {exc}")
                await self.leave(socket)
        return delivered
