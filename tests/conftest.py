"""Shared pytest fixtures for the PEAKS test suite.

Provides reusable fixtures for:
- Sample file trees (website, nested folders)
- A fake oracle built on ``httpx.MockTransport``
- In-memory and on-disk project stores, and an app config
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from peaks.config import Config, OracleConfig, StorageConfig
from peaks.filetree import FileNode, parse_tree
from peaks.generation import GenerationService, MergeEngine
from peaks.oracle_client import OracleClient
from peaks.storage import JsonProjectStore


ORACLE_URL = "https://oracle.test/api/claude-chat"


# ---------------------------------------------------------------------------
# Sample trees
# ---------------------------------------------------------------------------

WEBSITE_TREE: list[dict[str, Any]] = [
    {
        "name": "index.html",
        "type": "file",
        "content": (
            "<!DOCTYPE html>\n<html>\n<head>\n"
            '  <link rel="stylesheet" href="style.css">\n'
            "</head>\n<body>\n  <h1>Hello</h1>\n"
            '  <script src="script.js"></script>\n'
            "</body>\n</html>"
        ),
    },
    {"name": "style.css", "type": "file", "content": "h1 { color: red; }"},
    {"name": "script.js", "type": "file", "content": "console.log('hi');"},
]

NESTED_TREE: list[dict[str, Any]] = [
    {"name": "README.md", "type": "file", "content": "# Demo\n"},
    {
        "name": "src",
        "type": "folder",
        "children": [
            {"name": "main.py", "type": "file", "content": "print('hello')\n"},
            {
                "name": "lib",
                "type": "folder",
                "children": [
                    {"name": "util.py", "type": "file", "content": "def add(a, b):\n    return a + b\n"},
                ],
            },
        ],
    },
    {"name": "empty", "type": "folder", "children": []},
]


@pytest.fixture
def website_tree() -> list[FileNode]:
    """Three-file static website."""
    return parse_tree(json.loads(json.dumps(WEBSITE_TREE)))


@pytest.fixture
def nested_tree() -> list[FileNode]:
    """Tree with nested and empty folders."""
    return parse_tree(json.loads(json.dumps(NESTED_TREE)))


# ---------------------------------------------------------------------------
# Fake oracle
# ---------------------------------------------------------------------------

def oracle_envelope(payload: Any, *, success: bool = True, error: str | None = None) -> dict[str, Any]:
    """Wrap *payload* the way the oracle endpoint does.

    Non-string payloads are JSON encoded into the ``response`` text.
    """
    if not success:
        return {"success": False, "error": error or "Oracle failure"}
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {"success": True, "response": text}


class FakeOracle:
    """Scripted oracle endpoint for ``httpx.MockTransport``.

    ``answers`` is consumed in order; each item is either an
    ``httpx.Response``, an exception instance to raise, or a payload passed
    through :func:`oracle_envelope`. Once exhausted, ``default`` is used.
    Every request body is recorded in ``prompts``.
    """

    def __init__(self, answers: list[Any] | None = None, default: Any = None) -> None:
        self.answers = list(answers or [])
        self.default = default
        self.prompts: list[str] = []
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            self.prompts.append(json.loads(request.content)["message"])
        answer = self.answers.pop(0) if self.answers else self.default
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        if answer is None:
            return httpx.Response(503, text="oracle down")
        return httpx.Response(200, json=oracle_envelope(answer))

    @property
    def calls(self) -> int:
        return len(self.requests)


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def oracle_config() -> OracleConfig:
    """Oracle settings with a fast, bounded retry policy."""
    return OracleConfig(url=ORACLE_URL, max_retries=1, backoff_base=0.0)


@pytest.fixture
def make_oracle(oracle_config: OracleConfig) -> Callable[..., tuple[OracleClient, FakeOracle]]:
    """Factory returning ``(client, fake)`` for a scripted oracle.

    Usage:
        def test_something(make_oracle):
            client, fake = make_oracle([{"projectType": "Website"}])
    """

    def _factory(answers: list[Any] | None = None, default: Any = None) -> tuple[OracleClient, FakeOracle]:
        fake = FakeOracle(answers, default)
        client = OracleClient(oracle_config, transport=httpx.MockTransport(fake), sleep=_no_sleep)
        return client, fake

    return _factory


@pytest.fixture
def down_oracle(make_oracle) -> OracleClient:
    """Oracle that always answers HTTP 503."""
    client, _fake = make_oracle()
    return client


@pytest.fixture
def make_engine(make_oracle) -> Callable[..., tuple[MergeEngine, FakeOracle]]:
    """Factory returning ``(engine, fake)`` for a scripted oracle."""

    def _factory(
        answers: list[Any] | None = None,
        default: Any = None,
        preserve_unchanged: bool = True,
    ) -> tuple[MergeEngine, FakeOracle]:
        client, fake = make_oracle(answers, default)
        return MergeEngine(GenerationService(client), preserve_unchanged=preserve_unchanged), fake

    return _factory


# ---------------------------------------------------------------------------
# Stores & config
# ---------------------------------------------------------------------------

@pytest.fixture
def store() -> JsonProjectStore:
    """Purely in-memory project store."""
    return JsonProjectStore()


@pytest.fixture
def disk_store(tmp_path: Path) -> JsonProjectStore:
    """Project store persisted under a temp directory."""
    return JsonProjectStore(tmp_path / "data")


@pytest.fixture
def app_config(tmp_path: Path, oracle_config: OracleConfig) -> Config:
    """Config pointing at a temp data directory and the fake oracle URL."""
    return Config(oracle=oracle_config, storage=StorageConfig(data_dir=tmp_path / "data"))
