"""Async client for the remote text-generation endpoint (the "oracle").

The oracle is an opaque prompt -> text function reached over HTTP: the client
POSTs ``{"message": prompt}`` and receives ``{"success": bool, "response":
str, "error": str}``. This module turns every way that exchange can go wrong
into a typed exception, adds an explicit timeout and a bounded
retry-with-backoff policy, and offers ``parse_oracle_json`` for call sites
that expect JSON inside the returned text.

Typical usage::

    client = OracleClient(config.oracle)
    text = await client.complete("Describe a todo app as JSON")
    data = parse_oracle_json(text)
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from peaks.config import OracleConfig
from peaks.utils import print_warning, truncate


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class OracleError(Exception):
    """Base class for every oracle failure."""


class OracleTransportError(OracleError):
    """The oracle answered with a non-2xx HTTP status."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        message = f"Oracle returned HTTP {status_code}"
        if detail:
            message += f": {truncate(detail, 300)}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500 or self.status_code == 429


class OracleRemoteError(OracleError):
    """The oracle answered well-formed JSON with ``success: false``."""

    def __init__(self, message: str) -> None:
        self.remote_message = message
        super().__init__(f"Oracle reported failure: {message}")


class OracleUnavailableError(OracleError):
    """The oracle could not be reached (connection refused, DNS, timeout)."""


class OracleMalformedResponseError(OracleError):
    """Text returned by the oracle (or its envelope) is not the expected JSON."""

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def parse_oracle_json(text: str) -> Any:
    """Parse the JSON document contained in an oracle answer.

    Language models often wrap JSON in prose or Markdown fences, so several
    strategies are tried in order:

    1. Direct ``json.loads`` of the stripped text.
    2. The body of the first fenced code block.
    3. The outermost ``{...}`` or ``[...]`` slice of the text.

    Raises:
        OracleMalformedResponseError: If no strategy yields valid JSON.
    """
    stripped = (text or "").strip()
    if not stripped:
        raise OracleMalformedResponseError("Oracle returned an empty response", raw=text or "")

    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    match = _FENCE_RE.search(stripped)
    if match:
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            pass

    # Whichever bracket opens first is the outermost value.
    spans = []
    for opener, closer in (("{", "}"), ("[", "]")):
        start = stripped.find(opener)
        end = stripped.rfind(closer)
        if start != -1 and end > start:
            spans.append((start, end))
    for start, end in sorted(spans):
        try:
            return json.loads(stripped[start : end + 1])
        except json.JSONDecodeError:
            continue

    raise OracleMalformedResponseError(
        f"Oracle response is not valid JSON: {truncate(stripped, 120)!r}", raw=text
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class OracleClient:
    """Async client for the oracle endpoint.

    Uses ``httpx.AsyncClient`` with an explicit timeout. Retryable failures
    (network errors, timeouts, HTTP 5xx and 429) are retried up to
    ``config.max_retries`` times with exponential backoff; everything else
    propagates on the first occurrence.
    """

    def __init__(
        self,
        config: OracleConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or OracleConfig()
        self.url = self.config.url
        self._transport = transport
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our timeout."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            transport=self._transport,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number *attempt* (0-based), capped at ``backoff_max``."""
        return min(self.config.backoff_base * (2 ** attempt), self.config.backoff_max)

    @staticmethod
    def _extract_text(response: httpx.Response) -> str:
        """Unwrap the ``{success, response, error}`` envelope."""
        try:
            data = response.json()
        except ValueError as exc:
            raise OracleMalformedResponseError(
                "Oracle envelope is not JSON", raw=response.text
            ) from exc
        if not isinstance(data, dict):
            raise OracleMalformedResponseError("Oracle envelope is not an object", raw=response.text)
        if not data.get("success"):
            raise OracleRemoteError(str(data.get("error") or "Unknown error from oracle"))
        text = data.get("response")
        if not isinstance(text, str):
            raise OracleMalformedResponseError("Oracle envelope has no response text", raw=response.text)
        return text

    async def _complete_once(self, prompt: str) -> str:
        try:
            async with self._client() as client:
                response = await client.post(self.url, json={"message": prompt})
        except httpx.TimeoutException as exc:
            raise OracleUnavailableError(
                f"Request to oracle timed out after {self.config.timeout}s"
            ) from exc
        except httpx.TransportError as exc:
            raise OracleUnavailableError(f"Cannot reach oracle at {self.url}: {exc}") from exc

        if not response.is_success:
            raise OracleTransportError(response.status_code, response.text)
        return self._extract_text(response)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(self, prompt: str) -> str:
        """Send *prompt* to the oracle and return its text answer.

        Raises:
            OracleTransportError: Non-2xx status (after retries for 5xx/429).
            OracleRemoteError: The oracle reported ``success: false``.
            OracleUnavailableError: Network failure or timeout (after retries).
            OracleMalformedResponseError: The response envelope is unusable.
        """
        attempt = 0
        while True:
            try:
                return await self._complete_once(prompt)
            except (OracleUnavailableError, OracleTransportError) as exc:
                retryable = not isinstance(exc, OracleTransportError) or exc.retryable
                if not retryable or attempt >= self.config.max_retries:
                    raise
                delay = self.backoff_delay(attempt)
                print_warning(
                    f"Oracle call failed ({exc}); retry {attempt + 1}/"
                    f"{self.config.max_retries} in {delay:.1f}s"
                )
                await self._sleep(delay)
                attempt += 1

    async def complete_json(self, prompt: str) -> Any:
        """``complete`` followed by ``parse_oracle_json``."""
        return parse_oracle_json(await self.complete(prompt))

    async def is_available(self) -> bool:
        """Return ``True`` if the oracle host answers at all (any HTTP status)."""
        try:
            async with self._client() as client:
                await client.head(self.url)
                return True
        except httpx.HTTPError:
            return False
