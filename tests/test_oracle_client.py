"""Unit tests for OracleClient (peaks.oracle_client).

Tests cover:
- parse_oracle_json extraction strategies
- OracleClient.complete (success, remote error, malformed envelope)
- Retry policy: 5xx / 429 / network errors retried, 4xx not retried
- Backoff delays
- OracleClient.complete_json
- OracleClient.is_available
"""

from __future__ import annotations

import json

import httpx
import pytest

from peaks.config import OracleConfig
from peaks.oracle_client import (
    OracleClient,
    OracleMalformedResponseError,
    OracleRemoteError,
    OracleTransportError,
    OracleUnavailableError,
    parse_oracle_json,
)


# ---------------------------------------------------------------------------
# parse_oracle_json
# ---------------------------------------------------------------------------


class TestParseOracleJson:
    @pytest.mark.unit
    def test_plain_json(self):
        assert parse_oracle_json('{"projectType": "Website"}') == {"projectType": "Website"}

    @pytest.mark.unit
    def test_fenced_json(self):
        text = 'Here you go:\n```json\n{"a": 1}\n```\nEnjoy!'
        assert parse_oracle_json(text) == {"a": 1}

    @pytest.mark.unit
    def test_fence_without_language(self):
        assert parse_oracle_json("```\n[1, 2]\n```") == [1, 2]

    @pytest.mark.unit
    def test_embedded_object(self):
        text = 'Sure! {"files": []} Let me know if you need more.'
        assert parse_oracle_json(text) == {"files": []}

    @pytest.mark.unit
    def test_embedded_array(self):
        text = 'Updated tree: [{"name": "a.txt", "type": "file"}] done'
        assert parse_oracle_json(text) == [{"name": "a.txt", "type": "file"}]

    @pytest.mark.unit
    def test_empty_text(self):
        with pytest.raises(OracleMalformedResponseError):
            parse_oracle_json("   ")

    @pytest.mark.unit
    def test_no_json(self):
        with pytest.raises(OracleMalformedResponseError) as exc_info:
            parse_oracle_json("I cannot help with that.")
        assert exc_info.value.raw == "I cannot help with that."


# ---------------------------------------------------------------------------
# OracleClient.complete
# ---------------------------------------------------------------------------


class TestOracleComplete:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_returns_text(self, make_oracle):
        client, fake = make_oracle(["hello world"])
        assert await client.complete("Say hello") == "hello world"
        assert fake.prompts == ["Say hello"]
        assert str(fake.requests[0].url) == client.url

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remote_error_not_retried(self, make_oracle):
        response = httpx.Response(200, json={"success": False, "error": "quota exceeded"})
        client, fake = make_oracle([response, "unused"])
        with pytest.raises(OracleRemoteError) as exc_info:
            await client.complete("prompt")
        assert exc_info.value.remote_message == "quota exceeded"
        assert fake.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_envelope_not_json(self, make_oracle):
        client, _fake = make_oracle([httpx.Response(200, text="<html>oops</html>")])
        with pytest.raises(OracleMalformedResponseError):
            await client.complete("prompt")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_envelope_without_response_text(self, make_oracle):
        client, _fake = make_oracle([httpx.Response(200, json={"success": True})])
        with pytest.raises(OracleMalformedResponseError):
            await client.complete("prompt")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error_retried_then_succeeds(self, make_oracle):
        client, fake = make_oracle([httpx.Response(502, text="bad gateway"), "recovered"])
        assert await client.complete("prompt") == "recovered"
        assert fake.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_is_retryable(self, make_oracle):
        client, fake = make_oracle([httpx.Response(429), "ok"])
        assert await client.complete("prompt") == "ok"
        assert fake.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, make_oracle):
        client, fake = make_oracle([httpx.Response(400, text="bad request"), "unused"])
        with pytest.raises(OracleTransportError) as exc_info:
            await client.complete("prompt")
        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable is False
        assert fake.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retries_exhausted(self, make_oracle):
        # max_retries=1 in the fixture config: two attempts in total.
        client, fake = make_oracle()
        with pytest.raises(OracleTransportError) as exc_info:
            await client.complete("prompt")
        assert exc_info.value.status_code == 503
        assert fake.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error_becomes_unavailable(self, make_oracle):
        client, fake = make_oracle(default=httpx.ConnectError("refused"))
        with pytest.raises(OracleUnavailableError):
            await client.complete("prompt")
        assert fake.calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable(self, make_oracle):
        client, _fake = make_oracle(default=httpx.ReadTimeout("slow"))
        with pytest.raises(OracleUnavailableError, match="timed out"):
            await client.complete("prompt")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backoff_sleeps_between_attempts(self):
        delays: list[float] = []

        async def _record(delay: float) -> None:
            delays.append(delay)

        responses = iter([httpx.Response(500), httpx.Response(500), httpx.Response(
            200, json={"success": True, "response": "done"}
        )])
        config = OracleConfig(url="https://oracle.test/chat", max_retries=2, backoff_base=0.5)
        client = OracleClient(
            config,
            transport=httpx.MockTransport(lambda request: next(responses)),
            sleep=_record,
        )
        assert await client.complete("prompt") == "done"
        assert delays == [0.5, 1.0]


class TestBackoffDelay:
    @pytest.mark.unit
    def test_exponential_and_capped(self):
        client = OracleClient(OracleConfig(backoff_base=1.0, backoff_max=5.0))
        assert client.backoff_delay(0) == 1.0
        assert client.backoff_delay(1) == 2.0
        assert client.backoff_delay(2) == 4.0
        assert client.backoff_delay(3) == 5.0


# ---------------------------------------------------------------------------
# complete_json / is_available
# ---------------------------------------------------------------------------


class TestCompleteJson:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_parses_fenced_answer(self, make_oracle):
        answer = "```json\n" + json.dumps({"projectType": "React App"}) + "\n```"
        client, _fake = make_oracle([answer])
        assert await client.complete_json("classify") == {"projectType": "React App"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_answer(self, make_oracle):
        client, _fake = make_oracle(["no json here"])
        with pytest.raises(OracleMalformedResponseError):
            await client.complete_json("classify")


class TestIsAvailable:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_any_status_counts_as_available(self, make_oracle):
        client, fake = make_oracle([httpx.Response(405)])
        assert await client.is_available() is True
        assert fake.requests[0].method == "HEAD"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unreachable(self, make_oracle):
        client, _fake = make_oracle(default=httpx.ConnectError("refused"))
        assert await client.is_available() is False
