# SPDX-License-Identifier: Apache-2.0
"""Tests for the retrying HTTP transport."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from translation_engine.errors import TranslatorError
from translation_engine.transport import (
    Transport,
    TransportError,
    TransportResponse,
    default_status_ok,
)

from conftest import make_response, make_session

URL = "https://api.example.com/translate"


class TestTransportError:
    """Tests for TransportError."""

    def test_inherits_from_translator_error(self) -> None:
        assert issubclass(TransportError, TranslatorError)

    def test_5xx_is_retryable_by_default(self) -> None:
        assert TransportError("boom", status=503).retryable is True

    def test_4xx_is_not_retryable_by_default(self) -> None:
        assert TransportError("nope", status=404).retryable is False

    def test_no_status_is_not_retryable_unless_flagged(self) -> None:
        assert TransportError("odd").retryable is False
        assert TransportError("down", retryable=True).retryable is True

    def test_default_status_ok(self) -> None:
        assert default_status_ok(200)
        assert default_status_ok(204)
        assert not default_status_ok(301)
        assert not default_status_ok(500)


class TestSend:
    """Tests for Transport.send."""

    @pytest.mark.asyncio
    async def test_decodes_json_response(self) -> None:
        """JSON content types are decoded."""
        session = make_session(make_response(data={"result": "ok"}))
        transport = Transport(session=session)

        response = await transport.send(URL)

        assert isinstance(response, TransportResponse)
        assert response.data == {"result": "ok"}
        assert response.status == 200
        assert response.status_text == "OK"

    @pytest.mark.asyncio
    async def test_returns_text_for_other_content_types(self) -> None:
        session = make_session(make_response(text="plain body", content_type="text/plain"))
        transport = Transport(session=session)

        response = await transport.send(URL)

        assert response.data == "plain body"

    @pytest.mark.asyncio
    async def test_post_encodes_body_and_merges_headers(self) -> None:
        """Body is JSON encoded; per-call headers override defaults."""
        session = make_session(make_response(data={}))
        transport = Transport(session=session, default_headers={"X-Client": "engine"})

        await transport.post(URL, {"text": "héllo"}, headers={"Authorization": "Bearer k"})

        args, kwargs = session.request.call_args
        assert args == ("POST", URL)
        assert json.loads(kwargs["data"]) == {"text": "héllo"}
        assert kwargs["headers"] == {
            "Content-Type": "application/json",
            "X-Client": "engine",
            "Authorization": "Bearer k",
        }

    @pytest.mark.asyncio
    async def test_string_body_sent_verbatim(self) -> None:
        session = make_session(make_response(data={}))
        transport = Transport(session=session)

        await transport.post(URL, "raw=1")

        assert session.request.call_args.kwargs["data"] == "raw=1"

    @pytest.mark.asyncio
    async def test_get_never_sends_body(self) -> None:
        session = make_session(make_response(data={}))
        transport = Transport(session=session)

        await transport.send(URL, method="get", body={"ignored": True}, params={"q": "x"})

        args, kwargs = session.request.call_args
        assert args[0] == "GET"
        assert kwargs["data"] is None
        assert kwargs["params"] == {"q": "x"}

    @pytest.mark.asyncio
    async def test_each_attempt_gets_its_own_timeout(self) -> None:
        session = make_session(make_response(data={}))
        transport = Transport(session=session, timeout=12.0)

        await transport.get(URL)

        timeout = session.request.call_args.kwargs["timeout"]
        assert isinstance(timeout, aiohttp.ClientTimeout)
        assert timeout.total == 12.0

    @pytest.mark.asyncio
    async def test_custom_status_predicate(self) -> None:
        """is_status_ok decides which statuses succeed."""
        session = make_session(make_response(status=404, data={"missing": True}))
        transport = Transport(session=session)

        response = await transport.get(URL, is_status_ok=lambda status: status < 500)

        assert response.status == 404
        assert response.data == {"missing": True}


class TestRetry:
    """Tests for retry and exponential backoff."""

    @pytest.mark.asyncio
    async def test_retries_5xx_until_success(self) -> None:
        """Two 503s then a 200 succeed after exactly three attempts."""
        session = make_session(
            make_response(status=503, reason="Service Unavailable"),
            make_response(status=503, reason="Service Unavailable"),
            make_response(data={"result": "done"}),
        )
        transport = Transport(session=session)

        with patch("translation_engine.transport.asyncio.sleep", new_callable=AsyncMock) as sleep:
            response = await transport.send(URL, retries=2, retry_delay=1.0)

        assert response.data == {"result": "done"}
        assert session.request.call_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_4xx_fails_after_one_attempt(self) -> None:
        """A 401 is not retried."""
        session = make_session(
            make_response(status=401, reason="Unauthorized", data={"error": "bad key"}),
            make_response(data={}),
        )
        transport = Transport(session=session)

        with patch("translation_engine.transport.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(TransportError) as exc_info:
                await transport.send(URL, retries=2)

        assert session.request.call_count == 1
        sleep.assert_not_awaited()
        assert exc_info.value.status == 401
        assert exc_info.value.body == {"error": "bad key"}
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_raises_last_error_when_retries_exhausted(self) -> None:
        session = make_session(
            make_response(status=500),
            make_response(status=502),
            make_response(status=503),
        )
        transport = Transport(session=session)

        with patch("translation_engine.transport.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TransportError) as exc_info:
                await transport.send(URL, retries=2)

        assert session.request.call_count == 3
        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self) -> None:
        session = make_session(
            aiohttp.ClientConnectionError("refused"),
            make_response(data={"ok": True}),
        )
        transport = Transport(session=session)

        with patch("translation_engine.transport.asyncio.sleep", new_callable=AsyncMock):
            response = await transport.send(URL, retries=1)

        assert response.data == {"ok": True}
        assert session.request.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout_becomes_network_error(self) -> None:
        session = make_session(asyncio.TimeoutError(), asyncio.TimeoutError())
        transport = Transport(session=session)

        with patch("translation_engine.transport.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TransportError) as exc_info:
                await transport.send(URL, retries=1, timeout=3.0)

        assert session.request.call_count == 2
        assert exc_info.value.status is None
        assert exc_info.value.retryable is True
        assert "timeout" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self) -> None:
        session = make_session(make_response(status=503), make_response(data={}))
        transport = Transport(session=session)

        with pytest.raises(TransportError):
            await transport.send(URL, retries=0)

        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_undecodable_5xx_body_is_retried(self) -> None:
        """A body that is not valid UTF-8 still fails with TransportError after every retry."""
        attempts = 0

        async def handler(request: web.Request) -> web.Response:
            nonlocal attempts
            attempts += 1
            return web.Response(
                status=503, body=b"\xff\xfe\xfa", content_type="text/plain", charset="utf-8"
            )

        app = web.Application()
        app.router.add_get("/", handler)
        transport = Transport()
        try:
            async with test_utils.TestServer(app) as server:
                with pytest.raises(TransportError) as exc_info:
                    await transport.get(str(server.make_url("/")), retries=2, retry_delay=0.0)
        finally:
            await transport.close()

        assert attempts == 3
        assert exc_info.value.status == 503
        assert "\ufffd" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_body_decoded_leniently(self) -> None:
        response = make_response(text="ok", content_type="text/plain")
        transport = Transport(session=make_session(response))

        await transport.get(URL)

        inner = await response.__aenter__()
        inner.text.assert_awaited_once_with(errors="replace")


class TestLifecycle:
    """Tests for connection checks and session ownership."""

    @pytest.mark.asyncio
    async def test_check_connection_true(self) -> None:
        transport = Transport(session=make_session(make_response(text="", content_type="text/html")))
        assert await transport.check_connection() is True

    @pytest.mark.asyncio
    async def test_check_connection_false_without_retry(self) -> None:
        session = make_session(aiohttp.ClientConnectionError("down"), make_response())
        transport = Transport(session=session)

        assert await transport.check_connection("https://example.com") is False
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_close_leaves_injected_session_open(self) -> None:
        session = make_session()
        transport = Transport(session=session)

        await transport.close()

        session.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_closes_owned_session(self) -> None:
        owned = make_session(make_response(data={}))
        with patch("translation_engine.transport.aiohttp.ClientSession", return_value=owned):
            transport = Transport()
            await transport.get(URL)
            await transport.close()

        owned.close.assert_awaited_once()

    def test_set_defaults(self) -> None:
        transport = Transport()
        transport.set_default_headers({"X-Test": "1"})
        transport.set_default_timeout(7.5)

        assert transport._default_headers == {"X-Test": "1"}
        assert transport._timeout == 7.5
