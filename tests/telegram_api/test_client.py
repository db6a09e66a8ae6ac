"""
Tests for the Bot API client.

============================================================
PURPOSE
============================================================
Verify request shape, response parsing and error taxonomy.

TEST PRINCIPLES:
- A local aiohttp TestServer plays the Bot API
- Every failure must leave as a categorised TransportError

============================================================
"""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.exceptions import (
    ErrorClassification,
    TransportError,
    TransportErrorCategory,
    classify_transport_error,
)
from telegram_api.client import TelegramClient, classify_api_error
from telegram_api.models import BotCommand, ParseMode, Update, parse_updates


TOKEN = "123:abc"


class FakeBotAPI:
    """Scriptable stand-in for the Bot API."""

    def __init__(self):
        self.requests = []
        self.responses = {}

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/{bot}/{method}", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.Response:
        method = request.match_info["method"]
        self.requests.append((request.match_info["bot"], method, await request.json()))
        status, body = self.responses.get(method, (200, {"ok": True, "result": True}))
        return web.json_response(body, status=status)


@pytest.fixture
def bot_api():
    return FakeBotAPI()


# ============================================================
# CLASSIFICATION
# ============================================================

class TestClassifyApiError:
    """Tests for mapping API answers to categories."""

    @pytest.mark.parametrize(
        "status,description,category",
        [
            (429, "Too Many Requests: retry after 5", TransportErrorCategory.RATE_LIMITED),
            (401, "Unauthorized", TransportErrorCategory.UNAUTHORIZED),
            (404, "Not Found", TransportErrorCategory.UNAUTHORIZED),
            (403, "Forbidden: bot was blocked by the user", TransportErrorCategory.DESTINATION_INVALID),
            (400, "Bad Request: chat not found", TransportErrorCategory.DESTINATION_INVALID),
            (400, "Bad Request: message text is empty", TransportErrorCategory.UNKNOWN),
            (502, "Bad Gateway", TransportErrorCategory.SERVER_ERROR),
        ],
    )
    def test_categories(self, status, description, category):
        body = {"ok": False, "error_code": status, "description": description}

        assert classify_api_error("sendMessage", status, body).category == category

    def test_retry_after_carried(self):
        body = {
            "ok": False,
            "error_code": 429,
            "description": "Too Many Requests",
            "parameters": {"retry_after": 7},
        }

        error = classify_api_error("sendMessage", 429, body)

        assert error.retry_after == 7
        assert error.is_transient

    def test_permanent_categories_not_transient(self):
        error = classify_api_error("sendMessage", 403, {"description": "Forbidden"})

        assert error.classification == ErrorClassification.NON_RECOVERABLE

    def test_raw_exceptions(self):
        assert classify_transport_error(TimeoutError()).category == TransportErrorCategory.NETWORK
        assert classify_transport_error(ConnectionRefusedError()).category == TransportErrorCategory.NETWORK
        assert classify_transport_error(ValueError("?")).category == TransportErrorCategory.UNKNOWN


# ============================================================
# CLIENT
# ============================================================

class TestTelegramClient:
    """Tests against a local Bot API."""

    @pytest.mark.asyncio
    async def test_send_message(self, bot_api):
        async with TestServer(bot_api.app()) as server:
            client = TelegramClient(TOKEN, api_url=str(server.make_url("/")))
            try:
                await client.send_message("42", "*hi*", ParseMode.MARKDOWN)
            finally:
                await client.close()

        [(bot, method, body)] = bot_api.requests
        assert bot == f"bot{TOKEN}"
        assert method == "sendMessage"
        assert body == {
            "chat_id": "42",
            "text": "*hi*",
            "disable_web_page_preview": True,
            "parse_mode": "Markdown",
        }

    @pytest.mark.asyncio
    async def test_get_updates(self, bot_api):
        bot_api.responses["getUpdates"] = (200, {
            "ok": True,
            "result": [
                {"update_id": 8, "message": {"chat": {"id": -5}, "text": "/metrics"}},
                {"update_id": 7, "channel_post": {"chat": {"id": 9}, "text": "/start"}},
                {"update_id": 9, "edited_message": {"chat": {"id": 1}}},
            ],
        })

        async with TestServer(bot_api.app()) as server:
            client = TelegramClient(TOKEN, api_url=str(server.make_url("/")))
            try:
                updates = await client.get_updates(offset=7, timeout=0)
            finally:
                await client.close()

        assert [u.update_id for u in updates] == [7, 8, 9]
        assert updates[0].message.chat_id == "9"
        assert updates[1].message.text == "/metrics"
        assert updates[2].message is None
        assert bot_api.requests[0][2]["offset"] == 7

    @pytest.mark.asyncio
    async def test_error_body_raises_classified(self, bot_api):
        bot_api.responses["sendMessage"] = (400, {
            "ok": False,
            "error_code": 400,
            "description": "Bad Request: chat not found",
        })

        async with TestServer(bot_api.app()) as server:
            client = TelegramClient(TOKEN, api_url=str(server.make_url("/")))
            try:
                with pytest.raises(TransportError) as exc_info:
                    await client.send_message("404", "x")
            finally:
                await client.close()

        assert exc_info.value.category == TransportErrorCategory.DESTINATION_INVALID
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_get_me_and_commands(self, bot_api):
        bot_api.responses["getMe"] = (200, {
            "ok": True,
            "result": {"id": 1, "is_bot": True, "username": "notifier_bot"},
        })

        async with TestServer(bot_api.app()) as server:
            client = TelegramClient(TOKEN, api_url=str(server.make_url("/")))
            try:
                bot = await client.get_me()
                await client.set_my_commands([BotCommand("metrics", "Get metrics")])
            finally:
                await client.close()

        assert bot.link == "https://t.me/notifier_bot"
        assert bot_api.requests[1][2] == {
            "commands": [{"command": "metrics", "description": "Get metrics"}]
        }

    @pytest.mark.asyncio
    async def test_unreachable_api_is_network_error(self):
        client = TelegramClient(TOKEN, api_url="http://127.0.0.1:1", request_timeout_seconds=2)
        try:
            with pytest.raises(TransportError) as exc_info:
                await client.get_me()
        finally:
            await client.close()

        assert exc_info.value.category == TransportErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_disabled_client_does_no_io(self):
        client = TelegramClient(TOKEN, api_url="http://127.0.0.1:1", enabled=False)

        await client.send_message("42", "hi")
        assert await client.get_updates(0, 30) == []
        assert (await client.get_me()).username == "disabled"
        await client.close()


class TestUpdateParsing:
    """Tests for raw update parsing."""

    def test_parse_sorts(self):
        updates = parse_updates([{"update_id": 3}, {"update_id": 1}])

        assert [u.update_id for u in updates] == [1, 3]

    def test_sender_username(self):
        update = Update.from_api({
            "update_id": 1,
            "message": {"chat": {"id": 5, "type": "private"}, "from": {"username": "dev"}, "text": "/identify"},
        })

        assert update.message.from_username == "dev"
        assert update.message.chat_type == "private"
