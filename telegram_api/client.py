"""
Telegram Bot API Client.

============================================================
PURPOSE
============================================================
aiohttp adapter between the pipeline and the Bot API.

PRINCIPLES:
- One shared HTTP session
- Every failure leaves as a classified TransportError
- No retries here; retry policy belongs to the delivery queue
- Disabled mode performs no network I/O

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from core.exceptions import (
    TransportError,
    TransportErrorCategory,
    classify_transport_error,
)

from .base import ChatTransport
from .models import BotCommand, BotInfo, ParseMode, Update, parse_updates


logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://api.telegram.org"

# Descriptions the Bot API uses for dead destinations on HTTP 400
_DESTINATION_INVALID_MARKERS = (
    "chat not found",
    "user not found",
    "peer_id_invalid",
    "chat_id is empty",
    "group chat was upgraded",
)


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

def classify_api_error(
    method: str,
    status: int,
    body: Dict[str, Any],
) -> TransportError:
    """
    Map an unsuccessful Bot API answer to a TransportError.

    Args:
        method: Bot API method name
        status: HTTP status code
        body: Decoded JSON body (may be empty)
    """
    error_code = body.get("error_code", status)
    description = body.get("description") or f"HTTP {status}"
    parameters = body.get("parameters") or {}
    lowered = description.lower()

    if error_code == 429:
        category = TransportErrorCategory.RATE_LIMITED
    elif error_code in (401, 404):
        category = TransportErrorCategory.UNAUTHORIZED
    elif error_code == 403:
        category = TransportErrorCategory.DESTINATION_INVALID
    elif error_code == 400 and any(m in lowered for m in _DESTINATION_INVALID_MARKERS):
        category = TransportErrorCategory.DESTINATION_INVALID
    elif isinstance(error_code, int) and error_code >= 500:
        category = TransportErrorCategory.SERVER_ERROR
    else:
        category = TransportErrorCategory.UNKNOWN

    return TransportError(
        f"Telegram API error: {error_code} {description}",
        category=category,
        method=method,
        status_code=error_code,
        retry_after=parameters.get("retry_after"),
    )


# ============================================================
# CLIENT
# ============================================================

class TelegramClient(ChatTransport):
    """
    Bot API client.
    """

    def __init__(
        self,
        bot_token: str,
        api_url: str = DEFAULT_API_URL,
        request_timeout_seconds: float = 10.0,
        enabled: bool = True,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize client.

        Args:
            bot_token: Bot token issued by BotFather
            api_url: Bot API base URL
            request_timeout_seconds: Timeout for ordinary calls
            enabled: When False, calls are logged and skipped
            session: Optional externally managed session
        """
        self._bot_token = bot_token
        self._base_url = f"{api_url.rstrip('/')}/bot{bot_token}"
        self._request_timeout = request_timeout_seconds
        self._enabled = enabled
        self._session = session
        self._owns_session = session is None

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # --------------------------------------------------------
    # Raw request
    # --------------------------------------------------------

    async def _request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        extra_timeout: float = 0.0,
    ) -> Any:
        """
        POST a Bot API method and return its `result`.

        Raises:
            TransportError: on any failure
        """
        logger.debug(f"Sending request to Telegram API | method={method}")

        timeout = aiohttp.ClientTimeout(total=self._request_timeout + extra_timeout)
        try:
            session = await self._get_session()
            async with session.post(
                f"{self._base_url}/{method}",
                json=params or {},
                timeout=timeout,
            ) as response:
                try:
                    body = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = {}

                if response.status != 200 or not body.get("ok", False):
                    raise classify_api_error(method, response.status, body or {})

                return body.get("result")

        except TransportError:
            raise
        except asyncio.CancelledError:
            raise
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Telegram request failed: {e}",
                category=TransportErrorCategory.NETWORK,
                method=method,
                cause=e,
            ) from e
        except Exception as e:
            raise classify_transport_error(e, method=method) from e

    # --------------------------------------------------------
    # Bot API methods
    # --------------------------------------------------------

    async def send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: Optional[ParseMode] = None,
    ) -> None:
        if not self._enabled:
            logger.debug(f"Telegram disabled: skipping sendMessage to {chat_id}")
            return

        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode is not None:
            params["parse_mode"] = parse_mode.value

        await self._request("sendMessage", params)

    async def get_updates(self, offset: int, timeout: int) -> List[Update]:
        if not self._enabled:
            logger.debug("Telegram disabled: skipping getUpdates")
            return []

        result = await self._request(
            "getUpdates",
            {"offset": offset, "timeout": timeout, "allowed_updates": ["message", "channel_post"]},
            extra_timeout=float(timeout),
        )
        return parse_updates(result or [])

    async def get_me(self) -> BotInfo:
        if not self._enabled:
            return BotInfo(id=0, username="disabled")
        return BotInfo.from_api(await self._request("getMe"))

    async def set_my_commands(self, commands: Sequence[BotCommand]) -> None:
        if not self._enabled:
            logger.debug("Telegram disabled: skipping setMyCommands")
            return
        await self._request(
            "setMyCommands",
            {"commands": [command.to_api() for command in commands]},
        )
