"""
Notifier HTTP API.

============================================================
PURPOSE
============================================================
Inbound surface for producers and operators.

PRINCIPLES:
- Handlers only validate and enqueue; they never wait on delivery
- Validation failures are 400 with the pydantic error list
- Unexpected failures are 500 JSON bodies without internals

============================================================
"""

import json
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web
from pydantic import BaseModel, ValidationError

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import DirectoryError, DirectoryReadOnlyError
from delivery.formatting import format_notification
from delivery.models import MessageKind, MessagePayload
from delivery.queue import DeliveryQueue
from monitoring.metrics_cache import MetricsCache
from recipients.base import RecipientDirectory
from telegram_api.models import ParseMode

from .schemas import AdminChatRequest, EnqueuedResponse, MetricsRequest, NotifyRequest


logger = logging.getLogger(__name__)


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
StatusProvider = Callable[[], Dict[str, Any]]


# ============================================================
# JSON HELPERS
# ============================================================

class NotifierEncoder(json.JSONEncoder):
    """JSON encoder for API payloads."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def json_response(data: Any, status: int = 200) -> web.Response:
    """Create JSON response."""
    return web.Response(
        text=json.dumps(data, cls=NotifierEncoder),
        status=status,
        content_type="application/json",
    )


def error_response(error: str, status: int, **extra: Any) -> web.Response:
    return json_response({"success": False, "error": error, **extra}, status=status)


async def read_json(request: web.Request) -> Any:
    """Decode the request body, raising 400 on malformed JSON."""
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise web.HTTPBadRequest(
            text=json.dumps({"success": False, "error": "Malformed JSON body"}),
            content_type="application/json",
        )


# ============================================================
# MIDDLEWARE
# ============================================================

@web.middleware
async def request_logging_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Log every request and turn unhandled errors into 500 JSON."""
    started = time.monotonic()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    except ValidationError as e:
        status = 400
        return error_response(
            "Invalid request body",
            400,
            details=e.errors(include_url=False, include_context=False),
        )
    except Exception as e:
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
        return error_response("Internal server error", 500)
    finally:
        duration_ms = (time.monotonic() - started) * 1000
        line = f"{request.method} {request.path} | status={status} | duration={duration_ms:.1f}ms"
        if status >= 400:
            logger.error(line)
        else:
            logger.info(line)


# ============================================================
# API HANDLERS
# ============================================================

class NotifierAPI:
    """
    HTTP handlers over the queue, metrics cache and directory.
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        metrics_cache: MetricsCache,
        directory: RecipientDirectory,
        clock: Optional[ClockProtocol] = None,
        default_source: str = "development",
        status_provider: Optional[StatusProvider] = None,
    ):
        self._queue = queue
        self._metrics_cache = metrics_cache
        self._directory = directory
        self._clock = clock or ClockFactory.get_clock()
        self._default_source = default_source
        self._status_provider = status_provider

    # --------------------------------------------------------
    # PRODUCER ENDPOINTS
    # --------------------------------------------------------

    async def notify(self, request: web.Request) -> web.Response:
        """
        POST /notify

        Format a notification and enqueue it for every recipient.
        """
        body = NotifyRequest.model_validate(await read_json(request))

        text = format_notification(
            body.text,
            body.meta_dict(),
            now_ms=self._clock.epoch_millis(),
        )
        message_id = self._queue.enqueue(MessageKind.PLAIN, MessagePayload(text=text))

        return json_response(EnqueuedResponse(message_id=message_id))

    async def post_metrics(self, request: web.Request) -> web.Response:
        """
        POST /metrics

        Replace a source's counters and broadcast the rendered snapshot.
        """
        body = MetricsRequest.model_validate(await read_json(request))
        source = body.source or self._default_source

        self._metrics_cache.update(source, body.counters())
        message_id = self._queue.enqueue(
            MessageKind.METRICS,
            MessagePayload(
                text=self._metrics_cache.format(source),
                parse_mode=ParseMode.MARKDOWN,
            ),
        )

        return json_response(EnqueuedResponse(message_id=message_id))

    # --------------------------------------------------------
    # ADMIN ENDPOINTS
    # --------------------------------------------------------

    async def add_chat(self, request: web.Request) -> web.Response:
        """POST /admin/chats"""
        body = AdminChatRequest.model_validate(await read_json(request))

        try:
            added = await self._directory.add(body.chat_id)
        except DirectoryReadOnlyError as e:
            return error_response(str(e), 409)
        except DirectoryError as e:
            logger.error(f"Failed to add chat {body.chat_id}: {e}")
            return error_response("Failed to add chat", 503)

        return json_response({"success": True, "added": added})

    async def remove_chat(self, request: web.Request) -> web.Response:
        """DELETE /admin/chats/{chat_id}"""
        chat_id = request.match_info["chat_id"]

        try:
            removed = await self._directory.remove(chat_id)
        except DirectoryReadOnlyError as e:
            return error_response(str(e), 409)
        except DirectoryError as e:
            logger.error(f"Failed to remove chat {chat_id}: {e}")
            return error_response("Failed to remove chat", 503)

        return json_response({"success": True, "removed": removed})

    # --------------------------------------------------------
    # OBSERVABILITY
    # --------------------------------------------------------

    async def queue_status(self, request: web.Request) -> web.Response:
        """GET /queue/status"""
        return json_response({"status": "ok", "data": self._queue.status().to_dict()})

    async def runtime_status(self, request: web.Request) -> web.Response:
        """GET /status"""
        return json_response({"status": "ok", "data": self._status_provider()})

    async def health(self, request: web.Request) -> web.Response:
        """GET /health"""
        return json_response({
            "status": "ok",
            "timestamp": self._clock.now(),
        })


# ============================================================
# APPLICATION FACTORY
# ============================================================

def create_app(
    queue: DeliveryQueue,
    metrics_cache: MetricsCache,
    directory: RecipientDirectory,
    clock: Optional[ClockProtocol] = None,
    default_source: str = "development",
    status_provider: Optional[StatusProvider] = None,
) -> web.Application:
    """Build the aiohttp application with all routes."""
    api = NotifierAPI(
        queue=queue,
        metrics_cache=metrics_cache,
        directory=directory,
        clock=clock,
        default_source=default_source,
        status_provider=status_provider,
    )

    app = web.Application(middlewares=[request_logging_middleware])
    app.router.add_post("/notify", api.notify)
    app.router.add_post("/metrics", api.post_metrics)
    app.router.add_post("/admin/chats", api.add_chat)
    app.router.add_delete("/admin/chats/{chat_id}", api.remove_chat)
    app.router.add_get("/queue/status", api.queue_status)
    app.router.add_get("/health", api.health)
    if status_provider is not None:
        app.router.add_get("/status", api.runtime_status)

    logger.info("Notifier API routes configured")
    return app
