"""
Ingestion - Command Router.

============================================================
PURPOSE
============================================================
Turns inbound chat text into bot commands.

- Flat match on the first whitespace-delimited token
- Non-command text is ignored
- With a subscription-managed directory, only the open
  commands (start, help, subscribe) work for unknown chats
- Replies go through the delivery queue, so they share its
  rate limit and retry policy

============================================================
"""

import hmac
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from core.exceptions import DirectoryError, DirectoryReadOnlyError
from delivery.models import MessageKind, MessagePayload
from delivery.queue import DeliveryQueue
from monitoring.metrics_cache import MetricsCache
from recipients.base import RecipientDirectory
from telegram_api.models import BotCommand, ParseMode, Update


logger = logging.getLogger(__name__)


# ============================================================
# COMMAND TABLE
# ============================================================

BOT_COMMANDS: List[BotCommand] = [
    BotCommand("start", "Start the bot"),
    BotCommand("help", "List available commands"),
    BotCommand("subscribe", "Subscribe to error reports"),
    BotCommand("unsubscribe", "Unsubscribe from error reports"),
    BotCommand("metrics", "Get metrics dashboard"),
    BotCommand("identify", "Show this chat's identifier"),
]

OPEN_COMMANDS = frozenset({"start", "help", "subscribe"})


# ============================================================
# REPLIES
# ============================================================

NOT_SUBSCRIBED_REPLY = (
    "🔒 This is a private developer log chat. You need to subscribe first using the command:\n"
    "/subscribe <app-token>"
)
START_REPLY = "Hello! Use /subscribe <app-token> to subscribe to error reports."
SUBSCRIBE_USAGE_REPLY = "Please provide an app token: /subscribe <app-token>"
INVALID_TOKEN_REPLY = "Invalid app token"
SUBSCRIBE_FAILED_REPLY = "Failed to subscribe. Please try again later."
UNSUBSCRIBED_REPLY = "Successfully unsubscribed from error reports!"
UNSUBSCRIBE_FAILED_REPLY = "Failed to unsubscribe. Please try again later."
FIXED_RECIPIENTS_REPLY = "Recipients for this bot are managed by configuration."
DIRECTORY_UNAVAILABLE_REPLY = "Subscription check failed. Please try again later."


def parse_command(text: str) -> Tuple[Optional[str], List[str]]:
    """
    Split chat text into (command, args).

    `/metrics@MyBot production` -> ("metrics", ["production"]).
    Text that does not start with "/" yields (None, []).
    """
    tokens = text.split()
    if not tokens or not tokens[0].startswith("/"):
        return None, []

    command = tokens[0][1:].split("@", 1)[0].lower()
    if not command:
        return None, []
    return command, tokens[1:]


# ============================================================
# ROUTER
# ============================================================

CommandHandler = Callable[[str, List[str]], Awaitable[None]]


class CommandRouter:
    """
    Dispatches recognized commands from inbound updates.
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        directory: RecipientDirectory,
        metrics_cache: MetricsCache,
        app_token: Optional[str] = None,
        source_label: str = "development",
    ):
        """
        Initialize router.

        Args:
            queue: Delivery queue for replies
            directory: Recipient directory (subscriptions + gate)
            metrics_cache: Source of /metrics replies
            app_token: Shared secret expected by /subscribe
            source_label: Deployment label, also the default metrics source
        """
        self._queue = queue
        self._directory = directory
        self._metrics_cache = metrics_cache
        self._app_token = app_token
        self._source_label = source_label

        self._handlers: Dict[str, CommandHandler] = {
            "start": self._handle_start,
            "help": self._handle_help,
            "subscribe": self._handle_subscribe,
            "unsubscribe": self._handle_unsubscribe,
            "metrics": self._handle_metrics,
            "identify": self._handle_identify,
        }

    @property
    def commands(self) -> List[str]:
        return list(self._handlers)

    async def handle(self, update: Update) -> Optional[str]:
        """
        Process one update.

        Returns the command that ran, or None if the update was
        ignored or rejected by the subscription gate.
        """
        message = update.message
        if message is None or not message.text:
            return None

        command, args = parse_command(message.text)
        if command is None:
            return None

        handler = self._handlers.get(command)
        if handler is None:
            logger.debug(f"Ignoring unknown command /{command} from {message.chat_id}")
            return None

        if not await self._authorized(command, message.chat_id):
            return None

        logger.info(f"Handling /{command} | chat={message.chat_id} | update={update.update_id}")
        await handler(message.chat_id, args)
        return command

    async def _authorized(self, command: str, chat_id: str) -> bool:
        if not self._directory.requires_subscription or command in OPEN_COMMANDS:
            return True

        try:
            subscribed = await self._directory.contains(chat_id)
        except DirectoryError as e:
            logger.error(f"Subscription check failed for {chat_id}: {e}")
            self._reply(chat_id, DIRECTORY_UNAVAILABLE_REPLY)
            return False

        if not subscribed:
            self._reply(chat_id, NOT_SUBSCRIBED_REPLY)
        return subscribed

    def _reply(
        self,
        chat_id: str,
        text: str,
        parse_mode: Optional[ParseMode] = None,
        kind: MessageKind = MessageKind.PLAIN,
    ) -> str:
        return self._queue.enqueue(
            kind,
            MessagePayload(text=text, parse_mode=parse_mode, destination=chat_id),
        )

    # --------------------------------------------------------
    # Handlers
    # --------------------------------------------------------

    async def _handle_start(self, chat_id: str, args: List[str]) -> None:
        self._reply(chat_id, START_REPLY)

    async def _handle_help(self, chat_id: str, args: List[str]) -> None:
        lines = ["Available commands:"]
        lines.extend(f"/{c.command} - {c.description}" for c in BOT_COMMANDS)
        self._reply(chat_id, "\n".join(lines))

    async def _handle_subscribe(self, chat_id: str, args: List[str]) -> None:
        if not self._directory.requires_subscription:
            self._reply(chat_id, FIXED_RECIPIENTS_REPLY)
            return

        if not args:
            self._reply(chat_id, SUBSCRIBE_USAGE_REPLY)
            return

        if not self._app_token or not hmac.compare_digest(args[0], self._app_token):
            logger.warning(f"Rejected subscribe with invalid token from {chat_id}")
            self._reply(chat_id, INVALID_TOKEN_REPLY)
            return

        try:
            await self._directory.add(chat_id)
        except DirectoryError as e:
            logger.error(f"Failed to subscribe chat {chat_id}: {e}")
            self._reply(chat_id, SUBSCRIBE_FAILED_REPLY)
            return

        self._reply(
            chat_id,
            f"Successfully subscribed to error reports! (Source: {self._source_label})",
        )

    async def _handle_unsubscribe(self, chat_id: str, args: List[str]) -> None:
        try:
            await self._directory.remove(chat_id)
        except DirectoryReadOnlyError:
            self._reply(chat_id, FIXED_RECIPIENTS_REPLY)
            return
        except DirectoryError as e:
            logger.error(f"Failed to unsubscribe chat {chat_id}: {e}")
            self._reply(chat_id, UNSUBSCRIBE_FAILED_REPLY)
            return

        self._reply(chat_id, UNSUBSCRIBED_REPLY)

    async def _handle_metrics(self, chat_id: str, args: List[str]) -> None:
        source = args[0] if args else self._source_label
        self._reply(
            chat_id,
            self._metrics_cache.format(source),
            ParseMode.MARKDOWN,
            kind=MessageKind.METRICS,
        )

    async def _handle_identify(self, chat_id: str, args: List[str]) -> None:
        self._reply(chat_id, f"Chat ID: `{chat_id}`", ParseMode.MARKDOWN)
