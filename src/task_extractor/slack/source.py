"""Slack message source: channel listing, paginated history, identity resolution.

Fetches channel history page by page with a fixed throttle between pages,
filters out bot and system messages, resolves authors to display names via
the adapter-owned UserCache, and normalizes timestamps and markup.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from decimal import Decimal, InvalidOperation

import aiohttp
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from task_extractor.errors import MessageFetchError, RateLimitError
from task_extractor.models.slack import Channel, Message, UserIdentity
from task_extractor.slack.identity import UserCache
from task_extractor.slack.text import sanitize_text, slack_ts_to_iso

logger = logging.getLogger(__name__)

# Slack caps conversations.* pages at 200 items
MAX_PAGE_SIZE = 200
DEFAULT_RETRY_AFTER = 60

SYSTEM_SUBTYPES = frozenset(
    {
        "channel_join",
        "channel_leave",
        "channel_archive",
        "channel_unarchive",
        "channel_topic",
        "channel_purpose",
        "channel_name",
        "group_join",
        "group_leave",
        "pinned_item",
        "unpinned_item",
    }
)

_RATE_LIMIT_CODES = ("rate_limited", "ratelimited")

Sleep = Callable[[float], Awaitable[None]]


def is_relevant_message(raw: dict) -> bool:
    """Decide whether a raw Slack message should reach the workflow.

    Checks are applied in order:
    1. Automated account (bot_id or bot_message subtype) -> drop
    2. System/membership event subtype -> drop
    3. No author or blank text -> drop
    """
    if raw.get("bot_id") or raw.get("subtype") == "bot_message":
        return False

    if raw.get("subtype") in SYSTEM_SUBTYPES:
        return False

    text = raw.get("text") or ""
    if not raw.get("user") or not text.strip():
        return False

    return True


def filter_raw_messages(messages: Iterable[dict]) -> list[dict]:
    """Keep only relevant raw messages, preserving order. Idempotent."""
    return [m for m in messages if is_relevant_message(m)]


class SlackMessageSource:
    """Reads channel messages from Slack on behalf of the pipeline."""

    def __init__(
        self,
        client: AsyncWebClient,
        *,
        user_cache: UserCache | None = None,
        rate_limit_delay_ms: int = 1000,
        max_messages: int = 200,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self.user_cache = user_cache if user_cache is not None else UserCache()
        self._rate_limit_delay = rate_limit_delay_ms / 1000
        self._max_messages = max_messages
        self._sleep = sleep

    async def test_connection(self) -> bool:
        """Check the bot token with auth.test. Never raises."""
        try:
            result = await self._client.auth_test()
        except (SlackClientError, aiohttp.ClientError, TimeoutError):
            logger.warning("Slack connection check failed", exc_info=True)
            return False
        logger.info("Connected to Slack team %s", result.get("team"))
        return True

    async def list_channels(self) -> list[Channel]:
        """List public and private channels visible to the bot, archived excluded."""
        channels: list[Channel] = []
        cursor: str | None = None

        try:
            while True:
                kwargs: dict = {
                    "types": "public_channel,private_channel",
                    "exclude_archived": True,
                    "limit": MAX_PAGE_SIZE,
                }
                if cursor:
                    kwargs["cursor"] = cursor

                result = await self._client.conversations_list(**kwargs)
                channels.extend(_to_channel(c) for c in result.get("channels") or [])

                cursor = (result.get("response_metadata") or {}).get("next_cursor")
                if not cursor:
                    break
                await self._sleep(self._rate_limit_delay)
        except (SlackClientError, aiohttp.ClientError, TimeoutError) as exc:
            raise _map_error(exc, "Failed to list channels") from exc

        return channels

    async def get_channel_info(self, channel_id: str) -> Channel:
        """Fetch name and visibility for a single channel."""
        try:
            result = await self._client.conversations_info(channel=channel_id)
        except (SlackClientError, aiohttp.ClientError, TimeoutError) as exc:
            raise _map_error(exc, "Failed to get channel info") from exc

        channel = result.get("channel") or {}
        return _to_channel({"id": channel_id, **channel})

    async def fetch_messages(
        self,
        channel_id: str,
        oldest: str | None = None,
        latest: str | None = None,
        limit: int | None = None,
        include_threads: bool = False,
    ) -> list[Message]:
        """Fetch, filter, and normalize up to ``limit`` messages from a channel.

        Pages through conversations.history with the continuation cursor,
        sleeping ``rate_limit_delay_ms`` between pages. Stops when Slack
        returns no cursor, an empty page, or ``limit`` messages are collected.

        Raises:
            RateLimitError: Slack rate limited the request.
            MessageFetchError: Any other Slack or transport failure.
        """
        limit = self._max_messages if limit is None else limit
        messages: list[Message] = []
        seen: set[str] = set()
        cursor: str | None = None

        try:
            while len(messages) < limit:
                kwargs: dict = {
                    "channel": channel_id,
                    "limit": min(MAX_PAGE_SIZE, limit - len(messages)),
                }
                if oldest:
                    kwargs["oldest"] = oldest
                if latest:
                    kwargs["latest"] = latest
                if cursor:
                    kwargs["cursor"] = cursor

                result = await self._client.conversations_history(**kwargs)
                page = result.get("messages") or []
                if not page:
                    break

                for raw in filter_raw_messages(page):
                    # Broadcast replies show up in history and in their thread
                    if raw["ts"] in seen:
                        continue
                    seen.add(raw["ts"])
                    message = await self._to_message(raw)
                    messages.append(message)
                    if include_threads and message.reply_count and len(messages) < limit:
                        replies = await self._fetch_replies(
                            channel_id,
                            raw["ts"],
                            limit - len(messages),
                            oldest=oldest,
                            latest=latest,
                            seen=seen,
                        )
                        messages.extend(replies)

                cursor = (result.get("response_metadata") or {}).get("next_cursor")
                if not cursor or len(messages) >= limit:
                    break
                await self._sleep(self._rate_limit_delay)
        except (SlackClientError, aiohttp.ClientError, TimeoutError) as exc:
            raise _map_error(exc, "Failed to fetch messages") from exc

        logger.info(
            "Fetched %d messages from channel %s",
            min(len(messages), limit),
            channel_id,
            extra={"channel_id": channel_id, "include_threads": include_threads},
        )
        return messages[:limit]

    async def _fetch_replies(
        self,
        channel_id: str,
        thread_ts: str,
        limit: int,
        *,
        oldest: str | None = None,
        latest: str | None = None,
        seen: set[str] | None = None,
    ) -> list[Message]:
        """Fetch filtered replies for one thread.

        The parent, replies outside the ``oldest``/``latest`` window, and any
        ts already in ``seen`` are skipped. Emitted ts values are added to
        ``seen``.
        """
        seen = set() if seen is None else seen
        replies: list[Message] = []
        cursor: str | None = None

        while len(replies) < limit:
            await self._sleep(self._rate_limit_delay)
            kwargs: dict = {
                "channel": channel_id,
                "ts": thread_ts,
                "limit": min(MAX_PAGE_SIZE, limit - len(replies)),
            }
            if oldest:
                kwargs["oldest"] = oldest
            if latest:
                kwargs["latest"] = latest
            if cursor:
                kwargs["cursor"] = cursor

            result = await self._client.conversations_replies(**kwargs)
            page = [
                m
                for m in result.get("messages") or []
                if m.get("ts") != thread_ts and _within_window(m.get("ts"), oldest, latest)
            ]
            for raw in filter_raw_messages(page):
                if raw["ts"] in seen:
                    continue
                seen.add(raw["ts"])
                replies.append(await self._to_message(raw))

            cursor = (result.get("response_metadata") or {}).get("next_cursor")
            if not cursor or not result.get("messages"):
                break

        return replies[:limit]

    async def resolve_user(self, user_id: str) -> str:
        """Resolve a Slack user id to a display name.

        Cache first; on a miss calls users.info and caches the identity.
        Lookup failures fall back to ``User-<id>`` (not cached) so one bad
        lookup never fails a whole fetch.
        """
        cached = self.user_cache.get(user_id)
        if cached is not None:
            return cached.display_name

        try:
            result = await self._client.users_info(user=user_id)
        except (SlackClientError, aiohttp.ClientError, TimeoutError):
            logger.warning("Failed to resolve user %s", user_id, exc_info=True)
            return f"User-{user_id}"

        user = result.get("user")
        if not user:
            logger.warning("users.info returned no user for %s", user_id)
            return f"User-{user_id}"

        handle = user.get("name") or "Unknown"
        identity = UserIdentity(
            id=user.get("id") or user_id,
            handle=handle,
            display_name=user.get("real_name") or user.get("name") or "Unknown User",
            is_bot=bool(user.get("is_bot")),
        )
        self.user_cache.add(identity, user_id)
        return identity.display_name

    async def _to_message(self, raw: dict) -> Message:
        return Message(
            timestamp=slack_ts_to_iso(raw["ts"]),
            sender=await self.resolve_user(raw["user"]),
            text=sanitize_text(raw["text"]),
            thread_id=raw.get("thread_ts"),
            reply_count=raw.get("reply_count"),
        )


def _within_window(ts: str | None, oldest: str | None, latest: str | None) -> bool:
    """True if ``ts`` falls strictly between the bounds, as conversations.history applies them."""
    if not ts:
        return False
    try:
        value = Decimal(ts)
        if oldest and value <= Decimal(oldest):
            return False
        if latest and value >= Decimal(latest):
            return False
    except InvalidOperation:
        logger.warning("Unparseable Slack timestamp %r, keeping message", ts)
    return True


def _to_channel(raw: dict) -> Channel:
    return Channel(
        id=raw["id"],
        name=raw.get("name") or "unknown",
        is_private=bool(raw.get("is_private")),
        is_member=bool(raw.get("is_member")),
    )


def _map_error(exc: Exception, context: str) -> MessageFetchError | RateLimitError:
    """Translate a Slack SDK or transport exception into a pipeline error."""
    if isinstance(exc, SlackApiError) and exc.response is not None:
        error_code = exc.response.get("error", "") or ""
        status_code = getattr(exc.response, "status_code", None)
        if error_code in _RATE_LIMIT_CODES or status_code == 429:
            retry_after = _retry_after(exc.response)
            logger.warning("%s: rate limited, retry after %ds", context, retry_after)
            return RateLimitError(
                f"Rate limited. Retry after {retry_after} seconds", retry_after=retry_after
            )
        logger.error("%s: %s", context, error_code or exc)
        return MessageFetchError(f"{context}: {error_code or exc}")

    logger.error("%s: %s", context, exc)
    return MessageFetchError(f"{context}: {exc}")


def _retry_after(response) -> int:
    """Read the advised delay from the Retry-After header, then the body."""
    headers = getattr(response, "headers", None) or {}
    value = headers.get("Retry-After") or headers.get("retry-after") or response.get("retry_after")
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
