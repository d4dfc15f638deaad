"""Async Slack client and message source singletons.

Creates a cached AsyncWebClient configured with the bot token from
application settings, and a SlackMessageSource wrapping it. Both are lazily
initialized so importing this module never touches settings.
"""

from slack_sdk.web.async_client import AsyncWebClient

from task_extractor.config import get_settings
from task_extractor.slack.source import SlackMessageSource

_client: AsyncWebClient | None = None
_source: SlackMessageSource | None = None


async def get_slack_client() -> AsyncWebClient:
    """Return a cached async Slack client instance.

    Creates the client on first call using slack_bot_token from settings.
    Subsequent calls return the cached instance.
    """
    global _client
    if _client is None:
        settings = get_settings()
        _client = AsyncWebClient(token=settings.slack_bot_token)
    return _client


async def get_message_source() -> SlackMessageSource:
    """Return the process-wide message source.

    The source owns the user identity cache, so sharing one instance is what
    keeps identity lookups to one per user for the life of the process.
    """
    global _source
    if _source is None:
        settings = get_settings()
        _source = SlackMessageSource(
            await get_slack_client(),
            rate_limit_delay_ms=settings.slack_rate_limit_delay_ms,
            max_messages=settings.max_messages_per_channel,
        )
    return _source


def reset_client() -> None:
    """Reset the cached client and source. Used for testing."""
    global _client, _source
    _client = None
    _source = None
