"""Tests for Slack client and message source singletons (init, caching, reset)."""

from unittest.mock import MagicMock, patch

from slack_sdk.web.async_client import AsyncWebClient

from task_extractor.slack.client import get_message_source, get_slack_client, reset_client
from task_extractor.slack.source import SlackMessageSource


def _settings() -> MagicMock:
    settings = MagicMock()
    settings.slack_bot_token = "xoxb-test"
    settings.slack_rate_limit_delay_ms = 500
    settings.max_messages_per_channel = 50
    return settings


@patch("task_extractor.slack.client.get_settings")
async def test_get_slack_client_creates_client(mock_get_settings: MagicMock):
    """get_slack_client returns an AsyncWebClient initialised from settings."""
    mock_get_settings.return_value = _settings()

    client = await get_slack_client()

    assert isinstance(client, AsyncWebClient)
    assert client.token == "xoxb-test"


@patch("task_extractor.slack.client.get_settings")
async def test_get_slack_client_returns_cached(mock_get_settings: MagicMock):
    """Second call returns the same object (singleton)."""
    mock_get_settings.return_value = _settings()

    first = await get_slack_client()
    second = await get_slack_client()

    assert first is second


@patch("task_extractor.slack.client.get_settings")
async def test_message_source_shares_identity_cache(mock_get_settings: MagicMock):
    """The source is a singleton, so its identity cache lives for the process."""
    mock_get_settings.return_value = _settings()

    first = await get_message_source()
    second = await get_message_source()

    assert isinstance(first, SlackMessageSource)
    assert first is second
    assert first.user_cache is second.user_cache


@patch("task_extractor.slack.client.get_settings")
async def test_reset_client_clears_cache(mock_get_settings: MagicMock):
    """After reset_client(), new instances are created."""
    mock_get_settings.return_value = _settings()

    client = await get_slack_client()
    source = await get_message_source()
    reset_client()

    assert await get_slack_client() is not client
    assert await get_message_source() is not source
