"""Slack ingress: paginated history retrieval, identity resolution, and text cleanup."""

from task_extractor.slack.client import get_message_source, get_slack_client, reset_client
from task_extractor.slack.identity import UserCache
from task_extractor.slack.source import SlackMessageSource, filter_raw_messages, is_relevant_message
from task_extractor.slack.text import sanitize_text, slack_ts_to_iso, slack_ts_to_millis

__all__ = [
    "filter_raw_messages",
    "get_message_source",
    "get_slack_client",
    "is_relevant_message",
    "reset_client",
    "sanitize_text",
    "slack_ts_to_iso",
    "slack_ts_to_millis",
    "SlackMessageSource",
    "UserCache",
]
