"""Slack-side models: channels, user identities, and normalized messages."""

from pydantic import BaseModel, ConfigDict


class Channel(BaseModel):
    """A Slack conversation the bot can see."""

    id: str
    name: str
    is_private: bool = False
    is_member: bool = False


class UserIdentity(BaseModel):
    """A resolved Slack user. Immutable once cached."""

    model_config = ConfigDict(frozen=True)

    id: str
    handle: str
    display_name: str
    is_bot: bool = False


class Message(BaseModel):
    """A filtered, sanitized channel message ready for the workflow payload."""

    model_config = ConfigDict(frozen=True)

    timestamp: str  # ISO-8601, millisecond precision
    sender: str  # Resolved display name, never a raw user id
    text: str  # Slack markup already stripped
    thread_id: str | None = None  # Slack thread_ts of the parent
    reply_count: int | None = None
