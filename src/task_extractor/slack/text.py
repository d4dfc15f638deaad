"""Slack timestamp conversion and mrkdwn sanitization."""

import re
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# <@U12345> or <@U12345|alice>
USER_MENTION_PATTERN = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")
# <#C12345|general>
CHANNEL_MENTION_PATTERN = re.compile(r"<#[A-Z0-9]+\|([^>]+)>")
# <https://example.com|Example>
LABELED_LINK_PATTERN = re.compile(r"<([^|>]+)\|([^>]+)>")
# <https://example.com>, also catches <!here> and unlabeled <#C12345>
BARE_LINK_PATTERN = re.compile(r"<([^>]+)>")


def slack_ts_to_millis(ts: str) -> int:
    """Convert a Slack ``seconds.microseconds`` timestamp to epoch milliseconds.

    Only the first three fractional digits are used, so sub-millisecond
    precision is truncated, never rounded:
    ``"1700000000.999999"`` -> ``1700000000999``.
    """
    seconds, _, fraction = ts.partition(".")
    millis = fraction[:3].ljust(3, "0") if fraction else "000"
    return int(seconds) * 1000 + int(millis)


def slack_ts_to_iso(ts: str) -> str:
    """Render a Slack timestamp as an ISO-8601 UTC instant, e.g. ``2023-11-14T22:13:20.999Z``."""
    instant = _EPOCH + timedelta(milliseconds=slack_ts_to_millis(ts))
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_text(text: str) -> str:
    """Strip Slack mrkdwn markup down to readable plain text.

    - User mentions become a generic ``@user`` marker (the target is lost)
    - Channel mentions become ``#name``
    - ``<url|label>`` becomes ``label``, bare ``<url>`` becomes ``url``
    """
    text = USER_MENTION_PATTERN.sub("@user", text)
    text = CHANNEL_MENTION_PATTERN.sub(r"#\1", text)
    text = LABELED_LINK_PATTERN.sub(r"\2", text)
    text = BARE_LINK_PATTERN.sub(r"\1", text)
    return text.strip()
