"""Content formatting helpers shared by notification channels.

Broadcast bodies are authored as HTML. Slack wants mrkdwn, GC Notify email
templates want markdown, and SMS wants short plain text.
"""

import html
import re
from typing import Optional

SMS_MAX_LENGTH = 160
SLACK_HEADER_MAX_LENGTH = 150

_FLAGS = re.IGNORECASE | re.DOTALL

# (pattern, slack mrkdwn replacement, markdown replacement)
_INLINE_RULES = [
    (r"<h1[^>]*>(.*?)</h1>", r"*\1*\n\n", r"# \1\n\n"),
    (r"<h2[^>]*>(.*?)</h2>", r"*\1*\n\n", r"## \1\n\n"),
    (r"<h3[^>]*>(.*?)</h3>", r"*\1*\n", r"### \1\n"),
    (r"<strong[^>]*>(.*?)</strong>", r"*\1*", r"**\1**"),
    (r"<b[^>]*>(.*?)</b>", r"*\1*", r"**\1**"),
    (r"<em[^>]*>(.*?)</em>", r"_\1_", r"_\1_"),
    (r"<i[^>]*>(.*?)</i>", r"_\1_", r"_\1_"),
    (r'<a[^>]*href="([^"]*)"[^>]*>(.*?)</a>', r"<\1|\2>", r"[\2](\1)"),
    (r"<li[^>]*>(.*?)</li>", "\u2022 \\1\n", r"* \1\n"),
    (r"<p[^>]*>(.*?)</p>", r"\1\n\n", r"\1\n\n"),
    (r"<br\s*/?>", r"\n", r"\n"),
    (r"<div[^>]*>(.*?)</div>", r"\1\n", r"\1\n"),
    (r"<code[^>]*>(.*?)</code>", r"`\1`", r"`\1`"),
    (r"<pre[^>]*>(.*?)</pre>", r"```\1```", r"```\1```"),
    (r"<blockquote[^>]*>(.*?)</blockquote>", r"> \1\n", r"^ \1\n"),
    (r"</?(ul|ol)[^>]*>", r"\n", r"\n"),
]


def _convert(body: str, target: int) -> str:
    text = body or ""
    for rule in _INLINE_RULES:
        text = re.sub(rule[0], rule[target], text, flags=_FLAGS)
    # Strip remaining tags, but keep Slack's <url|label> links intact
    if target == 1:
        text = re.sub(r"<(?![a-z]+://[^>|]*\|)[^>]+>", "", text, flags=_FLAGS)
    else:
        text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def html_to_mrkdwn(body: str) -> str:
    """Convert a broadcast HTML body to Slack mrkdwn."""
    return _convert(body, 1)


def html_to_markdown(body: str) -> str:
    """Convert a broadcast HTML body to the markdown GC Notify templates render."""
    return _convert(body, 2)


def html_to_text(body: str) -> str:
    """Strip all markup from an HTML body."""
    text = re.sub(r"<br\s*/?>|</p>|</li>|</h[1-6]>", "\n", body or "", flags=_FLAGS)
    text = html.unescape(re.sub(r"<[^>]+>", "", text)).replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, max_length: int) -> str:
    """Truncate text to max_length, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


def build_sms_message(
    body: str, message_url: Optional[str] = None, max_length: int = SMS_MAX_LENGTH
) -> str:
    """Build a single-segment SMS, keeping the message link intact.

    The body is shortened so that body plus link never exceed max_length.

    Args:
        body: Short SMS text.
        message_url: Optional link to the message in the message centre.
        max_length: Maximum total length (160 for one GSM segment).

    Returns:
        SMS text of at most max_length characters.
    """
    body = " ".join((body or "").split())
    if not message_url:
        return truncate(body, max_length)

    suffix = f" {message_url}"
    available = max_length - len(suffix)
    if available <= 3:
        return truncate(message_url, max_length)
    return f"{truncate(body, available)}{suffix}"


def format_phone_e164(phone: Optional[str]) -> Optional[str]:
    """Normalise a phone number to E.164.

    - 11 digits starting with 1: prefixed with +
    - 10 digits: assumed North American, prefixed with +1
    - otherwise: + followed by the digits

    Returns:
        E.164 number, or None if the input has fewer than 10 or more than
        15 digits.
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 10 or len(digits) > 15:
        return None
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"
