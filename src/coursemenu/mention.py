"""Mention token parsing for the command menu input buffer."""
from __future__ import annotations

from dataclasses import dataclass

from .config import MENTION_MARKER


@dataclass(frozen=True)
class MentionToken:
    has_active_mention: bool
    token: str = ""
    marker_index: int = -1


def parse_mention(buffer: str, marker: str = MENTION_MARKER) -> MentionToken:
    """Returns the unconfirmed text after the last marker in buffer."""
    text = str(buffer or "")
    index = text.rfind(marker)
    if index == -1:
        return MentionToken(has_active_mention=False)
    return MentionToken(
        has_active_mention=True,
        token=text[index + len(marker):],
        marker_index=index,
    )


def ghost_text(buffer: str, suggestion: str, typing: bool, marker: str = MENTION_MARKER) -> str:
    """
    Returns the part of suggestion to draw after the typed text.
    Only shown when the typed token is a case-insensitive prefix of the suggestion.
    """
    if not suggestion or typing:
        return ""
    mention = parse_mention(buffer, marker)
    if not mention.has_active_mention:
        return ""
    token = mention.token
    if not token or suggestion.lower().startswith(token.lower()):
        return suggestion[len(token):]
    return ""
