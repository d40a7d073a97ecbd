"""Announcement rendering — topic role → message text + markers.

Pure functions only. The same membership always renders byte-identical
text, so an edit with unchanged membership is a no-op diff.
"""

import enum
import re
from dataclasses import dataclass
from typing import Iterable, Optional

SUBSCRIBE_MARKER = "🔔"
UNSUBSCRIBE_MARKER = "🔕"

# Discord rejects messages longer than this
MESSAGE_LIMIT = 2000

_ROLE_TAG_RE = re.compile(r"<@&(\d+)>")


class Marker(enum.Enum):
    """Reaction markers carried by every announcement."""

    SUBSCRIBE = SUBSCRIBE_MARKER
    UNSUBSCRIBE = UNSUBSCRIBE_MARKER

    @classmethod
    def parse(cls, emoji) -> Optional["Marker"]:
        """Map a reaction emoji (str, PartialEmoji or Emoji) to a marker."""
        text = str(emoji).strip()
        for marker in cls:
            if text == marker.value:
                return marker
        return None


MARKERS = (Marker.SUBSCRIBE.value, Marker.UNSUBSCRIBE.value)


@dataclass(frozen=True)
class RenderedAnnouncement:
    text: str
    markers: tuple[str, str] = MARKERS


def role_tag(role_id: int) -> str:
    return f"<@&{role_id}>"


def parse_topic_tag(content: str) -> Optional[int]:
    """Return the first role ID tagged in ``content``, or None."""
    if not content:
        return None
    m = _ROLE_TAG_RE.search(content)
    return int(m.group(1)) if m else None


def render_roster(subscribers: Iterable, limit: Optional[int] = None) -> str:
    """Enumerated subscriber mentions ordered by member ID, or 'None'.

    With ``limit``, the lowest IDs that fit are listed and the rest are
    summarized as "…and K more", keeping the result within ``limit``
    characters.
    """
    unique = {member.id: member for member in subscribers}
    if not unique:
        return "None"
    lines = [
        f"{i}. <@{member_id}>"
        for i, member_id in enumerate(sorted(unique), start=1)
    ]
    text = "\n".join(lines)
    if limit is None or len(text) <= limit:
        return text

    kept = []
    size = 0
    for index, line in enumerate(lines):
        extra = len(line) + (1 if kept else 0)
        rest = len(lines) - index - 1
        tail = len(f"\n…and {rest} more") if rest else 0
        if size + extra + tail > limit:
            break
        kept.append(line)
        size += extra

    hidden = len(lines) - len(kept)
    if not kept:
        return f"…and {hidden} more"
    return "\n".join(kept) + f"\n…and {hidden} more"


def render_announcement(topic, subscribers: Optional[Iterable] = None) -> RenderedAnnouncement:
    """Render the announcement for a topic role.

    Args:
        topic: The topic role (anything with ``id`` and ``members``)
        subscribers: Membership to render; defaults to ``topic.members``

    Returns:
        RenderedAnnouncement with the text and both markers, never longer
        than Discord's message limit
    """
    if subscribers is None:
        subscribers = topic.members
    header = f"{role_tag(topic.id)}\n**Subscribers**\n"
    roster = render_roster(subscribers, limit=MESSAGE_LIMIT - len(header))
    return RenderedAnnouncement(text=header + roster)
