"""Topic registry — idempotent lookup-or-create of topic roles.

A topic is a mentionable, zero-permission guild role. Its name is the
natural key: whitespace is collapsed at creation, lookups ignore case.

Lookup-then-create is not atomic on Discord. Two administrators adding the
same name at the same instant can still produce two roles; this window is
accepted rather than papered over with a local lock Discord cannot honour.
The same holds for rosters: two members pressing a marker at the same
instant may each be rendered without the other, since only the acting
member is re-fetched. The next press on that topic renders both.
"""

import logging
import re
from typing import Optional

import discord

from .errors import PermissionInsufficient

logger = logging.getLogger("candela.topics")

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_topic_name(name: str) -> str:
    """Collapse internal whitespace and trim. Casing is preserved for display."""
    return _WHITESPACE_RE.sub(" ", name).strip()


def topic_key(name: str) -> str:
    """Comparison key for topic names."""
    return normalize_topic_name(name).casefold()


class TopicRegistry:
    """Resolves topic names to roles within a guild."""

    def __init__(self, reason: str = "Topic created by Candela"):
        self.reason = reason

    def find(self, guild: discord.Guild, name: str) -> Optional[discord.Role]:
        """Return the role whose normalized name matches ``name``, if any."""
        key = topic_key(name)
        for role in guild.roles:
            if topic_key(role.name) == key:
                return role
        return None

    async def resolve(self, guild: discord.Guild, name: str) -> discord.Role:
        """Return the topic role for ``name``, creating it if absent.

        The returned role may be non-mentionable when a same-named role
        already existed; callers decide what that means.

        Raises:
            ValueError: name is empty after normalization
            PermissionInsufficient: the bot may not create roles
        """
        display_name = normalize_topic_name(name)
        if not display_name:
            raise ValueError("Topic name is empty")

        role = self.find(guild, display_name)
        if role:
            logger.debug(f"Resolved topic '{display_name}' to existing role {role.id} in {guild.id}")
            return role

        try:
            role = await guild.create_role(
                name=display_name,
                mentionable=True,
                permissions=discord.Permissions.none(),
                reason=self.reason,
            )
        except discord.Forbidden as e:
            raise PermissionInsufficient(display_name) from e

        logger.info(f"Created topic '{display_name}' ({role.id}) in guild {guild.id}")
        return role
