"""Announcement publishing — the side-effecting half of rendering."""

import enum
import logging
from typing import Iterable, Optional

import discord

from .rendering import render_announcement

logger = logging.getLogger("candela.announcements")

# Announcements tag a role but must not ping it on every publish/edit
NO_PINGS = discord.AllowedMentions.none()


class AnnouncementOwner(enum.Enum):
    """Who authored an announcement message."""

    SYSTEM = "system"    # ours: edit in place
    FOREIGN = "foreign"  # legacy or another identity: delete and republish

    @classmethod
    def of(cls, message: discord.Message, system_id: int) -> "AnnouncementOwner":
        return cls.SYSTEM if message.author.id == system_id else cls.FOREIGN


async def attach_markers(message: discord.Message, markers: Iterable[str]):
    for marker in markers:
        await message.add_reaction(marker)


async def publish_announcement(
    channel: discord.TextChannel,
    topic: discord.Role,
    subscribers: Optional[Iterable] = None,
) -> discord.Message:
    """Send a fresh announcement for ``topic`` with both markers attached."""
    rendered = render_announcement(topic, subscribers)
    message = await channel.send(rendered.text, allowed_mentions=NO_PINGS)
    await attach_markers(message, rendered.markers)
    logger.info(f"Published announcement {message.id} for topic '{topic.name}' ({topic.id})")
    return message


async def refresh_announcement(
    message: discord.Message,
    topic: discord.Role,
    subscribers: Iterable,
    owner: AnnouncementOwner,
) -> discord.Message:
    """Bring an announcement in line with ``subscribers``.

    System-owned announcements are edited in place. Foreign ones are
    deleted and replaced by a fresh system-owned announcement.
    """
    subscribers = list(subscribers)
    if owner is AnnouncementOwner.FOREIGN:
        channel = message.channel
        await message.delete()
        logger.info(f"Migrating foreign announcement {message.id} for topic '{topic.name}'")
        return await publish_announcement(channel, topic, subscribers)

    rendered = render_announcement(topic, subscribers)
    if message.content != rendered.text:
        await message.edit(content=rendered.text, allowed_mentions=NO_PINGS)
    await attach_markers(message, rendered.markers)
    return message
