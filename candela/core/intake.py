"""Topic creation intake — administrator text in the control channel.

Each non-empty line of an administrator's message names one topic. Every
line is handled on its own: a conflict or failure on one line is reported
and the remaining lines still run. The authoring message is always deleted
so the control channel only ever holds bot-authored content.
"""

import logging
from typing import Optional

import discord

from ..config import CommunityGate
from .announcements import publish_announcement
from .errors import AuthorizationDenied, CandelaError, NameConflict, classify_error
from .provisioner import is_control_channel
from .topics import TopicRegistry, normalize_topic_name, topic_key

logger = logging.getLogger("candela.intake")


def parse_topic_names(content: str) -> list[str]:
    """Split a message body into topic names.

    Lines are trimmed, blank lines dropped and repeated names (by
    normalized key) kept once, in first-seen order.
    """
    names = []
    seen = set()
    for line in (content or "").splitlines():
        name = normalize_topic_name(line)
        if not name:
            continue
        key = topic_key(name)
        if key in seen:
            continue
        seen.add(key)
        names.append(name)
    return names


def is_administrator(member) -> bool:
    perms = getattr(member, "guild_permissions", None)
    return bool(perms and perms.administrator)


class TopicCreationIntake:
    """Handles messages posted in the control channel."""

    def __init__(self, registry: TopicRegistry, gate: CommunityGate, channel_name: str):
        self.registry = registry
        self.gate = gate
        self.channel_name = channel_name

    def should_handle(self, message: discord.Message) -> bool:
        if message.guild is None or not self.gate.allows(message.guild):
            return False
        if not is_control_channel(message.channel, self.channel_name):
            return False
        return message.author.id != message.guild.me.id

    async def handle(self, message: discord.Message) -> Optional[list[discord.Message]]:
        """Process one control-channel message.

        Returns:
            The announcements published, or None when the message was not
            ours to handle or was rejected.
        """
        if not self.should_handle(message):
            return None

        try:
            if not is_administrator(message.author):
                await self._reject(message)
                return None
            return await self._create_topics(message)
        finally:
            await self._discard(message)

    async def _reject(self, message: discord.Message):
        denial = AuthorizationDenied(message.guild.name)
        logger.info(
            f"Rejected topic request from non-admin {message.author.id} in guild {message.guild.id}"
        )
        try:
            await message.author.send(denial.notice())
        except discord.HTTPException as e:
            logger.warning(f"Could not DM denial to {message.author.id}: {e}")

    async def _create_topics(self, message: discord.Message) -> list[discord.Message]:
        published = []
        names = parse_topic_names(message.content)
        logger.info(f"Topic request from {message.author.id} in guild {message.guild.id}: {names}")

        for name in names:
            try:
                published.append(await self._publish(message.guild, message.channel, name))
            except CandelaError as e:
                logger.info(f"Topic '{name}' not published: {type(e).__name__}")
                await self._notify(message.channel, e.notice())
            except discord.HTTPException as e:
                logger.error(f"Failed to publish topic '{name}': {e}", exc_info=True)
                await self._notify(message.channel, f"**{name}**: {classify_error(e)}")
        return published

    async def _publish(self, guild: discord.Guild, channel: discord.TextChannel, name: str) -> discord.Message:
        role = await self.registry.resolve(guild, name)
        if not role.mentionable:
            raise NameConflict(role.name)
        return await publish_announcement(channel, role)

    async def _notify(self, channel: discord.TextChannel, text: str):
        try:
            await channel.send(text)
        except discord.HTTPException as e:
            logger.error(f"Failed to post notice in #{channel.name}: {e}")

    async def _discard(self, message: discord.Message):
        try:
            await message.delete()
        except discord.NotFound:
            pass
        except discord.HTTPException as e:
            logger.warning(f"Could not delete message {message.id} in #{message.channel.name}: {e}")
