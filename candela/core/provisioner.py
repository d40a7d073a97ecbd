"""Control channel provisioning.

Each routed guild gets exactly one control channel. Members may press the
reactions already on announcements there but cannot post or add new ones;
only the bot can. Overwrites are re-applied on every run so manual changes
heal themselves, and the welcome message is posted only when the channel
holds nothing the bot wrote.
"""

import logging

import discord

from .rendering import SUBSCRIBE_MARKER, UNSUBSCRIBE_MARKER

logger = logging.getLogger("candela.provisioner")

WELCOME_MESSAGE = (
    "Hi Trainers — Candela here! I’m here to help make sure you don’t miss out on raids at nearby gyms.\n\n"
    "Group administrators can add gyms at any time by telling me the names of the gym in this channel. "
    "Only 1 gym per line please!\n\n"
    f"If you want to subscribe to notifications for a gym, tap the {SUBSCRIBE_MARKER} symbol beneath it. "
    f"If you later want to unsubscribe, tap the {UNSUBSCRIBE_MARKER} symbol.\n\n"
    "When someone **@mentions** a gym that you are subscribed to, you will get a notification. "
    "That way you’ll never miss a raid there!\n\n"
    "If you want to see all of the gyms that you subscribe to, find your name in the list of members "
    "for this group and tap on it. That will show you your profile, which has all of your subscribed "
    "gyms listed as roles.\n\n"
    "That’s all there is to it! Good luck in all your battles — I know you’ll do great!"
)


def control_overwrites(guild: discord.Guild) -> dict:
    """Permission overwrites for the control channel."""
    return {
        guild.default_role: discord.PermissionOverwrite(
            send_messages=False,
            add_reactions=False,
        ),
        guild.me: discord.PermissionOverwrite(
            send_messages=True,
            add_reactions=True,
            manage_messages=True,
            read_message_history=True,
        ),
    }


def is_control_channel(channel, channel_name: str) -> bool:
    """True if ``channel`` is a guild text channel with the reserved name."""
    if channel is None or getattr(channel, "type", None) != discord.ChannelType.text:
        return False
    return channel.name == channel_name


class ControlChannelProvisioner:
    """Ensures the control channel exists and is welcomed."""

    def __init__(self, channel_name: str = "gym-membership", history_limit: int = 100,
                 welcome: str = WELCOME_MESSAGE):
        self.channel_name = channel_name
        self.history_limit = history_limit
        self.welcome = welcome

    def find(self, guild: discord.Guild):
        return discord.utils.get(guild.text_channels, name=self.channel_name)

    async def ensure(self, guild: discord.Guild) -> discord.TextChannel:
        """Create or repair the control channel, then post the welcome once."""
        overwrites = control_overwrites(guild)
        channel = self.find(guild)

        if channel:
            try:
                await channel.edit(overwrites=overwrites, reason="Re-asserting control channel permissions")
                logger.debug(f"Re-applied overwrites on #{channel.name} in guild {guild.id}")
            except discord.Forbidden:
                logger.warning(
                    f"Cannot re-apply overwrites on #{channel.name} in guild {guild.id} "
                    f"(missing Manage Channels)"
                )
        else:
            channel = await guild.create_text_channel(
                self.channel_name,
                overwrites=overwrites,
                reason="Candela control channel",
            )
            logger.info(f"Created control channel #{channel.name} in guild {guild.id}")

        await self._welcome_once(channel, guild.me.id)
        return channel

    async def _welcome_once(self, channel: discord.TextChannel, system_id: int):
        async for message in channel.history(limit=self.history_limit):
            if message.author.id == system_id:
                return
        await channel.send(self.welcome)
        logger.info(f"Posted welcome message in #{channel.name} ({channel.guild.id})")
