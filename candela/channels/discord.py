"""Discord channel adapter."""

import asyncio
import logging
from typing import Optional

import discord

from ..config import CandelaSettings, CommunityGate
from ..core import (
    ControlChannelProvisioner,
    ReactionEvent,
    SubscriptionStateMachine,
    TopicCreationIntake,
    TopicRegistry,
    is_control_channel,
)

logger = logging.getLogger("candela.discord")


def build_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.members = True            # role.members for announcement rosters
    intents.guild_messages = True
    intents.message_content = True    # topic names come from message text
    intents.guild_reactions = True
    return intents


class DiscordChannel:
    """Discord bot adapter for Candela.

    Translates gateway events into calls on the subscription core. Every
    handler is scoped to its own event: a failure is logged and never
    affects other guilds, topics or members.
    """

    def __init__(self, settings: CandelaSettings, client: Optional[discord.Client] = None):
        self.settings = settings
        self.gate = CommunityGate.from_settings(settings)
        self.registry = TopicRegistry()
        self.provisioner = ControlChannelProvisioner(
            channel_name=settings.channel_name,
            history_limit=settings.history_limit,
        )
        self.intake = TopicCreationIntake(self.registry, self.gate, settings.channel_name)
        self.subscriptions = SubscriptionStateMachine(
            self.gate, settings.channel_name, confirm_by_dm=settings.confirm_by_dm,
        )
        self.client = client or discord.Client(intents=build_intents())
        self._task: Optional[asyncio.Task] = None
        self._register_handlers()

    def _register_handlers(self):
        self.client.event(self.on_ready)
        self.client.event(self.on_guild_join)
        self.client.event(self.on_message)
        self.client.event(self.on_raw_reaction_add)
        self.client.event(self.on_error)

    async def start(self):
        """Log in and connect in the background."""
        if not self.settings.token:
            raise RuntimeError("No Discord bot token configured (CANDELA_TOKEN).")
        logger.info("Starting Discord bot...")
        await self.client.login(self.settings.token)
        self._task = asyncio.create_task(self.client.connect(reconnect=True))
        logger.info("Discord bot started.")

    async def stop(self):
        """Close the gateway connection."""
        if not self.client.is_closed():
            await self.client.close()
        if self._task:
            try:
                await self._task
            except (asyncio.CancelledError, discord.ConnectionClosed):
                pass
            except Exception as e:
                logger.critical(f"Discord connection failed: {type(e).__name__}: {e}", exc_info=True)
            self._task = None
        logger.info("Discord bot stopped.")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Community lifecycle ─────────────────────────────────

    async def provision(self, guild: discord.Guild) -> Optional[discord.TextChannel]:
        """Ensure the control channel for one routed guild."""
        if not self.gate.allows(guild):
            logger.debug(f"Guild {guild.id} not routed in '{self.settings.env}' mode")
            return None
        try:
            return await self.provisioner.ensure(guild)
        except discord.HTTPException as e:
            logger.error(f"Failed to provision control channel in guild {guild.id}: {e}", exc_info=True)
            return None

    async def on_ready(self):
        logger.info(f"Logged in as {self.client.user} ({len(self.client.guilds)} guilds)")
        await asyncio.gather(*(self.provision(guild) for guild in self.client.guilds))
        logger.info("Ready.")

    async def on_guild_join(self, guild: discord.Guild):
        logger.info(f"Joined guild {guild.name} ({guild.id})")
        await self.provision(guild)

    # ── Entry points ────────────────────────────────────────

    async def on_message(self, message: discord.Message):
        await self.intake.handle(message)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent):
        if self.client.user and payload.user_id == self.client.user.id:
            return
        if payload.guild_id is None or not self.gate.allows(payload.guild_id):
            return

        guild = self.client.get_guild(payload.guild_id)
        if guild is None:
            return
        channel = guild.get_channel(payload.channel_id)
        if not is_control_channel(channel, self.settings.channel_name):
            return

        try:
            message = await channel.fetch_message(payload.message_id)
            member = payload.member or await guild.fetch_member(payload.user_id)
        except discord.HTTPException as e:
            logger.warning(f"Could not load reaction context for message {payload.message_id}: {e}")
            return

        await self.subscriptions.handle(ReactionEvent(message=message, emoji=payload.emoji, member=member))

    async def on_error(self, event_method: str, *args, **kwargs):
        logger.error(f"Discord error in {event_method}", exc_info=True)
