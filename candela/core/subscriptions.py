"""Subscription state machine — reaction presses → role membership.

Per announcement:

    idle ──(marker press)──▶ applying ──(role add/remove ok)──▶ rendered ──▶ idle
                                 │
                                 └──(Forbidden / HTTP error)──▶ idle (unchanged)

The pressed reaction is removed before membership is touched, so the
control is immediately reusable and a double press from UI lag becomes two
serial transitions instead of overlapping ones. Membership is never
cached: the roster is re-read right before every render, so interleaved
presses on the same topic still converge on a correct announcement.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import discord

from ..config import CommunityGate
from .announcements import AnnouncementOwner, refresh_announcement
from .errors import MalformedReference, PermissionInsufficient, classify_error
from .provisioner import is_control_channel
from .rendering import Marker, parse_topic_tag

logger = logging.getLogger("candela.subscriptions")


class AnnouncementState(enum.Enum):
    """Where a transition comes to rest. Applying is never observed by callers."""

    IDLE = "idle"
    RENDERED = "rendered"


@dataclass
class ReactionEvent:
    """A single marker press. Consumed once, never stored."""

    message: discord.Message
    emoji: object
    member: discord.Member

    @property
    def guild(self) -> Optional[discord.Guild]:
        return self.message.guild

    @property
    def marker(self) -> Optional[Marker]:
        return Marker.parse(self.emoji)


@dataclass
class Transition:
    """Outcome of handling one ReactionEvent."""

    state: AnnouncementState
    topic: Optional[discord.Role] = None
    announcement: Optional[discord.Message] = None
    error: Optional[Exception] = None

    @property
    def applied(self) -> bool:
        return self.state is AnnouncementState.RENDERED


def resolve_topic(message: discord.Message) -> discord.Role:
    """Find the topic role an announcement tags.

    Raises:
        MalformedReference: no tag, or the tagged role no longer exists
    """
    role_id = parse_topic_tag(message.content)
    if role_id is None:
        mentions = getattr(message, "role_mentions", None) or []
        if mentions:
            role_id = mentions[0].id
    if role_id is None:
        raise MalformedReference(f"Message {message.id} tags no topic")
    role = message.guild.get_role(role_id)
    if role is None:
        raise MalformedReference(f"Role {role_id} tagged by message {message.id} no longer exists")
    return role


class SubscriptionStateMachine:
    """Handles reaction presses on control-channel announcements."""

    def __init__(self, gate: CommunityGate, channel_name: str, confirm_by_dm: bool = True):
        self.gate = gate
        self.channel_name = channel_name
        self.confirm_by_dm = confirm_by_dm

    def should_handle(self, event: ReactionEvent) -> bool:
        guild = event.guild
        if guild is None or not self.gate.allows(guild):
            return False
        if not is_control_channel(event.message.channel, self.channel_name):
            return False
        return event.member.id != guild.me.id

    async def handle(self, event: ReactionEvent) -> Optional[Transition]:
        """Run one transition. Returns None when the event is not ours."""
        if not self.should_handle(event):
            return None

        message = event.message
        member = event.member

        # idle: clear the press first so the control stays reusable
        await self._clear_press(event)

        marker = event.marker
        if marker is None:
            logger.debug(f"Ignoring unknown reaction {event.emoji} on message {message.id}")
            return Transition(AnnouncementState.IDLE)

        try:
            topic = resolve_topic(message)
        except MalformedReference as e:
            logger.debug(f"Dropped reaction: {e}")
            return Transition(AnnouncementState.IDLE, error=e)

        # applying
        logger.info(f"[applying] {marker.name.lower()} {member.id} → '{topic.name}'")
        try:
            await self._apply(member, topic, marker)
        except PermissionInsufficient as e:
            logger.warning(f"Missing permission to manage role '{topic.name}' ({topic.id}) for {member.id}")
            await self._notify(message.channel, e.notice())
            return Transition(AnnouncementState.IDLE, topic=topic, error=e)
        except discord.HTTPException as e:
            logger.error(f"Failed to {marker.name.lower()} {member.id} on '{topic.name}': {e}", exc_info=True)
            await self._notify(message.channel, f"{member.mention} **{topic.name}**: {classify_error(e)}")
            return Transition(AnnouncementState.IDLE, topic=topic, error=e)

        # rendered
        owner = AnnouncementOwner.of(message, message.guild.me.id)
        try:
            subscribers = await self._current_subscribers(message.guild, topic, member)
            announcement = await refresh_announcement(message, topic, subscribers, owner)
        except discord.HTTPException as e:
            logger.error(f"Failed to re-render announcement for '{topic.name}': {e}", exc_info=True)
            await self._notify(message.channel, f"**{topic.name}**: {classify_error(e)}")
            return Transition(AnnouncementState.IDLE, topic=topic, error=e)

        logger.info(f"[{AnnouncementState.RENDERED.value}] '{topic.name}' ({owner.value} announcement)")
        await self._confirm(member, topic, marker)
        return Transition(AnnouncementState.RENDERED, topic=topic, announcement=announcement)

    async def _clear_press(self, event: ReactionEvent):
        try:
            await event.message.remove_reaction(event.emoji, event.member)
        except discord.HTTPException as e:
            logger.warning(f"Could not clear reaction on message {event.message.id}: {e}")

    async def _apply(self, member: discord.Member, topic: discord.Role, marker: Marker):
        try:
            if marker is Marker.SUBSCRIBE:
                await member.add_roles(topic, reason="Subscribed via Candela")
            else:
                await member.remove_roles(topic, reason="Unsubscribed via Candela")
        except discord.Forbidden as e:
            raise PermissionInsufficient(topic.name, actor=member.mention) from e

    async def _current_subscribers(self, guild: discord.Guild, topic: discord.Role,
                                   member: discord.Member) -> list:
        """Re-read the topic's membership.

        Guild state can trail our own write by a gateway round-trip, so the
        acting member's roles are confirmed with a fresh fetch. Other members
        come from the guild cache: when two members press at the same
        instant, each render may miss the other, and the roster catches up
        on the next press for that topic.
        """
        fresh = guild.get_role(topic.id) or topic
        subscribers = {m.id: m for m in fresh.members}
        confirmed = await guild.fetch_member(member.id)
        if any(role.id == topic.id for role in confirmed.roles):
            subscribers[confirmed.id] = confirmed
        else:
            subscribers.pop(confirmed.id, None)
        return list(subscribers.values())

    async def _confirm(self, member: discord.Member, topic: discord.Role, marker: Marker):
        if not self.confirm_by_dm:
            return
        status = "subscribed" if marker is Marker.SUBSCRIBE else "unsubscribed"
        try:
            await member.send(f"**{topic.name}**\n_{topic.guild.name}_\n{marker.value} {status}")
        except discord.HTTPException as e:
            logger.debug(f"Could not DM confirmation to {member.id}: {e}")

    async def _notify(self, channel: discord.TextChannel, text: str):
        try:
            await channel.send(text)
        except discord.HTTPException as e:
            logger.error(f"Failed to post notice in #{channel.name}: {e}")
