"""Tests for the reaction-driven subscription state machine."""

import pytest

from candela.config import CommunityGate
from candela.core.announcements import publish_announcement
from candela.core.errors import MalformedReference, PermissionInsufficient
from candela.core.rendering import MESSAGE_LIMIT, render_announcement
from candela.core.subscriptions import (
    AnnouncementState,
    ReactionEvent,
    SubscriptionStateMachine,
    resolve_topic,
)

from fakes import FakeTextChannel, server_error

SUB = "🔔"
UNSUB = "🔕"


@pytest.fixture
def machine(gate):
    return SubscriptionStateMachine(gate, "gym-membership")


@pytest.fixture
def topic(guild):
    return guild.add_role("Central Park")


def press(message, emoji, member):
    message.press(emoji, member)
    return ReactionEvent(message=message, emoji=emoji, member=member)


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_subscribe_adds_member_and_rerenders(self, machine, channel, topic, member):
        """Press 🔔 → member added, press cleared, roster lists the member."""
        message = await publish_announcement(channel, topic)
        result = await machine.handle(press(message, SUB, member))

        assert result.state is AnnouncementState.RENDERED
        assert result.applied
        assert topic in member.roles
        assert member.id not in message.reactions[SUB]
        assert message.reactions[SUB] == {message.guild.me.id}
        assert message.reactions[UNSUB] == {message.guild.me.id}
        assert f"1. {member.mention}" in message.content
        assert result.announcement is message

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_member(self, machine, channel, topic, member):
        await member.add_roles(topic)
        message = await publish_announcement(channel, topic)
        assert member.mention in message.content

        result = await machine.handle(press(message, UNSUB, member))

        assert result.state is AnnouncementState.RENDERED
        assert topic not in member.roles
        assert message.content.endswith("None")

    @pytest.mark.asyncio
    async def test_round_trip_restores_text(self, machine, channel, topic, member, admin):
        await admin.add_roles(topic)
        message = await publish_announcement(channel, topic)
        before_roles = list(member.roles)
        before_text = message.content

        await machine.handle(press(message, SUB, member))
        assert message.content != before_text
        await machine.handle(press(message, UNSUB, member))

        assert member.roles == before_roles
        assert message.content == before_text

    @pytest.mark.asyncio
    async def test_roster_matches_membership_after_each_transition(
        self, machine, channel, topic, member, admin
    ):
        message = await publish_announcement(channel, topic)
        for who, emoji in [(member, SUB), (admin, SUB), (member, UNSUB), (member, SUB), (admin, UNSUB)]:
            await machine.handle(press(message, emoji, who))
            assert message.content == render_announcement(topic).text

    @pytest.mark.asyncio
    async def test_repeated_subscribe_is_idempotent(self, machine, channel, topic, member):
        message = await publish_announcement(channel, topic)
        await machine.handle(press(message, SUB, member))
        text = message.content
        edits = message.edits

        await machine.handle(press(message, SUB, member))

        assert message.content == text
        assert message.edits == edits
        assert message.content.count(member.mention) == 1

    @pytest.mark.asyncio
    async def test_gateway_lag_does_not_drop_acting_member(self, machine, channel, topic, member):
        message = await publish_announcement(channel, topic)
        # guild cache has not seen the role update yet
        topic.guild.lagging_member_ids.add(member.id)

        await machine.handle(press(message, SUB, member))

        assert member.mention in message.content

    @pytest.mark.asyncio
    async def test_confirmation_dm(self, machine, channel, topic, member):
        message = await publish_announcement(channel, topic)
        await machine.handle(press(message, SUB, member))
        await machine.handle(press(message, UNSUB, member))

        assert member.dms == [
            "**Central Park**\n_Pallet Town_\n🔔 subscribed",
            "**Central Park**\n_Pallet Town_\n🔕 unsubscribed",
        ]

    @pytest.mark.asyncio
    async def test_closed_dms_do_not_fail_transition(self, machine, channel, topic, member):
        member.dm_closed = True
        message = await publish_announcement(channel, topic)
        result = await machine.handle(press(message, SUB, member))
        assert result.applied

    @pytest.mark.asyncio
    async def test_confirmation_disabled(self, gate, channel, topic, member):
        quiet = SubscriptionStateMachine(gate, "gym-membership", confirm_by_dm=False)
        message = await publish_announcement(channel, topic)
        await quiet.handle(press(message, SUB, member))
        assert member.dms == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_permission_failure_reverts_to_idle(self, machine, channel, topic, member):
        """Bot may not manage the role → unchanged, notice names member and topic."""
        message = await publish_announcement(channel, topic)
        text = message.content
        topic.guild.locked_role_ids.add(topic.id)

        result = await machine.handle(press(message, SUB, member))

        assert result.state is AnnouncementState.IDLE
        assert isinstance(result.error, PermissionInsufficient)
        assert topic not in member.roles
        assert message.content == text
        assert member.id not in message.reactions[SUB]
        notice = channel.texts()[-1]
        assert member.mention in notice
        assert "Central Park" in notice
        assert member.dms == []

    @pytest.mark.asyncio
    async def test_transport_failure_reported(self, machine, channel, topic, member, monkeypatch):
        message = await publish_announcement(channel, topic)

        async def broken_add_roles(role, reason=None):
            raise server_error(503)

        monkeypatch.setattr(member, "add_roles", broken_add_roles)
        result = await machine.handle(press(message, SUB, member))

        assert result.state is AnnouncementState.IDLE
        assert "HTTP 503" in channel.texts()[-1]

    @pytest.mark.asyncio
    async def test_malformed_reference_dropped(self, machine, channel, member, guild):
        message = await channel.send("just some text")
        result = await machine.handle(press(message, SUB, member))

        assert result.state is AnnouncementState.IDLE
        assert isinstance(result.error, MalformedReference)
        assert member.id not in message.reactions[SUB]
        assert channel.texts() == ["just some text"]

    @pytest.mark.asyncio
    async def test_deleted_role_dropped(self, machine, channel, topic, member, guild):
        message = await publish_announcement(channel, topic)
        guild.roles.remove(topic)
        result = await machine.handle(press(message, SUB, member))

        assert isinstance(result.error, MalformedReference)
        assert len(channel.messages) == 1

    @pytest.mark.asyncio
    async def test_unknown_emoji_cleared_and_ignored(self, machine, channel, topic, member):
        message = await publish_announcement(channel, topic)
        result = await machine.handle(press(message, "👍", member))

        assert result.state is AnnouncementState.IDLE
        assert message.reactions["👍"] == set()
        assert topic not in member.roles


class TestForeignAnnouncement:
    @pytest.mark.asyncio
    async def test_foreign_announcement_migrated(self, machine, channel, topic, member, admin):
        legacy = channel.post(admin, f"{topic.mention}")
        result = await machine.handle(press(legacy, SUB, member))

        assert result.state is AnnouncementState.RENDERED
        assert legacy.deleted
        fresh = result.announcement
        assert fresh is not legacy
        assert fresh.author is channel.guild.me
        assert member.mention in fresh.content
        assert set(fresh.reactions) == {SUB, UNSUB}
        assert channel.messages == [fresh]

    def test_resolve_topic_falls_back_to_role_mentions(self, channel, topic, admin):
        legacy = channel.post(admin, "Central Park")
        legacy.role_mentions = [topic]
        assert resolve_topic(legacy) is topic


class TestRouting:
    @pytest.mark.asyncio
    async def test_bot_reactions_ignored(self, machine, channel, topic, guild):
        message = await publish_announcement(channel, topic)
        assert await machine.handle(press(message, SUB, guild.me)) is None
        assert guild.me.id in message.reactions[SUB]

    @pytest.mark.asyncio
    async def test_other_channels_ignored(self, machine, guild, topic, member):
        general = FakeTextChannel(guild, "general")
        message = await publish_announcement(general, topic)
        assert await machine.handle(press(message, SUB, member)) is None
        assert topic not in member.roles

    @pytest.mark.asyncio
    async def test_unrouted_guild_ignored(self, channel, topic, member):
        machine = SubscriptionStateMachine(CommunityGate(production=False, test_guild=99), "gym-membership")
        message = await publish_announcement(channel, topic)
        assert await machine.handle(press(message, SUB, member)) is None
        assert topic not in member.roles


class TestLargeTopic:
    @pytest.mark.asyncio
    async def test_rerender_stays_within_message_limit(self, machine, channel, topic, member, guild):
        for i in range(150):
            crowd = guild.add_member(100_000_000_000_000_000 + i)
            await crowd.add_roles(topic)
        message = await publish_announcement(channel, topic)

        result = await machine.handle(press(message, SUB, member))

        assert result.state is AnnouncementState.RENDERED
        assert topic in member.roles
        assert len(message.content) <= MESSAGE_LIMIT
        # member 3001 sorts ahead of every 18-digit id
        assert f"1. {member.mention}" in message.content
        assert message.content.endswith("more")


class TestConcurrentPresses:
    @pytest.mark.asyncio
    async def test_missed_subscriber_appears_on_next_press(self, machine, channel, topic, member, admin):
        message = await publish_announcement(channel, topic)
        # admin's subscription has not reached the guild cache yet
        await admin.add_roles(topic)
        topic.guild.lagging_member_ids.add(admin.id)

        await machine.handle(press(message, SUB, member))
        assert member.mention in message.content
        assert admin.mention not in message.content

        topic.guild.lagging_member_ids.clear()
        await machine.handle(press(message, SUB, member))

        assert admin.mention in message.content
        assert member.mention in message.content


class TestStates:
    def test_only_resting_states(self):
        assert [s.value for s in AnnouncementState] == ["idle", "rendered"]

    @pytest.mark.asyncio
    async def test_applying_logged(self, machine, channel, topic, member, caplog):
        message = await publish_announcement(channel, topic)
        with caplog.at_level("INFO", logger="candela.subscriptions"):
            await machine.handle(press(message, SUB, member))
        assert f"[applying] subscribe {member.id} → 'Central Park'" in caplog.text
        assert "[rendered] 'Central Park'" in caplog.text
