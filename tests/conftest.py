"""Pytest configuration and shared fixtures."""

import pytest

from candela.config import CommunityGate

from fakes import FakeGuild, FakeTextChannel

CHANNEL_NAME = "gym-membership"


@pytest.fixture
def guild():
    """A guild with the bot, one administrator and one ordinary member."""
    g = FakeGuild()
    g.add_member(2001, name="blanche", administrator=True)
    g.add_member(3001, name="spark")
    return g


@pytest.fixture
def admin(guild):
    return next(m for m in guild.members if m.id == 2001)


@pytest.fixture
def member(guild):
    return next(m for m in guild.members if m.id == 3001)


@pytest.fixture
def channel(guild):
    """An existing control channel."""
    ch = FakeTextChannel(guild, CHANNEL_NAME)
    guild.text_channels.append(ch)
    return ch


@pytest.fixture
def gate():
    """Production routing; the fixture guild is not the test guild."""
    return CommunityGate(production=True, test_guild=99)
