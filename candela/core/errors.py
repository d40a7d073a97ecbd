"""Error taxonomy and user-facing error classification.

Every failure is scoped to the single event that triggered it. The typed
errors below carry the notice that should be shown to the community;
anything else is classified by ``classify_error()`` into a short generic
message.
"""

import asyncio

import discord


class CandelaError(Exception):
    """Base class for failures that have a user-facing notice."""

    def notice(self) -> str:
        return str(self)


class AuthorizationDenied(CandelaError):
    """A non-administrator tried to create topics."""

    def __init__(self, guild_name: str):
        self.guild_name = guild_name
        super().__init__(
            f"Oops, sorry! You don't have permission to create gyms in **{guild_name}**. "
            f"Only administrators can do that!"
        )


class NameConflict(CandelaError):
    """A same-named role exists but was not created as a topic."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Hmm. A role called **{name}** already exists and is not mentionable. "
            f"If you're sure that you want to add a gym with that name, "
            f"either delete that role or make it mentionable then try me again."
        )


class PermissionInsufficient(CandelaError):
    """The bot lacks rights on a specific role or channel."""

    def __init__(self, topic: str, actor: str | None = None):
        self.topic = topic
        self.actor = actor
        if actor:
            message = (
                f"Oh, sorry {actor}! It looks like I am not able to subscribe or unsubscribe "
                f"people from **{topic}**. A group administrator needs to allow me to manage "
                f"the _{topic}_ role to proceed."
            )
        else:
            message = (
                f"Oh, sorry! I am not allowed to manage **{topic}**. "
                f"A group administrator needs to grant me the Manage Roles permission."
            )
        super().__init__(message)


class MalformedReference(CandelaError):
    """A reaction targeted a message with no resolvable topic tag."""


def classify_error(e: Exception) -> str:
    """Classify any exception into a user-friendly message.

    Returns a short string suitable for sending directly to the channel.
    """
    # 1: Typed errors carry their own notice
    if isinstance(e, CandelaError):
        return e.notice()

    # 2-5: Discord HTTP errors
    if isinstance(e, discord.Forbidden):
        return "I don't have permission to do that here. Please ask an administrator to check my role."
    if isinstance(e, discord.NotFound):
        return "That message or role no longer exists."
    if isinstance(e, discord.DiscordServerError):
        return "Discord is having server issues. Please try again later."
    if isinstance(e, discord.HTTPException):
        if e.status == 429:
            return "Rate limited. Please wait a moment and try again."
        return f"Discord returned HTTP {e.status}. Please try again later."

    # 6: Connection errors
    if isinstance(e, discord.ConnectionClosed):
        return "Lost connection to Discord. Please try again."

    # 7: asyncio timeout
    if isinstance(e, asyncio.TimeoutError):
        return "Request timed out. Please try again."

    # 8: Fallback — include type name for debugging
    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
