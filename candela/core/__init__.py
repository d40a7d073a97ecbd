"""Subscription core — platform-facing topic and announcement logic.

- Topics: name normalization, idempotent role lookup-or-create
- Provisioner: the restricted control channel and its welcome message
- Rendering: pure topic → announcement text + markers
- Intake: administrator messages → new topics and announcements
- Subscriptions: reaction presses → role membership → re-render
"""

from .errors import (
    CandelaError,
    AuthorizationDenied,
    NameConflict,
    PermissionInsufficient,
    MalformedReference,
    classify_error,
)
from .topics import TopicRegistry, normalize_topic_name, topic_key
from .provisioner import ControlChannelProvisioner, WELCOME_MESSAGE, is_control_channel
from .rendering import Marker, RenderedAnnouncement, render_announcement, parse_topic_tag
from .announcements import AnnouncementOwner, publish_announcement, refresh_announcement
from .intake import TopicCreationIntake, parse_topic_names
from .subscriptions import AnnouncementState, ReactionEvent, SubscriptionStateMachine, Transition

__all__ = [
    # Errors
    "CandelaError",
    "AuthorizationDenied",
    "NameConflict",
    "PermissionInsufficient",
    "MalformedReference",
    "classify_error",
    # Topics
    "TopicRegistry",
    "normalize_topic_name",
    "topic_key",
    # Provisioner
    "ControlChannelProvisioner",
    "WELCOME_MESSAGE",
    "is_control_channel",
    # Rendering
    "Marker",
    "RenderedAnnouncement",
    "render_announcement",
    "parse_topic_tag",
    # Announcements
    "AnnouncementOwner",
    "publish_announcement",
    "refresh_announcement",
    # Intake
    "TopicCreationIntake",
    "parse_topic_names",
    # Subscriptions
    "AnnouncementState",
    "ReactionEvent",
    "SubscriptionStateMachine",
    "Transition",
]
