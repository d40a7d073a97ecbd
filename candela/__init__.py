"""Candela — reaction-driven topic subscriptions for Discord communities."""

__version__ = "0.1.0"
