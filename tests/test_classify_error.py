"""Tests for classify_error()."""

import asyncio
from types import SimpleNamespace

import discord

from candela.core.errors import (
    AuthorizationDenied,
    NameConflict,
    PermissionInsufficient,
    classify_error,
)


def _response(status: int):
    return SimpleNamespace(status=status, reason="reason")


# ── Typed errors ─────────────────────────────────────────────

class TestTypedErrors:
    def test_authorization_denied(self):
        msg = classify_error(AuthorizationDenied("Pallet Town"))
        assert "**Pallet Town**" in msg
        assert "Only administrators" in msg

    def test_name_conflict(self):
        assert "**Moderators**" in classify_error(NameConflict("Moderators"))

    def test_permission_with_actor(self):
        msg = classify_error(PermissionInsufficient("Central Park", actor="<@1>"))
        assert "<@1>" in msg
        assert "_Central Park_" in msg

    def test_permission_without_actor(self):
        msg = classify_error(PermissionInsufficient("Central Park"))
        assert "Manage Roles" in msg


# ── Discord HTTP errors ──────────────────────────────────────

class TestDiscordErrors:
    def test_forbidden(self):
        assert "permission" in classify_error(discord.Forbidden(_response(403), "no"))

    def test_not_found(self):
        assert "no longer exists" in classify_error(discord.NotFound(_response(404), "gone"))

    def test_server_error(self):
        assert "server issues" in classify_error(discord.DiscordServerError(_response(502), "bad gateway"))

    def test_rate_limited(self):
        assert "Rate limited" in classify_error(discord.HTTPException(_response(429), "slow down"))

    def test_other_status(self):
        assert "HTTP 418" in classify_error(discord.HTTPException(_response(418), "teapot"))


# ── Fallbacks ────────────────────────────────────────────────

class TestFallbacks:
    def test_timeout(self):
        assert "timed out" in classify_error(asyncio.TimeoutError())

    def test_unknown(self):
        msg = classify_error(ValueError("x"))
        assert "ValueError" in msg
