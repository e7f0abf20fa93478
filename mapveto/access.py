"""
Access Control - Capability tokens and roles.

Each session carries three generated tokens (admin, A, B). A token presented
by a connection decides its role for that session; anything unrecognised is a
viewer. The HTTP management surface is gated by one process-wide secret
instead.
"""

from __future__ import annotations
from enum import Enum
import hmac
import secrets

from .engine_core.state import SessionTokens, Team, VetoSession


class Role(str, Enum):
    ADMIN = "admin"
    A = "A"
    B = "B"
    VIEWER = "viewer"

    @property
    def team(self) -> Team | None:
        if self is Role.A:
            return Team.A
        if self is Role.B:
            return Team.B
        return None


def generate_key(num_bytes: int = 8) -> str:
    """Unguessable hex key."""
    return secrets.token_hex(num_bytes)


def generate_tokens() -> SessionTokens:
    """Three distinct tokens for a new session."""
    while True:
        tokens = SessionTokens(admin=generate_key(), a=generate_key(), b=generate_key())
        if len({tokens.admin, tokens.a, tokens.b}) == 3:
            return tokens


def _matches(given: str | None, expected: str) -> bool:
    if not given:
        return False
    return hmac.compare_digest(given.encode(), expected.encode())


def resolve_role(session: VetoSession, token: str | None) -> Role:
    """Role of whoever holds `token` in this session."""
    if _matches(token, session.tokens.admin):
        return Role.ADMIN
    if _matches(token, session.tokens.a):
        return Role.A
    if _matches(token, session.tokens.b):
        return Role.B
    return Role.VIEWER


def may_act_for(role: Role, team: Team) -> bool:
    """Admin drives any team's turn; A and B only their own."""
    if role is Role.ADMIN:
        return team in (Team.A, Team.B)
    return role.team is team


def check_admin_secret(given: str | None, expected: str) -> bool:
    """Constant-time check of the process-wide admin secret."""
    return _matches(given, expected)
