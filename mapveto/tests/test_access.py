"""
Tests for tokens and roles.
"""

import pytest

from ..access import (
    Role,
    check_admin_secret,
    generate_key,
    generate_tokens,
    may_act_for,
    resolve_role,
)
from ..engine_core.state import Team


def test_generate_key_length():
    assert len(generate_key()) == 16
    assert len(generate_key(6)) == 12
    assert generate_key() != generate_key()


def test_generated_tokens_are_distinct():
    tokens = generate_tokens()

    assert len({tokens.admin, tokens.a, tokens.b}) == 3


def test_resolve_role(registry):
    session = registry.create_session("bo1")

    assert resolve_role(session, session.tokens.admin) is Role.ADMIN
    assert resolve_role(session, session.tokens.a) is Role.A
    assert resolve_role(session, session.tokens.b) is Role.B
    assert resolve_role(session, "guess") is Role.VIEWER
    assert resolve_role(session, "") is Role.VIEWER
    assert resolve_role(session, None) is Role.VIEWER


def test_tokens_do_not_cross_sessions(registry):
    first = registry.create_session("bo1")
    second = registry.create_session("bo1")

    assert resolve_role(second, first.tokens.admin) is Role.VIEWER


@pytest.mark.parametrize("role,team,allowed", [
    (Role.ADMIN, Team.A, True),
    (Role.ADMIN, Team.B, True),
    (Role.ADMIN, Team.SYSTEM, False),
    (Role.A, Team.A, True),
    (Role.A, Team.B, False),
    (Role.B, Team.B, True),
    (Role.B, Team.A, False),
    (Role.VIEWER, Team.A, False),
])
def test_may_act_for(role, team, allowed):
    assert may_act_for(role, team) is allowed


def test_check_admin_secret():
    assert check_admin_secret("s3cret", "s3cret")
    assert not check_admin_secret("nope", "s3cret")
    assert not check_admin_secret(None, "s3cret")
    assert not check_admin_secret("", "s3cret")
