"""
Unit tests for the token identity provider and the identity gate.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from cv_tracker.core.exceptions import NotAuthenticated
from cv_tracker.core.security import create_access_token, is_token_blacklisted, verify_token
from cv_tracker.schemas.identity import Identity
from cv_tracker.services.identity_service import IdentityGate, TokenIdentityProvider, require_identity

SECRET = "unit-test-secret-key-that-is-long-enough"


def _make_identity(user_id: str = "user-1") -> Identity:
    return Identity(id=user_id, email=f"{user_id}@example.com", display_name="Test User")


# ---------------------------------------------------------------------------
# TokenIdentityProvider
# ---------------------------------------------------------------------------
class TestTokenIdentityProvider:
    def test_issued_token_verifies(self):
        provider = TokenIdentityProvider(SECRET)
        identity = _make_identity()

        token = provider.issue_token(identity)

        assert provider.verify(token) == identity
        assert verify_token(token, SECRET) == identity.id

    def test_wrong_secret_rejected(self):
        token = TokenIdentityProvider("another-secret-entirely").issue_token(_make_identity())

        assert TokenIdentityProvider(SECRET).verify(token) is None

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-1"}, SECRET, expires_delta=timedelta(seconds=-5))

        assert TokenIdentityProvider(SECRET).verify(token) is None

    def test_token_of_other_type_rejected(self):
        provider = TokenIdentityProvider(SECRET)
        token = provider.issue_token(_make_identity())

        assert verify_token(token, SECRET, token_type="refresh") is None

    def test_garbage_rejected(self):
        assert TokenIdentityProvider(SECRET).verify("not-a-jwt") is None

    async def test_listener_called_immediately_and_on_change(self):
        provider = TokenIdentityProvider(SECRET)
        identity = _make_identity()
        seen = []

        unsubscribe = provider.on_identity_change(seen.append)
        await provider.sign_in(provider.issue_token(identity))
        unsubscribe()
        await provider.sign_out()

        assert seen == [None, identity]

    async def test_sign_in_with_invalid_token(self):
        provider = TokenIdentityProvider(SECRET)

        assert await provider.sign_in("bogus") is None
        assert await provider.get_current_identity() is None

    async def test_sign_out_revokes_token(self):
        provider = TokenIdentityProvider(SECRET)
        token = provider.issue_token(_make_identity("user-signout"))
        await provider.sign_in(token)

        await provider.sign_out()

        assert is_token_blacklisted(token)
        assert provider.verify(token) is None
        assert await provider.get_current_identity() is None


# ---------------------------------------------------------------------------
# IdentityGate
# ---------------------------------------------------------------------------
class TestIdentityGate:
    def test_not_ready_before_first_report(self):
        gate = IdentityGate()

        assert gate.ready is False
        assert gate.identity is None
        assert not gate.is_authenticated

    def test_attach_reports_absent_identity(self):
        gate = IdentityGate()

        gate.attach(TokenIdentityProvider(SECRET))

        assert gate.ready is True
        assert gate.identity is None

    async def test_mirrors_sign_in_and_sign_out(self):
        provider = TokenIdentityProvider(SECRET)
        gate = IdentityGate()
        gate.attach(provider)
        identity = _make_identity()

        await gate.sign_in(provider.issue_token(identity))
        assert gate.identity == identity
        assert gate.require() == identity

        await gate.sign_out()
        assert gate.identity is None
        with pytest.raises(NotAuthenticated):
            gate.require()

    def test_subscribers_only_hear_changes(self):
        gate = IdentityGate()
        seen = []
        gate.subscribe(seen.append)
        identity = _make_identity()

        gate.handle_identity_change(None)
        gate.handle_identity_change(identity)
        gate.handle_identity_change(identity)
        gate.handle_identity_change(None)

        assert seen == [None, identity, None]

    def test_detach_stops_mirroring(self):
        provider = TokenIdentityProvider(SECRET)
        gate = IdentityGate()
        gate.attach(provider)

        gate.detach()
        provider._publish(_make_identity())

        assert gate.identity is None

    async def test_sign_in_without_provider(self):
        with pytest.raises(NotAuthenticated):
            await IdentityGate().sign_in("token")


def test_require_identity():
    identity = _make_identity()
    assert require_identity(identity) is identity
    with pytest.raises(NotAuthenticated):
        require_identity(None)
