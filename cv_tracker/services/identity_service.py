"""
Session/identity gate.

The gate mirrors the identity provider's session notifications into a value
the rest of the system reads synchronously. ``ready`` is False until the
provider has reported at least once, so "not determined yet" and
"determined absent" stay distinguishable.

Sign-in and sign-out are delegated to the provider. The bundled
TokenIdentityProvider accepts signed bearer tokens (JWT, HS256).
"""
import logging
from typing import Callable, List, Optional, Protocol

from cv_tracker.core.exceptions import NotAuthenticated
from cv_tracker.core.security import blacklist_token, create_access_token, decode_token
from cv_tracker.schemas.identity import Identity

logger = logging.getLogger(__name__)

IdentityCallback = Callable[[Optional[Identity]], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    async def get_current_identity(self) -> Optional[Identity]:
        ...

    def on_identity_change(self, callback: IdentityCallback) -> Unsubscribe:
        ...

    async def sign_in(self, credential: str) -> Optional[Identity]:
        ...

    async def sign_out(self) -> None:
        ...


def identity_from_claims(claims: dict) -> Identity:
    return Identity(id=claims["sub"], email=claims.get("email"), display_name=claims.get("name"))


class TokenIdentityProvider:
    """
    Identity provider backed by bearer tokens.

    Tokens are issued elsewhere (or by ``issue_token`` for tooling and tests)
    and verified here with the shared secret.
    """

    def __init__(self, secret: str, token_expires_seconds: int = 3600):
        self.secret = secret
        self.token_expires_seconds = token_expires_seconds
        self._identity: Optional[Identity] = None
        self._token: Optional[str] = None
        self._listeners: List[IdentityCallback] = []

    def issue_token(self, identity: Identity) -> str:
        claims = {"sub": identity.id}
        if identity.email:
            claims["email"] = identity.email
        if identity.display_name:
            claims["name"] = identity.display_name
        return create_access_token(claims, self.secret, default_expires_seconds=self.token_expires_seconds)

    def verify(self, token: str) -> Optional[Identity]:
        """Identity carried by a valid, non-revoked token, else None."""
        claims = decode_token(token, self.secret)
        if claims is None:
            return None
        return identity_from_claims(claims)

    async def get_current_identity(self) -> Optional[Identity]:
        return self._identity

    def on_identity_change(self, callback: IdentityCallback) -> Unsubscribe:
        """Register a listener; it is called right away with the current session."""
        self._listeners.append(callback)
        callback(self._identity)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def sign_in(self, credential: str) -> Optional[Identity]:
        identity = self.verify(credential)
        if identity is None:
            logger.warning("Sign-in rejected: invalid or revoked token")
            return None
        self._token = credential
        self._publish(identity)
        return identity

    async def sign_out(self) -> None:
        if self._token:
            blacklist_token(self._token)
        self._token = None
        self._publish(None)

    def _publish(self, identity: Optional[Identity]) -> None:
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)


class IdentityGate:
    """Synchronous view of the current session."""

    def __init__(self):
        self.identity: Optional[Identity] = None
        self.ready = False
        self._provider: Optional[IdentityProvider] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._listeners: List[IdentityCallback] = []

    def attach(self, provider: IdentityProvider) -> None:
        """Start mirroring a provider's session notifications."""
        self.detach()
        self._provider = provider
        self._unsubscribe = provider.on_identity_change(self.handle_identity_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._provider = None

    def handle_identity_change(self, identity: Optional[Identity]) -> None:
        changed = identity != self.identity or not self.ready
        self.identity = identity
        self.ready = True
        if changed:
            for listener in list(self._listeners):
                listener(identity)

    def subscribe(self, callback: IdentityCallback) -> Unsubscribe:
        """Listen for identity changes (e.g. to refetch on sign-in)."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def require(self) -> Identity:
        """Current identity, or NotAuthenticated."""
        if self.identity is None:
            raise NotAuthenticated()
        return self.identity

    async def sign_in(self, credential: str) -> Optional[Identity]:
        if self._provider is None:
            raise NotAuthenticated("No identity provider attached")
        return await self._provider.sign_in(credential)

    async def sign_out(self) -> None:
        if self._provider is None:
            return
        await self._provider.sign_out()


def require_identity(identity: Optional[Identity]) -> Identity:
    """Hard precondition for every repository operation."""
    if identity is None:
        raise NotAuthenticated()
    return identity
