from datetime import datetime, timedelta, timezone
from typing import Optional, Set
from jose import JWTError, jwt
import hashlib
import threading

# In-memory token blacklist (signed-out bearer tokens)
_token_blacklist: Set[str] = set()
_blacklist_lock = threading.Lock()

ALGORITHM = "HS256"


def create_access_token(
    data: dict,
    secret: str,
    expires_delta: Optional[timedelta] = None,
    default_expires_seconds: int = 3600,
) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(seconds=default_expires_seconds)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, secret, algorithm=ALGORITHM)
    return encoded_jwt


def _get_token_hash(token: str) -> str:
    """Generate a hash of the token for blacklist storage"""
    return hashlib.sha256(token.encode()).hexdigest()


def blacklist_token(token: str) -> None:
    """Add token to blacklist"""
    token_hash = _get_token_hash(token)
    with _blacklist_lock:
        _token_blacklist.add(token_hash)


def is_token_blacklisted(token: str) -> bool:
    """Check if token is blacklisted"""
    token_hash = _get_token_hash(token)
    with _blacklist_lock:
        return token_hash in _token_blacklist


def decode_token(token: str, secret: str, token_type: str = "access") -> Optional[dict]:
    """Decode JWT token and return payload if valid, not blacklisted and of the expected type"""
    try:
        if is_token_blacklisted(token):
            return None

        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        if payload.get("sub") is None or payload.get("type") != token_type:
            return None
        return payload
    except JWTError:
        return None


def verify_token(token: str, secret: str, token_type: str = "access") -> Optional[str]:
    """Verify JWT token and return subject (user_id) if valid"""
    payload = decode_token(token, secret, token_type)
    if payload is None:
        return None
    return payload.get("sub")
