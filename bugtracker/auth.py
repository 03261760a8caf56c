import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from bugtracker.config import Settings
from bugtracker.credentials import check_password_strength, normalize_email
from bugtracker.errors import ErrorKind, NotFoundError, UnauthorizedError, missing_fields
from bugtracker.models import User
from bugtracker.permissions import Actor
from bugtracker.store import Store, get_store

logger = logging.getLogger(__name__)


class PasswordHasher:
    """bcrypt with a fixed work factor."""

    def __init__(self, rounds: int = 10):
        self.ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self.ctx.hash(password)

    def verify(self, plain: str, hashed: str) -> bool:
        return self.ctx.verify(plain, hashed)

    def dummy_verify(self):
        # spend the same time as a real comparison when the user is unknown
        self.ctx.dummy_verify()


def _load_key(path: str) -> Optional[bytes]:
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None


def load_keys(settings: Settings) -> Tuple[bytes, bytes]:
    """
    Load or generate RSA keys for RS256 signing.
    PEM text in the settings wins over the key files.
    """
    if settings.private_key and settings.public_key:
        return settings.private_key, settings.public_key

    priv = _load_key(settings.private_key_path)
    pub = _load_key(settings.public_key_path)
    if priv and pub:
        return priv, pub

    # If not found, generate ephemeral keys; tokens will not survive a restart
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.hazmat.primitives import serialization

    logger.warning(
        "No signing keys at %s; generating an ephemeral RSA key pair",
        os.path.dirname(os.path.abspath(settings.private_key_path)),
    )
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    priv_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return priv_pem, pub_pem


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime
    jti: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    Issues and verifies session tokens.

    A token is valid from issue until its expiry; there is no revocation, so
    expiry is the only way a session ends.
    """

    def __init__(self, private_key: bytes, public_key: bytes, algorithm: str = "RS256", expires: timedelta = timedelta(hours=24)):
        self.private_key = private_key
        self.public_key = public_key
        self.algorithm = algorithm
        self.expires = expires

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        private_key, public_key = load_keys(settings)
        return cls(private_key, public_key, settings.jwt_algorithm, settings.token_expires)

    def issue(self, user: User, now: Optional[datetime] = None) -> Tuple[str, datetime]:
        now = now or _now()
        exp = now + self.expires
        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "role": user.role,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "jti": uuid4().hex,
            "type": "access",
        }
        token = jwt.encode(payload, self.private_key, algorithm=self.algorithm)
        return token, exp

    def verify(self, token: str) -> SessionClaims:
        try:
            payload = jwt.decode(token, self.public_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise UnauthorizedError("Token expired", ErrorKind.TOKEN_EXPIRED)
        except JWTError:
            raise UnauthorizedError("Invalid token", ErrorKind.INVALID_TOKEN)
        if payload.get("type") != "access" or payload.get("user_id") is None:
            raise UnauthorizedError("Invalid token", ErrorKind.INVALID_TOKEN)
        return SessionClaims(
            user_id=int(payload["user_id"]),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            jti=payload.get("jti", ""),
        )


def authenticate(store: Store, hasher: PasswordHasher, tokens: TokenService, email: str, password: str) -> Tuple[str, datetime, User]:
    """
    Check a login and issue a session token.

    Unknown email and wrong password fail identically with
    INVALID_CREDENTIALS so callers cannot probe for accounts.
    """
    if not email or not password:
        raise missing_fields(*[n for n, v in (("email", email), ("password", password)) if not v])

    user = store.get_user_by_email(normalize_email(email))
    if user is None:
        hasher.dummy_verify()
        logger.info("Failed login attempt")
        raise UnauthorizedError("Invalid email or password", ErrorKind.INVALID_CREDENTIALS)
    if not hasher.verify(password, user.password_hash):
        logger.info("Failed login attempt")
        raise UnauthorizedError("Invalid email or password", ErrorKind.INVALID_CREDENTIALS)

    token, exp = tokens.issue(user)
    return token, exp, user


def change_password(store: Store, hasher: PasswordHasher, user_id: int, current: str, new: str) -> User:
    """Replace the password hash; existing tokens stay valid until they expire."""
    if not current or not new:
        raise missing_fields(*[n for n, v in (("current_password", current), ("new_password", new)) if not v])
    check_password_strength(new, "new_password")

    user = store.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not hasher.verify(current, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")

    return store.update(user, {"password_hash": hasher.hash(new)})


# OAuth2 dependency for FastAPI; missing headers are reported through our own error kinds
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/users/login", auto_error=False)


def get_current_actor(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    store: Store = Depends(get_store),
) -> Actor:
    if not token:
        raise UnauthorizedError("Access token required")
    claims = request.app.state.tokens.verify(token)
    # the account must still exist for its token to be honoured
    if store.get(User, claims.user_id) is None:
        raise UnauthorizedError("User no longer exists")
    return Actor(id=claims.user_id, role=claims.role, email=claims.email)
