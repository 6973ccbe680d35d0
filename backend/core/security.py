"""Password hashing and signed token helpers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import Settings, settings
from .errors import InvalidTokenError

BCRYPT_ROUNDS = 10
RESERVED_CLAIMS = frozenset({"iat", "exp"})
PURPOSE_VERIFY_EMAIL = "verify-email"
PURPOSE_RESET_PASSWORD = "reset-password"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
)

Clock = Callable[[], datetime]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def needs_rehash(password_hash: str) -> bool:
    return pwd_context.needs_update(password_hash)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaim:
    id: str
    name: str


class TokenService:
    """Issue and verify HMAC-signed, time-limited bearer tokens.

    Expiry is checked against the injected ``clock`` rather than the wall
    clock so callers (and tests) control what "now" means. A token is
    accepted while ``now < exp``; a bad signature and an expired token raise
    the same :class:`InvalidTokenError`.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        session_ttl: timedelta = timedelta(days=1),
        action_ttl: timedelta = timedelta(minutes=10),
        bind_action_purpose: bool = False,
        clock: Clock = utcnow,
    ) -> None:
        if not secret:
            raise ValueError("secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self.session_ttl = session_ttl
        self.action_ttl = action_ttl
        self.bind_action_purpose = bind_action_purpose
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings, *, clock: Clock = utcnow) -> "TokenService":
        return cls(
            config.jwt_secret,
            algorithm=config.jwt_algorithm,
            session_ttl=timedelta(minutes=config.session_token_expire_minutes),
            action_ttl=timedelta(minutes=config.action_token_expire_minutes),
            bind_action_purpose=config.action_token_bind_purpose,
            clock=clock,
        )

    def issue(self, claim: Mapping[str, Any], ttl: timedelta) -> IssuedToken:
        if RESERVED_CLAIMS & claim.keys():
            raise ValueError("claim must not set iat or exp")
        # Whole seconds so the returned timestamps match what is signed.
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + ttl
        payload = {
            **claim,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        return IssuedToken(token=token, issued_at=issued_at, expires_at=expires_at)

    def verify(self, token: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidTokenError() from exc

        exp = payload.get("exp")
        if not isinstance(exp, int) or int(self._clock().timestamp()) >= exp:
            raise InvalidTokenError()
        return {key: value for key, value in payload.items() if key not in RESERVED_CLAIMS}

    def issue_session(self, user_id: str, name: str) -> IssuedToken:
        return self.issue({"sub": user_id, "name": name}, self.session_ttl)

    def verify_session(self, token: str) -> SessionClaim:
        claim = self.verify(token)
        user_id = claim.get("sub")
        name = claim.get("name")
        if not isinstance(user_id, str) or not isinstance(name, str):
            raise InvalidTokenError()
        return SessionClaim(id=user_id, name=name)

    def issue_action(self, user_id: str, purpose: str) -> IssuedToken:
        claim: dict[str, Any] = {"sub": user_id}
        if self.bind_action_purpose:
            claim["purpose"] = purpose
        return self.issue(claim, self.action_ttl)

    def verify_action(self, token: str, purpose: str) -> str:
        claim = self.verify(token)
        user_id = claim.get("sub")
        if not isinstance(user_id, str):
            raise InvalidTokenError()
        if self.bind_action_purpose and claim.get("purpose") != purpose:
            raise InvalidTokenError()
        return user_id


@lru_cache
def get_token_service() -> TokenService:
    return TokenService.from_settings(settings)
