"""Issue and verify signed, time-bounded bearer tokens."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from uuid import UUID
import logging

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError
from pydantic import field_validator
import jwt

from app.core.config import AppSettings
from app.core.config import DEFAULT_JWT_ALGORITHM
from app.core.config import DEFAULT_TOKEN_AUDIENCE
from app.core.config import DEFAULT_TOKEN_ISSUER
from app.core.errors import ClassifiedError
from app.core.errors import ErrorCode
from app.core.logging import log_event

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"
REQUIRED_CLAIMS = ["exp", "iat", "nbf", "sub"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Claims(BaseModel):
    """Identity assertion carried by a bearer token."""

    model_config = ConfigDict(frozen=True)

    username: str
    subject_id: UUID
    profile_asset_ref: str | None = None
    issuer: str = DEFAULT_TOKEN_ISSUER
    audience: tuple[str, ...] = (DEFAULT_TOKEN_AUDIENCE,)
    issued_at: datetime
    not_before: datetime
    expires_at: datetime

    @field_validator("audience", mode="before")
    @classmethod
    def _audience_as_tuple(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value

    def to_payload(self) -> dict[str, Any]:
        """Return the registered and private claims as a JWT payload."""
        return {
            "username": self.username,
            "id": str(self.subject_id),
            "profile_picture_asset_id": self.profile_asset_ref,
            "sub": self.username,
            "iss": self.issuer,
            "aud": list(self.audience),
            "iat": int(self.issued_at.timestamp()),
            "nbf": int(self.not_before.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Claims:
        """Build claims from a decoded payload; raises ``ValidationError`` on a bad shape."""
        return cls.model_validate(
            {
                "username": payload.get("username"),
                "subject_id": payload.get("id"),
                "profile_asset_ref": payload.get("profile_picture_asset_id"),
                "issuer": payload.get("iss"),
                "audience": payload.get("aud"),
                "issued_at": payload.get("iat"),
                "not_before": payload.get("nbf"),
                "expires_at": payload.get("exp"),
            }
        )


class TokenService:
    """Signs and verifies HMAC bearer tokens with a fixed issuer and audience."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = DEFAULT_JWT_ALGORITHM,
        issuer: str = DEFAULT_TOKEN_ISSUER,
        audience: str = DEFAULT_TOKEN_AUDIENCE,
        lifetime: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience
        self._lifetime = lifetime
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: AppSettings) -> TokenService:
        return cls(
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            lifetime=timedelta(seconds=settings.token_lifetime_seconds),
        )

    def issue(self, username: str, subject_id: UUID, profile_asset_ref: str | None = None) -> str:
        """Sign a token for an authenticated user."""
        if not self._secret:
            log_event(
                logger,
                logging.ERROR,
                "Token signing secret is not configured",
                component="token",
                event="jwt_secret_missing",
            )
            raise ErrorCode.ENVIRONMENT_VARIABLE_NOT_FOUND.new_error(details="JWT_SECRET_KEY is not set")

        now = self._clock().astimezone(timezone.utc).replace(microsecond=0)
        claims = Claims(
            username=username,
            subject_id=subject_id,
            profile_asset_ref=profile_asset_ref,
            issuer=self._issuer,
            audience=(self._audience,),
            issued_at=now,
            not_before=now,
            expires_at=now + self._lifetime,
        )
        return jwt.encode(claims.to_payload(), self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Claims:
        """Return the claims of a valid token or raise a uniform ``UNAUTHORIZED``."""
        if not self._secret:
            log_event(
                logger,
                logging.ERROR,
                "Token verification secret is not configured",
                component="token",
                event="jwt_secret_missing",
            )
            raise ErrorCode.INTERNAL_SERVER_ERROR.new_error(details="Token verification is not configured")
        if not token:
            raise self._rejected("empty_token")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
            claims = Claims.from_payload(payload)
        except jwt.PyJWTError as exc:
            raise self._rejected(type(exc).__name__, cause=exc)
        except ValidationError as exc:
            raise self._rejected("invalid_claims_shape", cause=exc)

        # Time window is checked against the injected clock.
        now = self._clock()
        if now > claims.expires_at:
            raise self._rejected("token_expired")
        if now < claims.not_before:
            raise self._rejected("token_not_yet_valid")
        return claims

    def _rejected(self, reason: str, *, cause: BaseException | None = None) -> ClassifiedError:
        log_event(
            logger,
            logging.WARNING,
            "Token rejected",
            component="token",
            event="token_invalid",
            reason=reason,
        )
        return ErrorCode.UNAUTHORIZED.new_error(details="Invalid or expired token", cause=cause)


def bearer_header_value(token: str) -> str:
    """Return the ``Authorization`` header value for a token."""
    return f"{BEARER_SCHEME}: {token}"


def extract_bearer_token(header: str | None) -> str:
    """Return the token from an ``Authorization`` header.

    Both ``Bearer: <token>`` and ``Bearer <token>`` are accepted.
    """
    if not header:
        raise ErrorCode.UNAUTHORIZED.new_error(details="Authorization header is missing")

    scheme, _, remainder = header.strip().partition(" ")
    if scheme.rstrip(":") != BEARER_SCHEME or not remainder.strip():
        raise ErrorCode.UNAUTHORIZED.new_error(details="Invalid authorization header format")
    return remainder.strip()
