"""Unit tests for bearer token issuance and verification."""

from __future__ import annotations

import base64
import json
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from uuid import UUID
from uuid import uuid4

import jwt
import pytest
from pydantic import ValidationError

from app.core.errors import ClassifiedError
from app.core.tokens import Claims
from app.core.tokens import TokenService
from app.core.tokens import bearer_header_value
from app.core.tokens import extract_bearer_token

SECRET = "unit-test-secret-key-with-32-plus-bytes"
OTHER_SECRET = "another-secret-key-with-32-plus-bytes!!"
ISSUED = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
USER_ID = UUID("8d1f0f3c-3c1e-4b57-9c55-1d2a3b4c5d6e")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _service(clock: FakeClock, secret: str = SECRET, **kwargs) -> TokenService:
    return TokenService(secret, clock=clock, **kwargs)


def _unauthorized(service: TokenService, token: str) -> ClassifiedError:
    with pytest.raises(ClassifiedError) as exc_info:
        service.verify(token)
    assert exc_info.value.code == "UNAUTHORIZED"
    assert exc_info.value.http_status == 401
    return exc_info.value


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def test_issue_then_verify_round_trips_claims() -> None:
    clock = FakeClock(ISSUED.replace(microsecond=123456))
    service = _service(clock)

    token = service.issue("john_doe", USER_ID, "asset-1")
    claims = service.verify(token)

    assert claims.username == "john_doe"
    assert claims.subject_id == USER_ID
    assert claims.profile_asset_ref == "asset-1"
    assert claims.issuer == "BlueFox"
    assert claims.audience == ("users",)
    assert claims.issued_at == ISSUED
    assert claims.not_before == ISSUED
    assert claims.expires_at == ISSUED + timedelta(hours=24)


def test_issued_payload_uses_wire_claim_names() -> None:
    service = _service(FakeClock(ISSUED))

    payload = jwt.decode(service.issue("john_doe", USER_ID), options={"verify_signature": False})

    assert payload["sub"] == "john_doe"
    assert payload["username"] == "john_doe"
    assert payload["id"] == str(USER_ID)
    assert payload["profile_picture_asset_id"] is None
    assert payload["iss"] == "BlueFox"
    assert payload["aud"] == ["users"]
    assert payload["iat"] == payload["nbf"] == int(ISSUED.timestamp())
    assert payload["exp"] == int(ISSUED.timestamp()) + 24 * 60 * 60


def test_token_is_valid_up_to_expiry_and_rejected_after() -> None:
    clock = FakeClock(ISSUED)
    service = _service(clock)
    token = service.issue("john_doe", USER_ID)

    clock.now = ISSUED + timedelta(hours=24)
    assert service.verify(token).username == "john_doe"

    clock.now = ISSUED + timedelta(hours=24, seconds=1)
    _unauthorized(service, token)


def test_token_is_rejected_before_not_before() -> None:
    clock = FakeClock(ISSUED)
    service = _service(clock)
    token = service.issue("john_doe", USER_ID)

    clock.now = ISSUED - timedelta(seconds=1)
    _unauthorized(service, token)


def test_token_signed_with_other_secret_is_rejected() -> None:
    clock = FakeClock(ISSUED)
    token = _service(clock, OTHER_SECRET).issue("john_doe", USER_ID)

    _unauthorized(_service(clock), token)


def test_unsigned_token_is_rejected() -> None:
    clock = FakeClock(ISSUED)
    payload = Claims(
        username="john_doe",
        subject_id=USER_ID,
        issued_at=ISSUED,
        not_before=ISSUED,
        expires_at=ISSUED + timedelta(hours=1),
    ).to_payload()
    token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(payload)}."

    _unauthorized(_service(clock), token)


def test_token_for_other_audience_or_issuer_is_rejected() -> None:
    clock = FakeClock(ISSUED)
    service = _service(clock)

    _unauthorized(service, _service(clock, audience="admins").issue("john_doe", USER_ID))
    _unauthorized(service, _service(clock, issuer="SomeoneElse").issue("john_doe", USER_ID))


def test_token_missing_registered_claims_is_rejected() -> None:
    clock = FakeClock(ISSUED)
    token = jwt.encode(
        {"username": "john_doe", "id": str(USER_ID), "iss": "BlueFox", "aud": ["users"]},
        SECRET,
        algorithm="HS256",
    )

    _unauthorized(_service(clock), token)


def test_token_with_wrong_payload_shape_is_rejected() -> None:
    clock = FakeClock(ISSUED)
    stamp = int(ISSUED.timestamp())
    token = jwt.encode(
        {
            "username": "john_doe",
            "id": "not-a-uuid",
            "sub": "john_doe",
            "iss": "BlueFox",
            "aud": ["users"],
            "iat": stamp,
            "nbf": stamp,
            "exp": stamp + 60,
        },
        SECRET,
        algorithm="HS256",
    )

    _unauthorized(_service(clock), token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_tokens_are_rejected(token: str) -> None:
    _unauthorized(_service(FakeClock(ISSUED)), token)


def test_rejections_are_uniform_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    clock = FakeClock(ISSUED)
    service = _service(clock)
    expired = service.issue("john_doe", USER_ID)
    clock.now = ISSUED + timedelta(days=2)

    with caplog.at_level("WARNING", logger="app.core.tokens"):
        first = _unauthorized(service, expired)
        second = _unauthorized(service, "garbage")

    assert first.details == second.details == "Invalid or expired token"
    assert any(getattr(record, "reason", None) == "token_expired" for record in caplog.records)


def test_issue_without_secret_raises_environment_error() -> None:
    with pytest.raises(ClassifiedError) as exc_info:
        _service(FakeClock(ISSUED), secret="").issue("john_doe", uuid4())

    assert exc_info.value.code == "ENVIRONMENT_VARIABLE_NOT_FOUND"


def test_verify_without_secret_raises_internal_error() -> None:
    token = _service(FakeClock(ISSUED)).issue("john_doe", USER_ID)

    with pytest.raises(ClassifiedError) as exc_info:
        _service(FakeClock(ISSUED), secret="").verify(token)

    assert exc_info.value.code == "INTERNAL_SERVER_ERROR"


def test_claims_are_immutable() -> None:
    claims = _service(FakeClock(ISSUED)).verify(_service(FakeClock(ISSUED)).issue("john_doe", USER_ID))

    with pytest.raises(ValidationError):
        claims.username = "someone_else"  # type: ignore[misc]


def test_bearer_header_round_trip() -> None:
    assert bearer_header_value("abc.def.ghi") == "Bearer: abc.def.ghi"
    assert extract_bearer_token("Bearer: abc.def.ghi") == "abc.def.ghi"
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"


@pytest.mark.parametrize("header", [None, "", "Bearer:", "Bearer ", "Basic abc", "Token: abc"])
def test_extract_bearer_token_rejects_malformed_headers(header: str | None) -> None:
    with pytest.raises(ClassifiedError) as exc_info:
        extract_bearer_token(header)

    assert exc_info.value.code == "UNAUTHORIZED"
