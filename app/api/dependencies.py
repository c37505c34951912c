"""FastAPI dependencies reading the components built by ``create_app``."""

from __future__ import annotations

from fastapi import Request

from app.core.passwords import PasswordHasher
from app.core.tokens import Claims
from app.core.tokens import TokenService
from app.core.tokens import extract_bearer_token
from app.core.validation import RequestValidator


def get_validator(request: Request) -> RequestValidator:
    return request.app.state.validator


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def authenticate_request(request: Request) -> Claims:
    """Return the verified claims of the bearer token on the request.

    Called from handler bodies so authentication failures pass through the
    dispatch wrapper.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    return get_token_service(request).verify(token)
