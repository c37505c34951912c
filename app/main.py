"""FastAPI application entrypoint for BlueFox."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker

from app.api.error_handlers import register_error_handlers
from app.api.users import router as users_router
from app.core.config import AppSettings
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.core.logging import log_event
from app.core.passwords import PasswordHasher
from app.core.tokens import TokenService
from app.core.validation import build_request_validator
from app.db.base import create_session_factory
from app.schemas.user import REQUEST_MODELS

logger = logging.getLogger(__name__)


def health() -> dict[str, str]:
    """Health check endpoint for service readiness."""
    return {"status": "ok"}


def create_app(
    settings: AppSettings | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Build the application with its immutable runtime components."""
    settings = settings or get_settings()

    validator = build_request_validator()
    validator.check_models(*REQUEST_MODELS)

    app = FastAPI(title="BlueFox")
    app.state.settings = settings
    app.state.validator = validator
    app.state.token_service = TokenService.from_settings(settings)
    app.state.password_hasher = PasswordHasher(rounds=settings.password_hash_rounds)
    app.state.session_factory = session_factory or create_session_factory(settings.database_url)

    register_error_handlers(app)
    app.include_router(users_router)
    app.add_api_route("/health", health, methods=["GET"])

    if not settings.jwt_secret_key:
        log_event(
            logger,
            logging.WARNING,
            "JWT_SECRET_KEY is not set; login and authenticated routes will fail",
            component="startup",
            event="jwt_secret_missing",
        )
    log_event(logger, logging.INFO, "Application configured", component="startup", **settings.safe_for_logging())
    return app


settings = get_settings()
configure_logging(settings.log_level)
app = create_app(settings)
