"""User API routes."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import authenticate_request
from app.api.dependencies import get_password_hasher
from app.api.dependencies import get_token_service
from app.api.dependencies import get_validator
from app.api.dispatch import dispatch
from app.core.tokens import bearer_header_value
from app.db.base import get_db_session
from app.schemas.envelope import Pagination
from app.schemas.envelope import ResponseEnvelope
from app.schemas.user import LoginRequest
from app.schemas.user import UserCreateRequest
from app.schemas.user import UserRead
from app.schemas.user import UserUpdateRequest
from app.services.users import create_user_service
from app.services.users import delete_user_service
from app.services.users import get_user_service
from app.services.users import list_users_service
from app.services.users import login_service
from app.services.users import update_user_service

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.post("/users", response_model=None, status_code=201)
@dispatch("users")
async def create_user_endpoint(
    request: Request,
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """Register a user."""
    payload = await get_validator(request).parse_request(request, UserCreateRequest)
    user = await run_in_threadpool(
        create_user_service,
        session,
        payload.to_command(),
        hasher=get_password_hasher(request),
    )
    return ResponseEnvelope[UserRead].success([UserRead.model_validate(user)], status_code=201)


@router.post("/users/login", response_model=None)
@dispatch("users")
async def login_endpoint(
    request: Request,
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """Exchange credentials for a bearer token in the Authorization header."""
    payload = await get_validator(request).parse_request(request, LoginRequest)
    user, token = await run_in_threadpool(
        login_service,
        session,
        payload.to_command(),
        hasher=get_password_hasher(request),
        tokens=get_token_service(request),
    )
    return ResponseEnvelope[UserRead].success(
        [UserRead.model_validate(user)],
        headers={"Authorization": bearer_header_value(token)},
    )


@router.get("/users/me", response_model=None)
@dispatch("users")
async def get_current_user_endpoint(
    request: Request,
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """Get the authenticated user."""
    claims = authenticate_request(request)
    user = await run_in_threadpool(get_user_service, session, claims.subject_id)
    return ResponseEnvelope[UserRead].success([UserRead.model_validate(user)])


@router.get("/users", response_model=None)
@dispatch("users")
async def list_users_endpoint(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """List users one page at a time."""
    authenticate_request(request)
    users, total = await run_in_threadpool(list_users_service, session, page=page, page_size=page_size)

    next_link = None
    if page * page_size < total:
        next_link = str(request.url.include_query_params(page=page + 1, pageSize=page_size))
    previous_link = None
    if page > 1:
        previous_link = str(request.url.include_query_params(page=page - 1, pageSize=page_size))

    return ResponseEnvelope[UserRead].success(
        [UserRead.model_validate(user) for user in users],
        params={"page": page, "pageSize": page_size},
        pagination=Pagination(
            total_items=total,
            items_per_page=page_size,
            page_index=page,
            next_link=next_link,
            previous_link=previous_link,
        ),
    )


@router.get("/users/{user_id}", response_model=None)
@dispatch("users")
async def get_user_endpoint(
    request: Request,
    user_id: UUID,
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """Get a single user by id."""
    user = await run_in_threadpool(get_user_service, session, user_id)
    return ResponseEnvelope[UserRead].success([UserRead.model_validate(user)], params={"userId": str(user_id)})


@router.patch("/users/{user_id}", response_model=None)
@dispatch("users")
async def update_user_endpoint(
    request: Request,
    user_id: UUID,
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """Patch the authenticated user's own account."""
    claims = authenticate_request(request)
    payload = await get_validator(request).parse_request(request, UserUpdateRequest)
    user = await run_in_threadpool(
        update_user_service,
        session,
        user_id,
        payload.to_command(),
        actor_id=claims.subject_id,
        hasher=get_password_hasher(request),
    )
    return ResponseEnvelope[UserRead].success(
        [UserRead.model_validate(user)],
        params={"userId": str(user_id)},
        updated=user.updated_at or datetime.now(timezone.utc),
    )


@router.delete("/users/{user_id}", response_model=None)
@dispatch("users")
async def delete_user_endpoint(
    request: Request,
    user_id: UUID,
    session: Session = Depends(get_db_session),
) -> ResponseEnvelope[UserRead]:
    """Delete the authenticated user's own account."""
    claims = authenticate_request(request)
    await run_in_threadpool(delete_user_service, session, user_id, actor_id=claims.subject_id)
    return ResponseEnvelope[UserRead].success(params={"userId": str(user_id)}, deleted=True)
