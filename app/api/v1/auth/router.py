from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_caller_scope, require_long_token, require_superadmin
from app.auth.schemas import (
    AdminListResponse,
    AdminResponse,
    CallerScope,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ShortTokenResponse,
)
from app.auth.security import TokenIssuer, get_token_issuer
from app.auth.services import (
    create_short_token,
    get_admin,
    list_admins,
    login_admin,
    register_admin,
)
from app.core.exceptions import ServiceError
from app.core.schemas import PageParams
from app.db.session import get_db

router = APIRouter(prefix="/api/v1/admins", tags=["admins"])
token_router = APIRouter(prefix="/api/v1/token", tags=["token"])


@router.post(
    "/register",
    response_model=AdminResponse,
    status_code=http_status.HTTP_201_CREATED,
    dependencies=[Depends(require_superadmin)],
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AdminResponse:
    try:
        return await register_admin(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    user_agent: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> LoginResponse:
    try:
        return await login_admin(db, issuer, payload, device=user_agent)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=AdminListResponse,
    dependencies=[Depends(require_superadmin)],
)
async def get_admins(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> AdminListResponse:
    return await list_admins(db, PageParams(page=page, limit=limit))


@router.get("/{admin_id}", response_model=AdminResponse)
async def get_admin_by_id(
    admin_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(get_caller_scope),
) -> AdminResponse:
    try:
        return await get_admin(db, admin_id, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@token_router.post("/short", response_model=ShortTokenResponse)
async def mint_short_token(
    user_agent: Optional[str] = Header(None),
    long_claims: Dict[str, Any] = Depends(require_long_token),
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> ShortTokenResponse:
    """Exchange a long (identity) token for a fresh short (session) token."""
    try:
        return await create_short_token(db, issuer, long_claims, device=user_agent)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
