from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_school_admin, require_superadmin
from app.auth.schemas import CallerScope
from app.core.exceptions import ServiceError
from app.core.schemas import PageParams
from app.db.session import get_db

from .schemas import SchoolCreate, SchoolEnvelope, SchoolListResponse, SchoolUpdate
from . import service

router = APIRouter(prefix="/api/v1/schools", tags=["schools"])


@router.post(
    "",
    response_model=SchoolEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_school(
    payload: SchoolCreate,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_superadmin),
) -> SchoolEnvelope:
    try:
        return await service.create_school(db, scope, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=SchoolListResponse)
async def list_schools(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> SchoolListResponse:
    return await service.list_schools(db, scope, PageParams(page=page, limit=limit), is_active=is_active)


@router.get("/{school_id}", response_model=SchoolEnvelope)
async def get_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> SchoolEnvelope:
    try:
        return await service.get_school(db, scope, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{school_id}", response_model=SchoolEnvelope)
async def update_school(
    school_id: UUID,
    payload: SchoolUpdate,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> SchoolEnvelope:
    try:
        return await service.update_school(db, scope, school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{school_id}", response_model=SchoolEnvelope)
async def delete_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_superadmin),
) -> SchoolEnvelope:
    try:
        return await service.delete_school(db, scope, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{school_id}/restore", response_model=SchoolEnvelope)
async def restore_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_superadmin),
) -> SchoolEnvelope:
    try:
        return await service.restore_school(db, scope, school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
