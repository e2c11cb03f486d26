from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_school_admin
from app.auth.schemas import CallerScope
from app.core.exceptions import ServiceError
from app.core.schemas import PageParams
from app.db.session import get_db

from .schemas import ClassroomCreate, ClassroomEnvelope, ClassroomListResponse, ClassroomUpdate
from . import service

router = APIRouter(prefix="/api/v1/classrooms", tags=["classrooms"])


@router.post(
    "",
    response_model=ClassroomEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_classroom(
    payload: ClassroomCreate,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> ClassroomEnvelope:
    try:
        return await service.create_classroom(db, scope, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=ClassroomListResponse)
async def list_classrooms(
    school_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> ClassroomListResponse:
    return await service.list_classrooms(
        db, scope, PageParams(page=page, limit=limit), school_id=school_id, is_active=is_active
    )


@router.get("/{classroom_id}", response_model=ClassroomEnvelope)
async def get_classroom(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> ClassroomEnvelope:
    try:
        return await service.get_classroom(db, scope, classroom_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{classroom_id}", response_model=ClassroomEnvelope)
async def update_classroom(
    classroom_id: UUID,
    payload: ClassroomUpdate,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> ClassroomEnvelope:
    try:
        return await service.update_classroom(db, scope, classroom_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{classroom_id}", response_model=ClassroomEnvelope)
async def delete_classroom(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> ClassroomEnvelope:
    try:
        return await service.delete_classroom(db, scope, classroom_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{classroom_id}/restore", response_model=ClassroomEnvelope)
async def restore_classroom(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> ClassroomEnvelope:
    try:
        return await service.restore_classroom(db, scope, classroom_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
