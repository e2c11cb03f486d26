from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_school_admin
from app.auth.schemas import CallerScope
from app.core.exceptions import ServiceError
from app.core.schemas import PageParams
from app.db.session import get_db

from .schemas import (
    EnrollResponse,
    StudentEnrollRequest,
    StudentEnvelope,
    StudentListResponse,
    StudentUpdate,
    TransferRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "/enroll",
    response_model=EnrollResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_students(
    payload: StudentEnrollRequest,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> EnrollResponse:
    """Enroll up to 50 students into one classroom. Rows failing email/age checks are returned in `errors`."""
    try:
        return await service.enroll_students(db, scope, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=StudentListResponse)
async def list_students(
    school_id: Optional[UUID] = Query(None),
    classroom_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> StudentListResponse:
    return await service.list_students(
        db,
        scope,
        PageParams(page=page, limit=limit),
        school_id=school_id,
        classroom_id=classroom_id,
        is_active=is_active,
    )


@router.get("/{student_id}", response_model=StudentEnvelope)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> StudentEnvelope:
    try:
        return await service.get_student(db, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{student_id}", response_model=StudentEnvelope)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> StudentEnvelope:
    try:
        return await service.update_student(db, scope, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{student_id}/transfer", response_model=StudentEnvelope)
async def transfer_student(
    student_id: UUID,
    payload: TransferRequest,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> StudentEnvelope:
    try:
        return await service.transfer_student(db, scope, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{student_id}", response_model=StudentEnvelope)
async def delete_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> StudentEnvelope:
    try:
        return await service.delete_student(db, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{student_id}/restore", response_model=StudentEnvelope)
async def restore_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: CallerScope = Depends(require_school_admin),
) -> StudentEnvelope:
    try:
        return await service.restore_student(db, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
