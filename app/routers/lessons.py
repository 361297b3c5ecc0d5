"""Lesson booking and escrow endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.container import ServiceContainer
from app.dependencies import get_container, get_current_user
from app.schemas.common import ApiResponse
from app.schemas.lesson import (
    LessonBookingCreate,
    LessonCompleteRequest,
    LessonRateRequest,
    LessonReasonRequest,
    LessonStatus,
)
from app.schemas.user import CurrentUser, UserRole
from app.utils.errors import NotFoundError
from app.utils.result import respond

router = APIRouter()


def _ensure_participant(result: ApiResponse, user: CurrentUser) -> None:
    """Hide lessons the caller does not take part in."""
    if not result.success:
        return
    lesson = getattr(result.data, "lesson", result.data)
    if user.id not in (lesson.student_id, lesson.tutor_id):
        raise NotFoundError("Lesson")


@router.post("")
async def book_lesson(
    payload: LessonBookingCreate,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Book a lesson; the cost is reserved from the current student right away."""
    result = await container.escrow.book_lesson(
        student_id=user.id,
        tutor_id=payload.tutor_id,
        subject=payload.subject,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        coin_cost=payload.coin_cost,
        lesson_notes=payload.lesson_notes,
    )
    return respond(result)


@router.get("")
async def list_lessons(
    status: LessonStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Return the current user's lessons, latest scheduled first."""
    if user.role == UserRole.TUTOR:
        result = await container.escrow.list_tutor_lessons(
            user.id, status=status, page=page, limit=limit
        )
    else:
        result = await container.escrow.list_student_lessons(
            user.id, status=status, page=page, limit=limit
        )
    return respond(result)


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    result = await container.escrow.get_lesson(lesson_id)
    _ensure_participant(result, user)
    return respond(result)


@router.get("/{lesson_id}/escrow")
async def get_escrow_status(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Return the lesson with every ledger entry tied to it."""
    result = await container.escrow.get_escrow_status(lesson_id)
    _ensure_participant(result, user)
    return respond(result)


@router.post("/{lesson_id}/approve")
async def approve_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    return respond(await container.escrow.approve_lesson(lesson_id, actor_id=user.id))


@router.post("/{lesson_id}/start")
async def start_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    return respond(await container.escrow.start_lesson(lesson_id, actor_id=user.id))


@router.post("/{lesson_id}/complete")
async def complete_lesson(
    lesson_id: str,
    payload: LessonCompleteRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Release escrow to the tutor, minus the platform fee."""
    payload = payload or LessonCompleteRequest()
    result = await container.escrow.complete_lesson(
        lesson_id,
        feedback=payload.feedback,
        rating=payload.rating,
        actor_id=user.id,
    )
    return respond(result)


@router.post("/{lesson_id}/reject")
async def reject_lesson(
    lesson_id: str,
    payload: LessonReasonRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    result = await container.escrow.reject_lesson(
        lesson_id,
        reason=payload.reason if payload else None,
        actor_id=user.id,
    )
    return respond(result)


@router.post("/{lesson_id}/cancel")
async def cancel_lesson(
    lesson_id: str,
    payload: LessonReasonRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    result = await container.escrow.cancel_lesson(
        lesson_id,
        reason=payload.reason if payload else None,
        actor_id=user.id,
    )
    return respond(result)


@router.post("/{lesson_id}/rate")
async def rate_lesson(
    lesson_id: str,
    payload: LessonRateRequest,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    return respond(
        await container.escrow.rate_lesson(lesson_id, payload.rating, actor_id=user.id)
    )
