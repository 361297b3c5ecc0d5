"""Match request endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.container import ServiceContainer
from app.dependencies import get_container, get_current_user
from app.schemas.matching import MatchRejectRequest, MatchRequestCreate, MatchStatus
from app.schemas.user import CurrentUser, UserRole
from app.utils.errors import NotFoundError
from app.utils.result import respond

router = APIRouter()


@router.post("")
async def send_match_request(
    payload: MatchRequestCreate,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Send a paid match request from the current student to a tutor."""
    result = await container.matching.send_match_request(
        student_id=user.id,
        tutor_id=payload.tutor_id,
        message=payload.message,
        schedule_note=payload.schedule_note,
    )
    return respond(result)


@router.get("")
async def list_match_requests(
    status: MatchStatus | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Return the current user's sent (student) or received (tutor) requests."""
    if user.role == UserRole.TUTOR:
        result = await container.matching.get_tutor_match_requests(user.id, status=status)
    else:
        result = await container.matching.get_student_match_requests(user.id, status=status)
    return respond(result)


@router.get("/{request_id}")
async def get_match_request(
    request_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    result = await container.matching.get_match_request(request_id)
    if result.success and user.id not in (result.data.student_id, result.data.tutor_id):
        raise NotFoundError("Match request")
    return respond(result)


@router.post("/{request_id}/approve")
async def approve_match_request(
    request_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    return respond(await container.matching.approve_match_request(request_id, actor_id=user.id))


@router.post("/{request_id}/reject")
async def reject_match_request(
    request_id: str,
    payload: MatchRejectRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    result = await container.matching.reject_match_request(
        request_id,
        reason=payload.reason if payload else None,
        actor_id=user.id,
    )
    return respond(result)


@router.post("/{request_id}/cancel")
async def cancel_match_request(
    request_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    return respond(await container.matching.cancel_match_request(request_id, actor_id=user.id))
