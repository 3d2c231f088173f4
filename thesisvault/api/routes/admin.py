"""
Administrator API Routes

Review of access requests, student records and shelf inventory. Every
route re-checks the caller's role on the server.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from thesisvault.api.dependencies import (
    CurrentAdmin,
    get_auth_gate,
    get_ledger,
    get_recorder,
    get_thesis_repository,
)
from thesisvault.api.schemas import (
    AccessDecisionRequest,
    AccessRequestResponse,
    ErrorResponse,
    StudentRecordUpdate,
    UserProfileResponse,
)
from thesisvault.errors import NotFoundError

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={403: {"model": ErrorResponse, "description": "Administrator role required"}},
)


class InventoryUpdate(BaseModel):
    status: Literal["available", "borrowed", "missing"]


@router.get("/access-requests", response_model=list[AccessRequestResponse])
def list_access_requests(
    current_admin: CurrentAdmin,
    status: Optional[Literal["pending", "approved", "denied"]] = Query("pending"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    ledger=Depends(get_ledger),
):
    """Requests in arrival order."""
    requests = ledger.list_requests(current_admin, status=status, limit=limit, offset=offset)
    return [AccessRequestResponse.model_validate(r) for r in requests]


@router.post(
    "/access-requests/{access_request_id}/decision",
    response_model=AccessRequestResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Request not found"},
        409: {"model": ErrorResponse, "description": "Request already decided"},
    },
)
def decide_access_request(
    access_request_id: int,
    body: AccessDecisionRequest,
    current_admin: CurrentAdmin,
    ledger=Depends(get_ledger),
):
    """Approve (optionally until a date) or deny a pending request."""
    decided = ledger.decide(
        current_admin,
        access_request_id,
        body.decision,
        expires_at=body.expires_at,
    )
    return AccessRequestResponse.model_validate(decided)


@router.patch(
    "/users/{user_id}/student",
    response_model=UserProfileResponse,
    responses={404: {"model": ErrorResponse, "description": "User has no student record"}},
)
def update_student_record(
    user_id: int,
    body: StudentRecordUpdate,
    current_admin: CurrentAdmin,
    auth_gate=Depends(get_auth_gate),
):
    changes = body.model_dump(exclude_unset=True)
    profile = auth_gate.update_student_record(current_admin, user_id, **changes)
    return UserProfileResponse.model_validate(profile)


@router.put("/theses/{thesis_id}/inventory")
def set_inventory_status(
    thesis_id: int,
    body: InventoryUpdate,
    current_admin: CurrentAdmin,
    recorder=Depends(get_recorder),
    repo=Depends(get_thesis_repository),
):
    """Correct a shelf slot, e.g. mark a copy missing."""
    if repo.get(thesis_id) is None:
        raise NotFoundError("Thesis", thesis_id)

    return {
        "thesis_id": thesis_id,
        "current_status": recorder.update_inventory_status(thesis_id, body.status),
    }
