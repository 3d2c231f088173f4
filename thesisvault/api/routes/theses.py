"""
Thesis API Routes

Catalog browsing, PDF links, access requests and borrow sessions.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from thesisvault.access.identity import parse_thesis_id
from thesisvault.api.dependencies import (
    CurrentUser,
    get_issuer,
    get_ledger,
    get_pdf_storage,
    get_recorder,
    get_thesis_repository,
)
from thesisvault.api.schemas import (
    AccessRequestResponse,
    AccessStatusResponse,
    BorrowSessionResponse,
    ErrorResponse,
    PdfLinkResponse,
    ThesisListResponse,
    ThesisResponse,
)
from thesisvault.errors import AccessRequiredError, InvalidInputError, NotFoundError

router = APIRouter(prefix="/theses", tags=["theses"])


def _load_thesis(repo, thesis_id: str):
    tid = parse_thesis_id(thesis_id)
    thesis = repo.get(tid)
    if thesis is None:
        raise NotFoundError("Thesis", tid)
    return thesis


def access_status_response(thesis_id: Optional[int], status_obj) -> AccessStatusResponse:
    request = status_obj.request
    return AccessStatusResponse(
        thesis_id=thesis_id,
        status=status_obj.state,
        has_access=status_obj.has_access,
        is_expired=status_obj.is_expired,
        expiry_date=status_obj.expiry_date,
        access_request_id=request.access_request_id if request else None,
        request_date=request.request_date if request else None,
        approved_date=request.approved_date if request else None,
        error=status_obj.error,
    )


@router.get("", response_model=ThesisListResponse)
def list_theses(
    current_user: CurrentUser,
    q: Optional[str] = Query(None, max_length=200, description="Title, author or abstract text"),
    college_department: Optional[str] = Query(None),
    batch: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    repo=Depends(get_thesis_repository),
):
    """Browse or search the catalog, newest first."""
    theses = repo.search(
        query=q,
        college_department=college_department,
        batch=batch,
        limit=limit,
        offset=offset,
    )
    return ThesisListResponse(
        theses=[ThesisResponse.model_validate(t) for t in theses],
        count=len(theses),
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{thesis_id}",
    response_model=ThesisResponse,
    responses={404: {"model": ErrorResponse, "description": "Thesis not found"}},
)
def get_thesis(
    thesis_id: str,
    current_user: CurrentUser,
    repo=Depends(get_thesis_repository),
    recorder=Depends(get_recorder),
):
    """Thesis details. Opening a thesis counts as a view."""
    thesis = _load_thesis(repo, thesis_id)
    recorder.record_view(current_user.user_id, thesis.thesis_id)
    return ThesisResponse.model_validate(thesis)


@router.get(
    "/{thesis_id}/pdf",
    response_model=PdfLinkResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Access not approved"},
        503: {"model": ErrorResponse, "description": "File storage unavailable"},
    },
)
async def get_thesis_pdf(
    thesis_id: str,
    current_user: CurrentUser,
    repo=Depends(get_thesis_repository),
    ledger=Depends(get_ledger),
    storage=Depends(get_pdf_storage),
):
    """Public link to the PDF, for users with approved access and administrators."""
    thesis = await asyncio.to_thread(_load_thesis, repo, thesis_id)

    if not current_user.is_admin:
        access = await asyncio.to_thread(
            ledger.get_borrowing_status, current_user.user_id, thesis.thesis_id
        )
        if not access.has_access:
            raise AccessRequiredError(access.state.value)

    url = await storage.resolve_pdf_url(thesis.pdf_file_url)
    logger.info(f"PDF link served for thesis {thesis.thesis_id} to user {current_user.user_id}")
    return PdfLinkResponse(thesis_id=thesis.thesis_id, url=url)


@router.get("/{thesis_id}/access", response_model=AccessStatusResponse)
def get_access_status(
    thesis_id: str,
    current_user: CurrentUser,
    ledger=Depends(get_ledger),
):
    """Caller's access state for the thesis. Unusable ids read as `none`."""
    result = ledger.get_borrowing_status(current_user.user_id, thesis_id)
    try:
        tid = parse_thesis_id(thesis_id)
    except InvalidInputError:
        tid = None
    return access_status_response(tid, result)


@router.post(
    "/{thesis_id}/access-requests",
    response_model=AccessRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Thesis not found"},
        409: {"model": ErrorResponse, "description": "Request already pending"},
    },
)
def request_access(
    thesis_id: str,
    current_user: CurrentUser,
    ledger=Depends(get_ledger),
):
    created = ledger.request_access(current_user.user_id, thesis_id)
    return AccessRequestResponse.model_validate(created)


@router.post(
    "/{thesis_id}/borrow",
    response_model=BorrowSessionResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not available or access not approved"},
        404: {"model": ErrorResponse, "description": "Thesis not found"},
    },
)
def create_borrow_session(
    thesis_id: str,
    current_user: CurrentUser,
    issuer=Depends(get_issuer),
):
    """Payload for the bookshelf scanner."""
    session = issuer.issue(current_user.user_id, thesis_id)
    return BorrowSessionResponse(
        thesis_id=session.thesis_id,
        user_id=session.user_id,
        qr_payload=session.encode(),
    )
