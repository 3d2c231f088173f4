"""
Scan and Bookshelf API Routes

- QR scans from the mobile scanner
- Recently scanned theses
- Borrow/return entries from the smart bookshelf
"""

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from thesisvault.api.dependencies import (
    CurrentUser,
    get_interpreter,
    get_ledger,
    get_recorder,
    get_thesis_repository,
)
from thesisvault.api.routes.theses import access_status_response
from thesisvault.api.schemas import (
    BookshelfLogRequest,
    BookshelfLogResponse,
    ErrorResponse,
    RecentScanResponse,
    ScanRequest,
    ScanResponse,
    ThesisResponse,
)
from thesisvault.errors import NotFoundError

router = APIRouter(tags=["scans"])

# Shelf slot state after each bookshelf action
INVENTORY_AFTER_ACTION = {
    "borrowed": "borrowed",
    "returned": "available",
}


@router.post(
    "/scans",
    response_model=ScanResponse,
    responses={
        400: {"model": ErrorResponse, "description": "QR code not recognized"},
        404: {"model": ErrorResponse, "description": "Thesis not found"},
        409: {"model": ErrorResponse, "description": "Link matches more than one thesis"},
    },
)
def scan_qr_code(
    body: ScanRequest,
    current_user: CurrentUser,
    interpreter=Depends(get_interpreter),
    recorder=Depends(get_recorder),
    ledger=Depends(get_ledger),
):
    """
    Resolve scanned QR text to a thesis.

    The scan is recorded for the recent list; a failure to record does
    not fail the scan.
    """
    thesis = interpreter.interpret(body.qr_data)
    recorded = recorder.record_scan(current_user.user_id, thesis.thesis_id)
    access = ledger.get_borrowing_status(current_user.user_id, thesis.thesis_id)

    logger.info(f"User {current_user.user_id} scanned thesis {thesis.thesis_id}")

    return ScanResponse(
        thesis=ThesisResponse.model_validate(thesis),
        access=access_status_response(thesis.thesis_id, access),
        recorded=recorded,
    )


@router.get("/scans/recent", response_model=list[RecentScanResponse])
def recent_scans(
    current_user: CurrentUser,
    limit: int = Query(5, ge=1, le=50),
    recorder=Depends(get_recorder),
):
    """Recently scanned theses, newest first."""
    return [
        RecentScanResponse(
            thesis=ThesisResponse.model_validate(scan.thesis),
            scanned_date=scan.scanned_date,
        )
        for scan in recorder.recent_scans(current_user.user_id, limit=limit)
    ]


@router.post(
    "/bookshelf/logs",
    response_model=BookshelfLogResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_bookshelf_action(
    body: BookshelfLogRequest,
    current_user: CurrentUser,
    recorder=Depends(get_recorder),
    repo=Depends(get_thesis_repository),
):
    """Record a borrow or return and update the shelf slot."""
    if repo.get(body.thesis_id) is None:
        raise NotFoundError("Thesis", body.thesis_id)

    entry = recorder.log_bookshelf_action(current_user.user_id, body.thesis_id, body.status)
    recorder.update_inventory_status(body.thesis_id, INVENTORY_AFTER_ACTION[body.status])
    return BookshelfLogResponse.model_validate(entry)


@router.get("/bookshelf/logs", response_model=list[BookshelfLogResponse])
def recent_bookshelf_activity(
    current_user: CurrentUser,
    limit: int = Query(5, ge=1, le=50),
    recorder=Depends(get_recorder),
):
    """The caller's latest borrow/return entries."""
    return [
        BookshelfLogResponse.model_validate(entry)
        for entry in recorder.recent_activity(current_user.user_id, limit=limit)
    ]
