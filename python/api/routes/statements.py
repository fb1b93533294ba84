"""
Statement API Routes

Upload and parse card statements, and track their processing status.
"""

import logging
import os
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from statement_processor import StatementParser

from ..auth import User, get_current_user
from ..dependencies import get_statement_parser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/statements", tags=["statements"])

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))


@router.post("/parse")
async def parse_statement(
    file: UploadFile = File(...),
    file_id: str | None = Form(None),
    file_kind: str | None = Form(None),
    categorize: bool = Form(True),
    user: User = Depends(get_current_user),
    parser: StatementParser = Depends(get_statement_parser),
) -> dict:
    """Parse an uploaded statement file.

    Args:
        file: PDF, CSV or spreadsheet upload
        file_id: Identifier for status tracking, defaults to a content hash
        file_kind: Explicit file type, overrides detection
        categorize: Categorize transactions after parsing
        user: Authenticated user
        parser: Statement parser service

    Returns:
        Transactions, summary and metadata

    Raises:
        HTTPException: If the upload is too large
    """
    content = await file.read()

    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {MAX_FILE_SIZE} bytes",
        )

    result = await run_in_threadpool(
        parser.parse,
        content,
        file.filename,
        file_kind=file_kind,
        user_id=user.user_id,
        file_id=file_id,
        categorize=categorize,
    )

    return {
        "success": True,
        **result.to_dict(),
        "processed_at": datetime.now().isoformat(),
    }


@router.get("")
async def list_statements(
    user: User = Depends(get_current_user),
    parser: StatementParser = Depends(get_statement_parser),
) -> dict:
    """List the user's statements and their processing status."""
    statuses = parser.list_statements(user.user_id)
    return {
        "statements": [
            {"file_id": file_id, **record.to_dict()}
            for file_id, record in statuses.items()
        ],
        "total": len(statuses),
    }


@router.get("/{file_id}/status")
async def get_statement_status(
    file_id: str,
    user: User = Depends(get_current_user),
    parser: StatementParser = Depends(get_statement_parser),
) -> dict:
    """Get processing status of a statement."""
    record = parser.get_status(user.user_id, file_id)
    if not record:
        raise HTTPException(status_code=404, detail="Statement not found")
    return {"file_id": file_id, **record.to_dict()}


@router.get("/{file_id}")
async def get_statement(
    file_id: str,
    user: User = Depends(get_current_user),
    parser: StatementParser = Depends(get_statement_parser),
) -> dict:
    """Get the cached parse result of a statement."""
    result = parser.get_result(user.user_id, file_id)
    if not result:
        raise HTTPException(status_code=404, detail="Statement not found")
    return {"file_id": file_id, **result.to_dict()}


@router.delete("/{file_id}")
async def delete_statement(
    file_id: str,
    user: User = Depends(get_current_user),
    parser: StatementParser = Depends(get_statement_parser),
) -> dict:
    """Forget a statement's status and cached result."""
    if not parser.delete_statement(user.user_id, file_id):
        raise HTTPException(status_code=404, detail="Statement not found")

    logger.info(f"Deleted statement {file_id} for user {user.user_id}")
    return {"success": True, "file_id": file_id}
