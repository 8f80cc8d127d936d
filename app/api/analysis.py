"""Routes for journal photo AI analysis."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.journal_entry import EntryType
from app.services.ai_schemas import AnalysisSaveRequest
from app.services.analysis_errors import ValidationError
from app.services.analysis_service import analysis_service, present_record
from app.services.analysis_store import analysis_store
from app.services.auth.context import AnalysisContext
from app.services.auth.dependencies import get_analysis_context
from app.services.subject_service import subject_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai-analysis", tags=["ai-analysis"])


class CancelRequest(BaseModel):
    card_key: str


def owned_subject_id(db: Session, context: AnalysisContext, subject_id: str):
    subject = subject_service.get_owned_subject(db, context.user_id, subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject.id


@router.post("")
async def analyze_photo(
    request: Request,
    context: AnalysisContext = Depends(get_analysis_context),
    db: Session = Depends(get_db),
):
    """
    Analyze a journal photo and auto-save the result.

    A failed save still returns 200 with the analysis and details.save_failed.
    """
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("malformed_request") from e

    outcome = await analysis_service.analyze(db, context, raw)
    return outcome.to_response()


@router.post("/save")
async def save_analysis(
    body: AnalysisSaveRequest,
    context: AnalysisContext = Depends(get_analysis_context),
    db: Session = Depends(get_db),
):
    """Explicitly save (or re-save) an analysis the client holds."""
    record = await analysis_service.save(db, context, body.analysis, body.journal_entry_id)
    return {"success": True, "analysis": present_record(record)}


@router.post("/cards/cancel")
async def cancel_analysis(
    body: CancelRequest,
    context: AnalysisContext = Depends(get_analysis_context),
):
    """Cancel the in-flight model call for a card."""
    return {"success": True, "cancelled": analysis_service.cancel(context, body.card_key)}


@router.get("/candidates")
async def list_candidates(
    subject_id: str = Query(...),
    type: str = Query(...),
    limit: int = Query(settings.candidate_limit, ge=1, le=100),
    context: AnalysisContext = Depends(get_analysis_context),
    db: Session = Depends(get_db),
):
    """Journal entries with photos that still need an analysis."""
    try:
        entry_type = EntryType(type)
    except ValueError as e:
        raise ValidationError("invalid_type") from e

    entries = await analysis_store.list_candidates(
        db, owned_subject_id(db, context, subject_id), entry_type, limit
    )
    return {
        "success": True,
        "entries": [
            {
                "id": str(entry.id),
                "type": entry.type.value,
                "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
                "content": entry.content,
                "photo_ref": entry.photo_ref,
            }
            for entry in entries
        ],
    }


@router.get("/history")
async def list_history(
    subject_id: str = Query(...),
    limit: int = Query(settings.history_limit, ge=1, le=200),
    context: AnalysisContext = Depends(get_analysis_context),
    db: Session = Depends(get_db),
):
    """Past analyses for a subject, newest first."""
    rows = await analysis_store.list_history(
        db, owned_subject_id(db, context, subject_id), limit
    )
    history = []
    for record, entry in rows:
        item = present_record(record)
        item["entry"] = {
            "id": str(entry.id),
            "type": entry.type.value,
            "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
            "content": entry.content,
        }
        history.append(item)
    return {"success": True, "history": history}


@router.delete("/{record_id}")
async def delete_analysis(
    record_id: str,
    context: AnalysisContext = Depends(get_analysis_context),
    db: Session = Depends(get_db),
):
    """Delete an analysis and put its entry back on the candidate list."""
    journal_entry_id = await analysis_store.delete(
        db, record_id, user_id=context.user_id
    )
    if journal_entry_id is not None:
        analysis_store.exclusions.add(db, journal_entry_id, context.user_id)
        logger.info("Re-admitted entry %s to analysis candidates", journal_entry_id)
    return {
        "success": True,
        "journal_entry_id": str(journal_entry_id) if journal_entry_id else None,
    }
