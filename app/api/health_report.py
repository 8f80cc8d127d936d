"""Route for the period health report."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.analysis import owned_subject_id
from app.database import get_db
from app.services.auth.context import AnalysisContext
from app.services.auth.dependencies import get_analysis_context
from app.services.health_report_service import health_report_service

router = APIRouter(tags=["health-report"])


@router.get("/health-report")
async def health_report(
    subject_id: str = Query(...),
    period: str = Query("week"),
    context: AnalysisContext = Depends(get_analysis_context),
    db: Session = Depends(get_db),
):
    """Counts, score, mood trend and advice for a subject over week/month/quarter."""
    report = health_report_service.compute(
        db, owned_subject_id(db, context, subject_id), period
    )
    return {"success": True, "report": report.to_dict()}
