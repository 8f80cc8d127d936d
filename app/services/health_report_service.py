"""
Period health report over a subject's journal entries.

The report is a read path only: it never writes to the journal or the
analysis store.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.journal_entry import EntryType, JournalEntry
from app.services.analysis_errors import ValidationError
from app.services.analysis_store import analysis_store
from app.services.journal_service import journal_service, period_start

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 90}

BASE_SCORE = 70
MAX_SCORE = 100
MEAL_AVG_RANGE = (1, 3)
POOP_AVG_RANGE = (1, 4)
MEAL_ALERT_AVG = 5
POOP_ALERT_AVG = 6

POSITIVE_KEYWORDS = (
    "happy", "fun", "energetic", "playful", "excited", "calm",
    "嬉しい", "楽しい", "元気",
)
NEGATIVE_KEYWORDS = (
    "sad", "worried", "tired", "anxious", "lethargic",
    "悲しい", "心配", "疲れ",
)

MOOD_GOOD = "good"
MOOD_NEEDS_ATTENTION = "needs attention"
MOOD_STABLE = "stable"
MOOD_INSUFFICIENT = "insufficient data"

RECOMMEND_MORE_MEALS = "Log more meals to keep track of nutrition."
RECOMMEND_MORE_POOPS = "Log more eliminations to keep track of digestive health."
RECOMMEND_MOOD = "Add mood records to keep track of emotional wellbeing."
RECOMMEND_KEEP_GOING = "Records are well kept. Keep going!"
ALERT_MEALS = "Meal count looks high: possible overfeeding or duplicate records."
ALERT_POOPS = "Elimination count looks high: possible frequent elimination or duplicate records."

MAX_REPORTED_WARNINGS = 5


@dataclass
class AnalysisSummary:
    count: int = 0
    average_scores: Dict[str, Optional[float]] = field(default_factory=dict)
    latest_warnings: List[str] = field(default_factory=list)


@dataclass
class HealthReport:
    subject_id: UUID
    period: str
    days: int
    meal_count: int
    poop_count: int
    emotion_count: int
    average_meals_per_day: float
    average_poops_per_day: float
    consistency: int
    mood_trend: str
    health_score: int
    recommendations: List[str]
    alerts: List[str]
    analysis_summary: AnalysisSummary

    def to_dict(self) -> dict:
        return {
            "subject_id": str(self.subject_id),
            "period": self.period,
            "days": self.days,
            "meal_count": self.meal_count,
            "poop_count": self.poop_count,
            "emotion_count": self.emotion_count,
            "average_meals_per_day": round(self.average_meals_per_day, 2),
            "average_poops_per_day": round(self.average_poops_per_day, 2),
            "consistency": self.consistency,
            "mood_trend": self.mood_trend,
            "health_score": self.health_score,
            "recommendations": list(self.recommendations),
            "alerts": list(self.alerts),
            "analysis_summary": {
                "count": self.analysis_summary.count,
                "average_scores": dict(self.analysis_summary.average_scores),
                "latest_warnings": list(self.analysis_summary.latest_warnings),
            },
        }


def period_days(period: str) -> int:
    try:
        return PERIOD_DAYS[period]
    except (KeyError, TypeError):
        raise ValidationError("invalid_period") from None


def compute_health_score(
    meal_count: int, poop_count: int, emotion_count: int, meal_avg: float, poop_avg: float
) -> int:
    score = BASE_SCORE
    if MEAL_AVG_RANGE[0] <= meal_avg <= MEAL_AVG_RANGE[1]:
        score += 10
    if meal_count > 0:
        score += 5
    if POOP_AVG_RANGE[0] <= poop_avg <= POOP_AVG_RANGE[1]:
        score += 10
    if poop_count > 0:
        score += 5
    if emotion_count > 0:
        score += 10
    return min(MAX_SCORE, score)


def analyze_mood_trend(emotion_entries: List[JournalEntry]) -> str:
    """Compare positive and negative keyword hits across mood entries."""
    if not emotion_entries:
        return MOOD_INSUFFICIENT

    positive = negative = 0
    for entry in emotion_entries:
        content = (entry.content or "").lower()
        if any(word in content for word in POSITIVE_KEYWORDS):
            positive += 1
        if any(word in content for word in NEGATIVE_KEYWORDS):
            negative += 1

    if positive > negative:
        return MOOD_GOOD
    if negative > positive:
        return MOOD_NEEDS_ATTENTION
    return MOOD_STABLE


def build_recommendations(
    meal_count: int, poop_count: int, emotion_count: int, meal_avg: float, poop_avg: float
) -> List[str]:
    recommendations = []
    if meal_avg < 1:
        recommendations.append(RECOMMEND_MORE_MEALS)
    if poop_avg < 1:
        recommendations.append(RECOMMEND_MORE_POOPS)
    if emotion_count == 0:
        recommendations.append(RECOMMEND_MOOD)
    if meal_count > 0 and poop_count > 0:
        recommendations.append(RECOMMEND_KEEP_GOING)
    return recommendations


def build_alerts(meal_avg: float, poop_avg: float) -> List[str]:
    alerts = []
    if meal_avg > MEAL_ALERT_AVG:
        alerts.append(ALERT_MEALS)
    if poop_avg > POOP_ALERT_AVG:
        alerts.append(ALERT_POOPS)
    return alerts


class HealthReportService:
    """Compute period statistics, score, mood trend and advice for a subject."""

    def compute(
        self,
        db: Session,
        subject_id: UUID,
        period: str,
        now: Optional[datetime] = None,
    ) -> HealthReport:
        """
        Build the report for entries with timestamp >= now - period days.

        Raises:
            ValidationError: period is not week, month or quarter
        """
        days = period_days(period)
        now = now or datetime.now(timezone.utc)
        entries = journal_service.get_entries_since(db, subject_id, period_start(days, now))

        by_type = {entry_type: [] for entry_type in EntryType}
        for entry in entries:
            by_type[entry.type].append(entry)

        meal_count = len(by_type[EntryType.MEAL])
        poop_count = len(by_type[EntryType.POOP])
        emotion_count = len(by_type[EntryType.EMOTION])
        meal_avg = meal_count / days
        poop_avg = poop_count / days

        report = HealthReport(
            subject_id=subject_id,
            period=period,
            days=days,
            meal_count=meal_count,
            poop_count=poop_count,
            emotion_count=emotion_count,
            average_meals_per_day=meal_avg,
            average_poops_per_day=poop_avg,
            consistency=round(len(entries) / days * 100),
            mood_trend=analyze_mood_trend(by_type[EntryType.EMOTION]),
            health_score=compute_health_score(
                meal_count, poop_count, emotion_count, meal_avg, poop_avg
            ),
            recommendations=build_recommendations(
                meal_count, poop_count, emotion_count, meal_avg, poop_avg
            ),
            alerts=build_alerts(meal_avg, poop_avg),
            analysis_summary=self.summarize_analyses(db, [e.id for e in entries]),
        )
        logger.info(
            "Health report for %s (%s): %d entries, score %d",
            subject_id,
            period,
            len(entries),
            report.health_score,
        )
        return report

    def summarize_analyses(self, db: Session, entry_ids: List[UUID]) -> AnalysisSummary:
        records = analysis_store.records_for_entries(db, entry_ids)

        scores = {entry_type.value: [] for entry_type in EntryType}
        warnings = []
        for record in records:
            scores[EntryType(record.analysis_type).value].append(record.health_score)
            for warning in record.warnings or []:
                if len(warnings) < MAX_REPORTED_WARNINGS:
                    warnings.append(warning)

        return AnalysisSummary(
            count=len(records),
            average_scores={
                name: round(sum(values) / len(values), 1) if values else None
                for name, values in scores.items()
            },
            latest_warnings=warnings,
        )


health_report_service = HealthReportService()
