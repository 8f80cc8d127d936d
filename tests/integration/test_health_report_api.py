"""Integration tests for the period health report endpoint."""
from datetime import datetime, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models import EntryType
from tests.factories import create_entries, create_subject, create_user


class TestHealthReportAPI:
    def test_weekly_report(self, auth_client: TestClient, db: Session, test_user):
        subject = create_subject(db, test_user)
        now = datetime.now(timezone.utc)
        create_entries(db, subject, EntryType.MEAL, 3, start=now)
        create_entries(db, subject, EntryType.POOP, 2, start=now)

        response = auth_client.get("/health-report", params={"subject_id": str(subject.id)})

        assert response.status_code == 200
        report = response.json()["report"]
        assert report["period"] == "week"
        assert report["meal_count"] == 3
        assert report["poop_count"] == 2
        assert report["average_meals_per_day"] == 0.43
        assert report["average_poops_per_day"] == 0.29
        assert report["health_score"] == 80
        assert report["mood_trend"] == "insufficient data"

    def test_quarter(self, auth_client: TestClient, db: Session, test_user):
        subject = create_subject(db, test_user)

        response = auth_client.get(
            "/health-report", params={"subject_id": str(subject.id), "period": "quarter"}
        )

        assert response.json()["report"]["days"] == 90
        assert response.json()["report"]["health_score"] == 70

    def test_invalid_period(self, auth_client: TestClient, db: Session, test_user):
        subject = create_subject(db, test_user)

        response = auth_client.get(
            "/health-report", params={"subject_id": str(subject.id), "period": "year"}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_unknown_subject(self, auth_client: TestClient, db: Session):
        stranger = create_subject(db, create_user(db))

        response = auth_client.get("/health-report", params={"subject_id": str(stranger.id)})

        assert response.status_code == 404

    def test_requires_auth(self, client: TestClient):
        response = client.get("/health-report", params={"subject_id": "x"})
        assert response.status_code == 401
