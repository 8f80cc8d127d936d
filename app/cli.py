"""CLI commands for Pawlog."""

import argparse
import getpass
import json
import sys

import bcrypt
from sqlalchemy.orm import Session

from app.database import Base, SessionLocal, engine
from app.models.user import User
from app.services.analysis_errors import ValidationError
from app.services.health_report_service import PERIOD_DAYS, health_report_service
from app.services.journal_service import parse_entry_id


def create_user(email: str, password: str | None = None, is_admin: bool = False) -> None:
    """Create a user account."""
    db: Session = SessionLocal()

    try:
        existing = db.query(User).filter(User.email == email.lower()).first()
        if existing:
            print(f"Error: User with email '{email}' already exists.")
            sys.exit(1)

        if not password:
            password = getpass.getpass("Password: ")
            password_confirm = getpass.getpass("Confirm password: ")
            if password != password_confirm:
                print("Error: Passwords do not match.")
                sys.exit(1)

        if len(password) < 8:
            print("Error: Password must be at least 8 characters.")
            sys.exit(1)

        password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt()
        ).decode("utf-8")
        user = User(email=email.lower(), password_hash=password_hash, is_admin=is_admin)
        db.add(user)
        db.commit()

        print(f"User created successfully: {email}")

    finally:
        db.close()


def init_db() -> None:
    """Create all tables directly (development databases; production uses alembic)."""
    Base.metadata.create_all(bind=engine)
    print("Database tables created.")


def health_report(subject_id: str, period: str) -> None:
    """Print a subject's health report as JSON."""
    parsed = parse_entry_id(subject_id)
    if parsed is None:
        print(f"Error: '{subject_id}' is not a valid subject id.")
        sys.exit(1)

    db: Session = SessionLocal()
    try:
        report = health_report_service.compute(db, parsed, period)
    except ValidationError as e:
        print(f"Error: {e.user_message}")
        sys.exit(1)
    finally:
        db.close()

    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))


def main():
    parser = argparse.ArgumentParser(description="Pawlog CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_user_parser = subparsers.add_parser("create-user", help="Create a user")
    create_user_parser.add_argument("--email", required=True, help="User email address")
    create_user_parser.add_argument(
        "--password", help="User password (will prompt if not provided)"
    )
    create_user_parser.add_argument(
        "--admin", action="store_true", help="Grant admin rights"
    )

    subparsers.add_parser("init-db", help="Create database tables")

    report_parser = subparsers.add_parser(
        "health-report", help="Print a subject's period health report"
    )
    report_parser.add_argument("--subject-id", required=True, help="Subject UUID")
    report_parser.add_argument(
        "--period", choices=sorted(PERIOD_DAYS), default="week", help="Report window"
    )

    args = parser.parse_args()

    if args.command == "create-user":
        create_user(args.email, args.password, args.admin)
    elif args.command == "init-db":
        init_db()
    elif args.command == "health-report":
        health_report(args.subject_id, args.period)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
