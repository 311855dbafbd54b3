"""
Startup steps that bring an existing database up to date.

``create_all`` only creates missing tables; it never adds constraints to a
table that already exists. Databases created before the owner-wide unique
constraint on ``assignment_numbers`` get it here as a unique index, after
checking that the stored rows do not already violate it.
"""

import logging
from typing import Optional

from sqlalchemy import func, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.core.security import get_password_hash
from app.database.base import Base
from app.models.assignment import AssignmentNumber
from app.models.user import User
from app.routes.auth import is_valid_email

logger = logging.getLogger("uvicorn.error")

NUMBER_UNIQUE_COLUMNS = ("owner_id", "number")
NUMBER_UNIQUE_INDEX = "uq_assignment_number_owner"


def _has_unique_columns(inspector, table: str, columns: tuple[str, ...]) -> bool:
    for constraint in inspector.get_unique_constraints(table):
        if tuple(constraint.get("column_names") or []) == columns:
            return True
    for index in inspector.get_indexes(table):
        if index.get("unique") and tuple(index.get("column_names") or []) == columns:
            return True
    return False


def find_duplicate_owner_numbers(db: Session) -> list[tuple[int, str]]:
    rows = (
        db.query(AssignmentNumber.owner_id, AssignmentNumber.number)
        .group_by(AssignmentNumber.owner_id, AssignmentNumber.number)
        .having(func.count(AssignmentNumber.id) > 1)
        .all()
    )
    return [(owner_id, number) for owner_id, number in rows]


def ensure_assignment_number_unique_index(engine: Engine) -> bool:
    """Return True when the index had to be created."""
    inspector = inspect(engine)
    if "assignment_numbers" not in inspector.get_table_names():
        return False
    if _has_unique_columns(inspector, "assignment_numbers", NUMBER_UNIQUE_COLUMNS):
        return False

    with Session(bind=engine) as db:
        duplicates = find_duplicate_owner_numbers(db)
    if duplicates:
        # Creating the index would fail; leave the data for manual cleanup.
        logger.error(
            "Cannot enforce DP number uniqueness, %d duplicated (owner, number) pair(s): %s",
            len(duplicates),
            ", ".join(f"{owner_id}:{number}" for owner_id, number in duplicates[:20]),
        )
        return False

    with engine.begin() as conn:
        conn.execute(
            text(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {NUMBER_UNIQUE_INDEX} "
                "ON assignment_numbers (owner_id, number)"
            )
        )
    logger.info("Created unique index %s on assignment_numbers.", NUMBER_UNIQUE_INDEX)
    return True


def ensure_admin_user(
    db: Session,
    email: Optional[str],
    password: Optional[str],
    name: Optional[str] = None,
    role: Optional[str] = "admin",
) -> Optional[User]:
    if not email or not password:
        return None
    email = email.strip().lower()
    if not is_valid_email(email):
        logger.warning("ADMIN_EMAIL %r is not a valid email; admin bootstrap skipped.", email)
        return None

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        updated = False
        if name and existing.name != name:
            existing.name = name
            updated = True
        if role and existing.role != role:
            existing.role = role
            updated = True
        if updated:
            db.commit()
            logger.info("Admin user %s updated from environment.", email)
        return existing

    admin = User(
        name=name or email,
        email=email,
        password=get_password_hash(password),
        role=role or "admin",
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin user %s created.", email)
    return admin


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
