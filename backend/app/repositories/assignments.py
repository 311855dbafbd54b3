"""
Assignment persistence helpers.

Every lookup takes the owner id as a required positional argument so that no
query can run without being scoped to the caller.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from app.models.assignment import Assignment, AssignmentNumber


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def _owned(self, owner_id: int):
        return (
            self.db.query(Assignment)
            .options(selectinload(Assignment.number_rows), selectinload(Assignment.owner))
            .filter(Assignment.owner_id == owner_id)
        )

    def find_by_owner(self, owner_id: int) -> list[Assignment]:
        return (
            self._owned(owner_id)
            .order_by(Assignment.created_at.desc(), Assignment.id.desc())
            .all()
        )

    def find_by_owner_and_id(self, owner_id: int, assignment_id: int) -> Optional[Assignment]:
        return self._owned(owner_id).filter(Assignment.id == assignment_id).first()

    def find_by_owner_and_numbers(self, owner_id: int, numbers: Iterable[str]) -> list[Assignment]:
        wanted = list(numbers)
        if not wanted:
            return []
        matching_ids = (
            self.db.query(AssignmentNumber.assignment_id)
            .filter(AssignmentNumber.owner_id == owner_id, AssignmentNumber.number.in_(wanted))
        )
        return (
            self._owned(owner_id)
            .filter(Assignment.id.in_(matching_ids))
            .order_by(Assignment.id.asc())
            .all()
        )

    def find_owned_numbers(self, owner_id: int) -> list[str]:
        query = self.db.query(AssignmentNumber.number).filter(AssignmentNumber.owner_id == owner_id)
        return [number for (number,) in query.all()]

    def insert(self, assignment: Assignment) -> Assignment:
        try:
            self.db.add(assignment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(assignment)
        return assignment

    def delete_by_owner_and_id(self, owner_id: int, assignment_id: int) -> Optional[Assignment]:
        assignment = self.find_by_owner_and_id(owner_id, assignment_id)
        if not assignment:
            return None
        try:
            self.db.delete(assignment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return assignment

    def delete_by_owner(self, owner_id: int) -> int:
        assignments = self._owned(owner_id).all()
        for assignment in assignments:
            self.db.delete(assignment)
        return len(assignments)
