"""
Assignment ingestion and listing.

Ingestion runs every check before touching the database:

1. the batch must not be empty;
2. each raw token is canonicalized (first bad token rejects the batch);
3. canonical numbers must be unique inside the batch;
4. none of them may already belong to another assignment of the same owner.

The owner-wide unique constraint on ``assignment_numbers`` still decides the
outcome when two requests race past step 4, so an IntegrityError on insert is
reported as the same cross-record duplicate.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.errors import (
    AssignmentNotFoundError,
    CrossRecordDuplicateError,
    EmptyBatchError,
    IntraBatchDuplicateError,
    StorageUnavailableError,
)
from app.models.assignment import Assignment, AssignmentNumber
from app.repositories.assignments import AssignmentRepository
from app.services.dp_numbers import (
    canonicalize_dp_number,
    find_repeated_numbers,
    sort_dp_numbers,
)

logger = logging.getLogger("uvicorn.error")


def canonicalize_batch(raw_numbers: Optional[Iterable[Any]]) -> list[str]:
    """Canonicalize a submitted batch, keeping submission order."""
    if raw_numbers is None:
        raise EmptyBatchError()
    tokens = list(raw_numbers)
    if not tokens:
        raise EmptyBatchError()

    numbers = [canonicalize_dp_number(token) for token in tokens]
    repeated = find_repeated_numbers(numbers)
    if repeated:
        raise IntraBatchDuplicateError(repeated)
    return numbers


def _owned_collisions(repo: AssignmentRepository, owner_id: int, numbers: list[str]) -> list[str]:
    try:
        matches = repo.find_by_owner_and_numbers(owner_id, numbers)
    except SQLAlchemyError as exc:
        logger.exception("Failed to check DP numbers for owner %s", owner_id)
        raise StorageUnavailableError() from exc
    wanted = set(numbers)
    return sort_dp_numbers(
        number for assignment in matches for number in assignment.numbers if number in wanted
    )


def create_assignment(
    repo: AssignmentRepository,
    owner_id: int,
    title: str,
    description: Optional[str],
    raw_numbers: Optional[Iterable[Any]],
) -> Assignment:
    numbers = canonicalize_batch(raw_numbers)

    collisions = _owned_collisions(repo, owner_id, numbers)
    if collisions:
        raise CrossRecordDuplicateError(collisions)

    assignment = Assignment(
        title=title.strip(),
        description=description,
        owner_id=owner_id,
        number_rows=[
            AssignmentNumber(owner_id=owner_id, number=number, position=position)
            for position, number in enumerate(numbers)
        ],
    )
    try:
        assignment = repo.insert(assignment)
    except IntegrityError as exc:
        # Lost a race with a concurrent ingestion of the same numbers.
        collisions = _owned_collisions(repo, owner_id, numbers)
        logger.warning(
            "Unique constraint rejected DP numbers for owner %s: %s",
            owner_id,
            ", ".join(collisions) or "-",
        )
        if not collisions:
            raise StorageUnavailableError() from exc
        raise CrossRecordDuplicateError(collisions) from exc
    except SQLAlchemyError as exc:
        logger.exception("Failed to store assignment for owner %s", owner_id)
        raise StorageUnavailableError() from exc

    logger.info(
        "Assignment %s created for owner %s with %d DP number(s)",
        assignment.id,
        owner_id,
        len(numbers),
    )
    return assignment


def list_assignments(repo: AssignmentRepository, owner_id: int) -> list[Assignment]:
    try:
        return repo.find_by_owner(owner_id)
    except SQLAlchemyError as exc:
        logger.exception("Failed to list assignments for owner %s", owner_id)
        raise StorageUnavailableError() from exc


def list_all_numbers(repo: AssignmentRepository, owner_id: int) -> list[str]:
    """Every DP number the owner holds, deduplicated and in numeric order."""
    try:
        numbers = repo.find_owned_numbers(owner_id)
    except SQLAlchemyError as exc:
        logger.exception("Failed to list DP numbers for owner %s", owner_id)
        raise StorageUnavailableError() from exc
    return sort_dp_numbers(numbers)


def get_assignment(repo: AssignmentRepository, owner_id: int, assignment_id: int) -> Assignment:
    try:
        assignment = repo.find_by_owner_and_id(owner_id, assignment_id)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load assignment %s", assignment_id)
        raise StorageUnavailableError() from exc
    if not assignment:
        raise AssignmentNotFoundError()
    return assignment


def delete_assignment(repo: AssignmentRepository, owner_id: int, assignment_id: int) -> None:
    try:
        deleted = repo.delete_by_owner_and_id(owner_id, assignment_id)
    except SQLAlchemyError as exc:
        logger.exception("Failed to delete assignment %s", assignment_id)
        raise StorageUnavailableError() from exc
    if deleted is None:
        raise AssignmentNotFoundError()
    logger.info("Assignment %s deleted by owner %s", assignment_id, owner_id)
