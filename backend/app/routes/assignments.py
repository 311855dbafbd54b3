from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.errors import AssignmentError
from app.database.deps import get_db
from app.models.assignment import Assignment
from app.models.user import User
from app.repositories.assignments import AssignmentRepository
from app.schemas.assignment import AssignmentCreate, AssignmentNumbersOut, AssignmentOut
from app.services import assignments as assignment_service

router = APIRouter(
    prefix="/assignments",
    tags=["assignments"]
)


def get_assignment_repository(db: Session = Depends(get_db)) -> AssignmentRepository:
    return AssignmentRepository(db)


def build_assignment_out(assignment: Assignment) -> AssignmentOut:
    owner = assignment.owner
    return AssignmentOut(
        id=assignment.id,
        title=assignment.title,
        description=assignment.description,
        numbers=assignment.numbers,
        owner_id=assignment.owner_id,
        owner_email=owner.email if owner else None,
        owner_role=owner.role if owner else None,
        created_at=assignment.created_at,
    )


def to_http_exception(exc: AssignmentError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


@router.get("/", response_model=list[AssignmentOut])
def read_assignments(
    repo: AssignmentRepository = Depends(get_assignment_repository),
    current_user: User = Depends(get_current_user)
):
    try:
        rows = assignment_service.list_assignments(repo, current_user.id)
    except AssignmentError as exc:
        raise to_http_exception(exc) from exc
    return [build_assignment_out(row) for row in rows]


@router.post("/", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    repo: AssignmentRepository = Depends(get_assignment_repository),
    current_user: User = Depends(get_current_user)
):
    try:
        assignment = assignment_service.create_assignment(
            repo,
            current_user.id,
            payload.title,
            payload.description,
            payload.numbers,
        )
    except AssignmentError as exc:
        raise to_http_exception(exc) from exc
    return build_assignment_out(assignment)


@router.get("/numbers", response_model=AssignmentNumbersOut)
def read_all_numbers(
    repo: AssignmentRepository = Depends(get_assignment_repository),
    current_user: User = Depends(get_current_user)
):
    try:
        numbers = assignment_service.list_all_numbers(repo, current_user.id)
    except AssignmentError as exc:
        raise to_http_exception(exc) from exc
    return AssignmentNumbersOut(numbers=numbers, total_numbers=len(numbers))


@router.get("/{assignment_id}", response_model=AssignmentOut)
def read_assignment(
    assignment_id: int,
    repo: AssignmentRepository = Depends(get_assignment_repository),
    current_user: User = Depends(get_current_user)
):
    try:
        assignment = assignment_service.get_assignment(repo, current_user.id, assignment_id)
    except AssignmentError as exc:
        raise to_http_exception(exc) from exc
    return build_assignment_out(assignment)


@router.delete("/{assignment_id}")
def delete_assignment(
    assignment_id: int,
    repo: AssignmentRepository = Depends(get_assignment_repository),
    current_user: User = Depends(get_current_user)
):
    try:
        assignment_service.delete_assignment(repo, current_user.id, assignment_id)
    except AssignmentError as exc:
        raise to_http_exception(exc) from exc
    return {"detail": "Assignment deleted"}
