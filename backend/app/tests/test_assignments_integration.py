import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.core.errors import (
    AssignmentNotFoundError,
    CrossRecordDuplicateError,
    EmptyBatchError,
    IntraBatchDuplicateError,
    InvalidIdentifierFormatError,
    StorageUnavailableError,
)
from app.models.assignment import Assignment, AssignmentNumber
from app.repositories.assignments import AssignmentRepository
from app.routes.assignments import (
    create_assignment,
    delete_assignment,
    read_all_numbers,
    read_assignment,
    read_assignments,
)
from app.schemas.assignment import AssignmentCreate
from app.services import assignments as assignment_service


@pytest.fixture
def repo(db_session):
    return AssignmentRepository(db_session)


def ingest(repo, user, numbers, title="Assignment"):
    return assignment_service.create_assignment(repo, user.id, title, None, numbers)


def stored_number_count(db_session) -> int:
    return db_session.query(AssignmentNumber).count()


def test_create_assignment_stores_canonical_numbers_in_order(repo, make_user):
    user = make_user()

    created = create_assignment(
        payload=AssignmentCreate(
            title="  Route check  ",
            description="North side",
            numbers=["dp12", 5, " DP0003 ", "10000"],
        ),
        repo=repo,
        current_user=user,
    )

    assert created.title == "Route check"
    assert created.description == "North side"
    assert created.numbers == ["DP0012", "DP0005", "DP0003", "DP10000"]
    assert created.owner_id == user.id
    assert created.owner_email == user.email
    assert created.owner_role == user.role
    assert created.created_at is not None


@pytest.mark.parametrize("numbers", [None, []])
def test_empty_batch_is_rejected(repo, make_user, db_session, numbers):
    user = make_user()
    with pytest.raises(EmptyBatchError):
        ingest(repo, user, numbers)
    assert db_session.query(Assignment).count() == 0


def test_invalid_token_aborts_whole_batch(repo, make_user, db_session):
    user = make_user()
    with pytest.raises(InvalidIdentifierFormatError) as excinfo:
        ingest(repo, user, ["DP0001", "DP12.5", "DP0002"])
    assert excinfo.value.token == "DP12.5"
    assert db_session.query(Assignment).count() == 0
    assert stored_number_count(db_session) == 0


def test_intra_batch_duplicates_are_listed_once(repo, make_user, db_session):
    user = make_user()
    with pytest.raises(IntraBatchDuplicateError) as excinfo:
        ingest(repo, user, ["7", "DP0007", "dp7", "8"])
    assert excinfo.value.numbers == ["DP0007"]
    assert db_session.query(Assignment).count() == 0


def test_cross_record_duplicate_is_scoped_to_owner(repo, make_user):
    owner = make_user()
    other = make_user()
    ingest(repo, owner, ["DP0001", "DP0002"])

    with pytest.raises(CrossRecordDuplicateError) as excinfo:
        ingest(repo, owner, ["3", "2", "1"])
    assert excinfo.value.numbers == ["DP0001", "DP0002"]

    created = ingest(repo, other, ["3", "2", "1"])
    assert created.numbers == ["DP0003", "DP0002", "DP0001"]


def test_rejections_map_to_http_errors(repo, make_user):
    user = make_user()
    ingest(repo, user, ["DP0001"])

    with pytest.raises(HTTPException) as excinfo:
        create_assignment(
            payload=AssignmentCreate(title="Again", numbers=["1"]),
            repo=repo,
            current_user=user,
        )
    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["code"] == "cross_record_duplicate"
    assert excinfo.value.detail["numbers"] == ["DP0001"]

    with pytest.raises(HTTPException) as excinfo:
        create_assignment(
            payload=AssignmentCreate(title="Bad", numbers=["abc"]),
            repo=repo,
            current_user=user,
        )
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["code"] == "invalid_identifier_format"
    assert excinfo.value.detail["token"] == "abc"

    with pytest.raises(HTTPException) as excinfo:
        create_assignment(
            payload=AssignmentCreate(title="Empty"),
            repo=repo,
            current_user=user,
        )
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["code"] == "empty_batch"


def test_long_digit_token_is_ingested_without_overflow(repo, make_user):
    user = make_user()
    digits = "9" * 5000

    created = ingest(repo, user, [digits, "1"])

    assert created.numbers == [f"DP{digits}", "DP0001"]
    assert assignment_service.list_all_numbers(repo, user.id) == ["DP0001", f"DP{digits}"]
    with pytest.raises(CrossRecordDuplicateError):
        ingest(repo, user, [f"dp{digits}"])


def test_all_numbers_are_sorted_numerically(repo, make_user):
    user = make_user()
    other = make_user()
    ingest(repo, user, ["DP0010", "DP0002"])
    ingest(repo, user, ["DP0005"])
    ingest(repo, other, ["DP0001"])

    payload = read_all_numbers(repo=repo, current_user=user)

    assert payload.numbers == ["DP0002", "DP0005", "DP0010"]
    assert payload.total_numbers == 3


def test_wide_numbers_sort_after_padded_ones(repo, make_user):
    user = make_user()
    ingest(repo, user, ["10000", "9999", "100"])
    assert assignment_service.list_all_numbers(repo, user.id) == ["DP0100", "DP9999", "DP10000"]


def test_list_assignments_only_returns_owned_newest_first(repo, make_user):
    user = make_user()
    other = make_user()
    first = ingest(repo, user, ["1"], title="First")
    second = ingest(repo, user, ["2"], title="Second")
    ingest(repo, other, ["3"], title="Foreign")

    rows = read_assignments(repo=repo, current_user=user)

    assert [row.id for row in rows] == [second.id, first.id]


def test_foreign_assignment_is_not_found(repo, make_user, db_session):
    owner = make_user()
    intruder = make_user()
    created = ingest(repo, owner, ["DP0042"])

    for handler in (read_assignment, delete_assignment):
        with pytest.raises(HTTPException) as excinfo:
            handler(assignment_id=created.id, repo=repo, current_user=intruder)
        assert excinfo.value.status_code == 404
        assert excinfo.value.detail["code"] == "not_found"

    with pytest.raises(AssignmentNotFoundError):
        assignment_service.get_assignment(repo, intruder.id, 999999)

    assert read_assignment(assignment_id=created.id, repo=repo, current_user=owner).numbers == ["DP0042"]
    assert db_session.query(Assignment).count() == 1


def test_delete_releases_numbers_for_reuse(repo, make_user, db_session):
    user = make_user()
    created = ingest(repo, user, ["DP0001", "DP0002"])

    response = delete_assignment(assignment_id=created.id, repo=repo, current_user=user)

    assert response == {"detail": "Assignment deleted"}
    assert stored_number_count(db_session) == 0
    assert ingest(repo, user, ["1"]).numbers == ["DP0001"]


def test_unique_constraint_backs_up_the_precheck(repo, make_user, db_session, monkeypatch):
    user = make_user()
    ingest(repo, user, ["DP0001", "DP0002"])

    # Simulate a concurrent request that passed the pre-check first.
    real_find = repo.find_by_owner_and_numbers
    calls = []

    def racing_find(owner_id, numbers):
        calls.append(owner_id)
        if len(calls) == 1:
            return []
        return real_find(owner_id, numbers)

    monkeypatch.setattr(repo, "find_by_owner_and_numbers", racing_find)

    with pytest.raises(CrossRecordDuplicateError) as excinfo:
        ingest(repo, user, ["DP0002", "DP0003"])

    assert excinfo.value.numbers == ["DP0002"]
    assert db_session.query(Assignment).count() == 1
    assert sorted(number for (number,) in db_session.query(AssignmentNumber.number).all()) == ["DP0001", "DP0002"]


def test_storage_failure_is_reported_generically(repo, make_user, monkeypatch):
    user = make_user()

    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(repo, "find_by_owner", broken)

    with pytest.raises(StorageUnavailableError):
        assignment_service.list_assignments(repo, user.id)

    with pytest.raises(HTTPException) as excinfo:
        read_assignments(repo=repo, current_user=user)
    assert excinfo.value.status_code == 503
    assert "connection refused" not in str(excinfo.value.detail)
