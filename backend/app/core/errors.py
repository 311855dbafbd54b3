import math
from typing import Any, Iterable


class AssignmentError(Exception):
    """Base class for rejections raised by the assignment service layer."""

    code = "assignment_error"
    status_code = 400
    message = "Assignment request rejected"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class EmptyBatchError(AssignmentError):
    code = "empty_batch"
    message = "At least one DP number is required"


class InvalidIdentifierFormatError(AssignmentError):
    code = "invalid_identifier_format"

    def __init__(self, token: Any, reason: str = "not a positive integer"):
        self.token = token
        self.reason = reason
        super().__init__(f"Invalid DP number {token!r}: {reason}")

    def json_token(self) -> Any:
        # NaN/Infinity and arbitrary objects are not valid JSON values
        if isinstance(self.token, float) and not math.isfinite(self.token):
            return str(self.token)
        if isinstance(self.token, (str, int, float)) and not isinstance(self.token, bool):
            return self.token
        return None if self.token is None else str(self.token)

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail["token"] = self.json_token()
        return detail


class _DuplicateNumbersError(AssignmentError):
    status_code = 409

    def __init__(self, numbers: Iterable[str]):
        self.numbers = list(numbers)
        super().__init__(f"{self.message}: {', '.join(self.numbers)}")

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail["numbers"] = self.numbers
        return detail


class IntraBatchDuplicateError(_DuplicateNumbersError):
    code = "intra_batch_duplicate"
    message = "DP numbers repeated in the request"


class CrossRecordDuplicateError(_DuplicateNumbersError):
    code = "cross_record_duplicate"
    message = "DP numbers already used in another assignment"


class AssignmentNotFoundError(AssignmentError):
    code = "not_found"
    status_code = 404
    message = "Assignment not found"


class StorageUnavailableError(AssignmentError):
    code = "storage_unavailable"
    status_code = 503
    message = "Storage temporarily unavailable, try again later"
