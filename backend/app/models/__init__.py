from app.models.assignment import Assignment, AssignmentNumber  # noqa: F401
from app.models.user import User  # noqa: F401
