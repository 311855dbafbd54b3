from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    # Raw tokens; canonicalization and validation happen in the service layer.
    numbers: Optional[List[Any]] = None

    class Config:
        str_strip_whitespace = True


class AssignmentOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    numbers: List[str] = Field(default_factory=list)
    owner_id: int
    owner_email: Optional[str] = None
    owner_role: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentNumbersOut(BaseModel):
    numbers: List[str] = Field(default_factory=list)
    total_numbers: int = 0
