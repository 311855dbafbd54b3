from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.database.base import Base


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("User")
    number_rows = relationship(
        "AssignmentNumber",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AssignmentNumber.position",
    )

    @property
    def numbers(self) -> list[str]:
        return [row.number for row in self.number_rows]


class AssignmentNumber(Base):
    __tablename__ = "assignment_numbers"
    # Owner-wide uniqueness backstop for concurrent ingestions.
    __table_args__ = (
        UniqueConstraint("owner_id", "number", name="uq_assignment_number_owner"),
    )

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    number = Column(String, nullable=False)
    position = Column(Integer, nullable=False)

    assignment = relationship("Assignment", back_populates="number_rows")
