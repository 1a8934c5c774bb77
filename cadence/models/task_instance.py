"""Task instance model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from datetime import date, datetime
from enum import Enum
from typing import Optional


class InstanceStatus(str, Enum):
    """Lifecycle states of a single occurrence."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


# Resolved states; only these are eligible for retention cleanup
TERMINAL_STATUSES = (
    InstanceStatus.COMPLETED.value,
    InstanceStatus.SKIPPED.value,
    InstanceStatus.CANCELLED.value,
)


class TaskInstance(SQLModel, table=True):
    """One concrete occurrence of a recurring task on a calendar date."""

    __tablename__ = "task_instance"
    __table_args__ = (
        UniqueConstraint("task_id", "instance_date", name="uq_task_instance_task_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(sa_column=Column(String, index=True, nullable=False))
    task_id: int = Field(
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), index=True, nullable=False)
    )
    instance_date: date = Field(index=True)
    status: str = Field(default=InstanceStatus.PENDING.value, max_length=20)
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    actual_minutes: Optional[int] = Field(default=None)
    completion_notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
