"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON, String, Text
from datetime import date, datetime
from typing import Any, Dict, Optional


class Task(SQLModel, table=True):
    """Task entity owning the recurrence pattern of a recurring task."""

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(sa_column=Column(String, index=True, nullable=False))
    title: str = Field(max_length=200, min_length=1)
    description: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime, nullable=False))

    due_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))  # anchor of the recurrence
    is_recurring: bool = Field(default=False, index=True)  # false while paused
    recurrence_pattern: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))  # camelCase rule JSON

    @property
    def anchor_date(self) -> date:
        """Date the recurrence is counted from; time-of-day is ignored."""
        return (self.due_date or self.created_at).date()

    @property
    def recurrence_rule(self):
        """Parsed recurrence rule, or None when the task has no pattern."""
        if self.recurrence_pattern is None:
            return None
        from cadence.services.recurrence_validator import parse_recurrence_rule
        return parse_recurrence_rule(self.recurrence_pattern)
