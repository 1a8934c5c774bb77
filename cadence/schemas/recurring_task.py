"""Recurring task schemas."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


class RecurringTaskCreate(BaseModel):
    """Schema for creating a recurring task."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    due_date: Optional[datetime] = Field(None)  # anchor of the recurrence
    recurrence_pattern: Dict[str, Any]  # camelCase rule, e.g. {"type": "weekly", "weekdays": [1, 5]}
    horizon_days: Optional[int] = Field(None, ge=0, le=366)


class RecurrenceRuleUpdate(BaseModel):
    """Schema for replacing the rule of a recurring task."""
    recurrence_pattern: Dict[str, Any]


class RecurrencePatternCheck(BaseModel):
    """Schema for validating a pattern without saving it."""
    recurrence_pattern: Dict[str, Any]
    due_date: Optional[date] = None


class GenerateInstancesRequest(BaseModel):
    """Schema for materializing instances on demand."""
    horizon_days: Optional[int] = Field(None, ge=0, le=366)


class RecurringTaskResponse(BaseModel):
    """Schema for recurring task API responses."""
    id: int
    user_id: str
    title: str
    description: Optional[str]
    due_date: Optional[datetime] = None
    is_recurring: bool
    recurrence_pattern: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    next_occurrence: Optional[date] = None

    class Config:
        from_attributes = True


class TaskInstanceResponse(BaseModel):
    """Schema for task instance API responses."""
    id: int
    user_id: str
    task_id: int
    instance_date: date
    status: str
    completed_at: Optional[datetime] = None
    actual_minutes: Optional[int] = None
    completion_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskInstanceUpdate(BaseModel):
    """Schema for a user action on a task instance."""
    status: Optional[str] = Field(None, pattern=r"^(pending|in_progress|completed|skipped|cancelled)$")
    actual_minutes: Optional[int] = Field(None, ge=0)
    completion_notes: Optional[str] = Field(None, max_length=2000)


class InstanceListResponse(BaseModel):
    instances: List[TaskInstanceResponse]
    count: int


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = []
    warnings: List[str] = []
