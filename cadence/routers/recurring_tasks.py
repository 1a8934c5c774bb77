"""Recurring task router."""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Any, Dict, List

from cadence.config import INITIAL_HORIZON_DAYS
from cadence.db.config import get_session
from cadence.models.task import Task
from cadence.models.task_instance import TaskInstance
from cadence.schemas.recurring_task import (
    GenerateInstancesRequest,
    InstanceListResponse,
    RecurrencePatternCheck,
    RecurrenceRuleUpdate,
    RecurringTaskCreate,
    RecurringTaskResponse,
    TaskInstanceResponse,
    TaskInstanceUpdate,
    ValidationResult,
)
from cadence.services.errors import (
    InvalidRuleError,
    NotFoundError,
    PersistenceError,
    RecurrenceError,
)
from cadence.services.recurrence_validator import RecurrenceValidator
from cadence.services.recurring_task_service import RecurringTaskService
from sqlmodel import Session

router = APIRouter(tags=["Recurring Tasks"])  # No prefix since main.py adds /api prefix

_ERROR_STATUS = {
    InvalidRuleError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_recurring_task_service(session: Session = Depends(get_session)) -> RecurringTaskService:
    """Dependency for getting RecurringTaskService instance."""
    return RecurringTaskService(session)


def _http_error(error: RecurrenceError) -> HTTPException:
    status_code = _ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=error.to_dict())


def _owned_task(service: RecurringTaskService, user_id: str, task_id: int) -> Task:
    """Load a task of this user; other users' tasks look like missing ones."""
    task = service.get_task(task_id)
    if task.user_id != user_id:
        raise NotFoundError(f"Task {task_id} not found", details={"task_id": task_id})
    return task


def _task_response(service: RecurringTaskService, task: Task) -> RecurringTaskResponse:
    response = RecurringTaskResponse.model_validate(task)
    if task.is_recurring:
        try:
            response.next_occurrence = service.get_next_occurrence(task)
        except InvalidRuleError:
            response.next_occurrence = None
    return response


def _instance_list(instances: List[TaskInstance]) -> InstanceListResponse:
    return InstanceListResponse(
        instances=[TaskInstanceResponse.model_validate(instance) for instance in instances],
        count=len(instances)
    )


@router.post("/{user_id}/recurring-tasks", response_model=RecurringTaskResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_task(
    user_id: str,
    task_data: RecurringTaskCreate,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Create a recurring task and materialize its first instances."""
    horizon = task_data.horizon_days if task_data.horizon_days is not None else INITIAL_HORIZON_DAYS
    try:
        task = service.create_recurring_task(
            user_id=user_id,
            title=task_data.title,
            description=task_data.description,
            due_date=task_data.due_date,
            recurrence_pattern=task_data.recurrence_pattern,
            horizon_days=horizon
        )
    except RecurrenceError as e:
        raise _http_error(e)
    return _task_response(service, task)


@router.get("/{user_id}/recurring-tasks", response_model=Dict[str, Any])
async def list_recurring_tasks(
    user_id: str,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """List the user's recurring tasks, paused ones included."""
    tasks = [_task_response(service, task) for task in service.get_recurring_tasks(user_id)]
    return {
        "tasks": tasks,
        "count": len(tasks)
    }


@router.get("/{user_id}/recurring-tasks/{task_id}", response_model=RecurringTaskResponse)
async def get_recurring_task(
    user_id: str,
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Get a specific recurring task."""
    try:
        task = _owned_task(service, user_id, task_id)
    except RecurrenceError as e:
        raise _http_error(e)
    return _task_response(service, task)


@router.delete("/{user_id}/recurring-tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring_task(
    user_id: str,
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Delete a task together with all of its instances."""
    try:
        _owned_task(service, user_id, task_id)
        service.delete_task(task_id)
    except RecurrenceError as e:
        raise _http_error(e)


@router.get("/{user_id}/recurring-tasks/{task_id}/rule", response_model=Dict[str, Any])
async def get_recurrence_rule(
    user_id: str,
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Read the stored recurrence rule of a task."""
    try:
        task = _owned_task(service, user_id, task_id)
    except RecurrenceError as e:
        raise _http_error(e)
    return {"task_id": task.id, "recurrence_pattern": task.recurrence_pattern}


@router.put("/{user_id}/recurring-tasks/{task_id}/rule", response_model=RecurringTaskResponse)
async def update_recurrence_rule(
    user_id: str,
    task_id: int,
    rule_data: RecurrenceRuleUpdate,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Replace the recurrence rule of a task."""
    try:
        _owned_task(service, user_id, task_id)
        task = service.update_recurrence_rule(task_id, rule_data.recurrence_pattern)
    except RecurrenceError as e:
        raise _http_error(e)
    return _task_response(service, task)


@router.get("/{user_id}/recurring-tasks/{task_id}/instances", response_model=InstanceListResponse)
async def list_task_instances(
    user_id: str,
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """List every materialized instance of a task."""
    try:
        _owned_task(service, user_id, task_id)
        instances = service.get_task_instances(task_id)
    except RecurrenceError as e:
        raise _http_error(e)
    return _instance_list(instances)


@router.post("/{user_id}/recurring-tasks/{task_id}/generate", response_model=InstanceListResponse)
async def generate_task_instances(
    user_id: str,
    task_id: int,
    request: GenerateInstancesRequest,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Materialize instances of a task right away; returns only the new ones."""
    horizon = request.horizon_days if request.horizon_days is not None else INITIAL_HORIZON_DAYS
    try:
        _owned_task(service, user_id, task_id)
        instances = service.generate_instances(task_id, horizon)
    except RecurrenceError as e:
        raise _http_error(e)
    return _instance_list(instances)


@router.post("/{user_id}/recurring-tasks/{task_id}/pause", response_model=RecurringTaskResponse)
async def pause_recurring_task(
    user_id: str,
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Pause scheduled materialization of a task."""
    try:
        _owned_task(service, user_id, task_id)
        task = service.pause_recurring_task(task_id)
    except RecurrenceError as e:
        raise _http_error(e)
    return _task_response(service, task)


@router.post("/{user_id}/recurring-tasks/{task_id}/resume", response_model=InstanceListResponse)
async def resume_recurring_task(
    user_id: str,
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Resume a paused task; returns the instances created from today on."""
    try:
        _owned_task(service, user_id, task_id)
        instances = service.resume_recurring_task(task_id)
    except RecurrenceError as e:
        raise _http_error(e)
    return _instance_list(instances)


@router.get("/{user_id}/task-instances/today", response_model=InstanceListResponse)
async def list_today_instances(
    user_id: str,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Pending instances due today."""
    return _instance_list(service.get_today_recurring_tasks(user_id))


@router.patch("/{user_id}/task-instances/{instance_id}", response_model=TaskInstanceResponse)
async def update_task_instance(
    user_id: str,
    instance_id: int,
    update: TaskInstanceUpdate,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Change the status, time spent or notes of an instance."""
    try:
        instance = service.get_instance(instance_id)
        if instance.user_id != user_id:
            raise NotFoundError(f"Task instance {instance_id} not found", details={"instance_id": instance_id})
        instance = service.update_instance(
            instance_id,
            status=update.status,
            actual_minutes=update.actual_minutes,
            completion_notes=update.completion_notes
        )
    except RecurrenceError as e:
        raise _http_error(e)
    return instance


@router.post("/recurrence/validate", response_model=ValidationResult)
async def validate_recurrence_pattern(check: RecurrencePatternCheck):
    """Check a recurrence pattern without saving anything."""
    return RecurrenceValidator.validate_recurrence_pattern(check.recurrence_pattern, check.due_date)
