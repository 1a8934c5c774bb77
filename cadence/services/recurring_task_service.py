"""
Recurring Task Service

Owns the lifecycle of recurring tasks and their instances: creation with an
initial horizon, the periodic refresh over every active task, retention
cleanup, pause/resume, and per-instance status updates.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from cadence.config import (
    HISTORY_RETENTION_DAYS,
    INITIAL_HORIZON_DAYS,
    INSTANCE_RETENTION_DAYS,
    REFRESH_HORIZON_DAYS,
    local_today,
)
from cadence.models.task import Task
from cadence.models.task_instance import TERMINAL_STATUSES, InstanceStatus, TaskInstance
from cadence.services.errors import NotFoundError, PersistenceError
from cadence.services.instance_materializer import InstanceMaterializer
from cadence.services.recurrence_expander import (
    count_occurrences_before,
    dates_in_window,
    next_occurrence,
)
from cadence.services.recurrence_validator import parse_recurrence_rule
from cadence.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


class RecurringTaskService:
    """Service to handle recurring task logic."""

    def __init__(self, session: Session):
        self.session = session
        self.materializer = InstanceMaterializer(session)

    # Tasks

    def get_task(self, task_id: int) -> Task:
        """Load a task or raise NotFoundError."""
        task = self.session.get(Task, task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", details={"task_id": task_id})
        return task

    def create_recurring_task(
        self,
        user_id: str,
        title: str,
        recurrence_pattern: Any,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
        horizon_days: int = INITIAL_HORIZON_DAYS,
        today: Optional[date] = None
    ) -> Task:
        """Create a recurring task and materialize its initial horizon."""
        # Validate before anything is written
        rule = parse_recurrence_rule(recurrence_pattern)

        if due_date is not None and due_date.tzinfo is not None:
            # Stored as naive UTC like every other timestamp
            due_date = due_date.astimezone(timezone.utc).replace(tzinfo=None)

        now = datetime.utcnow()
        task = Task(
            user_id=user_id,
            title=title,
            description=description,
            due_date=due_date,
            is_recurring=True,
            recurrence_pattern=rule.to_storage(),
            created_at=now,
            updated_at=now
        )
        self._commit(task, f"Failed to create recurring task for user {user_id}")

        try:
            self.materializer.materialize(task, horizon_days, today)
        except PersistenceError as e:
            # The task exists; the next scheduled refresh fills in its instances
            logger.error(f"Initial materialization failed for task {task.id}: {e.message}")
        logger.info(f"Created recurring task {task.id} ({rule.type}) for user {user_id}")
        return task

    def get_recurring_tasks(self, user_id: str) -> List[Task]:
        """All tasks of a user that carry a recurrence pattern, paused ones included."""
        statement = (
            select(Task)
            .where(Task.user_id == user_id)
            .where(Task.recurrence_pattern.is_not(None))
            .order_by(Task.created_at.desc())
        )
        return list(self.session.exec(statement).all())

    def get_recurrence_rule(self, task_id: int):
        """Parsed recurrence rule of a task (None if it has no pattern)."""
        return self.get_task(task_id).recurrence_rule

    def update_recurrence_rule(
        self,
        task_id: int,
        recurrence_pattern: Any,
        horizon_days: int = INITIAL_HORIZON_DAYS,
        today: Optional[date] = None
    ) -> Task:
        """
        Replace the rule of a task.

        Future pending instances the new rule no longer produces are removed;
        anything the user already acted on is kept. Active tasks are then
        re-materialized for the horizon.
        """
        rule = parse_recurrence_rule(recurrence_pattern)
        task = self.get_task(task_id)
        today = today or local_today()

        task.recurrence_pattern = rule.to_storage()
        task.updated_at = datetime.utcnow()

        statement = (
            select(TaskInstance)
            .where(TaskInstance.task_id == task_id)
            .where(TaskInstance.instance_date >= today)
            .where(TaskInstance.status == InstanceStatus.PENDING.value)
        )
        pending = list(self.session.exec(statement).all())
        if pending:
            last = max(instance.instance_date for instance in pending)
            before = 0
            if rule.max_occurrences is not None:
                before = count_occurrences_before(rule, task.anchor_date, today)
            still_due = set(dates_in_window(rule, task.anchor_date, today, last, before))
            for instance in pending:
                if instance.instance_date not in still_due:
                    self.session.delete(instance)

        self._commit(task, f"Failed to update recurrence rule of task {task_id}")

        if task.is_recurring:
            self.materializer.materialize(task, horizon_days, today)
        return task

    def get_next_occurrence(self, task: Task, today: Optional[date] = None) -> Optional[date]:
        """Next due date of a task from today on, or None if the series ended."""
        rule = task.recurrence_rule
        if rule is None:
            return None
        return next_occurrence(rule, task.anchor_date, today or local_today())

    def delete_task(self, task_id: int) -> int:
        """Delete a task and all of its instances; returns the number of instances removed."""
        task = self.get_task(task_id)
        instances = self.session.exec(
            select(TaskInstance).where(TaskInstance.task_id == task_id)
        ).all()
        for instance in instances:
            self.session.delete(instance)
        self.session.delete(task)
        self._commit(None, f"Failed to delete task {task_id}")
        logger.info(f"Deleted task {task_id} with {len(instances)} instance(s)")
        return len(instances)

    # Pause / resume

    def pause_recurring_task(self, task_id: int) -> Task:
        """Stop scheduled materialization; already created instances stay."""
        task = self.get_task(task_id)
        task.is_recurring = False
        task.updated_at = datetime.utcnow()
        self._commit(task, f"Failed to pause task {task_id}")
        logger.info(f"Paused recurring task {task_id}")
        return task

    def resume_recurring_task(
        self,
        task_id: int,
        horizon_days: int = INITIAL_HORIZON_DAYS,
        today: Optional[date] = None
    ) -> List[TaskInstance]:
        """
        Re-enable a paused task and materialize forward from today.

        Occurrences that fell inside the paused interval are not backfilled.
        """
        task = self.get_task(task_id)
        # Fail fast on a broken rule before flipping the flag
        parse_recurrence_rule(task.recurrence_pattern)

        task.is_recurring = True
        task.updated_at = datetime.utcnow()
        self._commit(task, f"Failed to resume task {task_id}")
        logger.info(f"Resumed recurring task {task_id}")
        return self.materializer.materialize(task, horizon_days, today)

    # Materialization

    def generate_instances(
        self,
        task_id: int,
        horizon_days: int = INITIAL_HORIZON_DAYS,
        today: Optional[date] = None
    ) -> List[TaskInstance]:
        """Materialize one task now."""
        return self.materializer.materialize(self.get_task(task_id), horizon_days, today)

    def get_active_recurring_task_ids(self) -> List[int]:
        statement = (
            select(Task.id)
            .where(Task.is_recurring == True)  # noqa: E712
            .where(Task.recurrence_pattern.is_not(None))
            .order_by(Task.id)
        )
        return list(self.session.exec(statement).all())

    @metrics_collector.time_operation("generate_daily_recurring_tasks_seconds")
    def generate_daily_recurring_tasks(
        self,
        horizon_days: int = REFRESH_HORIZON_DAYS,
        today: Optional[date] = None
    ) -> Dict[str, int]:
        """
        Refresh the rolling horizon of every active recurring task.

        Each task is isolated: a failure is logged and the batch moves on,
        the task is picked up again on the next scheduled run.
        """
        today = today or local_today()
        summary = {"processed": 0, "created": 0, "failed": 0}

        for task_id in self.get_active_recurring_task_ids():
            try:
                created = self.generate_instances(task_id, horizon_days, today)
            except NotFoundError:
                # Deleted since the batch started
                logger.info(f"Task {task_id} disappeared during refresh, skipping")
                continue
            except Exception as e:
                self.session.rollback()
                summary["failed"] += 1
                metrics_collector.recurring_task_error()
                logger.error(f"Failed to generate instances for task {task_id}: {str(e)}")
                continue

            summary["processed"] += 1
            summary["created"] += len(created)
            metrics_collector.recurring_task_processed()
            metrics_collector.instances_created(len(created))

        logger.info(
            f"Recurring refresh for {today.isoformat()}: processed={summary['processed']} "
            f"created={summary['created']} failed={summary['failed']}"
        )
        return summary

    # Retention

    def cleanup_old_instances(
        self,
        retention_days: int = INSTANCE_RETENTION_DAYS,
        today: Optional[date] = None
    ) -> int:
        """
        Delete resolved instances dated before today - retention_days.

        Pending and in-progress instances are unresolved work and are never
        deleted, however old they are.
        """
        cutoff = (today or local_today()) - timedelta(days=retention_days)
        statement = (
            select(TaskInstance)
            .where(TaskInstance.instance_date < cutoff)
            .where(TaskInstance.status.in_(TERMINAL_STATUSES))
        )
        return self._purge(statement, f"instances dated before {cutoff.isoformat()}")

    def purge_instance_history(
        self,
        retention_days: int = HISTORY_RETENTION_DAYS,
        now: Optional[datetime] = None
    ) -> int:
        """Delete resolved instances whose rows were created before now - retention_days."""
        cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
        statement = (
            select(TaskInstance)
            .where(TaskInstance.created_at < cutoff)
            .where(TaskInstance.status.in_(TERMINAL_STATUSES))
        )
        return self._purge(statement, f"instance history created before {cutoff.isoformat()}")

    # Instances

    def get_task_instances(self, task_id: int) -> List[TaskInstance]:
        """All instances of a task ordered by date."""
        self.get_task(task_id)
        statement = (
            select(TaskInstance)
            .where(TaskInstance.task_id == task_id)
            .order_by(TaskInstance.instance_date.asc())
        )
        return list(self.session.exec(statement).all())

    def get_instance(self, instance_id: int) -> TaskInstance:
        instance = self.session.get(TaskInstance, instance_id)
        if instance is None:
            raise NotFoundError(f"Task instance {instance_id} not found", details={"instance_id": instance_id})
        return instance

    def get_today_recurring_tasks(self, user_id: str, today: Optional[date] = None) -> List[TaskInstance]:
        """Pending instances due today for a user."""
        statement = (
            select(TaskInstance)
            .where(TaskInstance.user_id == user_id)
            .where(TaskInstance.instance_date == (today or local_today()))
            .where(TaskInstance.status == InstanceStatus.PENDING.value)
            .order_by(TaskInstance.task_id)
        )
        return list(self.session.exec(statement).all())

    def update_instance(
        self,
        instance_id: int,
        status: Optional[str] = None,
        actual_minutes: Optional[int] = None,
        completion_notes: Optional[str] = None
    ) -> TaskInstance:
        """Apply a user action to an instance."""
        instance = self.get_instance(instance_id)

        if status is not None:
            status = InstanceStatus(status).value
            if status == InstanceStatus.COMPLETED.value:
                if instance.status != status:
                    instance.completed_at = datetime.utcnow()
            else:
                instance.completed_at = None
            instance.status = status
        if actual_minutes is not None:
            instance.actual_minutes = actual_minutes
        if completion_notes is not None:
            instance.completion_notes = completion_notes

        instance.updated_at = datetime.utcnow()
        self._commit(instance, f"Failed to update task instance {instance_id}")
        return instance

    def skip_instance(self, instance_id: int) -> TaskInstance:
        return self.update_instance(instance_id, status=InstanceStatus.SKIPPED.value)

    # Helpers

    def _purge(self, statement, description: str) -> int:
        instances = self.session.exec(statement).all()
        for instance in instances:
            self.session.delete(instance)
        self._commit(None, f"Failed to purge {description}")

        metrics_collector.instances_purged(len(instances))
        logger.info(f"Purged {len(instances)} {description}")
        return len(instances)

    def _commit(self, obj, failure_message: str):
        if obj is not None:
            self.session.add(obj)
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(failure_message, details={"error": str(e)}) from e
        if obj is not None:
            self.session.refresh(obj)
