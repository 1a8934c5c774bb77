"""
Instance Materializer

Persists the occurrences of a recurring task inside a rolling horizon.
Materialization is a set difference between the dates the rule says are due
and the dates already stored, so running it again for the same window is a
no-op.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from cadence.config import local_today
from cadence.models.task import Task
from cadence.models.task_instance import InstanceStatus, TaskInstance
from cadence.services.errors import InvalidRuleError, PersistenceError
from cadence.services.recurrence_expander import count_occurrences_before, dates_in_window

logger = logging.getLogger(__name__)


class InstanceMaterializer:
    """Creates pending task instances for due dates that are not stored yet."""

    def __init__(self, session: Session):
        self.session = session

    def existing_dates(self, task_id: int, window_start: date, window_end: date) -> Set[date]:
        """Dates already materialized for a task inside the window."""
        statement = (
            select(TaskInstance.instance_date)
            .where(TaskInstance.task_id == task_id)
            .where(TaskInstance.instance_date >= window_start)
            .where(TaskInstance.instance_date <= window_end)
        )
        try:
            return set(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to read instances of task {task_id}",
                details={"task_id": task_id, "error": str(e)}
            ) from e

    def materialize(self, task: Task, horizon_days: int, today: Optional[date] = None) -> List[TaskInstance]:
        """
        Create instances for every due date in [today, today + horizon_days].

        Args:
            task: Recurring task to materialize
            horizon_days: Length of the forward window in days
            today: Override for the current date

        Returns:
            Newly created instances, in date order

        Raises:
            InvalidRuleError: If the task has no usable recurrence rule
            PersistenceError: If reading or writing instances fails
        """
        if horizon_days < 0:
            raise ValueError("horizon_days cannot be negative")

        rule = task.recurrence_rule
        if rule is None:
            raise InvalidRuleError(
                f"Task {task.id} has no recurrence pattern",
                details={"task_id": task.id}
            )

        window_start = today or local_today()
        window_end = window_start + timedelta(days=horizon_days)
        anchor = task.anchor_date

        existing = self.existing_dates(task.id, window_start, window_end)

        before = 0
        if rule.max_occurrences is not None:
            before = count_occurrences_before(rule, anchor, window_start)

        due_dates = dates_in_window(rule, anchor, window_start, window_end, before)
        missing = [due for due in due_dates if due not in existing]

        created = []
        for instance_date in missing:
            instance = self._insert(task, instance_date)
            if instance is not None:
                created.append(instance)

        if created:
            logger.info(
                f"Materialized {len(created)} instance(s) of task {task.id} "
                f"between {window_start.isoformat()} and {window_end.isoformat()}"
            )
        return created

    def _insert(self, task: Task, instance_date: date) -> Optional[TaskInstance]:
        """Insert one pending instance; a uniqueness conflict means it already exists."""
        now = datetime.utcnow()
        instance = TaskInstance(
            user_id=task.user_id,
            task_id=task.id,
            instance_date=instance_date,
            status=InstanceStatus.PENDING.value,
            created_at=now,
            updated_at=now
        )

        self.session.add(instance)
        try:
            self.session.commit()
        except IntegrityError:
            # Another materialize run stored this date first
            self.session.rollback()
            logger.debug(f"Instance of task {task.id} on {instance_date.isoformat()} already materialized")
            return None
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                f"Failed to create instance of task {task.id} on {instance_date.isoformat()}",
                details={"task_id": task.id, "instance_date": instance_date.isoformat(), "error": str(e)}
            ) from e

        self.session.refresh(instance)
        return instance
