from datetime import date, datetime

import pytest
from sqlalchemy import DateTime

from cadence.models.task import Task
from cadence.models.task_instance import TaskInstance


@pytest.mark.parametrize(
    "model, column",
    [
        (Task, "created_at"),
        (Task, "updated_at"),
        (Task, "due_date"),
        (TaskInstance, "created_at"),
        (TaskInstance, "updated_at"),
        (TaskInstance, "completed_at"),
    ],
)
def test_timestamps_are_naive_utc_columns(model, column):
    column_type = model.__table__.c[column].type
    assert type(column_type) is DateTime
    assert column_type.timezone is False


def test_naive_timestamps_round_trip(session, make_task):
    task = make_task({"type": "daily"})
    finished = datetime(2024, 6, 1, 18, 45)
    instance = TaskInstance(
        user_id=task.user_id,
        task_id=task.id,
        instance_date=date(2024, 6, 1),
        status="completed",
        completed_at=finished,
    )
    session.add(instance)
    session.commit()
    session.refresh(instance)

    assert instance.completed_at == finished
    assert instance.created_at.tzinfo is None
    assert task.due_date == datetime(2024, 6, 1, 9, 0)
