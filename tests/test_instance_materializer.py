from datetime import date

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from cadence.models.task_instance import TaskInstance
from cadence.services.errors import InvalidRuleError, PersistenceError
from cadence.services.instance_materializer import InstanceMaterializer


def _stored_dates(session, task_id):
    statement = (
        select(TaskInstance.instance_date)
        .where(TaskInstance.task_id == task_id)
        .order_by(TaskInstance.instance_date)
    )
    return list(session.exec(statement).all())


def test_materialize_creates_pending_instances_for_the_horizon(session, make_task):
    task = make_task({"type": "daily"}, anchor=date(2024, 6, 1))

    created = InstanceMaterializer(session).materialize(task, 7, today=date(2024, 6, 10))

    assert [i.instance_date for i in created] == [date(2024, 6, d) for d in range(10, 18)]
    assert all(i.status == "pending" for i in created)
    assert all(i.task_id == task.id and i.user_id == task.user_id for i in created)
    assert all(i.id is not None for i in created)


def test_materialize_is_idempotent(session, make_task):
    task = make_task({"type": "weekly", "weekdays": [1, 5]}, anchor=date(2024, 1, 1))
    materializer = InstanceMaterializer(session)

    first = materializer.materialize(task, 13, today=date(2024, 1, 1))
    second = materializer.materialize(task, 13, today=date(2024, 1, 1))

    assert [i.instance_date for i in first] == [
        date(2024, 1, 1), date(2024, 1, 5), date(2024, 1, 8), date(2024, 1, 12)
    ]
    assert second == []
    assert len(_stored_dates(session, task.id)) == 4


def test_rolling_forward_only_adds_new_dates(session, make_task):
    task = make_task({"type": "daily", "interval": 2}, anchor=date(2024, 6, 1))
    materializer = InstanceMaterializer(session)

    materializer.materialize(task, 7, today=date(2024, 6, 1))
    created = materializer.materialize(task, 7, today=date(2024, 6, 4))

    assert [i.instance_date for i in created] == [date(2024, 6, 9), date(2024, 6, 11)]
    assert _stored_dates(session, task.id) == [date(2024, 6, d) for d in (1, 3, 5, 7, 9, 11)]


def test_existing_instances_are_not_touched(session, make_task):
    task = make_task({"type": "daily"}, anchor=date(2024, 6, 1))
    materializer = InstanceMaterializer(session)
    first = materializer.materialize(task, 2, today=date(2024, 6, 1))

    first[0].status = "completed"
    session.add(first[0])
    session.commit()

    materializer.materialize(task, 5, today=date(2024, 6, 1))
    stored = session.exec(
        select(TaskInstance).where(TaskInstance.instance_date == date(2024, 6, 1))
    ).one()
    assert stored.status == "completed"


def test_max_occurrences_holds_across_refreshes(session, make_task):
    task = make_task({"type": "daily", "maxOccurrences": 5}, anchor=date(2024, 6, 1))
    materializer = InstanceMaterializer(session)

    materializer.materialize(task, 2, today=date(2024, 6, 1))
    created = materializer.materialize(task, 7, today=date(2024, 6, 3))
    later = materializer.materialize(task, 30, today=date(2024, 6, 20))

    assert [i.instance_date for i in created] == [date(2024, 6, 4), date(2024, 6, 5)]
    assert later == []
    assert len(_stored_dates(session, task.id)) == 5


def test_uniqueness_conflict_counts_as_already_materialized(session, make_task, monkeypatch):
    task = make_task({"type": "daily"}, anchor=date(2024, 6, 1))
    materializer = InstanceMaterializer(session)
    materializer.materialize(task, 3, today=date(2024, 6, 1))

    # Simulate a concurrent run that has not seen the rows stored above
    monkeypatch.setattr(materializer, "existing_dates", lambda *args: set())
    created = materializer.materialize(task, 5, today=date(2024, 6, 1))

    assert [i.instance_date for i in created] == [date(2024, 6, 5), date(2024, 6, 6)]
    assert _stored_dates(session, task.id) == [date(2024, 6, d) for d in range(1, 7)]


def test_task_without_pattern_is_rejected(session, make_task):
    task = make_task(None, is_recurring=False)
    with pytest.raises(InvalidRuleError):
        InstanceMaterializer(session).materialize(task, 7, today=date(2024, 6, 1))


def test_stored_custom_pattern_is_rejected(session, make_task):
    task = make_task({"type": "custom"})
    with pytest.raises(InvalidRuleError):
        InstanceMaterializer(session).materialize(task, 7, today=date(2024, 6, 1))


def test_storage_failure_raises_persistence_error(session, make_task, monkeypatch):
    task = make_task({"type": "daily"}, anchor=date(2024, 6, 1))

    def failing_commit():
        raise OperationalError("INSERT INTO task_instance", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", failing_commit)
    with pytest.raises(PersistenceError) as exc_info:
        InstanceMaterializer(session).materialize(task, 3, today=date(2024, 6, 1))
    assert exc_info.value.details["task_id"] == task.id
