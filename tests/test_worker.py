import asyncio
from datetime import date, datetime, timedelta

import pytest
from sqlmodel import select

from cadence import worker
from cadence.models.task_instance import TaskInstance


def _add_instance(session, task, instance_date, status, created_at=None):
    session.add(TaskInstance(
        user_id=task.user_id,
        task_id=task.id,
        instance_date=instance_date,
        status=status,
        created_at=created_at or datetime.utcnow(),
    ))
    session.commit()


def test_run_scheduled_tasks_refreshes_and_cleans_up(engine, session, make_task):
    task = make_task({"type": "daily"}, anchor=date(2024, 6, 1))
    _add_instance(session, task, date(2024, 1, 1), "completed")
    _add_instance(session, task, date(2024, 1, 2), "pending")

    result = asyncio.run(worker.run_scheduled_tasks(engine, today=date(2024, 6, 10)))

    assert result == {"refresh": {"processed": 1, "created": 8, "failed": 0}, "purged": 1}
    dates = session.exec(
        select(TaskInstance.instance_date).where(TaskInstance.task_id == task.id)
    ).all()
    assert date(2024, 1, 1) not in dates
    assert date(2024, 1, 2) in dates


def test_run_scheduled_tasks_twice_is_idempotent(engine, make_task):
    make_task({"type": "weekly", "weekdays": [1, 3, 5]}, anchor=date(2024, 6, 3))

    first = asyncio.run(worker.run_scheduled_tasks(engine, today=date(2024, 6, 3)))
    second = asyncio.run(worker.run_scheduled_tasks(engine, today=date(2024, 6, 3)))

    assert first["refresh"]["created"] == 4
    assert second["refresh"] == {"processed": 1, "created": 0, "failed": 0}


def test_run_cleanup_tasks_purges_old_history(engine, session, make_task):
    task = make_task({"type": "daily"})
    old = datetime.utcnow() - timedelta(days=200)
    _add_instance(session, task, date(2024, 6, 1), "skipped", created_at=old)
    _add_instance(session, task, date(2024, 6, 2), "in_progress", created_at=old)

    assert asyncio.run(worker.run_cleanup_tasks(engine)) == {"purged": 1}


def test_main_once_propagates_failures(monkeypatch):
    async def failing_run(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(worker, "init_db", lambda: None)
    monkeypatch.setattr(worker, "run_scheduled_tasks", failing_run)

    with pytest.raises(RuntimeError):
        asyncio.run(worker.main(once=True))


def test_main_once_runs_both_jobs(monkeypatch):
    calls = []

    async def scheduled(*args, **kwargs):
        calls.append("scheduled")

    async def cleanup(*args, **kwargs):
        calls.append("cleanup")

    monkeypatch.setattr(worker, "init_db", lambda: None)
    monkeypatch.setattr(worker, "run_scheduled_tasks", scheduled)
    monkeypatch.setattr(worker, "run_cleanup_tasks", cleanup)

    asyncio.run(worker.main(once=True))
    assert calls == ["scheduled", "cleanup"]
