"""Tests for the housekeeping scheduler."""

import asyncio
from datetime import timedelta

from sqlalchemy import func, select, update

from passkey_starter.database import utcnow
from passkey_starter.models import Account, ChallengePurpose, Session, WebAuthnChallenge
from passkey_starter.services.challenge_store import ChallengeStore
from passkey_starter.services.session_service import SessionIssuer, hash_token
from passkey_starter.tasks.scheduler import HousekeepingScheduler, ScheduledTask


async def seed_expired_rows(db, settings):
    store = ChallengeStore(db, settings)
    await store.issue(ChallengePurpose.AUTHENTICATE)
    _, stale = await store.issue(ChallengePurpose.REGISTER)
    stale.expires_at = utcnow() - timedelta(seconds=1)

    account = Account(email="alice@example.com")
    db.add(account)
    await db.commit()
    issuer = SessionIssuer(db, settings)
    await issuer.issue(account.id)
    expired = await issuer.issue(account.id)
    await db.execute(
        update(Session)
        .where(Session.id == hash_token(expired.token))
        .values(expires_at=utcnow() - timedelta(seconds=1))
    )
    await db.commit()


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def test_scheduled_task_timing():
    async def noop() -> int:
        return 0

    task = ScheduledTask(name="noop", func=noop, interval_seconds=60)

    assert task.should_run() is False
    task.next_run = task.next_run - timedelta(seconds=61)
    assert task.should_run() is True
    task.mark_started()
    assert task.should_run() is False
    task.mark_completed()
    assert task.should_run() is False
    assert task.last_run is not None


async def test_run_all_now_evicts_expired_rows(database, db, settings):
    await seed_expired_rows(db, settings)
    scheduler = HousekeepingScheduler(database, settings)

    results = await scheduler.run_all_now()

    assert results == {"challenge_cleanup": 1, "session_cleanup": 1}
    assert await count(db, WebAuthnChallenge) == 1
    assert await count(db, Session) == 1
    status = scheduler.get_task_status()
    assert status["total_tasks"] == 2
    assert status["tasks"]["session_cleanup"]["last_result"] == 1


async def test_failing_task_is_rescheduled(database, settings):
    scheduler = HousekeepingScheduler(database, settings)

    async def broken() -> int:
        raise RuntimeError("boom")

    scheduler.tasks = {}
    scheduler.add_task("broken", broken, 60)

    assert await scheduler.run_all_now() == {"broken": 0}
    task = scheduler.tasks["broken"]
    assert task.running is False
    assert task.next_run > task.last_run


async def test_start_and_stop(database, settings):
    scheduler = HousekeepingScheduler(database, settings)

    task = scheduler.start()
    assert scheduler.start() is task
    await asyncio.sleep(0)
    assert scheduler.running is True

    await scheduler.stop()
    assert scheduler.running is False
    assert task.done()
