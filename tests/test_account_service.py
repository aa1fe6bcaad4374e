"""Tests for AccountService."""

from sqlalchemy import select

from passkey_starter.core.results import ErrorKind, Failure, Ok
from passkey_starter.database import utcnow
from passkey_starter.models import Account, SecurityEventType, SecurityLog
from passkey_starter.schemas.account import AccountUpdate
from passkey_starter.services.account_service import AccountService


async def add_account(db, **values) -> Account:
    account = Account(**values)
    db.add(account)
    await db.commit()
    return account


async def test_get_account_by_email_is_case_insensitive(db):
    account = await add_account(db, email="alice@example.com")

    found = await AccountService(db).get_account_by_email("Alice@Example.com")

    assert found.id == account.id


async def test_update_only_touches_given_fields(db):
    account = await add_account(db, email="alice@example.com", name="Alice")

    result = await AccountService(db).update_account(account.id, AccountUpdate(name="Alice L."))

    assert isinstance(result, Ok)
    assert result.value.name == "Alice L."
    assert result.value.email == "alice@example.com"


async def test_changing_email_clears_verification(db):
    account = await add_account(db, email="alice@example.com", email_verified=utcnow())

    result = await AccountService(db).update_account(
        account.id, AccountUpdate(email="alice@wonderland.org")
    )

    assert result.value.email == "alice@wonderland.org"
    assert result.value.email_verified is None


async def test_same_email_keeps_verification(db):
    verified_at = utcnow()
    account = await add_account(db, email="alice@example.com", email_verified=verified_at)

    result = await AccountService(db).update_account(
        account.id, AccountUpdate(email="ALICE@example.com")
    )

    assert result.value.email_verified is not None


async def test_email_conflict_leaves_both_accounts(db):
    alice = await add_account(db, email="alice@example.com", name="Alice")
    bob = await add_account(db, email="bob@example.com", name="Bob")
    alice_id, bob_id = alice.id, bob.id

    result = await AccountService(db).update_account(
        alice_id, AccountUpdate(name="Mallory", email="bob@example.com")
    )

    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.CONFLICT
    assert result.fields == {"email": "Email already in use"}
    await db.rollback()
    db.expire_all()
    assert (await db.get(Account, alice_id)).email == "alice@example.com"
    assert (await db.get(Account, alice_id)).name == "Alice"
    assert (await db.get(Account, bob_id)).email == "bob@example.com"


async def test_update_is_audited(db):
    account = await add_account(db, email="alice@example.com")

    await AccountService(db).update_account(account.id, AccountUpdate(name="Alice"), "10.0.0.1")

    log = (await db.execute(
        select(SecurityLog).where(SecurityLog.event_type == SecurityEventType.ACCOUNT_UPDATED.value)
    )).scalar_one()
    assert log.account_id == account.id
    assert log.ip_address == "10.0.0.1"


async def test_update_missing_account(db):
    result = await AccountService(db).update_account("missing", AccountUpdate(name="Nobody"))

    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.NOT_FOUND


async def test_delete_missing_account(db):
    result = await AccountService(db).delete_account("missing")

    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.NOT_FOUND


async def test_stats(db):
    account = await add_account(db, email="alice@example.com")

    result = await AccountService(db).get_account_stats(account.id)

    assert result.value == {"accountAge": 0, "lastSignIn": None}
