"""Unit tests for the companion sync shim and the User model hooks."""

import logging

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_ops.core.exceptions import DirectoryError, SyncFailure
from facility_ops.core.security import verify_password
from facility_ops.models.supervisor import Supervisor
from facility_ops.models.user import User, derive_display_name, split_name
from facility_ops.services.companion_sync import (NullCompanionSync, UserCompanionSync,
                                                  username_from_email)


async def _supervisor(db_session: AsyncSession, **overrides) -> Supervisor:
    fields = {"name": "Jane Doe", "email": "jane@x.com", "phone": "555"}
    fields.update(overrides)
    supervisor = Supervisor(**fields)
    db_session.add(supervisor)
    await db_session.commit()
    return supervisor


def test_split_name():
    assert split_name("Jane Doe") == ("Jane", "Doe")
    assert split_name("  Jane   van  Doe ") == ("Jane", "van  Doe")
    assert split_name("Cher") == ("Cher", "")


def test_username_from_email():
    assert username_from_email("jane.doe@x.com") == "jane.doe"


def test_derive_display_name():
    assert derive_display_name("Jane", "Doe", "jd", "jane@x.com") == "Jane Doe"
    assert derive_display_name(None, None, "jd", "jane@x.com") == "jd"
    assert derive_display_name(None, None, None, "jane@x.com") == "jane"


@pytest.mark.asyncio
async def test_user_insert_hashes_password_and_derives_name(db_session: AsyncSession):
    user = User(username="ravi", email="ravi@x.com", password="plain-pw", first_name="Ravi")
    db_session.add(user)
    await db_session.commit()

    assert user.name == "Ravi"
    assert user.password != "plain-pw"
    assert verify_password("plain-pw", user.password)


@pytest.mark.asyncio
async def test_user_update_keeps_hash_unless_password_changes(db_session: AsyncSession):
    user = User(username="ravi", email="ravi@x.com", password="plain-pw")
    db_session.add(user)
    await db_session.commit()
    original_hash = user.password

    user.phone = "123"
    await db_session.commit()
    assert user.password == original_hash

    user.password = "second-pw"
    await db_session.commit()
    assert verify_password("second-pw", user.password)


@pytest.mark.asyncio
async def test_on_update_limits_to_requested_fields(db_session: AsyncSession, find_users):
    supervisor = await _supervisor(db_session)
    sync = UserCompanionSync(db_session)
    assert await sync.on_create(supervisor, "secret123") is True

    supervisor.phone = "999"
    supervisor.is_active = False
    await db_session.commit()

    assert await sync.on_update(supervisor, fields=("is_active", "email", "unknown")) is True

    [user] = await find_users(email="jane@x.com")
    assert user.is_active is False
    assert user.phone == "555"


@pytest.mark.asyncio
async def test_on_delete_without_companion_is_noop(db_session: AsyncSession, find_users):
    supervisor = await _supervisor(db_session)
    assert await UserCompanionSync(db_session).on_delete(supervisor) is True
    assert await find_users() == []


@pytest.mark.asyncio
async def test_failure_is_logged_not_raised(db_session: AsyncSession, caplog):
    other = User(username="jane", email="jane@elsewhere.com", password="pw")
    db_session.add(other)
    await db_session.commit()
    supervisor = await _supervisor(db_session)
    supervisor_id = supervisor.id

    with caplog.at_level(logging.ERROR, logger="facility_ops.services.companion_sync"):
        ok = await UserCompanionSync(db_session).on_create(supervisor, "secret123")

    assert ok is False
    [record] = [r for r in caplog.records if r.name == "facility_ops.services.companion_sync"]
    assert record.levelno == logging.ERROR
    assert "operation=create" in record.getMessage()
    assert supervisor_id in record.getMessage()

    # The session is usable again after the failed write
    result = await db_session.execute(select(User).where(User.email == "jane@x.com"))
    assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_null_sync_leaves_users_untouched(db_session: AsyncSession, find_users):
    supervisor = await _supervisor(db_session)
    sync = NullCompanionSync()
    assert await sync.on_create(supervisor, "secret123") is True
    assert await sync.on_update(supervisor) is True
    assert await sync.on_delete(supervisor) is True
    assert await find_users() == []


@pytest.mark.asyncio
async def test_sync_disabled_by_setting(async_client, find_users, monkeypatch):
    from facility_ops.core.config import settings

    monkeypatch.setattr(settings, "COMPANION_SYNC_ENABLED", False)
    resp = await async_client.post("/api/v1/supervisors", json={
        "name": "Jane Doe", "email": "jane@x.com", "phone": "555", "password": "secret123",
    })
    assert resp.status_code == 201
    assert await find_users(email="jane@x.com") == []


def test_sync_failure_is_not_an_http_error():
    failure = SyncFailure("delete", "sup-1", "jane@x.com", RuntimeError("down"))
    assert not isinstance(failure, DirectoryError)
    assert not hasattr(failure, "status_code")
    assert (failure.operation, failure.supervisor_id, failure.email) == ("delete", "sup-1", "jane@x.com")
    assert "sup-1" in str(failure)
