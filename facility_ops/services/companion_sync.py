"""
Companion sync: mirrors Supervisor directory mutations onto the matching
User record.

The companion User is located by ``(email, role="supervisor")``, never by a
stored id. Propagation is best-effort: every failure is caught here, the
session is rolled back and a ``SyncFailure`` is logged with enough context
for manual reconciliation. Nothing is raised to the Supervisor directory.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_ops.core.exceptions import SyncFailure
from facility_ops.models.supervisor import Supervisor
from facility_ops.models.user import User, split_name

logger = logging.getLogger(__name__)

COMPANION_ROLE = "supervisor"
MIRRORED_FIELDS = ("name", "phone", "department", "site", "reports_to", "is_active")


def username_from_email(email: str) -> str:
    return email.split("@")[0]


class CompanionSync(ABC):
    """Strategy invoked after each committed Supervisor mutation.

    Every hook returns ``True`` when the companion directory is in the
    expected state (including no-ops) and ``False`` when propagation failed.
    Implementations must never raise.
    """

    @abstractmethod
    async def on_create(self, supervisor: Supervisor, password: str) -> bool: ...

    @abstractmethod
    async def on_update(
        self, supervisor: Supervisor, fields: Iterable[str] | None = None
    ) -> bool: ...

    @abstractmethod
    async def on_delete(self, supervisor: Supervisor) -> bool: ...


class NullCompanionSync(CompanionSync):
    """Leaves the User directory untouched."""

    async def on_create(self, supervisor: Supervisor, password: str) -> bool:
        return True

    async def on_update(
        self, supervisor: Supervisor, fields: Iterable[str] | None = None
    ) -> bool:
        return True

    async def on_delete(self, supervisor: Supervisor) -> bool:
        return True


class UserCompanionSync(CompanionSync):
    """Writes the companion record into the ``users`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Hooks ────────────────────────────────────────────────────────
    async def on_create(self, supervisor: Supervisor, password: str) -> bool:
        return await self._guarded(
            "create", supervisor, lambda: self._create_companion(supervisor, password)
        )

    async def on_update(
        self, supervisor: Supervisor, fields: Iterable[str] | None = None
    ) -> bool:
        # Email and password are never propagated by an update
        if fields is None:
            propagated = MIRRORED_FIELDS
        else:
            wanted = set(fields)
            propagated = tuple(f for f in MIRRORED_FIELDS if f in wanted)
        return await self._guarded(
            "update", supervisor, lambda: self._update_companion(supervisor, propagated)
        )

    async def on_delete(self, supervisor: Supervisor) -> bool:
        return await self._guarded("delete", supervisor, lambda: self._delete_companion(supervisor))

    # ── Internals ────────────────────────────────────────────────────
    async def _guarded(
        self,
        operation: str,
        supervisor: Supervisor,
        action: Callable[[], Awaitable[None]],
    ) -> bool:
        # Read before the action: a rollback expires the instance
        supervisor_id, email = supervisor.id, supervisor.email
        try:
            await action()
        except Exception as exc:
            await self.db.rollback()
            failure = SyncFailure(operation, supervisor_id, email, exc)
            logger.error(
                "Companion sync failed: operation=%s supervisor_id=%s email=%s error=%r",
                failure.operation,
                failure.supervisor_id,
                failure.email,
                failure.cause,
            )
            return False
        return True

    async def _find_companion(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.email == email, User.role == COMPANION_ROLE)
        )
        return result.scalars().first()

    async def _create_companion(self, supervisor: Supervisor, password: str) -> None:
        first_name, last_name = split_name(supervisor.name)
        user = User(
            username=username_from_email(supervisor.email),
            email=supervisor.email,
            password=password,  # hashed by the User before_insert hook
            role=COMPANION_ROLE,
            name=supervisor.name,
            first_name=first_name,
            last_name=last_name,
            phone=supervisor.phone,
            department=supervisor.department,
            reports_to=supervisor.reports_to,
            is_active=True,
        )
        if supervisor.site is not None:
            user.site = supervisor.site
        self.db.add(user)
        await self.db.commit()
        logger.info("Supervisor %s synced to user directory as %s", supervisor.id, user.username)

    async def _update_companion(self, supervisor: Supervisor, fields: tuple[str, ...]) -> None:
        user = await self._find_companion(supervisor.email)
        if user is None:
            logger.info("No companion user for supervisor %s; nothing to update", supervisor.id)
            return
        for field in fields:
            setattr(user, field, getattr(supervisor, field))
        await self.db.commit()
        logger.info("Supervisor %s update synced to user %s", supervisor.id, user.id)

    async def _delete_companion(self, supervisor: Supervisor) -> None:
        user = await self._find_companion(supervisor.email)
        if user is None:
            logger.info("No companion user for supervisor %s; nothing to delete", supervisor.id)
            return
        await self.db.delete(user)
        await self.db.commit()
        logger.info("Supervisor %s deletion synced to user %s", supervisor.id, user.id)
