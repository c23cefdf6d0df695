"""
Supervisor Directory service.

Owns the supervisor lifecycle. Every mutation is committed to the
``supervisors`` table first; only then is the companion sync invoked, and its
outcome never changes what the caller sees.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from facility_ops.core.config import settings
from facility_ops.core.exceptions import (DuplicateEmail, InvalidQuery, NotFound,
                                          is_unique_violation)
from facility_ops.core.security import AuthContext
from facility_ops.models.supervisor import Supervisor, SupervisorId
from facility_ops.schemas.supervisor import SupervisorCreate, SupervisorStats, SupervisorUpdate
from facility_ops.services.companion_sync import CompanionSync

logger = logging.getLogger(__name__)

_DUPLICATE_MESSAGE = "Supervisor with this email already exists"


def escape_like(term: str) -> str:
    """Escape LIKE metacharacters so user input is matched literally."""
    return term.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")


class SupervisorDirectory:
    """CRUD, status toggling and search over supervisors."""

    def __init__(self, db: AsyncSession, actor: AuthContext, sync: CompanionSync):
        self.db = db
        self.actor = actor
        self.sync = sync

    # ── Reads ────────────────────────────────────────────────────────
    async def list_supervisors(self) -> list[Supervisor]:
        result = await self.db.execute(
            select(Supervisor).order_by(Supervisor.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_supervisor(self, supervisor_id: SupervisorId) -> Supervisor:
        supervisor = await self.db.get(Supervisor, supervisor_id)
        if supervisor is None:
            raise NotFound("Supervisor not found")
        return supervisor

    async def search_supervisors(self, query: str | None) -> list[Supervisor]:
        """Case-insensitive substring match over name, email, phone, department and site."""
        if query is None or not query.strip():
            raise InvalidQuery("Search query is required")

        pattern = f"%{escape_like(query)}%"
        result = await self.db.execute(
            select(Supervisor)
            .where(
                or_(
                    Supervisor.name.ilike(pattern, escape="\\"),
                    Supervisor.email.ilike(pattern, escape="\\"),
                    Supervisor.phone.ilike(pattern, escape="\\"),
                    Supervisor.department.ilike(pattern, escape="\\"),
                    Supervisor.site.ilike(pattern, escape="\\"),
                )
            )
            .order_by(Supervisor.name)
        )
        return list(result.scalars().all())

    async def get_supervisor_stats(self) -> SupervisorStats:
        total = await self.db.scalar(select(func.count(Supervisor.id)))
        active = await self.db.scalar(
            select(func.count(Supervisor.id)).where(Supervisor.is_active.is_(True))
        )
        total, active = total or 0, active or 0
        return SupervisorStats(total=total, active=active, inactive=total - active)

    # ── Mutations ────────────────────────────────────────────────────
    async def create_supervisor(self, data: SupervisorCreate) -> Supervisor:
        if await self._email_taken(data.email):
            raise DuplicateEmail(_DUPLICATE_MESSAGE)

        supervisor = Supervisor(
            name=data.name,
            email=data.email,
            phone=data.phone,
            department=data.department or settings.DEFAULT_SUPERVISOR_DEPARTMENT,
            site=data.site,
            reports_to=data.reports_to,
            is_active=True,
            employees=0,
            tasks=0,
            assigned_projects=[],
        )
        self.db.add(supervisor)
        await self._commit_or_duplicate()
        await self.db.refresh(supervisor)
        logger.info("Created supervisor %s <%s> (by %s)", supervisor.id, supervisor.email, self.actor.email)

        if not await self.sync.on_create(supervisor, data.password):
            await self.db.refresh(supervisor)
        return supervisor

    async def update_supervisor(
        self, supervisor_id: SupervisorId, data: SupervisorUpdate
    ) -> Supervisor:
        supervisor = await self.get_supervisor(supervisor_id)
        changes = data.model_dump(exclude_unset=True)

        new_email = changes.get("email")
        if new_email is not None and new_email != supervisor.email:
            if await self._email_taken(new_email):
                raise DuplicateEmail(_DUPLICATE_MESSAGE)

        for field, value in changes.items():
            setattr(supervisor, field, value)

        await self._commit_or_duplicate()
        await self.db.refresh(supervisor)
        logger.info("Updated supervisor %s fields=%s (by %s)", supervisor_id, sorted(changes), self.actor.email)

        if not await self.sync.on_update(supervisor):
            await self.db.refresh(supervisor)
        return supervisor

    async def delete_supervisor(self, supervisor_id: SupervisorId) -> None:
        supervisor = await self.get_supervisor(supervisor_id)
        await self.db.delete(supervisor)
        await self.db.commit()
        logger.info("Deleted supervisor %s <%s> (by %s)", supervisor_id, supervisor.email, self.actor.email)

        await self.sync.on_delete(supervisor)

    async def toggle_supervisor_status(self, supervisor_id: SupervisorId) -> Supervisor:
        supervisor = await self.get_supervisor(supervisor_id)
        supervisor.is_active = not supervisor.is_active
        await self.db.commit()
        await self.db.refresh(supervisor)
        logger.info(
            "Supervisor %s %s (by %s)",
            supervisor_id,
            "activated" if supervisor.is_active else "deactivated",
            self.actor.email,
        )

        if not await self.sync.on_update(supervisor, fields=("is_active",)):
            await self.db.refresh(supervisor)
        return supervisor

    # ── Helpers ──────────────────────────────────────────────────────
    async def _email_taken(self, email: str) -> bool:
        result = await self.db.execute(select(Supervisor.id).where(Supervisor.email == email))
        return result.scalar_one_or_none() is not None

    async def _commit_or_duplicate(self) -> None:
        # Two concurrent creates can both pass the pre-check; the unique index decides
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if is_unique_violation(exc, "email"):
                raise DuplicateEmail(_DUPLICATE_MESSAGE) from None
            raise
