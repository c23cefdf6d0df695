"""
User Directory service — login identity and role attributes.

Independent of the Supervisor directory; a supervisor-role User is only ever
written from here by an explicit user-management call.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from facility_ops.core.config import settings
from facility_ops.core.exceptions import (DuplicateIdentity, InvalidRole, NotFound,
                                          ProtectedAccount, is_unique_violation)
from facility_ops.core.security import AuthContext, verify_password
from facility_ops.models.user import VALID_ROLES, User, UserId, split_name
from facility_ops.schemas.user import (RoleCount, UserCreate, UserListResponse,
                                       UserUpdate, to_user_read)

logger = logging.getLogger(__name__)

_DUPLICATE_MESSAGE = "User with this email or username already exists"
_LAST_SUPERADMIN_MESSAGE = (
    "Cannot delete/deactivate the last Super Admin. "
    "At least one active Super Admin is required."
)


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    """Return the User whose stored hash matches *password*, else ``None``."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password):
        return None
    return user


class UserDirectory:
    """CRUD, role and status management over users."""

    def __init__(self, db: AsyncSession, actor: AuthContext):
        self.db = db
        self.actor = actor

    # ── Reads ────────────────────────────────────────────────────────
    async def get_user(self, user_id: UserId) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def list_users(self) -> UserListResponse:
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        users = [to_user_read(u) for u in result.scalars().all()]

        grouped = defaultdict(list)
        for user in users:
            grouped[user.role].append(user)

        active = sum(1 for u in users if u.is_active)
        return UserListResponse(
            all_users=users,
            grouped_by_role=dict(grouped),
            total=len(users),
            active=active,
            inactive=len(users) - active,
        )

    async def role_stats(self) -> list[RoleCount]:
        result = await self.db.execute(
            select(User.role, func.count(User.id)).group_by(User.role).order_by(User.role)
        )
        return [RoleCount(role=role, count=count) for role, count in result.all()]

    # ── Mutations ────────────────────────────────────────────────────
    async def create_user(self, data: UserCreate) -> User:
        self._check_role(data.role)
        if data.role == "superadmin":
            await self._check_superadmin_capacity()
        if await self._identity_taken(data.email, data.username):
            raise DuplicateIdentity(_DUPLICATE_MESSAGE)

        first_name, last_name = data.first_name, data.last_name
        if data.name and first_name is None and last_name is None:
            first_name, last_name = split_name(data.name)

        user = User(
            username=data.username,
            email=data.email,
            password=data.password,
            role=data.role,
            name=data.name or "",
            first_name=first_name,
            last_name=last_name,
            department=data.department or settings.DEFAULT_USER_DEPARTMENT,
            site=data.site or settings.DEFAULT_USER_SITE,
            phone=data.phone,
            is_active=True,
        )
        if data.join_date is not None:
            user.join_date = data.join_date
        self.db.add(user)
        await self._commit_or_duplicate()
        await self.db.refresh(user)
        logger.info("Created user %s <%s> role=%s (by %s)", user.id, user.email, user.role, self.actor.email)
        return user

    async def update_user(self, user_id: UserId, data: UserUpdate) -> User:
        user = await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True)

        if "name" in changes:
            first_name, last_name = split_name(changes["name"])
            changes.setdefault("first_name", first_name)
            changes.setdefault("last_name", last_name)

        if await self._identity_taken(
            changes.get("email"), changes.get("username"), exclude_id=user.id
        ):
            raise DuplicateIdentity(_DUPLICATE_MESSAGE)

        if changes.get("is_active") is False and user.is_active:
            await self._guard_last_superadmin(user)

        for field, value in changes.items():
            setattr(user, field, value)

        await self._commit_or_duplicate()
        await self.db.refresh(user)
        logger.info("Updated user %s fields=%s (by %s)", user_id, sorted(changes), self.actor.email)
        return user

    async def delete_user(self, user_id: UserId) -> None:
        user = await self.get_user(user_id)
        await self._guard_last_superadmin(user)
        await self.db.delete(user)
        await self.db.commit()
        logger.info("Deleted user %s <%s> (by %s)", user_id, user.email, self.actor.email)

    async def update_role(self, user_id: UserId, role: str) -> User:
        self._check_role(role)
        user = await self.get_user(user_id)
        if role == user.role:
            return user
        if role == "superadmin":
            await self._check_superadmin_capacity()
        else:
            await self._guard_last_superadmin(user)

        user.role = role
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User %s role set to %s (by %s)", user_id, role, self.actor.email)
        return user

    async def toggle_status(self, user_id: UserId) -> User:
        user = await self.get_user(user_id)
        if user.is_active:
            await self._guard_last_superadmin(user)
        user.is_active = not user.is_active
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(
            "User %s %s (by %s)",
            user_id,
            "activated" if user.is_active else "deactivated",
            self.actor.email,
        )
        return user

    async def change_password(self, user_id: UserId, new_password: str) -> None:
        user = await self.get_user(user_id)
        user.password = new_password  # re-hashed by the before_update hook
        await self.db.commit()
        logger.info("Password changed for user %s (by %s)", user_id, self.actor.email)

    # ── Guards ───────────────────────────────────────────────────────
    @staticmethod
    def _check_role(role: str) -> None:
        if role not in VALID_ROLES:
            raise InvalidRole("Invalid role")

    async def _check_superadmin_capacity(self) -> None:
        count = await self.db.scalar(
            select(func.count(User.id)).where(User.role == "superadmin")
        )
        if (count or 0) >= settings.MAX_SUPERADMINS:
            raise ProtectedAccount(
                f"Maximum of {settings.MAX_SUPERADMINS} Super Admins allowed"
            )

    async def _guard_last_superadmin(self, user: User) -> None:
        """Refuse to remove the last active superadmin."""
        if user.role != "superadmin" or not user.is_active:
            return
        active = await self.db.scalar(
            select(func.count(User.id)).where(
                User.role == "superadmin", User.is_active.is_(True)
            )
        )
        if (active or 0) <= 1:
            raise ProtectedAccount(_LAST_SUPERADMIN_MESSAGE)

    async def _identity_taken(
        self,
        email: str | None,
        username: str | None,
        exclude_id: str | None = None,
    ) -> bool:
        conditions = []
        if email is not None:
            conditions.append(User.email == email)
        if username is not None:
            conditions.append(User.username == username)
        if not conditions:
            return False
        query = select(User.id).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def _commit_or_duplicate(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if is_unique_violation(exc, "email", "username"):
                raise DuplicateIdentity(_DUPLICATE_MESSAGE) from None
            raise
