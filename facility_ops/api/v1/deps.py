"""
FastAPI dependencies — database session, auth context resolution, role
guards and directory services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Any, Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from facility_ops.core.config import settings
from facility_ops.core.security import AuthContext, decode_access_token
from facility_ops.db.session import async_session_factory
from facility_ops.models.user import User
from facility_ops.services.companion_sync import (CompanionSync, NullCompanionSync,
                                                  UserCompanionSync)
from facility_ops.services.supervisor_directory import SupervisorDirectory
from facility_ops.services.user_directory import UserDirectory

# auto_error=False so we can fall back to the cookie when the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

ADMIN_ROLES = ("superadmin", "admin")
SUPERVISOR_MANAGER_ROLES = ("superadmin", "admin", "manager")


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth resolvers ──────────────────────────────────────────────────
class AuthResolver(ABC):
    """Turns a bearer token into the caller's AuthContext (or ``None``)."""

    @abstractmethod
    async def resolve(self, token: str | None, db: AsyncSession) -> AuthContext | None: ...


class JWTAuthResolver(AuthResolver):
    """Production resolver: signed access token -> active User."""

    async def resolve(self, token: str | None, db: AsyncSession) -> AuthContext | None:
        if not token:
            return None
        payload = decode_access_token(token)
        if payload is None or payload.get("sub") is None:
            return None
        user = await db.get(User, payload["sub"])
        if user is None or not user.is_active:
            return None
        return AuthContext(user_id=user.id, name=user.name, email=user.email, role=user.role)


class FixedIdentityResolver(AuthResolver):
    """Always yields the same identity, whatever the request carries."""

    def __init__(self, identity: AuthContext):
        self.identity = identity

    async def resolve(self, token: str | None, db: AsyncSession) -> AuthContext | None:
        return self.identity


def get_auth_resolver() -> AuthResolver:
    if settings.AUTH_MODE == "fixed":
        return FixedIdentityResolver(
            AuthContext(
                user_id=settings.FIXED_IDENTITY_ID,
                name=settings.FIXED_IDENTITY_NAME,
                email=settings.FIXED_IDENTITY_EMAIL,
                role=settings.FIXED_IDENTITY_ROLE,
            )
        )
    return JWTAuthResolver()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_auth_context(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # HttpOnly cookie
    db: AsyncSession = Depends(get_db),
    resolver: AuthResolver = Depends(get_auth_resolver),
) -> AuthContext:
    """Resolve the caller from the Authorization header OR the cookie."""
    # Priority: Header > Cookie
    final_token = token
    if not final_token and access_token:
        # auth.py stores the cookie as "Bearer <token>"
        final_token = access_token.removeprefix("Bearer ").strip()

    context = await resolver.resolve(final_token, db)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


def require_roles(*roles: str) -> Callable[..., Coroutine[Any, Any, AuthContext]]:
    """Build a dependency that only lets the given roles through."""

    async def _guard(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not context.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(roles)}",
            )
        return context

    return _guard


require_admin = require_roles(*ADMIN_ROLES)
require_supervisor_manager = require_roles(*SUPERVISOR_MANAGER_ROLES)


# ── Services ────────────────────────────────────────────────────────
def get_companion_sync(db: AsyncSession = Depends(get_db)) -> CompanionSync:
    if not settings.COMPANION_SYNC_ENABLED:
        return NullCompanionSync()
    return UserCompanionSync(db)


def get_supervisor_directory(
    db: AsyncSession = Depends(get_db),
    actor: AuthContext = Depends(require_supervisor_manager),
    sync: CompanionSync = Depends(get_companion_sync),
) -> SupervisorDirectory:
    return SupervisorDirectory(db, actor, sync)


def get_user_directory(
    db: AsyncSession = Depends(get_db),
    actor: AuthContext = Depends(require_admin),
) -> UserDirectory:
    return UserDirectory(db, actor)
