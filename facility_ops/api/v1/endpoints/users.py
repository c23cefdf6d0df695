"""
User management endpoints (superadmin / admin only).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from facility_ops.api.v1.deps import get_user_directory
from facility_ops.models.user import UserId
from facility_ops.schemas.common import MessageResponse
from facility_ops.schemas.user import (PasswordChange, RoleUpdate, UserCreate,
                                       UserListResponse, UserResponse,
                                       UserStatsResponse, UserUpdate, to_user_read)
from facility_ops.services.user_directory import UserDirectory

router = APIRouter(tags=["users"])


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    body: UserCreate,
    directory: UserDirectory = Depends(get_user_directory),
) -> UserResponse:
    user = await directory.create_user(body)
    return UserResponse(message="User created successfully", user=to_user_read(user))


@router.get("/users", response_model=UserListResponse)
async def list_users(
    directory: UserDirectory = Depends(get_user_directory),
) -> UserListResponse:
    """All users, newest first, plus the same set grouped by role."""
    return await directory.list_users()


@router.get("/users/stats", response_model=UserStatsResponse)
async def user_stats(
    directory: UserDirectory = Depends(get_user_directory),
) -> UserStatsResponse:
    return UserStatsResponse(data=await directory.role_stats())


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    directory: UserDirectory = Depends(get_user_directory),
) -> UserResponse:
    user = await directory.get_user(UserId(user_id))
    return UserResponse(user=to_user_read(user))


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    directory: UserDirectory = Depends(get_user_directory),
) -> UserResponse:
    user = await directory.update_user(UserId(user_id), body)
    return UserResponse(message="User updated successfully", user=to_user_read(user))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    directory: UserDirectory = Depends(get_user_directory),
) -> MessageResponse:
    await directory.delete_user(UserId(user_id))
    return MessageResponse(message="User deleted successfully")


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    directory: UserDirectory = Depends(get_user_directory),
) -> UserResponse:
    user = await directory.update_role(UserId(user_id), body.role)
    return UserResponse(message="User role updated successfully", user=to_user_read(user))


@router.patch("/users/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: str,
    directory: UserDirectory = Depends(get_user_directory),
) -> UserResponse:
    user = await directory.toggle_status(UserId(user_id))
    return UserResponse(message="User status updated successfully", user=to_user_read(user))


@router.put("/users/{user_id}/password", response_model=MessageResponse)
async def change_user_password(
    user_id: str,
    body: PasswordChange,
    directory: UserDirectory = Depends(get_user_directory),
) -> MessageResponse:
    await directory.change_password(UserId(user_id), body.password)
    return MessageResponse(message="Password updated successfully")
