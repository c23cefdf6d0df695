"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from facility_ops.api.v1.endpoints import auth, health, supervisors, users

api_router = APIRouter()

# Auth (login, refresh, logout, identity)
api_router.include_router(auth.router)

# Supervisor directory (with companion-user sync)
api_router.include_router(supervisors.router)

# User directory
api_router.include_router(users.router)

# Health
api_router.include_router(health.router)
