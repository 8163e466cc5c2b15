"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from attendance_engine.api.v1.endpoints import attendance, health, points

api_router = APIRouter()

# Scan import, reconciliation, attendance lookup
api_router.include_router(attendance.router)

# Points, expiration runs, maintenance
api_router.include_router(points.router)

# Health
api_router.include_router(health.router)
