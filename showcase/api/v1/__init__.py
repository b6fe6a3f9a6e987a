"""
API v1 routes.
"""

from fastapi import APIRouter

from showcase.api.v1 import audit, collaboration, permissions

router = APIRouter()

router.include_router(collaboration.router, prefix="/creator", tags=["Collaboration"])
router.include_router(audit.router, prefix="/admin", tags=["Admin Audit"])
router.include_router(permissions.router, tags=["Permissions"])
