"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import auth, health, protected

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(protected.router, tags=["protected"])
