"""
API v1 routes.
"""

from fastapi import APIRouter

from quizgate.api.v1 import attempts, progression, sessions

router = APIRouter()

router.include_router(progression.router, tags=["Progression"])
router.include_router(attempts.router, tags=["Attempts"])
router.include_router(sessions.router, prefix="/sessions", tags=["Quiz Sessions"])
