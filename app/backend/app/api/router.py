"""Top-level API router."""

from fastapi import APIRouter

from app.api.routes.health import router as health_router
from app.api.routes.me import router as me_router
from app.api.routes.projects import router as projects_router
from app.api.routes.rate_cards import router as rate_cards_router
from app.api.routes.roles import router as roles_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(roles_router)
api_router.include_router(rate_cards_router)
api_router.include_router(projects_router)
