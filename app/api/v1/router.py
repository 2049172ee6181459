"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from app.api.v1.health import router as health_router
from app.api.v1.generate import router as generate_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(generate_router, tags=["generate"])

# The browser client calls /generate at the root
generate_router_compat = APIRouter()
generate_router_compat.include_router(generate_router, tags=["generate"])
