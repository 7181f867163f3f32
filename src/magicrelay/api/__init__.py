"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: There is no authentication layer. The relay runs on a private
deployment for the duration of a show, and ingress responses carry no
content worth stealing.
"""

from fastapi import APIRouter

from magicrelay.api.channels import router as channels_router
from magicrelay.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(channels_router, tags=["channels"])
