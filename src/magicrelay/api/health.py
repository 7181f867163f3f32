"""Health and status endpoints.

Learn: /health is the cheap liveness probe for the hosting platform.
/status is for the performer before a show: uptime, which devices are
subscribed where, and which session roles are currently connected.
"""

from fastapi import APIRouter, Depends

from magicrelay import __version__
from magicrelay.api.channels import get_registry
from magicrelay.relay.registry import Registry
from magicrelay.schemas.channel import StatusRead

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health."""
    return {"status": "ok", "server": "ok", "version": __version__}


@router.get("/status", response_model=StatusRead)
async def relay_status(registry: Registry = Depends(get_registry)):
    """Uptime, channels with subscriber counts, sessions with connected roles."""
    return StatusRead(version=__version__, **registry.status())
