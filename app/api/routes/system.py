from fastapi import APIRouter, Request

from api.dependencies.rate_limits import get_limiter
from infrastructure.logging import get_module_logger
from infrastructure.services import SettingsDep
from modules.broadcasts.dependencies import ChannelsDep

logger = get_module_logger()

router = APIRouter(tags=["System"])
limiter = get_limiter()


# Load balancer health checks hit these every few seconds
@router.get("/version")
@limiter.limit("50/minute")
def get_version(request: Request, settings: SettingsDep):  # pylint: disable=unused-argument
    """Get the version of the application."""
    return {"version": settings.GIT_SHA}


@router.get("/health")
@limiter.limit("50/minute")
def get_health(request: Request):  # pylint: disable=unused-argument
    """Healthcheck endpoint."""
    return {"status": "ok"}


@router.get("/health/channels")
@limiter.limit("10/minute")
def get_channel_health(request: Request, channels: ChannelsDep):  # pylint: disable=unused-argument
    """Provider connectivity for every configured delivery channel.

    Unconfigured channels are listed but never make the service degraded.
    """
    report = {}
    degraded = False
    for channel, adapter in channels.items():
        configured = adapter.is_configured()
        result = adapter.health_check() if configured else None
        healthy = bool(result and result.is_success)
        if configured and not healthy:
            degraded = True
            logger.warning(
                "channel_unhealthy",
                channel=channel.value,
                error=result.message,
                error_code=result.error_code,
            )
        report[channel.value] = {
            "configured": configured,
            "healthy": healthy,
            "message": result.message if result else None,
        }
    return {"status": "degraded" if degraded else "ok", "channels": report}
