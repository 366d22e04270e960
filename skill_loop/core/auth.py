"""Bearer-secret guard for scheduler-only endpoints.

User authentication is handled by the calling application; the only
credential this service checks itself is the shared cron secret.
"""

import hmac

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skill_loop.core.config import get_settings

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency that accepts only ``Authorization: Bearer <CRON_SECRET>``.

    Usage::

        @router.get("/cron/job", dependencies=[Depends(require_cron_secret)])
        async def job():
            ...
    """
    settings = get_settings()
    if not settings.cron_secret:
        raise HTTPException(status_code=503, detail="Cron endpoint is not configured")

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not hmac.compare_digest(credentials.credentials, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
