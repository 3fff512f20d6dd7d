import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from reporter.config import AppConfig, Settings, get_config, get_settings
from reporter.core.database import get_db

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]


async def verify_trigger_token(
    settings: AppSettings,
    x_trigger_token: str | None = Header(default=None, alias="X-Trigger-Token"),
) -> None:
    """Guard for the external trigger endpoint.

    Open when no TRIGGER_TOKEN is configured (local development).
    """
    if not settings.trigger_token:
        return

    if not x_trigger_token or not hmac.compare_digest(x_trigger_token, settings.trigger_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid trigger token",
        )


TriggerAuth = Annotated[None, Depends(verify_trigger_token)]
