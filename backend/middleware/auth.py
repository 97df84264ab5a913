"""API key guard for cron jobs and internal callers."""

from typing import Annotated

from fastapi import Header, HTTPException, status

from config import get_settings

settings = get_settings()


def verify_api_key(x_api_key: Annotated[str, Header()]) -> str:
    """Verify the X-API-Key header."""
    if x_api_key != settings.cron_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    return x_api_key
