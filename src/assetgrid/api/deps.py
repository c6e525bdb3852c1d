"""API dependencies."""

import logging
import secrets
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from assetgrid.config import Environment, settings
from assetgrid.db import base as db_base


logger = logging.getLogger("assetgrid.api")

DEFAULT_DEV_TENANT = UUID("00000000-0000-0000-0000-000000000000")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session; one transaction per request."""
    async with db_base.async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_tenant_id(
    x_tenant_id: str | None = Header(None, alias="X-Tenant-ID"),
) -> UUID:
    """Extract tenant ID from request."""
    if x_tenant_id:
        try:
            return UUID(x_tenant_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid tenant ID format")

    if settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT:
        return DEFAULT_DEV_TENANT

    raise HTTPException(status_code=401, detail="Missing tenant ID")


async def get_actor_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> Optional[str]:
    """
    Identity of the caller as established by the session layer upstream.

    This service records whatever identity it is handed; a missing header
    means the change is attributed to the system.
    """
    if x_user_id is not None and not x_user_id.strip():
        raise HTTPException(status_code=400, detail="Empty X-User-ID header")
    return x_user_id.strip() if x_user_id else None


async def verify_api_key(
    authorization: str | None = Header(None),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> str:
    """
    Verify the shared API key.

    Returns the auth mode on success. Fails closed: with no key configured
    and insecure dev mode off, every request is rejected.
    """
    if settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT:
        return "insecure_dev"

    api_key = None
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[7:]
    elif x_api_key:
        api_key = x_api_key

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Use Authorization: Bearer <key> or X-API-Key header",
        )

    if settings.api_key:
        if secrets.compare_digest(api_key, settings.api_key):
            return "api_key"
        raise HTTPException(status_code=401, detail="Invalid API key")

    logger.error("SECURITY VIOLATION: No API key configured. Set ASSETGRID_API_KEY.")
    raise HTTPException(
        status_code=503,
        detail="Server misconfigured: authentication not properly initialized",
    )


def validate_auth_config() -> None:
    """
    Validate authentication configuration at startup.

    Raises:
        RuntimeError: If configuration is insecure for the current environment
    """
    if settings.allow_insecure_dev and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: allow_insecure_dev=true is only permitted in development. "
            f"Current environment: {settings.env.value}. "
            f"Set ASSETGRID_ALLOW_INSECURE_DEV=false for {settings.env.value}."
        )

    if not settings.allow_insecure_dev and not settings.api_key:
        raise RuntimeError(
            "SECURITY ERROR: ASSETGRID_API_KEY must be set unless "
            "ASSETGRID_ALLOW_INSECURE_DEV=true in development."
        )

    if settings.allow_insecure_dev:
        logger.warning(
            "=" * 80 + "\n"
            "WARNING: Running in INSECURE DEV MODE\n"
            "  - Authentication is DISABLED\n"
            "  - Requests without X-Tenant-ID use the default dev tenant\n"
            "  - Set ASSETGRID_ALLOW_INSECURE_DEV=false for any deployment\n"
            + "=" * 80
        )
    else:
        logger.info(f"Authentication enabled: shared API key for {settings.env.value}")
