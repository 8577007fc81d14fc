"""
FastAPI dependencies resolving services from the application container.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from registration_api.services.container import ServiceContainer

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def require_admin(
    api_key: Optional[str] = Depends(admin_key_header),
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Reject admin requests without the configured API key."""
    expected = container.settings.ADMIN_API_KEY
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin access not configured",
        )
    if not api_key or not secrets.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )
