"""API key check for protected routes."""

from fastapi import HTTPException, Request, status

from ..config import get_config


def extract_api_key(request: Request) -> str | None:
    """Read the key from ``Authorization: Bearer``, ``X-API-Key`` or ``API-Key``."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer ") :]
    return request.headers.get("x-api-key") or request.headers.get("api-key")


async def require_api_key(request: Request) -> None:
    """FastAPI dependency rejecting requests without the configured key."""
    api_key = extract_api_key(request)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key is required")

    valid_key = get_config().api.api_key
    if not valid_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key not configured on server")

    if api_key != valid_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
