"""
    Request guards applied before routing: origin allow-list and shared secret.
"""
import secrets
import logging
from fastapi import Request

from app.exceptions import error_response, OriginNotAllowedException, UnauthorizedException

log = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"

async def reject_foreign_origins(request: Request, call_next):
    """Requests without an Origin header pass; unknown origins get 403."""
    origin = request.headers.get("origin")
    if origin and origin not in request.app.state.settings.allowed_origins:
        log.warning("Rejected request from origin %s", origin)
        return error_response(OriginNotAllowedException(origin))
    return await call_next(request)

async def require_api_key(request: Request, call_next):
    """Every request must carry the configured API key, when one is configured."""
    expected = request.app.state.settings.api_key
    if expected:
        supplied = request.headers.get(API_KEY_HEADER, "")
        if not secrets.compare_digest(supplied.encode(), expected.encode()):
            return error_response(UnauthorizedException())
    return await call_next(request)
