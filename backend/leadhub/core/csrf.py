import secrets
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from leadhub.core.redis import get_redis

CSRF_PREFIX = "csrf:"
CSRF_TTL = 3600 * 2

CSRF_EXEMPT_PATHS = {
    "/api/webhooks/payment",
    "/api/webhooks/stripe",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/verify-email",
    "/api/auth/resend-code",
    "/api/auth/password-reset/request",
    "/api/auth/password-reset/confirm",
}

CSRF_METHODS = {"POST", "PUT", "DELETE", "PATCH"}


async def generate_csrf_token(session_id: str) -> str:
    """Create a CSRF token bound to the session and store it in Redis"""
    token = secrets.token_hex(32)
    r = await get_redis()
    await r.set(f"{CSRF_PREFIX}{session_id}", token, ex=CSRF_TTL)
    return token


async def validate_csrf_token(session_id: str, token: str) -> bool:
    if not session_id or not token:
        return False
    r = await get_redis()
    stored = await r.get(f"{CSRF_PREFIX}{session_id}")
    return stored is not None and secrets.compare_digest(stored, token)


def _forbidden() -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": "Invalid CSRF token"})


class CSRFMiddleware(BaseHTTPMiddleware):
    """Require X-CSRF-Token on state-changing requests"""

    async def dispatch(self, request: Request, call_next):
        if request.method not in CSRF_METHODS:
            return await call_next(request)

        if request.url.path in CSRF_EXEMPT_PATHS:
            return await call_next(request)

        session_id = request.cookies.get("session_id")
        if not session_id:
            return _forbidden()

        csrf_token = request.headers.get("X-CSRF-Token", "")
        if not await validate_csrf_token(session_id, csrf_token):
            return _forbidden()

        return await call_next(request)
