from typing import Optional
from fastapi import Request, FastAPI, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from vcd_store.shared.utils import settings, ErrorResponse

# --- Rate Limiting ---
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

async def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=ErrorResponse(error=f"Too many requests: {exc.detail}").dict(exclude_none=True),
    )
    # Retry-After and X-RateLimit-* headers
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)

def setup_rate_limiting(app: FastAPI):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)

# --- Security Headers Middleware ---
SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds SECURITY_HEADERS to every response that does not already set them."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

# --- Input Normalization ---
def sanitize_input(text: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace from free-text input; non-strings pass through."""
    if not isinstance(text, str):
        return text
    return text.strip()

def normalize_email(email: Optional[str]) -> str:
    """
    Canonical form used wherever two emails are compared:
    - Strip whitespace
    - Lowercase
    """
    return (email or "").strip().lower()
