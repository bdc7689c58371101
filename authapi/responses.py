"""
Response helpers shared by routers, middleware and exception handlers.
"""
import math
from typing import Dict

from fastapi.responses import JSONResponse

from authapi.auth.rate_limiter import RateLimitStatus
from authapi.errors import RateLimitError, ServiceError

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "font-src 'self' https://fonts.gstatic.com",
    "script-src 'self'",
    "img-src 'self' data: https:",
    "connect-src 'self'",
    "frame-src 'none'",
    "object-src 'none'",
    "base-uri 'self'",
    "form-action 'self'",
    "frame-ancestors 'self'",
    "script-src-attr 'none'",
    "upgrade-insecure-requests",
])

# Sent on every response; Content-Security-Policy is added separately
SECURITY_HEADERS = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def error_response(exc: ServiceError) -> JSONResponse:
    """Render a ServiceError as the JSON body clients expect."""
    content = {"message": exc.message}
    headers = None
    if isinstance(exc, RateLimitError):
        content["retryAfter"] = exc.retry_after_minutes
        headers = {"Retry-After": str(max(1, math.ceil(exc.retry_after)))}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def rate_limit_headers(status: RateLimitStatus) -> Dict[str, str]:
    """RateLimit-* headers describing the remaining budget."""
    return {
        "RateLimit-Limit": str(status.limit),
        "RateLimit-Remaining": str(status.remaining),
        "RateLimit-Reset": str(max(0, math.ceil(status.reset_after))),
    }
