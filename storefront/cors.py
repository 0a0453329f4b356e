"""
CORS handling with an injected origin allow-list.

- OPTIONS requests are answered with 204 before any handler runs.
- Allow-listed origins are echoed back with credentials allowed.
- Requests without an Origin header (server-to-server, curl) get "*".
- Any other origin gets no Access-Control-Allow-Origin; the browser blocks it.
"""

from typing import Dict, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ALLOW_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
ALLOW_HEADERS = "Content-Type, Authorization"
MAX_AGE = "86400"


def get_cors_headers(origin: Optional[str], allowed_origins: Iterable[str]) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": ALLOW_METHODS,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Max-Age": MAX_AGE,
    }
    if origin and origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Vary"] = "Origin"
    elif not origin:
        headers["Access-Control-Allow-Origin"] = "*"
    return headers


def handle_cors(request: Request, allowed_origins: Iterable[str]) -> Optional[Response]:
    """Return the preflight response for OPTIONS, None for every other method."""
    if request.method == "OPTIONS":
        origin = request.headers.get("origin")
        return Response(status_code=204, headers=get_cors_headers(origin, allowed_origins))
    return None


class CorsMiddleware(BaseHTTPMiddleware):
    """Apply handle_cors to every request and CORS headers to every response."""

    def __init__(self, app, allowed_origins: Iterable[str]):
        super().__init__(app)
        self.allowed_origins = tuple(allowed_origins)

    async def dispatch(self, request: Request, call_next) -> Response:
        preflight = handle_cors(request, self.allowed_origins)
        if preflight is not None:
            return preflight
        response = await call_next(request)
        for key, value in get_cors_headers(request.headers.get("origin"), self.allowed_origins).items():
            response.headers[key] = value
        return response
