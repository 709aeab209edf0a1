import logging
from typing import Dict, Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

INSECURE_JWT_SECRET = "dev-secret-please-change"

BASE_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "same-origin",
}

# Member records, payment ledgers and certificates must not linger in shared caches.
NO_STORE_PREFIXES = ("/auth", "/members", "/reports")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach hardening headers; personal data responses are marked non-cacheable."""

    def __init__(self, app, *, no_store_prefixes: Iterable[str] = NO_STORE_PREFIXES) -> None:
        super().__init__(app)
        self.no_store_prefixes = tuple(no_store_prefixes)

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        response = await call_next(request)
        for name, value in BASE_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.url.scheme == "https":
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        if request.url.path.startswith(self.no_store_prefixes):
            response.headers.setdefault("Cache-Control", "no-store")
        return response


def log_security_warnings(jwt_secret: str, database_url: str, cors_origins: Iterable[str] = ()) -> None:
    if jwt_secret == INSECURE_JWT_SECRET:
        logger.warning("JWT secret is using the insecure default; set jwt_secret in the environment.")
    if database_url.startswith("sqlite"):
        logger.warning("Membership data is stored in SQLite at %s; configure database_url for production.", database_url)
    if "*" in set(cors_origins):
        logger.warning("CORS allows any origin while credentials are enabled.")
