"""Response hardening headers.

Every response gets the static set below. Responses from the credential
routes additionally get ``no-store`` because their bodies carry access
tokens.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

NO_STORE_PREFIXES: tuple[str, ...] = ("/api/auth",)

# Swagger UI loads its assets from jsdelivr and uses inline scripts
DOCS_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' cdn.jsdelivr.net; "
    "img-src 'self' data: cdn.jsdelivr.net; "
    "frame-ancestors 'none'"
)
API_ONLY_CSP = "default-src 'none'; frame-ancestors 'none'"
HSTS = "max-age=31536000; includeSubDomains"


def build_security_headers(content_security_policy: str, hsts: str | None = HSTS) -> dict[str, str]:
    headers = {
        "Content-Security-Policy": content_security_policy,
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
    }
    if hsts:
        headers["Strict-Transport-Security"] = hsts
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, serve_docs: bool = False, hsts: str | None = HSTS):
        super().__init__(app)
        self.headers = build_security_headers(DOCS_CSP if serve_docs else API_ONLY_CSP, hsts)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(self.headers)
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        return response
