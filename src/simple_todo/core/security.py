"""
Request-level security middleware.

- HTTPS enforcement (301 redirect for plain HTTP)
- Security response headers
- Input sanitization (recursive whitespace trimming)
- Client IP / user agent extraction
"""

import json
from urllib.parse import parse_qsl, urlencode
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import structlog
from fastapi import Request, Response
from fastapi.responses import RedirectResponse

from .exceptions import ValidationError

logger = structlog.get_logger(__name__)

SECURITY_HEADERS: Dict[str, str] = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
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

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; base-uri 'self'; font-src 'self' https: data:; "
    "form-action 'self'; frame-ancestors 'self'; img-src 'self' data:; "
    "object-src 'none'; script-src 'self'; script-src-attr 'none'; "
    "style-src 'self' https: 'unsafe-inline'; upgrade-insecure-requests"
)

CallNext = Callable[[Request], Awaitable[Response]]


def sanitize(value: Any) -> Any:
    """Trim every string in a JSON-like structure, leaving other values as-is."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    return value


async def sanitized_body(request: Request) -> Dict[str, Any]:
    """
    Route dependency returning the JSON body with strings trimmed.

    An empty body is treated as an empty object; anything that is not a
    JSON object is a validation error.
    """
    raw = await request.body()
    if not raw.strip():
        return {}

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError(["Request body must be valid JSON"])

    if not isinstance(payload, dict):
        raise ValidationError(["Request body must be a JSON object"])

    return sanitize(payload)


def sanitize_query_string(query_string: bytes) -> bytes:
    """Trim every value in a raw query string, keeping key order and blanks."""
    pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
    return urlencode([(key, sanitize(value)) for key, value in pairs]).encode("latin-1")


def get_client_ip(request: Request, trust_proxy: bool = True) -> str:
    """Resolve the client IP, honouring X-Forwarded-For behind a trusted proxy."""
    if trust_proxy:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_client_info(request: Request) -> Tuple[Optional[str], Optional[str]]:
    """Return (ip_address, user_agent) for audit logging."""
    settings = getattr(request.app.state, "settings", None)
    trust_proxy = settings.security.trust_proxy if settings else True
    ip_address = get_client_ip(request, trust_proxy=trust_proxy)
    return (
        None if ip_address == "unknown" else ip_address,
        request.headers.get("user-agent"),
    )


def is_secure_request(request: Request) -> bool:
    if request.url.scheme == "https":
        return True
    return request.headers.get("x-forwarded-proto", "").lower() == "https"


def build_https_url(request: Request) -> str:
    host = request.headers.get("host") or request.url.netloc
    url = f"https://{host}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def https_enforcement_middleware(enabled: bool) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Create middleware redirecting plain HTTP requests to HTTPS."""

    async def enforce_https(request: Request, call_next: CallNext) -> Response:
        if not enabled or is_secure_request(request):
            return await call_next(request)

        https_url = build_https_url(request)
        logger.info("Redirecting to HTTPS", url=https_url)
        return RedirectResponse(url=https_url, status_code=301)

    return enforce_https


def security_headers_middleware(
    content_security_policy: bool,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Create middleware adding security headers to every response."""

    async def add_security_headers(request: Request, call_next: CallNext) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if content_security_policy:
            response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        return response

    return add_security_headers


def query_sanitization_middleware() -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Create middleware trimming query values before routing."""

    async def sanitize_query(request: Request, call_next: CallNext) -> Response:
        query_string = request.scope.get("query_string", b"")
        if query_string:
            request.scope["query_string"] = sanitize_query_string(query_string)
        return await call_next(request)

    return sanitize_query
