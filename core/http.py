from typing import Any, Dict

from fastapi.responses import JSONResponse, Response

from core.config import settings


SECURITY_HEADERS: Dict[str, str] = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-XSS-Protection": "1; mode=block",
}


def cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.ALLOWED_ORIGIN,
        "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Max-Age": "86400",
    }


def browser_headers() -> Dict[str, str]:
    return {**cors_headers(), **SECURITY_HEADERS}


def browser_json(payload: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    """JSON response for endpoints called straight from the member's browser."""
    return JSONResponse(content=payload, status_code=status_code, headers=browser_headers())


def preflight() -> Response:
    return Response(status_code=204, headers=browser_headers())


def plain_text(body: str, status_code: int = 200) -> Response:
    return Response(content=body, status_code=status_code, media_type="text/plain")
