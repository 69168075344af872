"""Placeholder OAuth endpoints for the GoHighLevel marketplace install flow.

None of these validate anything: the authorize step hands back a synthetic
code and the token step always issues a synthetic bearer token pair.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 3600

CALLBACK_PAGE = """<html>
  <body>
    <h1>Authentication Successful</h1>
    <p>You can now close this window and return to GoHighLevel.</p>
    <script>
      setTimeout(() => {
        window.close();
      }, 3000);
    </script>
  </body>
</html>
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_redirect(redirect_uri: str, code: str, state: str) -> str:
    separator = "&" if "?" in redirect_uri else "?"
    return f"{redirect_uri}{separator}{urlencode({'code': code, 'state': state})}"


async def read_body(request: Request) -> object:
    """Request body as JSON, form fields, or raw text, for logging."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        return dict(await request.form())
    raw = await request.body()
    if not raw:
        return {}
    try:
        return await request.json()
    except ValueError:
        return raw.decode(errors="replace")


def create_oauth_router() -> APIRouter:
    """Create the OAuth stub router."""
    router = APIRouter()

    @router.get("/auth")
    async def authorize(request: Request) -> Response:
        params = request.query_params
        logger.info("Received OAuth authentication request: %s", dict(params))
        redirect_uri = params.get("redirect_uri") or params.get("redirect_url")
        if not redirect_uri:
            return PlainTextResponse("Missing redirect URI", status_code=400)

        code = f"temporary_auth_code_{_now_ms()}"
        url = build_redirect(redirect_uri, code, params.get("state", ""))
        logger.info("Redirecting to: %s", url)
        return RedirectResponse(url, status_code=302)

    @router.api_route(
        "/auth/callback",
        methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"],
    )
    async def callback(request: Request) -> Response:
        page = request.method in ("GET", "HEAD")
        body = None if page else await read_body(request)
        logger.info(
            "Received OAuth callback: method=%s query=%s body=%s",
            request.method, dict(request.query_params), body,
        )
        if page:
            return HTMLResponse(CALLBACK_PAGE)
        return JSONResponse({
            "success": True,
            "message": "OAuth callback successful",
            "timestamp": datetime.now(UTC).isoformat(),
        })

    @router.post("/oauth/token")
    async def token(request: Request) -> JSONResponse:
        logger.info("Received token request: %s", await read_body(request))
        issued = _now_ms()
        return JSONResponse({
            "access_token": f"mvp_access_token_{issued}",
            "token_type": "Bearer",
            "expires_in": TOKEN_TTL_SECONDS,
            "refresh_token": f"mvp_refresh_token_{issued}",
        })

    return router
