import logging
from typing import Iterable, Optional

import jwt
from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from txnlens.core.exceptions import ResponseBody
from txnlens.core.jwt_handler import verify_token

logger = logging.getLogger(__name__)

DEFAULT_EXEMPT_PATHS = [
    "/health",
    "/openapi.json",
    "/docs",
    "/docs/oauth2-redirect",
]


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=ResponseBody(message=message, errors=[], data=None).model_dump(),
    )


class TokenAuthMiddleware(BaseHTTPMiddleware):
    """Validate the bearer JWT and expose its payload as ``request.state.user``.

    Exempt paths (public endpoints) can be passed via ``exempt_paths`` when
    registering the middleware.
    """

    def __init__(self, app, exempt_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exempt_paths = set(DEFAULT_EXEMPT_PATHS if exempt_paths is None else exempt_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        auth_header = request.headers.get("authorization")
        if not auth_header:
            return _unauthorized("Authorization header is required")

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return _unauthorized("Invalid authorization header")

        try:
            payload = verify_token(parts[1])
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected token for %s: %s", request.url.path, e)
            return _unauthorized(str(e))

        request.state.user = payload
        return await call_next(request)
