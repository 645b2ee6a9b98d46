"""
Edge route guard.

Browser navigations to anything but auth pages, API routes, framework
assets and files are sent to the sign-in page unless they carry a valid
admin session cookie.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

import config
from security import tokens

SIGN_IN_PATH = "/signin"
EXEMPT_PREFIXES = ("/signin", "/signup", "/reset-password", "/api", "/static", "/docs", "/redoc")


def is_exempt(path: str) -> bool:
    return path.startswith(EXEMPT_PREFIXES) or "." in path


def has_session(request: Request) -> bool:
    token = request.cookies.get(config.ADMIN_COOKIE_NAME)
    return bool(token) and tokens.verify(token) is not None


class RouteGuardMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if is_exempt(request.url.path) or has_session(request):
            return await call_next(request)
        return RedirectResponse(url=str(request.url.replace(path=SIGN_IN_PATH, query="")), status_code=307)
