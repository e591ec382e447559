"""Optional HTTP Basic auth in front of the API.

Active only when both AUTH_USERNAME and AUTH_PASSWORD are set. Paths listed
in AUTH_OPEN_PATHS, or starting with one of AUTH_OPEN_PREFIXES, are always
served: media players follow .strm URLs without credentials.
"""

import base64
import secrets

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.core.config import Settings, get_settings

REALM = "Resolvarr"


def is_open_path(path: str, settings: Settings) -> bool:
    return path in settings.auth_open_paths or path.startswith(
        tuple(settings.auth_open_prefixes)
    )


def parse_basic_credentials(header: str | None) -> tuple[str, str] | None:
    """Split a ``Basic`` Authorization header into username and password."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "basic" or not token:
        return None
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except ValueError:
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def credentials_match(settings: Settings, username: str, password: str) -> bool:
    # Both sides compared as bytes in constant time
    user_ok = secrets.compare_digest(
        username.encode("utf-8"), settings.auth_username.encode("utf-8")
    )
    pass_ok = secrets.compare_digest(
        password.encode("utf-8"),
        settings.auth_password.get_secret_value().encode("utf-8"),
    )
    return user_ok and pass_ok


class BasicAuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        settings = get_settings()
        if not (settings.auth_username and settings.auth_password):
            return await call_next(request)
        if is_open_path(request.url.path, settings):
            return await call_next(request)

        credentials = parse_basic_credentials(request.headers.get("Authorization"))
        if credentials is None or not credentials_match(settings, *credentials):
            return Response(
                content="Unauthorized",
                status_code=401,
                headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
            )
        return await call_next(request)
