"""Request-scoped middleware for API requests."""

from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.actor_context import set_current_actor_id, clear_current_actor_id

ACTOR_HEADER = "X-Actor-Id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorMiddleware(BaseHTTPMiddleware):
    """Middleware that sets the actor context from the gateway header.

    The upstream gateway authenticates the user and forwards their id in
    X-Actor-Id. Mutations (POST) without a valid actor are rejected; reads
    and public paths pass through without one.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    def _reject(self, request: Request, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=error_response(
                ErrorCodes.ACTOR_REQUIRED,
                message,
                getattr(request.state, "request_id", None),
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        raw = request.headers.get(ACTOR_HEADER)
        actor_id = None
        if raw:
            try:
                actor_id = UUID(raw)
            except ValueError:
                return self._reject(request, f"{ACTOR_HEADER} header is not a valid UUID")

        if actor_id is None:
            if request.method == "POST":
                return self._reject(request, f"{ACTOR_HEADER} header is required")
            return await call_next(request)

        set_current_actor_id(actor_id)
        request.state.actor_id = actor_id

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context
            clear_current_actor_id()
