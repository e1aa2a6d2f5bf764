import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "HTTP Request Exception",
                method=request.method,
                path=request.url.path,
                duration=round((time.time() - start_time) * 1000, 2),
                client=request.client.host if request.client else None,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        logger.info(
            "HTTP Request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round((time.time() - start_time) * 1000, 2),
            client=request.client.host if request.client else None,
            request_id=request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
