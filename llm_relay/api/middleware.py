import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from llm_relay.infrastructure.logging.logger import logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        ctx = {"request_id": request_id, "method": request.method, "path": request.url.path}

        logger.info("Request started", extra={"extra": ctx})

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.error(
                f"Request crashed: {e!r}",
                extra={"extra": {**ctx, "duration_ms": duration_ms}},
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Request handled",
            extra={"extra": {**ctx, "status": response.status_code, "duration_ms": duration_ms}},
        )

        # 把 request_id 回传给调用方，便于串联日志
        response.headers["x-request-id"] = request_id
        return response
