import time
import uuid

import structlog
import structlog.contextvars
from fastapi import Request

logger = structlog.get_logger(__name__)


async def structured_logging_middleware(request: Request, call_next):
    """
    A single middleware for context injection and request/response logging.
    """
    structlog.contextvars.clear_contextvars()
    start_time = time.time()

    correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(
        correlation_id=correlation_id,
        remote_addr=request.client.host if request.client else None,
        request_path=request.url.path,
        request_method=request.method,
        user_agent=request.headers.get("user-agent"),
    )

    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        status_code = response.status_code

        log_details = {
            "status_code": status_code,
            "processing_time_ms": round(process_time * 1000, 2),
        }
        # Handlers that serve a remote file record it on request.state.
        image_path = getattr(request.state, "image_path", None)
        if image_path:
            log_details["image_path"] = image_path

        log_event = logger.info if 200 <= status_code < 400 else logger.warning
        log_event("Request completed", **log_details)

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}s"
        return response

    except Exception:
        process_time = time.time() - start_time
        logger.exception(
            "Request failed with unhandled exception",
            processing_time_ms=round(process_time * 1000, 2),
        )
        raise
    finally:
        structlog.contextvars.clear_contextvars()
