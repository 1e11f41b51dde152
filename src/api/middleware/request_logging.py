"""Request logging middleware with per-request ids and latency."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds)
SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

HEALTH_PATHS = ("/health", "/health/ready")


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log every request with a short request id, status and latency.

    Reuses an upstream X-Request-ID when present, otherwise generates an
    8-character id. The id is echoed back in the X-Request-ID response header.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
    request.state.request_id = request_id

    method = request.method
    path = request.url.path
    is_health_check = path in HEALTH_PATHS

    if not is_health_check:
        logger.debug("[%s] %s %s", request_id, method, path)

    start_time = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        log_args = (request_id, method, path, status_code, latency_ms)

        if is_health_check:
            if latency_ms > 100:
                logger.debug("[%s] %s %s - %d - %.2fms", *log_args)
        elif status_code >= 500:
            logger.error("[%s] %s %s - %d - %.2fms", *log_args)
        elif latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
            logger.error("[%s] VERY SLOW REQUEST: %s %s - %d - %.2fms", *log_args)
        elif latency_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning("[%s] SLOW REQUEST: %s %s - %d - %.2fms", *log_args)
        elif status_code >= 400:
            logger.warning("[%s] %s %s - %d - %.2fms", *log_args)
        else:
            logger.info("[%s] %s %s - %d - %.2fms", *log_args)
