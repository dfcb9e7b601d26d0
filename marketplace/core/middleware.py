import logging
import time
import uuid

from fastapi import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """Tag each request with an id (the caller's X-Request-ID when sent) and log its outcome and duration."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        logger.exception("[REQ %s] %s %s failed", request_id, request.method, request.url.path)
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("[REQ %s] %s %s -> %d in %.1fms", request_id, request.method, request.url.path, response.status_code, elapsed_ms)
    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.1f}"
    return response
