"""
Request logging middleware for the API

Every report request is logged with its filters, its status and its
duration. The request id is taken from the ``X-Request-ID`` header when the
dashboard sends one, generated otherwise, and echoed back.
"""

import time
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

# Configure logging
logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
FILTER_PARAMS = ("annee", "commercial")


def describe_filters(request: Request) -> str:
    """Short ``annee=2023 commercial=C01`` summary of the report filters"""
    active = [f"{name}={request.query_params[name]}" for name in FILTER_PARAMS if request.query_params.get(name)]
    return " ".join(active) or "no filters"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging report requests
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        start_time = time.time()

        logger.info(f"Request {request_id} started: {request.method} {request.url.path} ({describe_filters(request)})")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request {request_id} failed: {str(e)} after {time.time() - start_time:.3f}s")
            raise

        process_time = time.time() - start_time
        log = logger.error if response.status_code >= 500 else logger.info
        log(f"Request {request_id} completed: {response.status_code} in {process_time:.3f}s")

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        return response
