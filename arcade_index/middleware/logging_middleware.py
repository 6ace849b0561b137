"""
Logging Middleware
Logs every request with its status and duration, and the request and
response bodies when DEBUG_MODE is enabled.
"""
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.concurrency import iterate_in_threadpool
from arcade_index.config import DEBUG_MODE

logger = logging.getLogger(__name__)

class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging. Headers are never logged; the write credential travels in one.
    """

    def __init__(self, app, debug_mode: bool = DEBUG_MODE):
        super().__init__(app)
        self.debug_mode = debug_mode

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()

        if self.debug_mode:
            try:
                body = await request.body()
                if body:
                    logger.info(f"Request Body: {body.decode('utf-8', errors='replace')}")
            except Exception as e:
                logger.error(f"Error logging request: {e}")

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")

        if self.debug_mode:
            try:
                # Reads the whole body into memory; responses here are small JSON documents
                response_body = [chunk async for chunk in response.body_iterator]
                response.body_iterator = iterate_in_threadpool(iter(response_body))
                if response_body:
                    full_body = b''.join(response_body)
                    logger.info(f"Response Body: {full_body.decode('utf-8', errors='replace')}")
            except Exception as e:
                logger.error(f"Error logging response: {e}")

        return response
