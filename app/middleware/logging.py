from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
import contextvars
import logging
import json
import time
import uuid
from datetime import datetime, timezone

# Request ID of the request being handled, picked up by RequestIDFilter
request_id_context = contextvars.ContextVar("request_id", default=None)

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 5.0


def get_request_id() -> str:
	return request_id_context.get() or "-"


class RequestIDFilter(logging.Filter):
	"""Expose the current request ID to log formats as %(request_id)s"""

	def filter(self, record: logging.LogRecord) -> bool:
		record.request_id = get_request_id()
		return True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Tag every request with an ID and log one JSON line per request"""

	async def dispatch(self, request: Request, call_next):
		request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
		request.state.request_id = request_id
		token = request_id_context.set(request_id)

		start_time = time.time()
		try:
			response = await call_next(request)
			duration = time.time() - start_time

			response.headers["X-Request-ID"] = request_id
			response.headers["X-Process-Time"] = f"{duration:.3f}s"

			log_dict = {
				"timestamp": datetime.now(timezone.utc).isoformat(),
				"level": "INFO",
				"request_id": request_id,
				"method": request.method,
				"path": request.url.path,
				"client_host": request.client.host if request.client else None,
				"content_length": request.headers.get("content-length"),
				"status_code": response.status_code,
				"duration_seconds": round(duration, 3),
			}
			if response.status_code >= 400:
				log_dict["level"] = "WARNING" if response.status_code < 500 else "ERROR"

			logger.info(json.dumps(log_dict))

			# Uploads resize and call the vision API, so only flag the really slow ones
			if duration > SLOW_REQUEST_SECONDS:
				logger.warning(f"Slow request detected: {request.method} {request.url.path} took {duration:.2f}s")

			return response
		finally:
			request_id_context.reset(token)
