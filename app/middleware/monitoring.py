import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.monitoring.metrics import request_count, request_duration, active_requests

logger = logging.getLogger(__name__)

METRICS_PATH = "/internal/metrics"


def _endpoint_label(request: Request) -> str:
	"""Route template rather than raw path, so photo IDs don't explode label cardinality"""
	route = request.scope.get("route")
	if route is not None and hasattr(route, "path"):
		return route.path
	if request.url.path.startswith("/uploads/"):
		return "/uploads"
	return "unmatched"


class MonitoringMiddleware(BaseHTTPMiddleware):
	"""Track request metrics for Prometheus"""

	async def dispatch(self, request: Request, call_next):
		if request.url.path == METRICS_PATH:
			return await call_next(request)

		active_requests.inc()
		start_time = time.time()

		try:
			response = await call_next(request)

			duration = time.time() - start_time
			endpoint = _endpoint_label(request)

			request_count.labels(
				method=request.method,
				endpoint=endpoint,
				status=response.status_code
			).inc()

			request_duration.labels(
				method=request.method,
				endpoint=endpoint
			).observe(duration)

			return response

		finally:
			active_requests.dec()
