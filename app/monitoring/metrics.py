from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter
from fastapi.responses import Response

router = APIRouter()

# Define metrics
request_count = Counter(
	'http_requests_total',
	'Total HTTP requests',
	['method', 'endpoint', 'status']
)

request_duration = Histogram(
	'http_request_duration_seconds',
	'HTTP request duration',
	['method', 'endpoint'],
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

active_requests = Gauge(
	'http_requests_active',
	'Number of active HTTP requests'
)

photo_uploads = Counter(
	'photo_uploads_total',
	'Photo uploads by outcome',
	['status']
)

pipeline_stage_failures = Counter(
	'photo_pipeline_stage_failures_total',
	'Upload pipeline failures by stage',
	['stage']
)

photo_upload_duration = Histogram(
	'photo_upload_duration_seconds',
	'Time from receipt to assembled photo record',
	buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
)

batch_files = Counter(
	'batch_files_total',
	'Files processed through batch uploads',
	['result']
)


@router.get("/metrics")
async def metrics():
	"""Prometheus metrics endpoint"""
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
