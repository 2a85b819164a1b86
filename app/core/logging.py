import logging
import sys

from app.config import Settings
from app.middleware.logging import RequestIDFilter


def configure_logging(settings: Settings):
	"""Root logger setup, called once when the app is created"""
	level = logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

	handler = logging.StreamHandler(sys.stdout)
	handler.addFilter(RequestIDFilter())

	logging.basicConfig(
		level=level,
		format='%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
		handlers=[handler],
	)

	# Cloud SDKs are chatty at INFO
	for noisy in ("botocore", "boto3", "urllib3", "google"):
		logging.getLogger(noisy).setLevel(logging.WARNING)
