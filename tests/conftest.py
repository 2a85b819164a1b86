import os
import tempfile
from typing import AsyncGenerator

# Keep the app's module-level static mount out of the working tree
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="photo-uploads-"))
os.environ.setdefault("STORAGE_TYPE", "local")

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_storage_backend, get_vision_service
from app.config import Settings, get_settings
from app.core.errors import AnalysisError
from app.main import app
from app.services.storage_service import LocalStorageBackend
from app.services.upload_service import UploadPipeline
from tests.factories import FakeVisionService, make_image


@pytest.fixture
def settings(tmp_path) -> Settings:
	return Settings(
		_env_file=None,
		STORAGE_TYPE="local",
		UPLOAD_DIR=str(tmp_path / "photos"),
		MAX_UPLOAD_SIZE=10 * 1024 * 1024,
		MAX_BATCH_SIZE=10,
		DEBUG=False,
		ENVIRONMENT="testing",
	)


@pytest.fixture
def storage(settings) -> LocalStorageBackend:
	return LocalStorageBackend(settings.UPLOAD_DIR, settings.PUBLIC_URL_PREFIX)


@pytest.fixture
def vision() -> FakeVisionService:
	return FakeVisionService()


@pytest.fixture
def pipeline(settings, storage, vision) -> UploadPipeline:
	return UploadPipeline(settings, storage, vision)


@pytest.fixture
def jpeg_bytes() -> bytes:
	return make_image()


@pytest.fixture
def quota_exceeded() -> AnalysisError:
	return AnalysisError("Vision analysis failed: quota exceeded", AnalysisError.RESOURCE_EXHAUSTED)


@pytest.fixture
async def client(settings, storage, vision) -> AsyncGenerator[AsyncClient, None]:
	"""Create a test client"""
	app.dependency_overrides[get_settings] = lambda: settings
	app.dependency_overrides[get_storage_backend] = lambda: storage
	app.dependency_overrides[get_vision_service] = lambda: vision

	async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
		yield client

	app.dependency_overrides.clear()
