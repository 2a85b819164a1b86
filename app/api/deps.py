from functools import lru_cache

from fastapi import Depends

from app.config import Settings, get_settings
from app.services.batch_service import BatchOrchestrator
from app.services.storage_service import StorageBackend, create_storage_backend
from app.services.upload_service import UploadPipeline
from app.services.vision_service import VisionService


@lru_cache()
def get_storage_backend() -> StorageBackend:
	"""Backend chosen once per process from STORAGE_TYPE"""
	return create_storage_backend(get_settings())


@lru_cache()
def get_vision_service() -> VisionService:
	return VisionService()


def get_upload_pipeline(
		settings: Settings = Depends(get_settings),
		storage: StorageBackend = Depends(get_storage_backend),
		vision: VisionService = Depends(get_vision_service),
) -> UploadPipeline:
	return UploadPipeline(settings, storage, vision)


def get_batch_orchestrator(
		settings: Settings = Depends(get_settings),
		pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> BatchOrchestrator:
	return BatchOrchestrator(pipeline, settings.MAX_BATCH_SIZE)
