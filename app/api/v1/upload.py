import logging
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_batch_orchestrator, get_upload_pipeline
from app.config import Settings, get_settings
from app.core.errors import ValidationError
from app.core.image_formats import ALLOWED_CONTENT_TYPES
from app.schemas.photo import BatchUploadResponse, Coordinates, PhotoMetadata, PhotoUploadResponse
from app.services.batch_service import BatchOrchestrator, IncomingFile
from app.services.upload_service import UploadPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


def _coordinates(latitude: Optional[float], longitude: Optional[float]) -> Optional[Coordinates]:
	if latitude is None and longitude is None:
		return None
	if latitude is None or longitude is None:
		raise ValidationError("Both latitude and longitude are required to set coordinates")
	try:
		return Coordinates(lat=latitude, lng=longitude)
	except ValueError as e:
		raise ValidationError(f"Invalid coordinates: {latitude}, {longitude}") from e


@router.post("/image", response_model=PhotoUploadResponse)
async def upload_image(
		image: Optional[UploadFile] = File(None),
		location: str = Form("Unknown"),
		latitude: Optional[float] = Form(None),
		longitude: Optional[float] = Form(None),
		date: Optional[dt.date] = Form(None),
		pipeline: UploadPipeline = Depends(get_upload_pipeline),
):
	"""
	Upload an image and analyze it

	Stores original, thumbnail and medium variants, then runs vision
	analysis on the uploaded bytes.
	"""
	if image is None or not image.filename:
		raise ValidationError("Please upload an image file", error="No image file provided")

	# Cheap rejection before the body is read, the pipeline checks again
	pipeline.check_extension(image.filename)
	metadata = PhotoMetadata(
		location=location or "Unknown",
		coordinates=_coordinates(latitude, longitude),
		date=date,
	)

	content = await image.read()
	logger.info(f"Uploading {image.filename} ({len(content)} bytes) with multiple size variants")
	record = await run_in_threadpool(
		pipeline.upload, content, image.filename, image.content_type or "application/octet-stream", metadata
	)

	logger.info(f"Photo {record.id} uploaded and analyzed")
	return PhotoUploadResponse(message="Image uploaded and analyzed successfully", data=record)


@router.post("/batch", response_model=BatchUploadResponse)
async def upload_batch(
		images: Optional[List[UploadFile]] = File(None),
		mode: str = Form("analyze"),
		orchestrator: BatchOrchestrator = Depends(get_batch_orchestrator),
):
	"""
	Process several images in one request

	Each file is checked (extension, signature, size) and processed on
	its own; failures are listed with their filename instead of aborting
	the batch.
	"""
	if not images:
		raise ValidationError("Please upload at least one image file", error="No image files provided")

	files = [
		IncomingFile(
			filename=upload.filename or "unnamed",
			content=await upload.read(),
			content_type=upload.content_type or "application/octet-stream",
		)
		for upload in images
	]

	result = await run_in_threadpool(orchestrator.upload_batch, files, mode)
	summary = result.summary
	return BatchUploadResponse(
		message=f"Batch processing completed. {summary.successful} successful, {summary.failed} failed.",
		data=result,
	)


@router.delete("/photos/{photo_id}")
async def delete_photo(photo_id: str, pipeline: UploadPipeline = Depends(get_upload_pipeline)):
	"""Delete a photo and all of its variants"""
	await run_in_threadpool(pipeline.delete_photo, photo_id)
	return {"success": True, "message": "Photo deleted successfully", "id": photo_id}


@router.get("/config")
async def get_upload_config(settings: Settings = Depends(get_settings)):
	"""Upload limits and accepted formats for the client"""
	return {
		"max_file_size": settings.MAX_UPLOAD_SIZE,
		"max_batch_size": settings.MAX_BATCH_SIZE,
		"allowed_formats": settings.ALLOWED_FORMATS,
		"allowed_content_types": sorted(ALLOWED_CONTENT_TYPES),
		"storage_type": settings.STORAGE_TYPE,
	}
