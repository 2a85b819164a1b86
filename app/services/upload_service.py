import logging
import os
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from app.config import Settings
from app.core.errors import FileTooLargeError, InvalidImageError, PhotoError, StorageError, ValidationError
from app.core.image_formats import detect_image_format
from app.monitoring.metrics import photo_upload_duration, photo_uploads, pipeline_stage_failures
from app.schemas.photo import (
    BatchAnalysis, Dimensions, ImageSize, PhotoMetadata, PhotoRecord, VariantDimensions, VariantUrls,
    normalize_tags,
)
from app.services.image_processor import ImageVariant, generate_variants, read_dimensions
from app.services.storage_service import StorageBackend
from app.services.vision_service import VisionService

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    VALIDATING = "validating"
    PROCESSING = "processing"
    PERSISTING = "persisting"
    ANALYZING = "analyzing"
    ASSEMBLED = "assembled"
    FAILED = "failed"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UploadPipeline:
    """
    Turns one uploaded image into a PhotoRecord.

    Stages run strictly in order and the first failure ends the call:
    validate -> size guard -> variants -> persist -> analyze -> assemble.
    Nothing is retried here, retry policy belongs to the caller.
    """

    def __init__(self, settings: Settings, storage: StorageBackend, vision: VisionService):
        self.settings = settings
        self.storage = storage
        self.vision = vision

    def _enter(self, stage: PipelineStage, photo_id: str) -> PipelineStage:
        logger.info(f"[{photo_id}] {stage.value}")
        return stage

    def check_extension(self, filename: str):
        """Reject names whose extension is not an accepted format, names without one pass"""
        extension = os.path.splitext(filename)[1].lower().lstrip(".")
        if extension and extension not in self.settings.ALLOWED_FORMATS:
            raise InvalidImageError(
                f"{filename}: invalid file format. Allowed formats: {', '.join(self.settings.ALLOWED_FORMATS)}",
                error="Invalid file format",
            )

    def validate(self, data: bytes, filename: str) -> str:
        """Extension and signature checks then size guard, returns the detected format"""
        self.check_extension(filename)

        if not data:
            raise InvalidImageError(f"{filename}: file appears to be empty")

        image_format = detect_image_format(data)
        if image_format is None:
            raise InvalidImageError(f"{filename}: file does not appear to be a valid image")

        if len(data) > self.settings.MAX_UPLOAD_SIZE:
            raise FileTooLargeError(len(data), self.settings.MAX_UPLOAD_SIZE)

        return image_format

    def persist(self, photo_id: str, variants: Dict[str, ImageVariant]) -> Dict[str, str]:
        """Store every variant or none of them"""
        urls = {}
        try:
            for name, variant in variants.items():
                urls[name] = self.storage.put_variant(f"{photo_id}-{variant.suffix}", variant.data, variant.content_type)
        except StorageError:
            self._cleanup(photo_id)
            raise
        except Exception as e:
            self._cleanup(photo_id)
            raise StorageError(f"Failed to store photo {photo_id}: {e}") from e
        return urls

    def _cleanup(self, photo_id: str):
        try:
            self.storage.delete_by_id_prefix(photo_id)
        except Exception as e:
            logger.warning(f"[{photo_id}] cleanup of partial upload failed: {e}")

    def upload(
            self,
            data: bytes,
            original_filename: str,
            mime_type: str,
            metadata: Optional[PhotoMetadata] = None,
    ) -> PhotoRecord:
        metadata = metadata or PhotoMetadata()
        photo_id = str(uuid.uuid4())
        start_time = time.time()
        stage = PipelineStage.VALIDATING

        try:
            stage = self._enter(PipelineStage.VALIDATING, photo_id)
            self.validate(data, original_filename)

            stage = self._enter(PipelineStage.PROCESSING, photo_id)
            variants = generate_variants(data)

            stage = self._enter(PipelineStage.PERSISTING, photo_id)
            urls = self.persist(photo_id, variants)

            # Analysis runs on the untouched upload, not a re-encoded variant.
            # Stored variants stay in place if it fails.
            stage = self._enter(PipelineStage.ANALYZING, photo_id)
            analysis = self.vision.analyze(data)
        except PhotoError as e:
            pipeline_stage_failures.labels(stage=stage.value).inc()
            photo_uploads.labels(status="failed").inc()
            logger.error(f"[{photo_id}] {PipelineStage.FAILED.value} while {stage.value} ({original_filename}): {e.message}")
            raise

        uploaded_at = _now_iso()
        record = PhotoRecord(
            id=photo_id,
            original_filename=original_filename,
            urls=VariantUrls(**urls),
            size=len(data),
            mime_type=mime_type,
            dimensions=VariantDimensions(**{
                name: Dimensions(width=variant.width, height=variant.height, format=variant.format)
                for name, variant in variants.items()
            }),
            uploaded_at=uploaded_at,
            date=metadata.date or uploaded_at[:10],
            location=metadata.location,
            coordinates=metadata.coordinates,
            tags=normalize_tags([label.description for label in analysis.labels]),
            labels=analysis.labels,
            faces=analysis.faces,
            landmarks=analysis.landmarks,
            text=analysis.text,
            objects=analysis.objects,
            colors=analysis.colors,
            safe_search=analysis.safe_search,
            is_favorite=False,
            people=[],
        )
        self._enter(PipelineStage.ASSEMBLED, photo_id)

        photo_uploads.labels(status="success").inc()
        photo_upload_duration.observe(time.time() - start_time)
        return record

    def analyze_only(self, data: bytes, original_filename: str, mime_type: str) -> BatchAnalysis:
        """Lighter per-file path: validate, read dimensions, analyze. Nothing is stored"""
        image_id = str(uuid.uuid4())
        self.validate(data, original_filename)
        width, height = read_dimensions(data)
        analysis = self.vision.analyze(data)

        return BatchAnalysis(
            image_id=image_id,
            original_filename=original_filename,
            mime_type=mime_type,
            size=len(data),
            dimensions=ImageSize(width=width, height=height),
            analysis=analysis,
            uploaded_at=_now_iso(),
        )

    def delete_photo(self, photo_id: str):
        """Remove all stored variants of a photo"""
        try:
            uuid.UUID(photo_id)
        except ValueError:
            raise ValidationError(f"Invalid photo id: {photo_id}")

        logger.info(f"[{photo_id}] deleting variants")
        self.storage.delete_by_id_prefix(photo_id)
