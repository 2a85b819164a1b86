import logging
from dataclasses import dataclass
from typing import List, Sequence

from app.core.errors import BatchTooLargeError, PhotoError, ValidationError
from app.monitoring.metrics import batch_files
from app.schemas.photo import BatchFailure, BatchResult
from app.services.upload_service import UploadPipeline

logger = logging.getLogger(__name__)

BATCH_MODES = ("analyze", "upload")


@dataclass
class IncomingFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class BatchOrchestrator:
    """Runs each file of a batch on its own, one failure never stops the rest"""

    def __init__(self, pipeline: UploadPipeline, max_batch_size: int = 10):
        self.pipeline = pipeline
        self.max_batch_size = max_batch_size

    def _process(self, file: IncomingFile, mode: str):
        if mode == "upload":
            return self.pipeline.upload(file.content, file.filename, file.content_type)
        return self.pipeline.analyze_only(file.content, file.filename, file.content_type)

    def upload_batch(self, files: Sequence[IncomingFile], mode: str = "analyze") -> BatchResult:
        if not files:
            raise ValidationError("No image files provided. Please upload at least one image file")
        if len(files) > self.max_batch_size:
            raise BatchTooLargeError(len(files), self.max_batch_size)
        if mode not in BATCH_MODES:
            raise ValidationError(f"Unknown batch mode: {mode}. Allowed: {', '.join(BATCH_MODES)}")

        logger.info(f"Processing batch of {len(files)} images ({mode})")

        successful = []
        failed: List[BatchFailure] = []

        for file in files:
            try:
                successful.append(self._process(file, mode))
                batch_files.labels(result="success").inc()
            except PhotoError as e:
                logger.error(f"Error processing {file.filename}: {e.message}")
                failed.append(BatchFailure(filename=file.filename, error=e.message))
                batch_files.labels(result="failed").inc()
            except Exception as e:
                logger.exception(f"Unexpected error processing {file.filename}")
                failed.append(BatchFailure(filename=file.filename, error=str(e)))
                batch_files.labels(result="failed").inc()

        result = BatchResult(successful=successful, failed=failed)
        logger.info(
            f"Batch processing completed. {result.summary.successful} successful, {result.summary.failed} failed."
        )
        return result
