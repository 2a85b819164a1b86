import datetime as dt
import os
import uuid
from unittest.mock import MagicMock

import pytest
from google.auth import exceptions as auth_exceptions

from app.core.errors import AnalysisError, FileTooLargeError, InvalidImageError, ProcessingError, StorageError
from app.schemas.photo import Coordinates, PhotoMetadata
from app.services.storage_service import LocalStorageBackend
from app.services.upload_service import UploadPipeline
from app.services.vision_service import VisionService
from tests.factories import CORRUPT_JPEG, FakeVisionService, make_image


class FlakyStorage(LocalStorageBackend):
	"""Local backend that fails on the n-th write"""

	def __init__(self, upload_dir, fail_on: int, fail_cleanup: bool = False):
		super().__init__(upload_dir)
		self.fail_on = fail_on
		self.fail_cleanup = fail_cleanup
		self.writes = 0

	def put_variant(self, key, data, content_type):
		self.writes += 1
		if self.writes == self.fail_on:
			raise StorageError(f"disk full while writing {key}")
		return super().put_variant(key, data, content_type)

	def delete_by_id_prefix(self, photo_id):
		if self.fail_cleanup:
			raise StorageError("cleanup unavailable")
		super().delete_by_id_prefix(photo_id)


def stored_files(settings):
	if not os.path.isdir(settings.UPLOAD_DIR):
		return []
	return sorted(os.listdir(settings.UPLOAD_DIR))


def test_upload_creates_record(pipeline, settings, vision, jpeg_bytes):
	metadata = PhotoMetadata(location="Malibu Beach", coordinates=Coordinates(lat=34.0259, lng=-118.7798))

	record = pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg", metadata)

	uuid.UUID(record.id)
	assert record.original_filename == "beach.jpg"
	assert record.size == len(jpeg_bytes)
	assert record.mime_type == "image/jpeg"
	assert record.location == "Malibu Beach"
	assert record.coordinates.lat == 34.0259
	assert record.is_favorite is False
	assert record.people == []
	assert record.date == dt.date.fromisoformat(record.uploaded_at[:10])

	assert set(record.urls.model_dump()) == {"original", "thumbnail", "medium"}
	assert record.urls.original == f"/uploads/photos/{record.id}-original.jpg"
	assert record.urls.thumbnail == f"/uploads/photos/{record.id}-thumb.jpg"
	assert record.urls.medium == f"/uploads/photos/{record.id}-medium.jpg"

	assert (record.dimensions.original.width, record.dimensions.original.height) == (1200, 900)
	assert (record.dimensions.thumbnail.width, record.dimensions.thumbnail.height) == (300, 300)
	assert (record.dimensions.medium.width, record.dimensions.medium.height) == (800, 600)

	assert stored_files(settings) == sorted([
		f"{record.id}-medium.jpg", f"{record.id}-original.jpg", f"{record.id}-thumb.jpg"
	])


def test_upload_merges_analysis(pipeline, jpeg_bytes):
	record = pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg")

	assert record.tags == ["beach", "sky", "sunset"]
	assert record.labels[0].description == "Beach"
	assert record.faces[0].emotions.joy == "VERY_LIKELY"
	assert record.landmarks[0].locations[0].latitude == 34.0359
	assert record.text.full_text == "MALIBU\nPIER"
	assert [obj.name for obj in record.objects] == ["Surfboard", "Person"]
	assert record.colors.dominant[0].hex == "#ff8000"
	assert record.safe_search.overall == "MODERATE"
	assert record.location == "Unknown"


def test_analysis_receives_original_bytes(pipeline, vision, jpeg_bytes):
	pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg")
	assert vision.calls == [jpeg_bytes]


def test_declared_date_is_kept(pipeline, jpeg_bytes):
	record = pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg", PhotoMetadata(date=dt.date(2024, 7, 20)))
	assert record.date == dt.date(2024, 7, 20)


def test_upload_ids_are_unique(pipeline, jpeg_bytes):
	ids = {pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg").id for _ in range(3)}
	assert len(ids) == 3


@pytest.mark.parametrize("data", [b"\x00" * 512, b"not an image at all", b""])
def test_unrecognized_signature_is_invalid(pipeline, vision, settings, data):
	with pytest.raises(InvalidImageError):
		pipeline.upload(data, "photo.jpg", "image/jpeg")

	assert vision.calls == []
	assert stored_files(settings) == []


def test_declared_mime_type_is_not_trusted(pipeline):
	with pytest.raises(InvalidImageError):
		pipeline.upload(b"%PDF-1.7 fake", "photo.png", "image/png")


def test_too_large_fails_before_variant_generation(settings, storage, vision, monkeypatch):
	settings.MAX_UPLOAD_SIZE = 1024
	pipeline = UploadPipeline(settings, storage, vision)

	def fail(*args, **kwargs):
		raise AssertionError("variants must not be generated")

	monkeypatch.setattr("app.services.upload_service.generate_variants", fail)

	with pytest.raises(FileTooLargeError) as exc_info:
		pipeline.upload(b"\xff\xd8\xff\xe0" + b"\x00" * 2048, "big.jpg", "image/jpeg")

	assert exc_info.value.limit == 1024
	assert exc_info.value.status_code == 413
	assert "maximum limit" in exc_info.value.message


def test_size_limit_reported_in_megabytes(settings, storage, vision):
	settings.MAX_UPLOAD_SIZE = 10 * 1024 * 1024
	pipeline = UploadPipeline(settings, storage, vision)

	with pytest.raises(FileTooLargeError) as exc_info:
		pipeline.upload(b"\x89PNG" + b"\x00" * (10 * 1024 * 1024), "huge.png", "image/png")

	assert "10MB" in exc_info.value.message


def test_corrupt_pixels_raise_processing_error(pipeline, vision, settings):
	with pytest.raises(ProcessingError):
		pipeline.upload(CORRUPT_JPEG, "broken.jpg", "image/jpeg")

	assert stored_files(settings) == []
	assert vision.calls == []


@pytest.mark.parametrize("fail_on", [1, 2, 3])
def test_storage_failure_cleans_up_written_variants(settings, vision, jpeg_bytes, fail_on):
	storage = FlakyStorage(settings.UPLOAD_DIR, fail_on=fail_on)
	pipeline = UploadPipeline(settings, storage, vision)

	with pytest.raises(StorageError):
		pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg")

	assert stored_files(settings) == []
	assert vision.calls == []


def test_cleanup_failure_does_not_mask_storage_error(settings, vision, jpeg_bytes):
	storage = FlakyStorage(settings.UPLOAD_DIR, fail_on=3, fail_cleanup=True)
	pipeline = UploadPipeline(settings, storage, vision)

	with pytest.raises(StorageError) as exc_info:
		pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg")

	assert "disk full" in exc_info.value.message
	assert len(stored_files(settings)) == 2


def test_analysis_failure_keeps_variants(settings, storage, jpeg_bytes, quota_exceeded):
	pipeline = UploadPipeline(settings, storage, FakeVisionService(error=quota_exceeded))

	with pytest.raises(AnalysisError) as exc_info:
		pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg")

	assert exc_info.value.reason == AnalysisError.RESOURCE_EXHAUSTED
	assert exc_info.value.status_code == 429
	assert len(stored_files(settings)) == 3


def test_png_upload_is_stored_as_jpeg(pipeline, settings):
	record = pipeline.upload(make_image((500, 500), image_format="PNG", mode="RGBA"), "logo.png", "image/png")

	assert record.mime_type == "image/png"
	assert record.dimensions.medium.format == "jpeg"
	assert all(name.endswith(".jpg") for name in stored_files(settings))


def test_analyze_only_stores_nothing(pipeline, settings, jpeg_bytes):
	result = pipeline.analyze_only(jpeg_bytes, "beach.jpg", "image/jpeg")

	assert result.original_filename == "beach.jpg"
	assert (result.dimensions.width, result.dimensions.height) == (1200, 900)
	assert result.analysis.labels[0].description == "Beach"
	assert stored_files(settings) == []


def test_delete_photo_removes_all_variants(pipeline, settings, jpeg_bytes):
	keep = pipeline.upload(jpeg_bytes, "keep.jpg", "image/jpeg")
	drop = pipeline.upload(jpeg_bytes, "drop.jpg", "image/jpeg")

	pipeline.delete_photo(drop.id)

	assert all(name.startswith(keep.id) for name in stored_files(settings))
	assert len(stored_files(settings)) == 3


def test_expired_credentials_fail_as_analysis_error(settings, storage, jpeg_bytes):
	client = MagicMock()
	client.annotate_image.side_effect = auth_exceptions.RefreshError("invalid_grant: token has been revoked")
	pipeline = UploadPipeline(settings, storage, VisionService(client))

	with pytest.raises(AnalysisError) as exc_info:
		pipeline.upload(jpeg_bytes, "beach.jpg", "image/jpeg")

	assert exc_info.value.reason == AnalysisError.PERMISSION_DENIED
	assert exc_info.value.status_code == 503
	assert len(stored_files(settings)) == 3


@pytest.mark.parametrize("filename", ["notes.txt", "scan.PDF", "archive.tar.gz"])
def test_disallowed_extension_is_rejected(pipeline, vision, jpeg_bytes, filename):
	with pytest.raises(InvalidImageError) as exc_info:
		pipeline.upload(jpeg_bytes, filename, "image/jpeg")

	assert exc_info.value.error == "Invalid file format"
	assert vision.calls == []


def test_extension_check_is_case_insensitive_and_optional(pipeline, jpeg_bytes):
	assert pipeline.upload(jpeg_bytes, "BEACH.JPG", "image/jpeg").original_filename == "BEACH.JPG"
	assert pipeline.upload(jpeg_bytes, "beach", "image/jpeg").original_filename == "beach"
