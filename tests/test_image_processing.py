import io

import pytest
from PIL import Image

from app.core.errors import ProcessingError
from app.core.image_formats import detect_image_format
from app.services.image_processor import generate_variants, read_dimensions
from tests.factories import CORRUPT_JPEG, make_image


@pytest.mark.parametrize("data,expected", [
	(b"\xff\xd8\xff\xe0\x00\x10JFIF", "jpeg"),
	(b"\xff\xd8\xff\xe1\x00\x10Exif", "jpeg"),
	(b"\x89PNG\r\n\x1a\n", "png"),
	(b"GIF89a\x01\x00", "gif"),
	(b"RIFF\x24\x00\x00\x00WEBPVP8 ", "webp"),
	(b"RIFF\x24\x00\x00\x00WAVEfmt ", None),
	(b"\x00\x00\x00\x00\x00\x00", None),
	(b"%PDF-1.7", None),
	(b"", None),
])
def test_detect_image_format(data, expected):
	assert detect_image_format(data) == expected


def open_variant(variant):
	return Image.open(io.BytesIO(variant.data))


def test_variants_from_landscape_jpeg():
	variants = generate_variants(make_image((1200, 900)))

	assert set(variants) == {"original", "thumbnail", "medium"}

	original = variants["original"]
	assert (original.width, original.height) == (1200, 900)
	assert open_variant(original).format == "JPEG"
	assert open_variant(original).info.get("progressive") == 1

	thumbnail = variants["thumbnail"]
	assert (thumbnail.width, thumbnail.height) == (300, 300)
	assert open_variant(thumbnail).size == (300, 300)

	medium = variants["medium"]
	assert (medium.width, medium.height) == (800, 600)
	assert open_variant(medium).size == (800, 600)


def test_medium_never_upscales():
	variants = generate_variants(make_image((400, 250)))

	assert (variants["medium"].width, variants["medium"].height) == (400, 250)
	assert (variants["thumbnail"].width, variants["thumbnail"].height) == (300, 300)


def test_portrait_medium_fits_inside():
	medium = generate_variants(make_image((1000, 2000)))["medium"]
	assert (medium.width, medium.height) == (400, 800)


@pytest.mark.parametrize("image_format,mode", [("PNG", "RGBA"), ("GIF", "RGB"), ("WEBP", "RGB")])
def test_other_formats_are_normalized_to_jpeg(image_format, mode):
	variants = generate_variants(make_image((640, 480), image_format=image_format, mode=mode, color=(10, 20, 30)))

	for variant in variants.values():
		assert variant.content_type == "image/jpeg"
		img = open_variant(variant)
		assert img.format == "JPEG"
		assert img.mode == "RGB"


def test_variant_suffixes():
	variants = generate_variants(make_image((50, 50)))
	assert {name: v.suffix for name, v in variants.items()} == {
		"original": "original", "thumbnail": "thumb", "medium": "medium"
	}


def test_corrupt_data_raises_processing_error():
	with pytest.raises(ProcessingError):
		generate_variants(CORRUPT_JPEG)


def test_truncated_jpeg_raises_processing_error():
	data = make_image((800, 800))
	with pytest.raises(ProcessingError):
		generate_variants(data[:len(data) // 3])


def test_read_dimensions():
	assert read_dimensions(make_image((321, 123), image_format="PNG")) == (321, 123)
	with pytest.raises(ProcessingError):
		read_dimensions(CORRUPT_JPEG)


def test_oversized_pixel_count_is_refused_before_decoding(monkeypatch):
	monkeypatch.setattr("app.services.image_processor.MAX_PIXELS", 100 * 100)
	data = make_image((200, 100), image_format="PNG")

	with pytest.raises(ProcessingError) as exc_info:
		generate_variants(data)
	assert "200x100" in exc_info.value.message

	with pytest.raises(ProcessingError):
		read_dimensions(data)

	assert read_dimensions(make_image((100, 100), image_format="PNG")) == (100, 100)
