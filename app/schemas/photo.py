import datetime as dt
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


Likelihood = Literal["UNKNOWN", "VERY_UNLIKELY", "UNLIKELY", "POSSIBLE", "LIKELY", "VERY_LIKELY"]
ConfidenceLevel = Literal["VERY_LOW", "LOW", "MEDIUM", "HIGH", "VERY_HIGH"]
SafeSearchVerdict = Literal["SAFE", "MODERATE", "UNSAFE"]


class CamelModel(BaseModel):
    """Serialises to camelCase for the web client, accepts both spellings"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_tags(tags: List[str]) -> List[str]:
    """Lower-case, strip and de-duplicate, keeping first occurrence order"""
    seen = []
    for tag in tags:
        value = tag.strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen


class Coordinates(CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class VariantUrls(CamelModel):
    original: str
    thumbnail: str
    medium: str


class Dimensions(CamelModel):
    width: int
    height: int
    format: str = "jpeg"


class VariantDimensions(CamelModel):
    original: Dimensions
    thumbnail: Dimensions
    medium: Dimensions


# =====================================
# Vision analysis
# =====================================

class Vertex(CamelModel):
    x: float = 0
    y: float = 0


class BoundingBox(CamelModel):
    vertices: List[Vertex] = Field(default_factory=list)


class NormalizedBoundingBox(CamelModel):
    normalized_vertices: List[Vertex] = Field(default_factory=list)


class Label(CamelModel):
    description: str
    score: float
    confidence: ConfidenceLevel
    topicality: float = 0


class FaceLandmark(CamelModel):
    type: str
    position: Dict[str, float] = Field(default_factory=dict)


class FaceEmotions(CamelModel):
    joy: Likelihood = "UNKNOWN"
    sorrow: Likelihood = "UNKNOWN"
    anger: Likelihood = "UNKNOWN"
    surprise: Likelihood = "UNKNOWN"


class FaceAttributes(CamelModel):
    headwear: Likelihood = "UNKNOWN"
    blurred: Likelihood = "UNKNOWN"
    under_exposed: Likelihood = "UNKNOWN"


class FaceAngles(CamelModel):
    roll: float = 0
    pan: float = 0
    tilt: float = 0


class Face(CamelModel):
    id: str
    confidence: float
    bounding_box: BoundingBox = Field(default_factory=BoundingBox)
    landmarks: List[FaceLandmark] = Field(default_factory=list)
    emotions: FaceEmotions = Field(default_factory=FaceEmotions)
    attributes: FaceAttributes = Field(default_factory=FaceAttributes)
    angles: FaceAngles = Field(default_factory=FaceAngles)


class GeoLocation(CamelModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Landmark(CamelModel):
    description: str
    score: float
    confidence: ConfidenceLevel
    bounding_box: BoundingBox = Field(default_factory=BoundingBox)
    locations: List[GeoLocation] = Field(default_factory=list)


class TextBlock(CamelModel):
    text: str
    bounding_box: BoundingBox = Field(default_factory=BoundingBox)


class DetectedText(CamelModel):
    full_text: str = ""
    confidence: float = 0
    blocks: List[TextBlock] = Field(default_factory=list)
    language: Optional[str] = None


class DetectedObject(CamelModel):
    name: str
    score: float
    confidence: ConfidenceLevel
    bounding_box: NormalizedBoundingBox = Field(default_factory=NormalizedBoundingBox)


class RGB(CamelModel):
    red: int = 0
    green: int = 0
    blue: int = 0


class Color(CamelModel):
    color: RGB
    score: float
    pixel_fraction: float
    hex: str


class ColorPalette(CamelModel):
    dominant: List[Color] = Field(default_factory=list)
    palette: List[Color] = Field(default_factory=list)


class SafeSearch(CamelModel):
    adult: Likelihood = "UNKNOWN"
    medical: Likelihood = "UNKNOWN"
    spoofed: Likelihood = "UNKNOWN"
    violence: Likelihood = "UNKNOWN"
    racy: Likelihood = "UNKNOWN"
    overall: SafeSearchVerdict = "SAFE"


class ImageAnalysis(CamelModel):
    """Structured result of one vision annotation request"""
    labels: List[Label] = Field(default_factory=list)
    faces: List[Face] = Field(default_factory=list)
    landmarks: List[Landmark] = Field(default_factory=list)
    text: DetectedText = Field(default_factory=DetectedText)
    objects: List[DetectedObject] = Field(default_factory=list)
    colors: ColorPalette = Field(default_factory=ColorPalette)
    safe_search: SafeSearch = Field(default_factory=SafeSearch)
    confidence: float = 0


# =====================================
# Photos
# =====================================

class PhotoMetadata(CamelModel):
    """Caller-declared metadata attached to an upload"""
    location: str = "Unknown"
    coordinates: Optional[Coordinates] = None
    date: Optional[dt.date] = None


class GalleryPhoto(CamelModel):
    """
    Fields the gallery utilities (clustering, timeline, filters) work on.

    Client-side collections may only carry this subset, full upload
    results are `PhotoRecord` instances.
    """
    id: str
    original_filename: Optional[str] = None
    location: str = "Unknown"
    coordinates: Optional[Coordinates] = None
    date: Optional[dt.date] = None
    tags: List[str] = Field(default_factory=list)
    is_favorite: bool = False
    people: List[str] = Field(default_factory=list)
    urls: Optional[VariantUrls] = None

    @field_validator("tags")
    @classmethod
    def lower_case_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


class PhotoRecord(GalleryPhoto):
    original_filename: str
    urls: VariantUrls
    size: int
    mime_type: str
    dimensions: VariantDimensions
    uploaded_at: str
    labels: List[Label] = Field(default_factory=list)
    faces: List[Face] = Field(default_factory=list)
    landmarks: List[Landmark] = Field(default_factory=list)
    text: DetectedText = Field(default_factory=DetectedText)
    objects: List[DetectedObject] = Field(default_factory=list)
    colors: ColorPalette = Field(default_factory=ColorPalette)
    safe_search: SafeSearch = Field(default_factory=SafeSearch)


class LocationGroup(CamelModel):
    center: Coordinates
    location: str
    photos: List[GalleryPhoto]
    count: int


class TimelineEntry(CamelModel):
    date: dt.date
    location: str
    coordinates: Coordinates
    photo: GalleryPhoto


# =====================================
# Batch
# =====================================

class ImageSize(CamelModel):
    width: int
    height: int


class BatchAnalysis(CamelModel):
    """Result of the lighter analyse-only path used for batches"""
    image_id: str
    original_filename: str
    mime_type: str
    size: int
    dimensions: ImageSize
    analysis: ImageAnalysis
    uploaded_at: str


class BatchFailure(CamelModel):
    filename: str
    error: str


class BatchSummary(CamelModel):
    total: int
    successful: int
    failed: int


class BatchResult(CamelModel):
    successful: List[Union[PhotoRecord, BatchAnalysis]] = Field(default_factory=list)
    failed: List[BatchFailure] = Field(default_factory=list)

    @computed_field
    @property
    def summary(self) -> BatchSummary:
        return BatchSummary(
            total=len(self.successful) + len(self.failed),
            successful=len(self.successful),
            failed=len(self.failed),
        )


# =====================================
# API envelopes
# =====================================

class PhotoUploadResponse(BaseModel):
    success: bool = True
    message: str
    data: PhotoRecord


class BatchUploadResponse(BaseModel):
    success: bool = True
    message: str
    data: BatchResult


class ErrorResponse(BaseModel):
    """Error payload"""
    error: str = Field(..., description="Error title")
    message: str = Field(..., description="Actionable detail")
    details: Optional[Dict[str, Any]] = Field(None, description="Debug details (development only)")


class NearbyRequest(CamelModel):
    photos: List[GalleryPhoto]
    target: Optional[Coordinates] = None
    radius_km: Optional[float] = Field(None, gt=0)


class GroupRequest(CamelModel):
    photos: List[GalleryPhoto]
    max_distance_km: Optional[float] = Field(None, gt=0)


class TimelineRequest(CamelModel):
    photos: List[GalleryPhoto]


class DateRange(CamelModel):
    start: dt.date
    end: dt.date


class FilterRequest(CamelModel):
    photos: List[GalleryPhoto]
    query: Optional[str] = None
    section: str = "all"
    selected_tags: List[str] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    sort_by: str = "date"
    sort_order: Literal["asc", "desc"] = "asc"


class FavoriteRequest(CamelModel):
    photo: GalleryPhoto
    is_favorite: bool = True


class PeopleRequest(CamelModel):
    photo: GalleryPhoto
    people: List[str]
