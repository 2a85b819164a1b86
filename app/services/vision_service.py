import logging
import re
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import vision
from google.protobuf.json_format import MessageToDict

from app.core.errors import AnalysisError
from app.schemas.photo import (
    ColorPalette, DetectedText, Face, ImageAnalysis, Label, Landmark, DetectedObject, SafeSearch,
)

logger = logging.getLogger(__name__)

LIKELIHOOD_LEVELS = ["VERY_UNLIKELY", "UNLIKELY", "POSSIBLE", "LIKELY", "VERY_LIKELY"]

FEATURES = [
    {"type_": vision.Feature.Type.LABEL_DETECTION, "max_results": 20},
    {"type_": vision.Feature.Type.FACE_DETECTION, "max_results": 10},
    {"type_": vision.Feature.Type.LANDMARK_DETECTION, "max_results": 10},
    {"type_": vision.Feature.Type.TEXT_DETECTION, "max_results": 1},
    {"type_": vision.Feature.Type.OBJECT_LOCALIZATION, "max_results": 10},
    {"type_": vision.Feature.Type.IMAGE_PROPERTIES},
    {"type_": vision.Feature.Type.SAFE_SEARCH_DETECTION},
]

_ERROR_REASONS = (
    (google_exceptions.InvalidArgument, AnalysisError.INVALID_ARGUMENT),
    (google_exceptions.PermissionDenied, AnalysisError.PERMISSION_DENIED),
    (google_exceptions.Unauthenticated, AnalysisError.PERMISSION_DENIED),
    (google_exceptions.ResourceExhausted, AnalysisError.RESOURCE_EXHAUSTED),
    (google_exceptions.ServiceUnavailable, AnalysisError.UNAVAILABLE),
    (google_exceptions.DeadlineExceeded, AnalysisError.UNAVAILABLE),
    (google_exceptions.RetryError, AnalysisError.UNAVAILABLE),
    (auth_exceptions.TransportError, AnalysisError.UNAVAILABLE),
    # Missing, expired or revoked credentials
    (auth_exceptions.GoogleAuthError, AnalysisError.PERMISSION_DENIED),
)

_LANGUAGE_PATTERNS = (
    ("ru", re.compile(r"[а-яё]", re.IGNORECASE)),
    ("de", re.compile(r"[äöüß]", re.IGNORECASE)),
    ("fr", re.compile(r"[àâäéèêëïîôöùûüÿ]", re.IGNORECASE)),
    ("es", re.compile(r"[ñáéíóúü]", re.IGNORECASE)),
    ("zh", re.compile(r"[一-龯]")),
    ("ja", re.compile(r"[ぁ-んァ-ン]")),
)


def _round(value: Optional[float]) -> float:
    return round(value or 0, 2)


def get_confidence_level(score: float) -> str:
    if score >= 0.9:
        return "VERY_HIGH"
    if score >= 0.75:
        return "HIGH"
    if score >= 0.5:
        return "MEDIUM"
    if score >= 0.25:
        return "LOW"
    return "VERY_LOW"


def _likelihood_index(value: Optional[str]) -> int:
    return LIKELIHOOD_LEVELS.index(value) if value in LIKELIHOOD_LEVELS else -1


def calculate_safe_search_overall(adult: Optional[str], violence: Optional[str], racy: Optional[str]) -> str:
    """UNSAFE from LIKELY upwards, MODERATE at POSSIBLE, SAFE otherwise"""
    worst = max(_likelihood_index(adult), _likelihood_index(violence), _likelihood_index(racy))
    if worst >= 3:
        return "UNSAFE"
    if worst >= 2:
        return "MODERATE"
    return "SAFE"


def detect_language(text: str) -> str:
    """Rough script-based guess, defaults to English"""
    for language, pattern in _LANGUAGE_PATTERNS:
        if pattern.search(text):
            return language
    return "en"


def rgb_to_hex(red: int, green: int, blue: int) -> str:
    return f"#{red:02x}{green:02x}{blue:02x}"


def _vertices(poly: Optional[Dict[str, Any]], key: str = "vertices") -> List[Dict[str, Any]]:
    return list((poly or {}).get(key, []))


def process_labels(annotations: List[Dict[str, Any]]) -> List[Label]:
    labels = [
        Label(
            description=label.get("description", ""),
            score=_round(label.get("score")),
            confidence=get_confidence_level(label.get("score", 0)),
            topicality=_round(label.get("topicality")),
        )
        for label in annotations
    ]
    return sorted(labels, key=lambda label: label.score, reverse=True)


def process_faces(annotations: List[Dict[str, Any]]) -> List[Face]:
    faces = []
    for index, face in enumerate(annotations, start=1):
        faces.append(Face(
            id=f"face_{index}",
            confidence=_round(face.get("detectionConfidence")),
            bounding_box={"vertices": _vertices(face.get("boundingPoly"))},
            landmarks=[
                {"type": landmark.get("type", "UNKNOWN_LANDMARK"), "position": landmark.get("position", {})}
                for landmark in face.get("landmarks", [])
            ],
            emotions={
                "joy": face.get("joyLikelihood", "UNKNOWN"),
                "sorrow": face.get("sorrowLikelihood", "UNKNOWN"),
                "anger": face.get("angerLikelihood", "UNKNOWN"),
                "surprise": face.get("surpriseLikelihood", "UNKNOWN"),
            },
            attributes={
                "headwear": face.get("headwearLikelihood", "UNKNOWN"),
                "blurred": face.get("blurredLikelihood", "UNKNOWN"),
                "under_exposed": face.get("underExposedLikelihood", "UNKNOWN"),
            },
            angles={
                "roll": _round(face.get("rollAngle")),
                "pan": _round(face.get("panAngle")),
                "tilt": _round(face.get("tiltAngle")),
            },
        ))
    return faces


def process_landmarks(annotations: List[Dict[str, Any]]) -> List[Landmark]:
    return [
        Landmark(
            description=landmark.get("description", ""),
            score=_round(landmark.get("score")),
            confidence=get_confidence_level(landmark.get("score", 0)),
            bounding_box={"vertices": _vertices(landmark.get("boundingPoly"))},
            locations=[
                {
                    "latitude": location.get("latLng", {}).get("latitude"),
                    "longitude": location.get("latLng", {}).get("longitude"),
                }
                for location in landmark.get("locations", [])
            ],
        )
        for landmark in annotations
    ]


def process_text(annotations: List[Dict[str, Any]]) -> DetectedText:
    """First annotation is the whole text, the rest are individual blocks"""
    if not annotations:
        return DetectedText()

    full_text, blocks = annotations[0], annotations[1:]
    description = full_text.get("description", "")

    return DetectedText(
        full_text=description,
        confidence=_round(full_text.get("confidence")),
        blocks=[
            {"text": block.get("description", ""), "bounding_box": {"vertices": _vertices(block.get("boundingPoly"))}}
            for block in blocks
        ],
        language=detect_language(description),
    )


def process_objects(annotations: List[Dict[str, Any]]) -> List[DetectedObject]:
    objects = [
        DetectedObject(
            name=obj.get("name", ""),
            score=_round(obj.get("score")),
            confidence=get_confidence_level(obj.get("score", 0)),
            bounding_box={"normalized_vertices": _vertices(obj.get("boundingPoly"), "normalizedVertices")},
        )
        for obj in annotations
    ]
    return sorted(objects, key=lambda obj: obj.score, reverse=True)


def process_colors(image_properties: Optional[Dict[str, Any]]) -> ColorPalette:
    colors = ((image_properties or {}).get("dominantColors") or {}).get("colors")
    if not colors:
        return ColorPalette()

    palette = []
    for entry in colors:
        rgb = entry.get("color", {})
        red, green, blue = (int(rgb.get(channel, 0)) for channel in ("red", "green", "blue"))
        palette.append({
            "color": {"red": red, "green": green, "blue": blue},
            "score": _round(entry.get("score")),
            "pixel_fraction": _round(entry.get("pixelFraction")),
            "hex": rgb_to_hex(red, green, blue),
        })

    return ColorPalette(dominant=palette[:3], palette=palette)


def process_safe_search(annotation: Optional[Dict[str, Any]]) -> SafeSearch:
    if not annotation:
        return SafeSearch()

    adult = annotation.get("adult", "UNKNOWN")
    violence = annotation.get("violence", "UNKNOWN")
    racy = annotation.get("racy", "UNKNOWN")

    return SafeSearch(
        adult=adult,
        medical=annotation.get("medical", "UNKNOWN"),
        spoofed=annotation.get("spoof", "UNKNOWN"),
        violence=violence,
        racy=racy,
        overall=calculate_safe_search_overall(adult, violence, racy),
    )


def calculate_overall_confidence(result: Dict[str, Any]) -> float:
    """Mean of the top label, face and landmark scores that are present"""
    scores = []
    if result.get("labelAnnotations"):
        scores.append(result["labelAnnotations"][0].get("score", 0))
    if result.get("faceAnnotations"):
        scores.append(result["faceAnnotations"][0].get("detectionConfidence", 0))
    if result.get("landmarkAnnotations"):
        scores.append(result["landmarkAnnotations"][0].get("score", 0))

    if not scores:
        return 0
    return _round(sum(scores) / len(scores))


def build_analysis(result: Dict[str, Any]) -> ImageAnalysis:
    """Normalise a camelCase annotate-image response into an ImageAnalysis"""
    return ImageAnalysis(
        labels=process_labels(result.get("labelAnnotations", [])),
        faces=process_faces(result.get("faceAnnotations", [])),
        landmarks=process_landmarks(result.get("landmarkAnnotations", [])),
        text=process_text(result.get("textAnnotations", [])),
        objects=process_objects(result.get("localizedObjectAnnotations", [])),
        colors=process_colors(result.get("imagePropertiesAnnotation")),
        safe_search=process_safe_search(result.get("safeSearchAnnotation")),
        confidence=calculate_overall_confidence(result),
    )


class VisionService:
    """Google Cloud Vision client wrapper"""

    def __init__(self, client: Optional[vision.ImageAnnotatorClient] = None):
        # Credentials come from GOOGLE_APPLICATION_CREDENTIALS or the SDK defaults
        self._client = client

    @property
    def client(self) -> vision.ImageAnnotatorClient:
        if self._client is None:
            self._client = vision.ImageAnnotatorClient()
        return self._client

    def analyze(self, image_bytes: bytes) -> ImageAnalysis:
        logger.info("Starting vision analysis")
        request = {"image": {"content": image_bytes}, "features": FEATURES}

        try:
            response = self.client.annotate_image(request)
        except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            reason = next(
                (reason for error_type, reason in _ERROR_REASONS if isinstance(e, error_type)),
                AnalysisError.UNKNOWN,
            )
            logger.error(f"Vision API error ({reason}): {e}")
            raise AnalysisError(f"Vision analysis failed: {getattr(e, 'message', None) or e}", reason) from e

        result = MessageToDict(response._pb)
        error = result.get("error") or {}
        if error.get("message"):
            logger.error(f"Vision API returned an error: {error['message']}")
            raise AnalysisError(f"Vision analysis failed: {error['message']}")

        analysis = build_analysis(result)
        logger.info(f"Vision analysis completed: {len(analysis.labels)} labels, {len(analysis.faces)} faces")
        return analysis
