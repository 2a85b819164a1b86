import logging
import math
import re
from typing import List, Optional, Sequence

from app.schemas.photo import Coordinates, GalleryPhoto, LocationGroup, TimelineEntry

logger = logging.getLogger(__name__)

# Mean Earth radius in kilometers
EARTH_RADIUS_KM = 6371.0

_LOCATION_PREFIXES = [re.compile(rf"^{word}\s+", re.IGNORECASE) for word in ("at", "in", "near")]


def calculate_distance(a: Optional[Coordinates], b: Optional[Coordinates]) -> float:
    """Great-circle distance in kilometers (haversine), 0 when either point is missing"""
    if a is None or b is None:
        return 0.0

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def group_photos_by_location(photos: Sequence[GalleryPhoto], max_distance_km: float = 5) -> List[LocationGroup]:
    """
    Greedy single-pass grouping by proximity.

    Each group is opened by the first unassigned photo (its seed) and collects
    every later unassigned photo within `max_distance_km` of that seed.
    Distances are always measured from the seed, never from a running
    centre, so members of a group are not guaranteed to be within range of
    each other. Photos without coordinates are skipped.
    """
    groups = []
    processed = set()

    for index, seed in enumerate(photos):
        if index in processed or seed.coordinates is None:
            continue

        members = [seed]
        processed.add(index)

        for other_index in range(index + 1, len(photos)):
            other = photos[other_index]
            if other_index in processed or other.coordinates is None:
                continue
            if calculate_distance(seed.coordinates, other.coordinates) <= max_distance_km:
                members.append(other)
                processed.add(other_index)

        groups.append(LocationGroup(
            center=seed.coordinates,
            location=seed.location,
            photos=members,
            count=len(members),
        ))

    logger.debug(f"Grouped {len(processed)} photos into {len(groups)} location groups")
    return groups


def find_photos_near_location(
        photos: Sequence[GalleryPhoto],
        target: Optional[Coordinates],
        radius_km: float = 10
) -> List[GalleryPhoto]:
    """Photos within `radius_km` of `target`, in input order"""
    if target is None:
        return []

    return [
        photo for photo in photos
        if photo.coordinates is not None
        and calculate_distance(target, photo.coordinates) <= radius_km
    ]


def build_travel_timeline(photos: Sequence[GalleryPhoto]) -> List[TimelineEntry]:
    """Chronological travel timeline of the photos that carry both coordinates and a date"""
    dated = [photo for photo in photos if photo.coordinates is not None and photo.date is not None]

    # sorted() is stable, same-day photos keep their input order
    dated = sorted(dated, key=lambda photo: photo.date)

    return [
        TimelineEntry(
            date=photo.date,
            location=photo.location,
            coordinates=photo.coordinates,
            photo=photo,
        )
        for photo in dated
    ]


def format_location(location: Optional[str]) -> str:
    """Display form of a free-form location label"""
    if not location:
        return "Unknown Location"

    location = location.strip()
    for prefix in _LOCATION_PREFIXES:
        location = prefix.sub("", location)
    return re.sub(r"\s+", " ", location).strip()
