import datetime as dt
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from app.core.errors import ValidationError
from app.schemas.photo import GalleryPhoto, normalize_tags

logger = logging.getLogger(__name__)

SECTIONS = {"all", "recent", "favorites", "people", "places", "albums"}
SORT_KEYS = {"date", "name", "location"}


def _matches_query(photo: GalleryPhoto, query: str) -> bool:
    return (
        any(query in tag.lower() for tag in photo.tags)
        or query in photo.location.lower()
        or any(query in person.lower() for person in photo.people)
    )


def _sort_key(sort_by: str):
    if sort_by == "name":
        return lambda photo: (photo.original_filename or "").lower()
    if sort_by == "location":
        return lambda photo: photo.location.lower()
    # Undated photos go last in ascending order
    return lambda photo: (photo.date is None, photo.date or dt.date.min)


def filter_photos(
        photos: Sequence[GalleryPhoto],
        query: Optional[str] = None,
        section: str = "all",
        selected_tags: Iterable[str] = (),
        date_range: Optional[Tuple[dt.date, dt.date]] = None,
        sort_by: str = "date",
        sort_order: str = "asc",
) -> List[GalleryPhoto]:
    """Search, filter and sort a gallery the way the photo grid shows it"""
    if section not in SECTIONS:
        raise ValidationError(f"Unknown section: {section}. Allowed: {', '.join(sorted(SECTIONS))}")
    if sort_by not in SORT_KEYS:
        raise ValidationError(f"Unknown sort key: {sort_by}. Allowed: {', '.join(sorted(SORT_KEYS))}")

    filtered = list(photos)

    if query:
        needle = query.lower()
        filtered = [photo for photo in filtered if _matches_query(photo, needle)]

    wanted = set(normalize_tags(list(selected_tags)))
    if wanted:
        filtered = [photo for photo in filtered if wanted.intersection(photo.tags)]

    if date_range is not None:
        start, end = date_range
        filtered = [photo for photo in filtered if photo.date is not None and start <= photo.date <= end]

    if section == "favorites":
        filtered = [photo for photo in filtered if photo.is_favorite]
    elif section == "people":
        filtered = [photo for photo in filtered if photo.people]

    return sorted(filtered, key=_sort_key(sort_by), reverse=sort_order == "desc")


def mark_favorite(photo: GalleryPhoto, is_favorite: bool = True) -> GalleryPhoto:
    """Return a copy of `photo` with the favorite flag set"""
    return photo.model_copy(update={"is_favorite": is_favorite})


def tag_people(photo: GalleryPhoto, people: Iterable[str]) -> GalleryPhoto:
    """Return a copy of `photo` with `people` added, without duplicates"""
    merged = list(photo.people)
    for person in people:
        name = person.strip()
        if name and name not in merged:
            merged.append(name)
    return photo.model_copy(update={"people": merged})
