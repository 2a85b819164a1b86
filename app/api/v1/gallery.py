from typing import List

from fastapi import APIRouter, Depends

from app.config import Settings, get_settings
from app.schemas.photo import (
    FavoriteRequest, FilterRequest, GalleryPhoto, GroupRequest, LocationGroup, NearbyRequest, PeopleRequest,
    TimelineEntry, TimelineRequest,
)
from app.services.gallery_service import filter_photos, mark_favorite, tag_people
from app.services.location_service import (
    build_travel_timeline, find_photos_near_location, group_photos_by_location,
)

router = APIRouter()


@router.post("/locations/groups", response_model=List[LocationGroup])
async def group_by_location(request: GroupRequest, settings: Settings = Depends(get_settings)):
    """Cluster photos around the first photo seen in each area"""
    max_distance = request.max_distance_km or settings.DEFAULT_CLUSTER_DISTANCE_KM
    return group_photos_by_location(request.photos, max_distance)


@router.post("/locations/timeline", response_model=List[TimelineEntry])
async def travel_timeline(request: TimelineRequest):
    return build_travel_timeline(request.photos)


@router.post("/locations/nearby", response_model=List[GalleryPhoto])
async def photos_nearby(request: NearbyRequest, settings: Settings = Depends(get_settings)):
    radius = request.radius_km or settings.DEFAULT_NEARBY_RADIUS_KM
    return find_photos_near_location(request.photos, request.target, radius)


@router.post("/photos/filter", response_model=List[GalleryPhoto])
async def filter_gallery(request: FilterRequest):
    """Search, section and sort filters of the photo grid"""
    date_range = (request.date_range.start, request.date_range.end) if request.date_range else None
    return filter_photos(
        request.photos,
        query=request.query,
        section=request.section,
        selected_tags=request.selected_tags,
        date_range=date_range,
        sort_by=request.sort_by,
        sort_order=request.sort_order,
    )


@router.post("/photos/favorite", response_model=GalleryPhoto)
async def set_favorite(request: FavoriteRequest):
    return mark_favorite(request.photo, request.is_favorite)


@router.post("/photos/people", response_model=GalleryPhoto)
async def add_people(request: PeopleRequest):
    return tag_people(request.photo, request.people)
