from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from .config import settings
from .models import ListingFilters, SearchCriteria, SoldFilters
from .errors import InvalidFilter
from .service import DEFAULT_NEARBY_LIMIT, ListingService


router = APIRouter(prefix="/api")


def get_service(request: Request) -> ListingService:
    service = getattr(request.app.state, "listing_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Listing service not initialized")
    return service


async def require_admin_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    # Only enforced in production with a key configured
    if settings.environment != "production" or not settings.admin_api_key:
        return
    if x_api_key != settings.admin_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key")


def _dump(model) -> dict:
    return model.model_dump(by_alias=True)


@router.get("/health", tags=["system"])
async def health(service: ListingService = Depends(get_service)) -> dict:
    return {"status": "ok", "provider": service.provider}


@router.get("/listings", tags=["listings"])
async def list_listings(
    city: Optional[str] = None,
    min_price: Optional[int] = Query(default=None, alias="minPrice"),
    max_price: Optional[int] = Query(default=None, alias="maxPrice"),
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    bedrooms: Optional[float] = None,
    bathrooms: Optional[float] = None,
    min_sqft: Optional[int] = Query(default=None, alias="minSqft"),
    max_sqft: Optional[int] = Query(default=None, alias="maxSqft"),
    listing_status: Optional[str] = Query(default=None, alias="status"),
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = 12,
    service: ListingService = Depends(get_service),
) -> dict:
    filters = ListingFilters(
        city=city or None,
        min_price=min_price,
        max_price=max_price,
        property_type=property_type or None,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        min_sqft=min_sqft,
        max_sqft=max_sqft,
        status=listing_status or None,
        sort=sort or None,
        page=page,
        limit=limit,
    )
    result = await service.get_listings(filters)
    return {
        "success": True,
        "data": {
            "data": [_dump(item) for item in result.items],
            "pagination": _dump(result.pagination),
        },
    }


# Must be registered before /listings/{mls_id}
@router.get("/listings/featured/all", tags=["listings"])
async def featured_listings(service: ListingService = Depends(get_service)) -> dict:
    listings = await service.get_featured_listings()
    return {"success": True, "data": {"data": [_dump(item) for item in listings]}}


@router.post("/listings/search", tags=["listings"])
async def search_listings(criteria: SearchCriteria, service: ListingService = Depends(get_service)) -> dict:
    results = await service.advanced_search(criteria)
    return {
        "success": True,
        "data": [_dump(item) for item in results],
        "searchCriteria": {**criteria.model_dump(by_alias=True, exclude_none=True), "state": settings.default_state},
        "count": len(results),
    }


@router.get("/listings/nearby/{latitude}/{longitude}", tags=["listings"])
async def nearby_listings(
    latitude: float,
    longitude: float,
    radius: float = 5,
    limit: int = DEFAULT_NEARBY_LIMIT,
    service: ListingService = Depends(get_service),
) -> dict:
    listings = await service.get_nearby_listings(latitude, longitude, radius, limit)
    return {
        "success": True,
        "data": [_dump(item) for item in listings],
        "location": {"latitude": latitude, "longitude": longitude, "radius": radius, "limit": limit},
        "count": len(listings),
    }


@router.get("/listings/sold/recent", tags=["listings"])
async def sold_listings(
    city: Optional[str] = None,
    min_price: Optional[int] = Query(default=None, alias="minPrice"),
    max_price: Optional[int] = Query(default=None, alias="maxPrice"),
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    days_back: int = Query(default=90, ge=1, alias="daysBack"),
    limit: int = Query(default=20, ge=1, le=100),
    service: ListingService = Depends(get_service),
) -> dict:
    filters = SoldFilters(
        city=city or None,
        min_price=min_price,
        max_price=max_price,
        property_type=property_type or None,
        days_back=days_back,
        limit=limit,
    )
    listings = await service.get_sold_listings(filters)
    return {
        "success": True,
        "data": [_dump(item) for item in listings],
        "filters": filters.model_dump(by_alias=True, exclude_none=True),
        "count": len(listings),
    }


@router.get("/listings/{mls_id}", tags=["listings"])
async def get_listing(mls_id: str, service: ListingService = Depends(get_service)) -> dict:
    listing = await service.get_listing_by_id(mls_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return {"success": True, "data": _dump(listing)}


@router.get("/listings/{mls_id}/photos", tags=["listings"])
async def get_listing_photos(mls_id: str, service: ListingService = Depends(get_service)) -> dict:
    photos = await service.get_listing_photos(mls_id)
    if photos is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return {"success": True, "data": photos}


@router.get("/market/stats", tags=["market"])
async def market_stats(city: Optional[str] = None, service: ListingService = Depends(get_service)) -> dict:
    stats = await service.get_market_stats(city or None)
    return {
        "success": True,
        "data": _dump(stats),
        "location": {"city": city or "All Massachusetts", "state": settings.default_state},
    }


@router.get("/market/cities", tags=["market"])
async def market_cities(service: ListingService = Depends(get_service)) -> dict:
    cities = await service.get_cities()
    return {"success": True, "data": cities, "state": settings.default_state, "count": len(cities)}


@router.get("/market/property-types", tags=["market"])
async def market_property_types(service: ListingService = Depends(get_service)) -> dict:
    return {"success": True, "data": await service.get_property_types()}


@router.get("/market/trends", tags=["market"])
async def market_trends(
    city: Optional[str] = None,
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    period: int = Query(default=90, ge=1),
    service: ListingService = Depends(get_service),
) -> dict:
    trends = await service.get_market_trends(city or None, property_type or None, period)
    return {
        "success": True,
        "data": _dump(trends),
        "parameters": {"city": city or "All Massachusetts", "propertyType": property_type, "period": period},
    }


@router.get("/market/price-distribution", tags=["market"])
async def market_price_distribution(
    city: Optional[str] = None,
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    service: ListingService = Depends(get_service),
) -> dict:
    distribution = await service.get_price_distribution(city or None, property_type or None)
    return {"success": True, "data": _dump(distribution)}


@router.get("/admin/health", tags=["admin"], dependencies=[Depends(require_admin_key)])
async def admin_health(service: ListingService = Depends(get_service)) -> dict:
    return {"success": True, "data": {**_dump(service.health()), "environment": settings.environment}}


@router.get("/admin/cache/stats", tags=["admin"], dependencies=[Depends(require_admin_key)])
async def admin_cache_stats(service: ListingService = Depends(get_service)) -> dict:
    return {"success": True, "data": _dump(service.get_cache_stats())}


@router.post("/admin/cache/clear", tags=["admin"], dependencies=[Depends(require_admin_key)])
async def admin_cache_clear(service: ListingService = Depends(get_service)) -> dict:
    service.clear_cache()
    return {"success": True, "message": "All caches cleared successfully"}


@router.post("/admin/cache/refresh/{cache_type}", tags=["admin"], dependencies=[Depends(require_admin_key)])
async def admin_cache_refresh(cache_type: str, service: ListingService = Depends(get_service)) -> dict:
    try:
        refreshed = await service.refresh_cache(cache_type)
    except InvalidFilter as exc:
        raise HTTPException(status_code=400, detail=exc.errors[0]) from exc
    return {"success": True, "message": f"{cache_type} cache refreshed successfully", "data": _dump(refreshed)}


@router.get("/admin/config", tags=["admin"], dependencies=[Depends(require_admin_key)])
@router.get("/admin/validate/config", tags=["admin"], dependencies=[Depends(require_admin_key)])
async def admin_config(service: ListingService = Depends(get_service)) -> dict:
    return {"success": True, "data": _dump(service.config_report())}
