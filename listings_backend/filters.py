"""Validation, filtering, ordering and aggregate maths over normalized listings."""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidFilter
from .models import (
    Listing,
    ListingFilters,
    MarketStats,
    MarketTrends,
    Pagination,
    PROPERTY_TYPES,
    PriceBand,
    PriceDistribution,
    PriceRange,
    SearchCriteria,
)
from .normalizer import PROPERTY_TYPE_CODES


MAX_ROOMS = 20
MAX_PAGE_SIZE = 100
MILES_PER_DEGREE = 69.0

# Approximate Massachusetts bounding box
MA_LAT_BOUNDS = (41.2, 42.9)
MA_LNG_BOUNDS = (-73.5, -69.9)

SORT_KEYS: Dict[str, Tuple[Callable[[Listing], float], bool]] = {
    "price-asc": (lambda item: item.price, False),
    "price-desc": (lambda item: item.price, True),
    "newest": (lambda item: item.days_on_market, False),
    "bedrooms": (lambda item: item.bedrooms, True),
    "bathrooms": (lambda item: item.bathrooms, True),
    "sqft": (lambda item: item.sqft, True),
}
DEFAULT_SORT = "newest"

PRICE_BANDS: Sequence[Tuple[int, Optional[int], str]] = (
    (0, 300_000, "Under $300K"),
    (300_000, 500_000, "$300K - $500K"),
    (500_000, 750_000, "$500K - $750K"),
    (750_000, 1_000_000, "$750K - $1M"),
    (1_000_000, 1_500_000, "$1M - $1.5M"),
    (1_500_000, 2_000_000, "$1.5M - $2M"),
    (2_000_000, None, "Over $2M"),
)


def is_valid_city(city: Optional[str], valid_cities: Iterable[str]) -> bool:
    if not city:
        return True
    wanted = city.strip().lower()
    return any(candidate.lower() == wanted for candidate in valid_cities)


def _range_error(low, high, message: str, errors: List[str]) -> None:
    if low is not None and high is not None and low > high:
        errors.append(message)


def validate_filters(filters: ListingFilters, valid_cities: Iterable[str]) -> None:
    """Raise ``InvalidFilter`` listing every rule the filters violate."""
    errors: List[str] = []
    _range_error(filters.min_price, filters.max_price, "Minimum price cannot be greater than maximum price", errors)
    _range_error(filters.min_sqft, filters.max_sqft, "Minimum square footage cannot be greater than maximum square footage", errors)
    if filters.bedrooms is not None and not 0 <= filters.bedrooms <= MAX_ROOMS:
        errors.append(f"Bedrooms must be a number between 0 and {MAX_ROOMS}")
    if filters.bathrooms is not None and not 0 <= filters.bathrooms <= MAX_ROOMS:
        errors.append(f"Bathrooms must be a number between 0 and {MAX_ROOMS}")
    property_type_error = _property_type_error(filters.property_type)
    if property_type_error:
        errors.append(property_type_error)
    if filters.sort is not None and filters.sort not in SORT_KEYS:
        errors.append(f"Sort must be one of: {', '.join(SORT_KEYS)}")
    if filters.page < 1:
        errors.append("Page must be 1 or greater")
    if not 1 <= filters.limit <= MAX_PAGE_SIZE:
        errors.append(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    if isinstance(filters, SearchCriteria):
        _range_error(filters.min_year_built, filters.max_year_built, "Minimum year built cannot be greater than maximum year built", errors)
        _range_error(filters.min_lot_size, filters.max_lot_size, "Minimum lot size cannot be greater than maximum lot size", errors)
    if not is_valid_city(filters.city, valid_cities):
        errors.append("Invalid Massachusetts city")
    if errors:
        raise InvalidFilter(errors)


def validate_city(city: Optional[str], valid_cities: Iterable[str]) -> None:
    if not is_valid_city(city, valid_cities):
        raise InvalidFilter(["Invalid Massachusetts city"])


def validate_price_range(min_price: Optional[int], max_price: Optional[int]) -> None:
    errors: List[str] = []
    _range_error(min_price, max_price, "Minimum price cannot be greater than maximum price", errors)
    if errors:
        raise InvalidFilter(errors)


def validate_coordinates(lat: float, lng: float, radius: float, limit: Optional[int] = None) -> None:
    errors: List[str] = []
    if not (MA_LAT_BOUNDS[0] <= lat <= MA_LAT_BOUNDS[1] and MA_LNG_BOUNDS[0] <= lng <= MA_LNG_BOUNDS[1]):
        errors.append("Coordinates must be within Massachusetts")
    if radius <= 0:
        errors.append("Radius must be greater than 0")
    if limit is not None and not 1 <= limit <= MAX_PAGE_SIZE:
        errors.append(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    if errors:
        raise InvalidFilter(errors)


def canonical_property_type(value: Optional[str]) -> Optional[str]:
    """Accept either a site category ('condos') or an upstream code ('cnd'); ``None`` for anything else."""
    if not value:
        return None
    lowered = value.strip().lower()
    if lowered in PROPERTY_TYPE_CODES:
        return PROPERTY_TYPE_CODES[lowered]
    if lowered in PROPERTY_TYPES:
        return lowered
    return None


def _property_type_error(value: Optional[str]) -> Optional[str]:
    if value and canonical_property_type(value) is None:
        return f"Property type must be one of: {', '.join(PROPERTY_TYPES)}"
    return None


def validate_property_type(value: Optional[str]) -> None:
    error = _property_type_error(value)
    if error:
        raise InvalidFilter([error])


def _matches(listing: Listing, filters: ListingFilters) -> bool:
    if filters.city and (listing.city or "").lower() != filters.city.strip().lower():
        return False
    if filters.min_price is not None and listing.price < filters.min_price:
        return False
    if filters.max_price is not None and listing.price > filters.max_price:
        return False
    if filters.bedrooms and listing.bedrooms < filters.bedrooms:
        return False
    if filters.bathrooms and listing.bathrooms < filters.bathrooms:
        return False
    if filters.min_sqft is not None and listing.sqft < filters.min_sqft:
        return False
    if filters.max_sqft is not None and listing.sqft > filters.max_sqft:
        return False
    wanted_type = canonical_property_type(filters.property_type)
    if wanted_type and listing.property_type != wanted_type:
        return False
    if filters.status and listing.status != filters.status:
        return False
    return True


def _between(value, low, high) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def _matches_search(listing: Listing, criteria: SearchCriteria) -> bool:
    if not _matches(listing, criteria):
        return False
    if criteria.keywords:
        haystack = f"{listing.address} {listing.description}".lower()
        if not all(word in haystack for word in criteria.keywords.lower().split()):
            return False
    if criteria.zip_code and (listing.zip_code or "") != criteria.zip_code.strip():
        return False
    if not _between(listing.year_built, criteria.min_year_built, criteria.max_year_built):
        return False
    if not _between(listing.lot_size, criteria.min_lot_size, criteria.max_lot_size):
        return False
    if criteria.has_pool and not listing.features.pool:
        return False
    if criteria.has_garage and not listing.features.garage:
        return False
    if criteria.waterfront and not listing.features.waterfront:
        return False
    return True


def filter_listings(listings: Iterable[Listing], filters: ListingFilters) -> List[Listing]:
    """Linear scan keeping listings that satisfy every given criterion."""
    predicate = _matches_search if isinstance(filters, SearchCriteria) else _matches
    return [listing for listing in listings if predicate(listing, filters)]


def sort_listings(
    listings: Iterable[Listing],
    sort: Optional[str] = None,
    pinned_agent_id: Optional[str] = None,
) -> List[Listing]:
    """Order by the requested key, then move the pinned agent's listings to the front.

    Both passes are stable, so ties and non-pinned listings keep their relative order.
    """
    key, reverse = SORT_KEYS[sort or DEFAULT_SORT]
    ordered = sorted(listings, key=key, reverse=reverse)
    if pinned_agent_id:
        ordered.sort(key=lambda item: item.agent_id != pinned_agent_id)
    return ordered


def dedupe_by_mls(listings: Iterable[Listing]) -> List[Listing]:
    seen = set()
    unique: List[Listing] = []
    for listing in listings:
        if listing.mls_number in seen:
            continue
        seen.add(listing.mls_number)
        unique.append(listing)
    return unique


def paginate(listings: Sequence[Listing], page: int, limit: int) -> Tuple[List[Listing], Pagination]:
    total = len(listings)
    start = (page - 1) * limit
    pagination = Pagination(
        current_page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
        total_items=total,
        items_per_page=limit,
    )
    return list(listings[start:start + limit]), pagination


def planar_distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Flat-earth distance; good enough inside one state."""
    return math.hypot(lat1 - lat2, lng1 - lng2) * MILES_PER_DEGREE


def within_radius(
    listings: Iterable[Listing],
    lat: float,
    lng: float,
    radius: float,
    limit: Optional[int] = None,
) -> List[Listing]:
    """Listings inside ``radius`` miles, nearest first and at most ``limit`` of them, each with ``distance`` set."""
    nearby: List[Listing] = []
    for listing in listings:
        distance = planar_distance_miles(listing.lat, listing.lng, lat, lng)
        if distance <= radius:
            nearby.append(listing.model_copy(update={"distance": round(distance, 1)}))
    nearby.sort(key=lambda item: item.distance)
    return nearby if limit is None else nearby[:limit]


def _median(sorted_values: Sequence[int]) -> int:
    return sorted_values[len(sorted_values) // 2] if sorted_values else 0


def compute_market_stats(listings: Sequence[Listing], city: Optional[str] = None) -> MarketStats:
    prices = sorted(listing.price for listing in listings if listing.price > 0)
    label = city or "Massachusetts"
    if not prices:
        return MarketStats(total_listings=len(listings), city=label)
    return MarketStats(
        total_listings=len(listings),
        average_price=round(sum(prices) / len(prices)),
        median_price=_median(prices),
        price_range=PriceRange(min=prices[0], max=prices[-1]),
        average_days_on_market=round(sum(item.days_on_market for item in listings) / len(listings)),
        city=label,
    )


def compute_price_distribution(listings: Sequence[Listing]) -> PriceDistribution:
    prices = sorted(listing.price for listing in listings if listing.price > 0)
    if not prices:
        return PriceDistribution()
    bands = []
    for low, high, label in PRICE_BANDS:
        count = sum(1 for price in prices if price >= low and (high is None or price < high))
        bands.append(PriceBand(min=low, max=high, label=label, count=count, percentage=round(count / len(prices) * 100)))
    return PriceDistribution(
        ranges=bands,
        total_listings=len(prices),
        average_price=round(sum(prices) / len(prices)),
        median_price=_median(prices),
    )


def compute_market_trends(sold: Sequence[Listing]) -> MarketTrends:
    prices = sorted((item.sold_price or item.price) for item in sold if (item.sold_price or item.price) > 0)
    if not prices:
        return MarketTrends(total_sales=len(sold))
    days = [item.days_on_market for item in sold if item.days_on_market > 0]
    per_sqft = [item.price_per_sqft for item in sold if item.price_per_sqft]
    return MarketTrends(
        average_price=round(sum(prices) / len(prices)),
        median_price=_median(prices),
        average_days_on_market=round(sum(days) / len(days)) if days else 0,
        total_sales=len(sold),
        price_per_sqft=round(sum(per_sqft) / len(per_sqft)) if per_sqft else 0,
        price_range=PriceRange(min=prices[0], max=prices[-1]),
    )
