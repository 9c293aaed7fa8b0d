"""Aggregation service: the single entry point the API layer talks to.

Every read walks the same chain: each configured upstream in order, then the
mock client. An upstream failure (``UpstreamUnreachable``) is logged and the
next source is tried, so callers always get data. A confirmed missing listing
stops the chain and comes back as ``None``. Filters are validated before any
source is called.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from .cache import CacheRegistry
from .clients.base import BaseListingClient
from .clients.idx_client import IdxBrokerClient
from .clients.mls_api_client import MlsApiClient
from .clients.mock_client import MockListingClient
from .errors import InvalidFilter, UpstreamUnreachable
from .filters import (
    compute_market_trends,
    compute_price_distribution,
    dedupe_by_mls,
    filter_listings,
    paginate,
    sort_listings,
    validate_city,
    validate_coordinates,
    validate_filters,
    validate_price_range,
    validate_property_type,
    within_radius,
)
from .models import (
    CacheRefresh,
    CacheStats,
    ConfigOverall,
    ConfigReport,
    HealthStatus,
    Listing,
    ListingFilters,
    ListingPage,
    MarketStats,
    MarketTrends,
    PriceDistribution,
    SearchCriteria,
    SoldFilters,
    UpstreamConfig,
)
from .normalizer import normalize_listing, normalize_listings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_NEARBY_LIMIT = 10
REFRESHABLE_CACHES = ("cities", "property-types", "featured")


class ListingService:
    def __init__(
        self,
        sources: Sequence[BaseListingClient],
        fallback: MockListingClient,
        caches: CacheRegistry,
        settings: Any,
    ) -> None:
        self.sources = list(sources)
        self.fallback = fallback
        self.caches = caches
        self.settings = settings

    @property
    def provider(self) -> str:
        return self.sources[0].name if self.sources else self.fallback.name

    async def _call(self, operation: str, call: Callable[[BaseListingClient], Awaitable[T]]) -> T:
        for source in self.sources:
            try:
                return await call(source)
            except UpstreamUnreachable as exc:
                logger.warning(f"{operation}: {source.name} unavailable ({exc.reason}), falling back")
        return await call(self.fallback)

    def _normalize(self, records: Any) -> List[Listing]:
        return normalize_listings(records, settings=self.settings)

    async def get_listings(self, filters: Optional[ListingFilters] = None) -> ListingPage:
        filters = filters or ListingFilters()
        validate_filters(filters, self.settings.get_valid_cities())
        records = await self._call("get_listings", lambda source: source.get_listings(filters))
        listings = filter_listings(self._normalize(records), filters)
        listings = sort_listings(listings, filters.sort, self.settings.pinned_agent_id)
        items, pagination = paginate(listings, filters.page, filters.limit)
        return ListingPage(items=items, pagination=pagination)

    async def get_listing_by_id(self, listing_id: str) -> Optional[Listing]:
        if not listing_id:
            return None
        record = await self._call("get_listing_by_id", lambda source: source.get_listing_by_id(listing_id))
        if record is None:
            return None
        return normalize_listing(record, settings=self.settings)

    async def get_listing_photos(self, listing_id: str) -> Optional[List[str]]:
        listing = await self.get_listing_by_id(listing_id)
        return listing.images if listing else None

    async def get_featured_listings(self) -> List[Listing]:
        records = await self._call("get_featured_listings", lambda source: source.get_featured_listings())
        return dedupe_by_mls(self._normalize(records))[: self.settings.featured_count]

    async def advanced_search(self, criteria: SearchCriteria) -> List[Listing]:
        validate_filters(criteria, self.settings.get_valid_cities())
        records = await self._call("advanced_search", lambda source: source.advanced_search(criteria))
        listings = filter_listings(self._normalize(records), criteria)
        listings = sort_listings(listings, criteria.sort, self.settings.pinned_agent_id)
        return listings[: criteria.limit]

    async def get_nearby_listings(
        self,
        lat: float,
        lng: float,
        radius_miles: float = 5,
        limit: int = DEFAULT_NEARBY_LIMIT,
    ) -> List[Listing]:
        validate_coordinates(lat, lng, radius_miles, limit)
        records = await self._call(
            "get_nearby_listings", lambda source: source.get_nearby_listings(lat, lng, radius_miles)
        )
        return within_radius(self._normalize(records), lat, lng, radius_miles, limit)

    async def get_sold_listings(self, filters: Optional[SoldFilters] = None) -> List[Listing]:
        filters = filters or SoldFilters()
        validate_price_range(filters.min_price, filters.max_price)
        validate_property_type(filters.property_type)
        validate_city(filters.city, self.settings.get_valid_cities())
        records = await self._call("get_sold_listings", lambda source: source.get_sold_listings(filters))
        listings = [
            listing.model_copy(update={"status": "sold"}) if listing.status != "sold" else listing
            for listing in self._normalize(records)
        ]
        return listings[: filters.limit]

    async def get_cities(self) -> List[str]:
        return await self._call("get_cities", lambda source: source.get_cities())

    async def get_property_types(self) -> Dict[str, str]:
        return await self._call("get_property_types", lambda source: source.get_property_types())

    async def get_market_stats(self, city: Optional[str] = None) -> MarketStats:
        validate_city(city, self.settings.get_valid_cities())
        return await self._call("get_market_stats", lambda source: source.get_market_stats(city))

    async def get_market_trends(
        self,
        city: Optional[str] = None,
        property_type: Optional[str] = None,
        period_days: int = 90,
    ) -> MarketTrends:
        sold = await self.get_sold_listings(
            SoldFilters(city=city, property_type=property_type, days_back=period_days, limit=1000)
        )
        return compute_market_trends(sold)

    async def get_price_distribution(
        self,
        city: Optional[str] = None,
        property_type: Optional[str] = None,
    ) -> PriceDistribution:
        filters = ListingFilters(city=city, property_type=property_type, limit=100)
        validate_filters(filters, self.settings.get_valid_cities())
        records = await self._call("get_price_distribution", lambda source: source.get_listings(filters))
        return compute_price_distribution(filter_listings(self._normalize(records), filters))

    def clear_cache(self) -> None:
        self.caches.clear()
        logger.info("All listing caches cleared")

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(**self.caches.stats_snapshot())

    async def refresh_cache(self, kind: str) -> CacheRefresh:
        """Drop the cache holding ``kind`` and fetch it again through the source chain."""
        if kind not in REFRESHABLE_CACHES:
            raise InvalidFilter([f"Invalid cache type. Valid types: {', '.join(REFRESHABLE_CACHES)}"])
        if kind == "featured":
            self.caches.listings.clear()
            result: Any = await self.get_featured_listings()
        elif kind == "cities":
            self.caches.reference.clear()
            result = await self.get_cities()
        else:
            self.caches.reference.clear()
            result = await self.get_property_types()
        logger.info(f"Refreshed {kind} cache with {len(result)} items")
        return CacheRefresh(type=kind, item_count=len(result), timestamp=datetime.now(timezone.utc).isoformat())

    def config_report(self) -> ConfigReport:
        settings = self.settings
        idx = UpstreamConfig(
            base_url=settings.idx_api_url,
            has_api_key=bool(settings.idx_api_key),
            has_partner_key=bool(settings.idx_partner_key),
            configured=settings.idx_configured,
        )
        mls_api = UpstreamConfig(base_url=settings.mls_api_url, configured=settings.mls_api_configured)
        warnings: List[str] = []
        if not idx.configured:
            warnings.append("IDX API credentials not configured")
        if not mls_api.configured:
            warnings.append("MLS API URL not configured")
        if not self.sources:
            warnings.append("Serving mock listings only")
        return ConfigReport(
            environment=settings.environment,
            data_provider=settings.data_provider,
            sources=[source.name for source in self.sources] + [self.fallback.name],
            idx=idx,
            mls_api=mls_api,
            cache=self.get_cache_stats(),
            overall=ConfigOverall(
                valid=idx.configured or mls_api.configured,
                ready=bool(self.sources),
                warnings=warnings,
            ),
        )

    def health(self) -> HealthStatus:
        return HealthStatus(
            status="ok",
            provider=self.provider,
            sources=[source.name for source in self.sources] + [self.fallback.name],
            cache=self.caches.stats_snapshot(),
        )


def select_sources(
    http_client: Optional[httpx.AsyncClient],
    caches: CacheRegistry,
    settings: Any,
) -> List[BaseListingClient]:
    """Upstream clients to try, in order, according to ``settings.data_provider``."""
    provider = settings.data_provider.lower()
    if provider == "mock":
        return []

    available: Dict[str, BaseListingClient] = {}
    if settings.idx_configured:
        available["idx"] = IdxBrokerClient(http_client, caches, settings)
    if settings.mls_api_configured:
        available["mls_api"] = MlsApiClient(http_client, caches, settings)

    if provider in available:
        primary = available.pop(provider)
        return [primary] + list(available.values())
    if provider not in ("auto", "idx", "mls_api"):
        logger.warning(f"Unknown data provider '{settings.data_provider}', using configured upstreams")
    elif provider != "auto":
        logger.warning(f"Data provider '{provider}' is not configured, using configured upstreams")
    return list(available.values())


def build_listing_service(
    http_client: Optional[httpx.AsyncClient],
    settings: Any,
    caches: Optional[CacheRegistry] = None,
) -> ListingService:
    caches = caches or CacheRegistry.from_settings(settings)
    sources = select_sources(http_client, caches, settings)
    fallback = MockListingClient(caches, settings)
    service = ListingService(sources, fallback, caches, settings)
    chain = " -> ".join([source.name for source in sources] + [fallback.name])
    logger.info(f"Listing sources: {chain}")
    return service
