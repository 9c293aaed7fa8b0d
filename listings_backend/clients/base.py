from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..cache import MISS, CacheRegistry, TTLCache, generate_cache_key
from ..errors import UpstreamUnreachable
from ..filters import compute_market_stats
from ..models import ListingFilters, MarketStats, SearchCriteria, SoldFilters
from ..normalizer import normalize_listings

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]

PROPERTY_TYPE_LABELS: Dict[str, str] = {
    "sfr": "Single Family Residential",
    "cnd": "Condominium",
    "twn": "Townhouse",
    "mfr": "Multi-Family",
    "lnd": "Land",
    "com": "Commercial",
}

# Site category -> upstream property type code
PROPERTY_TYPE_TO_CODE: Dict[str, str] = {
    "houses": "sfr",
    "condos": "cnd",
    "townhomes": "twn",
    "multi-family": "mfr",
}

_TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError)


def strip_empty(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop parameters that were not given, so an absent filter never reaches the upstream."""
    return {key: value for key, value in params.items() if value is not None and value != "" and value is not False}


def extract_records(data: Any) -> List[RawRecord]:
    """Pull the list of listing records out of whatever envelope the upstream used."""
    if isinstance(data, dict):
        for key in ("data", "results", "listings", "items"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            # IDX keys some payloads by listing id
            data = [value for value in data.values() if isinstance(value, dict)]
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def property_type_code(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    lowered = value.strip().lower()
    if lowered in PROPERTY_TYPE_LABELS:
        return lowered
    return PROPERTY_TYPE_TO_CODE.get(lowered)


class BaseListingClient(ABC):
    """Abstract client defining the interface for listing data providers.

    Read operations return raw upstream records; normalization is the caller's
    job. ``get_listing_by_id`` returns ``None`` for a listing the upstream
    confirms does not exist and every other failure raises ``UpstreamUnreachable``.
    """

    name: str = "base"
    base_url: Optional[str] = None
    timeout_seconds: float = 10.0

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient],
        caches: CacheRegistry,
        settings: Any,
    ) -> None:
        self.http = http_client
        self.caches = caches
        self.settings = settings

    @abstractmethod
    async def get_listings(self, filters: ListingFilters) -> List[RawRecord]:
        """Return raw records matching the filters (unpaginated)."""
        raise NotImplementedError

    @abstractmethod
    async def get_listing_by_id(self, listing_id: str) -> Optional[RawRecord]:
        raise NotImplementedError

    @abstractmethod
    async def get_featured_listings(self) -> List[RawRecord]:
        """Return records of an unfiltered query in the upstream's own order."""
        raise NotImplementedError

    @abstractmethod
    async def advanced_search(self, criteria: SearchCriteria) -> List[RawRecord]:
        raise NotImplementedError

    @abstractmethod
    async def get_nearby_listings(self, lat: float, lng: float, radius: float) -> List[RawRecord]:
        raise NotImplementedError

    @abstractmethod
    async def get_sold_listings(self, filters: SoldFilters) -> List[RawRecord]:
        raise NotImplementedError

    @abstractmethod
    async def get_cities(self) -> List[str]:
        raise NotImplementedError

    async def get_property_types(self) -> Dict[str, str]:
        return dict(PROPERTY_TYPE_LABELS)

    async def get_market_stats(self, city: Optional[str] = None) -> MarketStats:
        key = generate_cache_key(f"{self.name}:market_stats", {"city": city})
        cached = self.caches.stats.get(key)
        if cached is not MISS:
            return cached
        records = await self.get_listings(ListingFilters(city=city))
        listings = normalize_listings(records, settings=self.settings)
        if city:
            listings = [item for item in listings if (item.city or "").lower() == city.lower()]
        stats = compute_market_stats(listings, city)
        self.caches.stats.set(key, stats)
        return stats

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}{endpoint}"

    def _headers(self) -> Dict[str, str]:
        return {}

    def _auth_params(self) -> Dict[str, Any]:
        return {}

    async def _get_with_retries(self, url: str, **kwargs: Any) -> httpx.Response:
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.settings.upstream_max_attempts)),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        ):
            with attempt:
                return await self.http.get(url, **kwargs)
        raise RuntimeError("Unreachable")

    async def _request(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        cache: Optional[TTLCache] = None,
        allow_missing: bool = False,
    ) -> Any:
        """GET ``endpoint`` through ``cache``; ``None`` on a 404 when ``allow_missing``."""
        params = strip_empty(params or {})
        cache = cache if cache is not None else self.caches.listings
        key = generate_cache_key(f"{self.name}:{endpoint}", params)
        cached = cache.get(key)
        if cached is not MISS:
            logger.debug(f"Cache hit for {self.name} {endpoint}")
            return cached

        if self.http is None:
            raise UpstreamUnreachable(self.name, "HTTP client not initialized")
        if not self.base_url:
            raise UpstreamUnreachable(self.name, "no base URL configured")

        logger.debug(f"Requesting {self.name} {endpoint} with {params}")
        try:
            response = await self._get_with_retries(
                self._url(endpoint),
                params={**params, **self._auth_params()},
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamUnreachable(self.name, f"timed out after {self.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnreachable(self.name, f"request failed: {exc!s}") from exc

        if response.status_code == 404 and allow_missing:
            return None
        if not response.is_success:
            raise UpstreamUnreachable(self.name, f"HTTP {response.status_code}", status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamUnreachable(self.name, "response was not valid JSON") from exc

        cache.set(key, data)
        return data
