from __future__ import annotations

from typing import Any, Dict, List, Optional

from .base import BaseListingClient, RawRecord, extract_records, property_type_code
from ..models import ListingFilters, SearchCriteria, SoldFilters


class MlsApiClient(BaseListingClient):
    """Client for the MLS PIN relay API.

    The relay serves ``/listings`` and ``/listings/{id}``; each record carries a
    ``listing_key`` and the legacy MLS PIN fields (``LIST_PRICE``, ``STREET_NO``)
    under ``data`` or ``_raw_data``. It has no sold, nearby or reference endpoints,
    so those are answered from ``/listings`` or from configuration.
    """

    name = "mls_api"

    def __init__(self, http_client, caches, settings) -> None:
        super().__init__(http_client, caches, settings)
        self.base_url = settings.mls_api_url
        self.timeout_seconds = settings.mls_api_timeout_seconds

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _query(self, filters: ListingFilters, limit: Optional[int] = None) -> Dict[str, Any]:
        return {
            "city": filters.city,
            "min_price": filters.min_price,
            "max_price": filters.max_price,
            "property_type": property_type_code(filters.property_type),
            "bedrooms": filters.bedrooms,
            "bathrooms": filters.bathrooms,
            "limit": limit or self.settings.mls_api_page_size,
        }

    async def get_listings(self, filters: ListingFilters) -> List[RawRecord]:
        data = await self._request("/listings", self._query(filters))
        return extract_records(data)

    async def get_listing_by_id(self, listing_id: str) -> Optional[RawRecord]:
        data = await self._request(f"/listings/{listing_id}", allow_missing=True)
        if isinstance(data, dict) and data:
            return data
        return None

    async def get_featured_listings(self) -> List[RawRecord]:
        data = await self._request("/listings", {"limit": self.settings.featured_count * 2})
        return extract_records(data)

    async def advanced_search(self, criteria: SearchCriteria) -> List[RawRecord]:
        params = self._query(criteria, limit=criteria.limit)
        params["zip_code"] = criteria.zip_code
        data = await self._request("/listings", params)
        return extract_records(data)

    async def get_nearby_listings(self, lat: float, lng: float, radius: float) -> List[RawRecord]:
        # No geo search upstream; the caller narrows by distance.
        data = await self._request("/listings", {"limit": self.settings.mls_api_page_size})
        return extract_records(data)

    async def get_sold_listings(self, filters: SoldFilters) -> List[RawRecord]:
        params = {
            "city": filters.city,
            "min_price": filters.min_price,
            "max_price": filters.max_price,
            "property_type": property_type_code(filters.property_type),
            "status": "sold",
            "limit": filters.limit,
        }
        data = await self._request("/listings", params)
        return extract_records(data)

    async def get_cities(self) -> List[str]:
        return sorted(self.settings.get_valid_cities())
