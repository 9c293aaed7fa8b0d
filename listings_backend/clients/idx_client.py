from __future__ import annotations

from typing import Any, Dict, List, Optional

from .base import BaseListingClient, RawRecord, extract_records, property_type_code
from ..models import ListingFilters, SearchCriteria, SoldFilters


class IdxBrokerClient(BaseListingClient):
    """IDX Broker partner API client.

    Description:
    - Authenticates with the ``accesskey`` header plus the partner ``key`` query parameter
    - Search parameters use IDX's short names (``lp``/``hp`` price range, ``pt`` type code, ``st`` state)
    - Records come back in RESO-style PascalCase (``ListPrice``, ``StreetName``)
    """

    name = "idx"

    def __init__(self, http_client, caches, settings) -> None:
        super().__init__(http_client, caches, settings)
        self.base_url = settings.idx_api_url
        self.timeout_seconds = settings.idx_timeout_seconds

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "accesskey": self.settings.idx_api_key or "",
            "outputtype": "json",
        }

    def _auth_params(self) -> Dict[str, Any]:
        return {"key": self.settings.idx_partner_key}

    def _search_params(self, filters: ListingFilters) -> Dict[str, Any]:
        return {
            "pt": property_type_code(filters.property_type),
            "lp": filters.min_price,
            "hp": filters.max_price,
            "bd": filters.bedrooms,
            "ba": filters.bathrooms,
            "sqft": filters.min_sqft,
            "sqftmax": filters.max_sqft,
            "ccz": "city" if filters.city else None,
            "city": filters.city,
            "st": self.settings.default_state,
        }

    async def get_listings(self, filters: ListingFilters) -> List[RawRecord]:
        data = await self._request("/clients/search", self._search_params(filters))
        return extract_records(data)

    async def get_listing_by_id(self, listing_id: str) -> Optional[RawRecord]:
        data = await self._request(f"/clients/listing/{listing_id}", allow_missing=True)
        if isinstance(data, dict) and data:
            return data
        return None

    async def get_featured_listings(self) -> List[RawRecord]:
        data = await self._request("/clients/search", {"st": self.settings.default_state})
        return extract_records(data)

    async def advanced_search(self, criteria: SearchCriteria) -> List[RawRecord]:
        params = self._search_params(criteria)
        params.update(
            {
                "q": criteria.keywords,
                "zipcode": criteria.zip_code,
                "yb": criteria.min_year_built,
                "ybmax": criteria.max_year_built,
                "acres": criteria.min_lot_size,
                "acresmax": criteria.max_lot_size,
                "pool": "Y" if criteria.has_pool else None,
                "garage": "Y" if criteria.has_garage else None,
                "waterfront": "Y" if criteria.waterfront else None,
            }
        )
        data = await self._request("/clients/search", params)
        return extract_records(data)

    async def get_nearby_listings(self, lat: float, lng: float, radius: float) -> List[RawRecord]:
        params = {"lat": lat, "lng": lng, "radius": radius, "st": self.settings.default_state}
        data = await self._request("/clients/nearby", params)
        return extract_records(data)

    async def get_sold_listings(self, filters: SoldFilters) -> List[RawRecord]:
        params = {
            "pt": property_type_code(filters.property_type),
            "lp": filters.min_price,
            "hp": filters.max_price,
            "ccz": "city" if filters.city else None,
            "city": filters.city,
            "st": self.settings.default_state,
            "status": "sold",
            "daysback": filters.days_back,
        }
        data = await self._request("/clients/sold", params)
        return extract_records(data)

    async def get_cities(self) -> List[str]:
        data = await self._request("/clients/cities", {"st": self.settings.default_state}, cache=self.caches.reference)
        items = data.values() if isinstance(data, dict) else (data or [])
        cities: List[str] = []
        for item in items:
            name = item.get("cityName") or item.get("name") if isinstance(item, dict) else item
            if name and str(name) not in cities:
                cities.append(str(name))
        return sorted(cities)

    async def get_property_types(self) -> Dict[str, str]:
        data = await self._request("/clients/propertytypes", cache=self.caches.reference)
        if isinstance(data, dict) and data:
            return {str(code): str(label) for code, label in data.items() if not isinstance(label, (dict, list))}
        if isinstance(data, list):
            mapped = {}
            for item in data:
                if isinstance(item, dict) and item.get("mlsPtID") and item.get("mlsPropertyType"):
                    mapped[str(item["mlsPtID"])] = str(item["mlsPropertyType"])
            if mapped:
                return mapped
        return await super().get_property_types()
