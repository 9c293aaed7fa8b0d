"""Pytest fixtures."""

from typing import Any, Dict, List, Optional

import pytest

from listings_backend.cache import CacheRegistry
from listings_backend.clients.base import BaseListingClient
from listings_backend.clients.mock_client import MockListingClient
from listings_backend.config import Settings
from listings_backend.errors import UpstreamUnreachable
from listings_backend.models import Listing
from listings_backend.service import ListingService


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        data_provider="auto",
        idx_api_key=None,
        idx_partner_key=None,
        mls_api_url=None,
        pinned_agent_id="PIN",
        featured_count=6,
        photo_count=5,
        mock_listing_count=60,
    )


@pytest.fixture
def caches(test_settings) -> CacheRegistry:
    return CacheRegistry.from_settings(test_settings)


@pytest.fixture
def mock_client(caches, test_settings) -> MockListingClient:
    return MockListingClient(caches, test_settings)


class StubClient(BaseListingClient):
    """Upstream stand-in serving fixed raw records, or failing on every call."""

    name = "stub"

    def __init__(self, caches, settings, records: Optional[List[Dict[str, Any]]] = None, fail: bool = False) -> None:
        super().__init__(None, caches, settings)
        self.records = records or []
        self.fail = fail
        self.calls: List[str] = []

    def _serve(self, operation: str):
        self.calls.append(operation)
        if self.fail:
            raise UpstreamUnreachable(self.name, "connection refused")
        return list(self.records)

    async def get_listings(self, filters):
        return self._serve("get_listings")

    async def get_listing_by_id(self, listing_id):
        for record in self._serve("get_listing_by_id"):
            if record.get("mlsNumber") == listing_id:
                return record
        return None

    async def get_featured_listings(self):
        return self._serve("get_featured_listings")

    async def advanced_search(self, criteria):
        return self._serve("advanced_search")

    async def get_nearby_listings(self, lat, lng, radius):
        return self._serve("get_nearby_listings")

    async def get_sold_listings(self, filters):
        return self._serve("get_sold_listings")

    async def get_cities(self):
        self._serve("get_cities")
        return ["Boston", "Dracut"]


@pytest.fixture
def make_stub(caches, test_settings):
    def factory(records=None, fail=False) -> StubClient:
        return StubClient(caches, test_settings, records=records, fail=fail)

    return factory


@pytest.fixture
def make_service(caches, test_settings, mock_client):
    def factory(*sources) -> ListingService:
        return ListingService(list(sources), mock_client, caches, test_settings)

    return factory


def build_listing(listing_id: str, **overrides: Any) -> Listing:
    fields = {
        "id": listing_id,
        "mls_number": listing_id,
        "price": 400000,
        "address": f"{listing_id} Main Street, Dracut, MA 01826",
        "city": "Dracut",
        "bedrooms": 3,
        "bathrooms": 2,
        "sqft": 1500,
        "images": ["https://example.com/photo.jpg"],
        "lat": 42.6667,
        "lng": -71.3020,
        "description": "Sample listing.",
    }
    fields.update(overrides)
    return Listing(**fields)


def raw_record(mls_number: str, **overrides: Any) -> Dict[str, Any]:
    record = {
        "mlsNumber": mls_number,
        "listPrice": 450000,
        "address": "12 Pine Road",
        "cityName": "Dracut",
        "zipcode": "01826",
        "propType": "Single Family Residential",
        "bedrooms": 3,
        "totalBaths": 2,
        "sqFt": 1600,
        "latitude": 42.67,
        "longitude": -71.30,
    }
    record.update(overrides)
    return record
