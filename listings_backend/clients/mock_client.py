from __future__ import annotations

import math
import random
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .base import BaseListingClient, RawRecord
from ..cache import CacheRegistry
from ..filters import canonical_property_type
from ..models import ListingFilters, SearchCriteria, SoldFilters


PROPERTY_TYPES = {
    "houses": "Single Family Residential",
    "condos": "Condominium",
    "townhomes": "Townhouse",
    "multi-family": "Multi-Family",
}
AGENTS = [
    ("CN100231", "John Smith"),
    ("CN100487", "Mary Wilson"),
    ("CN101102", "David Brown"),
    ("CN101530", "Jennifer Davis"),
    ("CN102264", "Robert Miller"),
]
OFFICES = ["Century 21", "RE/MAX", "Coldwell Banker", "Keller Williams", "Berkshire Hathaway"]
STREETS = ["Main", "Oak", "Elm", "Pine", "Maple"]
STREET_SUFFIXES = ["Street", "Avenue", "Road", "Lane", "Drive"]
COUNTIES = ["Middlesex", "Essex", "Worcester", "Norfolk", "Plymouth"]
SUBDIVISION_PREFIXES = ["Meadow", "Highland", "River", "Park", "Garden"]
SUBDIVISION_SUFFIXES = ["Brook", "View", "Ridge", "Commons", "Estates"]

SEED_LISTINGS: List[RawRecord] = [
    {
        "mlsNumber": "MA001234",
        "listPrice": 485000,
        "address": "123 Main Street",
        "cityName": "Dracut",
        "state": "MA",
        "zipcode": "01826",
        "countyName": "Middlesex",
        "propType": "Single Family Residential",
        "bedrooms": 3,
        "totalBaths": 2,
        "halfBaths": 1,
        "sqFt": 1850,
        "acres": 0.25,
        "yearBuilt": 2015,
        "stories": 2,
        "propStatus": "Active",
        "subdivision": "Meadowbrook Estates",
        "remarksConcat": "Beautiful colonial home with modern updates, granite countertops, hardwood floors throughout.",
        "garage": 2,
        "pool": False,
        "waterfront": False,
        "fireplaces": 1,
        "latitude": 42.6667,
        "longitude": -71.3162,
        "listingAgent": "Sarah Johnson",
        "listingOffice": "Century 21 Dracut",
    },
    {
        "mlsNumber": "MA001235",
        "listPrice": 325000,
        "address": "456 Oak Avenue",
        "cityName": "Dracut",
        "state": "MA",
        "zipcode": "01826",
        "countyName": "Middlesex",
        "propType": "Condominium",
        "bedrooms": 2,
        "totalBaths": 2,
        "halfBaths": 0,
        "sqFt": 1200,
        "acres": 0,
        "yearBuilt": 2010,
        "stories": 1,
        "propStatus": "Active",
        "subdivision": "Riverside Commons",
        "remarksConcat": "Spacious 2-bedroom condo with updated kitchen, in-unit laundry, and community amenities.",
        "garage": 1,
        "pool": True,
        "waterfront": False,
        "fireplaces": 0,
        "latitude": 42.6701,
        "longitude": -71.3201,
        "listingAgent": "Mike Thompson",
        "listingOffice": "RE/MAX Dracut",
    },
    {
        "mlsNumber": "MA001236",
        "listPrice": 675000,
        "address": "789 Elm Street",
        "cityName": "Dracut",
        "state": "MA",
        "zipcode": "01826",
        "countyName": "Middlesex",
        "propType": "Single Family Residential",
        "bedrooms": 4,
        "totalBaths": 3,
        "halfBaths": 1,
        "sqFt": 2400,
        "acres": 0.5,
        "yearBuilt": 2018,
        "stories": 2,
        "propStatus": "Active",
        "subdivision": "Highland Estates",
        "remarksConcat": "Stunning 4-bedroom home with open floor plan, chef's kitchen, master suite with walk-in closet.",
        "garage": 2,
        "pool": False,
        "waterfront": False,
        "fireplaces": 2,
        "latitude": 42.6634,
        "longitude": -71.3089,
        "listingAgent": "Lisa Chen",
        "listingOffice": "Coldwell Banker Dracut",
    },
]

SOLD_SAMPLE_SIZE = 50


def generate_mock_listings(
    count: int,
    cities: List[str],
    center: tuple,
    pinned_agent_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> List[RawRecord]:
    """Seed listings plus ``count`` randomized records in the mock (camelCase) shape."""
    rng = rng or random.Random()
    today = today or date.today()
    agents = list(AGENTS)
    if pinned_agent_id:
        agents.append((pinned_agent_id, "Listing Team"))

    listings: List[RawRecord] = []
    for seed in SEED_LISTINGS:
        record = dict(seed)
        record["listingDate"] = (today - timedelta(days=rng.randint(0, 60))).isoformat()
        listings.append(record)

    for index in range(count):
        city = rng.choice(cities)
        category = rng.choice(list(PROPERTY_TYPES))
        prop_type = PROPERTY_TYPES[category]
        bedrooms = rng.randint(1, 5)
        bathrooms = rng.randint(1, 3)
        for_rent = rng.random() < 0.1
        price = rng.randint(1500, 4500) if for_rent else rng.randint(200_000, 1_000_000)
        agent_id, agent_name = rng.choice(agents)
        listings.append(
            {
                "mlsNumber": f"MA{1237 + index:06d}",
                "listPrice": price,
                "address": f"{rng.randint(1, 999)} {rng.choice(STREETS)} {rng.choice(STREET_SUFFIXES)}",
                "cityName": city,
                "state": "MA",
                "zipcode": f"0{rng.randint(1000, 2799)}",
                "countyName": rng.choice(COUNTIES),
                "propType": prop_type,
                "bedrooms": bedrooms,
                "totalBaths": bathrooms,
                "halfBaths": rng.randint(0, 1),
                "sqFt": rng.randint(800, 2800),
                "acres": round(rng.random() * 2, 2),
                "yearBuilt": rng.randint(1970, 2020),
                "stories": rng.randint(1, 3),
                "propStatus": "For Rent" if for_rent else ("Active" if rng.random() > 0.1 else "Pending"),
                "listingDate": (today - timedelta(days=rng.randint(0, 120))).isoformat(),
                "subdivision": f"{rng.choice(SUBDIVISION_PREFIXES)} {rng.choice(SUBDIVISION_SUFFIXES)}",
                "remarksConcat": (
                    f"Beautiful {prop_type.lower()} with {bedrooms} bedrooms and {bathrooms} bathrooms. "
                    "Recently updated with modern amenities."
                ),
                "garage": rng.randint(0, 2),
                "pool": rng.random() > 0.8,
                "waterfront": rng.random() > 0.9,
                "fireplaces": rng.randint(0, 2),
                "latitude": round(center[0] + rng.uniform(-0.25, 0.25), 6),
                "longitude": round(center[1] + rng.uniform(-0.25, 0.25), 6),
                "listingAgentId": agent_id,
                "listingAgent": agent_name,
                "listingOffice": f"{rng.choice(OFFICES)} {city}",
            }
        )
    return listings


class MockListingClient(BaseListingClient):
    """Synthetic Massachusetts listings, used when no upstream is configured or reachable."""

    name = "mock"

    def __init__(self, caches: CacheRegistry, settings: Any, rng: Optional[random.Random] = None) -> None:
        super().__init__(None, caches, settings)
        self.rng = rng or random.Random()
        self.records = generate_mock_listings(
            settings.mock_listing_count,
            settings.get_valid_cities(),
            (settings.region_center_lat, settings.region_center_lng),
            pinned_agent_id=settings.pinned_agent_id,
            rng=self.rng,
        )

    def _filter(self, filters: Any, records: Optional[List[RawRecord]] = None) -> List[RawRecord]:
        listings = list(self.records if records is None else records)
        if filters.city:
            listings = [item for item in listings if item["cityName"].lower() == filters.city.strip().lower()]
        if filters.min_price is not None:
            listings = [item for item in listings if item["listPrice"] >= filters.min_price]
        if filters.max_price is not None:
            listings = [item for item in listings if item["listPrice"] <= filters.max_price]
        if getattr(filters, "bedrooms", None):
            listings = [item for item in listings if item["bedrooms"] >= filters.bedrooms]
        if getattr(filters, "bathrooms", None):
            listings = [item for item in listings if item["totalBaths"] >= filters.bathrooms]
        category = canonical_property_type(filters.property_type)
        if category:
            listings = [item for item in listings if item["propType"] == PROPERTY_TYPES[category]]
        return listings

    async def get_listings(self, filters: ListingFilters) -> List[RawRecord]:
        return self._filter(filters)

    async def get_listing_by_id(self, listing_id: str) -> Optional[RawRecord]:
        for record in self.records:
            if record["mlsNumber"] == listing_id:
                return record
        return None

    async def get_featured_listings(self) -> List[RawRecord]:
        return list(self.records)

    async def advanced_search(self, criteria: SearchCriteria) -> List[RawRecord]:
        return self._filter(criteria)

    async def get_nearby_listings(self, lat: float, lng: float, radius: float) -> List[RawRecord]:
        scored = []
        for record in self.records:
            distance = math.hypot(record["latitude"] - lat, record["longitude"] - lng) * 69
            if distance <= radius:
                scored.append((distance, record))
        scored.sort(key=lambda pair: pair[0])
        return [record for _, record in scored]

    async def get_sold_listings(self, filters: SoldFilters) -> List[RawRecord]:
        today = date.today()
        sold: List[RawRecord] = []
        for record in self.records[:SOLD_SAMPLE_SIZE]:
            swing = self.rng.uniform(0.05, 0.10) * self.rng.choice((-1, 1))
            sold.append(
                {
                    **record,
                    "propStatus": "Sold",
                    "soldPrice": round(record["listPrice"] * (1 + swing)),
                    "soldDate": (today - timedelta(days=self.rng.randint(0, max(filters.days_back, 1)))).isoformat(),
                }
            )
        return self._filter(filters, sold)[: filters.limit]

    async def get_cities(self) -> List[str]:
        return sorted(self.settings.get_valid_cities())

    def get_dataset_size(self) -> int:
        return len(self.records)
