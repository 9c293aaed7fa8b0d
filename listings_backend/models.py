from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


PROPERTY_TYPES = ("houses", "condos", "townhomes", "multi-family")


class ListingFeatures(CamelModel):
    garage: Optional[float] = None
    pool: bool = False
    waterfront: bool = False
    fireplace: Optional[float] = None


class Listing(CamelModel):
    id: str
    mls_number: str
    price: int = 0
    address: str
    city: Optional[str] = None
    state: str = "MA"
    zip_code: Optional[str] = None
    bedrooms: int = 0
    bathrooms: float = 0
    half_bathrooms: int = 0
    sqft: int = 0
    lot_size: Optional[float] = None
    year_built: Optional[int] = None
    stories: Optional[float] = None
    property_type: str = "houses"
    status: str = "sale"
    images: List[str]
    lat: float
    lng: float
    listing_date: Optional[str] = None
    days_on_market: int = 0
    description: str
    features: ListingFeatures = Field(default_factory=ListingFeatures)
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    price_per_sqft: Optional[int] = None
    sold_price: Optional[int] = None
    sold_date: Optional[str] = None
    distance: Optional[float] = None


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class ListingPage(CamelModel):
    items: List[Listing] = []
    pagination: Pagination


class PriceRange(CamelModel):
    min: int = 0
    max: int = 0


class MarketStats(CamelModel):
    total_listings: int = 0
    average_price: int = 0
    median_price: int = 0
    price_range: PriceRange = Field(default_factory=PriceRange)
    average_days_on_market: int = 0
    city: str = "Massachusetts"


class PriceBand(CamelModel):
    min: int
    max: Optional[int] = None
    label: str
    count: int = 0
    percentage: int = 0


class PriceDistribution(CamelModel):
    ranges: List[PriceBand] = []
    total_listings: int = 0
    average_price: int = 0
    median_price: int = 0


class MarketTrends(CamelModel):
    average_price: int = 0
    median_price: int = 0
    average_days_on_market: int = 0
    total_sales: int = 0
    price_per_sqft: int = 0
    price_range: PriceRange = Field(default_factory=PriceRange)


class ListingFilters(CamelModel):
    city: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    property_type: Optional[str] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    min_sqft: Optional[int] = None
    max_sqft: Optional[int] = None
    status: Optional[str] = None
    sort: Optional[str] = None
    page: int = 1
    limit: int = 12


class SearchCriteria(ListingFilters):
    keywords: Optional[str] = None
    zip_code: Optional[str] = None
    min_year_built: Optional[int] = None
    max_year_built: Optional[int] = None
    min_lot_size: Optional[float] = None
    max_lot_size: Optional[float] = None
    has_pool: bool = False
    has_garage: bool = False
    waterfront: bool = False
    limit: int = 100


class SoldFilters(CamelModel):
    city: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    property_type: Optional[str] = None
    days_back: int = 90
    limit: int = 20


class CacheStats(CamelModel):
    listings: int = 0
    reference: int = 0
    stats: int = 0


class CacheRefresh(CamelModel):
    type: str
    item_count: int
    timestamp: str


class ApiError(BaseModel):
    success: bool = False
    message: str
    errors: Optional[List[str]] = None


class HealthStatus(CamelModel):
    status: str
    provider: str
    sources: List[str]
    cache: Dict[str, int]


class UpstreamConfig(CamelModel):
    base_url: Optional[str] = None
    has_api_key: bool = False
    has_partner_key: bool = False
    configured: bool = False


class ConfigOverall(CamelModel):
    valid: bool
    ready: bool
    warnings: List[str] = []


class ConfigReport(CamelModel):
    """Which upstreams the running service can reach, without exposing any secret."""

    environment: str
    data_provider: str
    sources: List[str]
    idx: UpstreamConfig
    mls_api: UpstreamConfig
    cache: CacheStats
    overall: ConfigOverall
