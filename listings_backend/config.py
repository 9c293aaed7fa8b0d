from pydantic_settings import BaseSettings
from typing import List, Optional


MASSACHUSETTS_CITIES: List[str] = [
    "Boston", "Worcester", "Springfield", "Cambridge", "Lowell",
    "Brockton", "New Bedford", "Quincy", "Lynn", "Fall River",
    "Newton", "Lawrence", "Somerville", "Framingham", "Haverhill",
    "Waltham", "Malden", "Brookline", "Plymouth", "Medford",
    "Taunton", "Chicopee", "Weymouth", "Revere", "Peabody",
    "Methuen", "Barnstable", "Pittsfield", "Attleboro", "Everett",
    "Salem", "Westfield", "Leominster", "Fitchburg", "Beverly",
    "Holyoke", "Marlborough", "Woburn", "Amherst", "Chelsea",
    "Braintree", "Dartmouth", "Randolph", "Natick", "Gloucester",
    "Dracut", "Acton", "Andover", "Arlington", "Billerica",
    "Burlington", "Chelmsford", "Concord", "Lexington", "Medway",
    "Milford", "Reading", "Stoneham", "Tewksbury", "Wakefield",
    "Watertown", "Winchester", "Wilmington", "North Reading",
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables and .env file."""

    # General
    app_name: str = "Massachusetts Listings Hub"
    environment: str = "development"
    log_level: str = "INFO"
    data_provider: str = "auto"  # auto | mock | idx | mls_api

    # CORS
    cors_allow_origins: str = "*"  # comma-separated list in production

    # HTTP client
    http_timeout_seconds: int = 20
    upstream_max_attempts: int = 1

    # IDX Broker (partner API, primary upstream)
    idx_api_url: str = "https://api.idxbroker.com"
    idx_api_key: Optional[str] = None
    idx_partner_key: Optional[str] = None
    idx_timeout_seconds: float = 10.0

    # MLS PIN relay API (secondary upstream)
    mls_api_url: Optional[str] = None  # e.g. http://localhost:8000
    mls_api_timeout_seconds: float = 5.0
    mls_api_page_size: int = 50

    # Cache TTLs in seconds
    listings_cache_ttl: int = 300
    reference_cache_ttl: int = 3600
    stats_cache_ttl: int = 1800

    # Display
    pinned_agent_id: Optional[str] = "CN222505"
    featured_count: int = 6
    photo_count: int = 5
    photo_url_template: str = "https://media.mlspin.com/photo.aspx?mls={mls}&n={n}&w=600&h=450"
    fallback_image_url: str = "https://images.unsplash.com/photo-1568605114967-8130f3a36994?w=600&h=450&fit=crop"

    # Region
    default_state: str = "MA"
    region_center_lat: float = 42.6667
    region_center_lng: float = -71.3020
    valid_cities: str = ""  # comma-separated override of MASSACHUSETTS_CITIES

    # Mock data
    mock_listing_count: int = 200

    # Admin
    admin_api_key: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def idx_configured(self) -> bool:
        return bool(self.idx_api_key and self.idx_partner_key)

    @property
    def mls_api_configured(self) -> bool:
        return bool(self.mls_api_url)

    def get_valid_cities(self) -> List[str]:
        """Allow-list of cities accepted by filters (falls back to the built-in list)."""
        if self.valid_cities.strip():
            return [city.strip() for city in self.valid_cities.split(",") if city.strip()]
        return list(MASSACHUSETTS_CITIES)

    def get_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
