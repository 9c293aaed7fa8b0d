"""Field normalizer.

Upstream records arrive in three shapes:

- the MLS PIN relay's legacy UPPER_SNAKE fields (``LIST_PRICE``, ``STREET_NO``),
  usually nested under ``data`` or ``_raw_data`` next to a top-level ``listing_key``;
- the IDX partner API's PascalCase fields (``ListPrice``, ``StreetName``);
- the mock generator's camelCase fields (``listPrice``, ``cityName``).

Each canonical field has one ordered alias list in ``FIELD_ALIASES``; the first
alias present wins, otherwise the documented default applies. Adding a new
upstream shape means adding aliases here, nothing else.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import settings as default_settings
from .models import PROPERTY_TYPES, Listing, ListingFeatures

logger = logging.getLogger(__name__)


NESTED_KEYS = ("data", "_raw_data")
DESCRIPTION_LIMIT = 150

FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("listing_key", "ListingKey", "ListingId", "LIST_NO", "listingID", "mlsNumber", "id"),
    "mls_number": ("ListingId", "LIST_NO", "mlsNumber", "listingID", "mls_number"),
    "price": ("ListPrice", "LIST_PRICE", "listPrice", "price"),
    "sold_price": ("ClosePrice", "SALE_PRICE", "soldPrice"),
    "sold_date": ("CloseDate", "SETTLED_DATE", "soldDate"),
    "street_number": ("StreetNumber", "STREET_NO", "streetNumber"),
    "street_name": ("StreetName", "STREET_NAME", "address", "street"),
    "city": ("City", "CITY", "cityName", "city"),
    "state": ("StateOrProvince", "STATE", "state"),
    "zip_code": ("PostalCode", "ZIP_CODE", "zipcode", "zipCode"),
    "bedrooms": ("BedroomsTotal", "NO_BEDROOMS", "bedrooms"),
    "bathrooms": ("BathroomsTotalInteger", "BathroomsFull", "NO_FULL_BATHS", "totalBaths", "bathrooms"),
    "half_bathrooms": ("BathroomsHalf", "NO_HALF_BATHS", "halfBaths", "halfBathrooms"),
    "sqft": ("LivingArea", "AboveGradeFinishedArea", "SQUARE_FEET", "sqFt", "sqft"),
    "lot_size": ("LotSizeAcres", "LOT_SIZE", "acres", "lotSize"),
    "year_built": ("YearBuilt", "YEAR_BUILT", "yearBuilt"),
    "stories": ("Stories", "StoriesTotal", "STORIES", "stories"),
    "property_type": ("PropertyType", "PROP_TYPE", "PROPERTY_TYPE", "propType", "propertyType"),
    "status": ("StandardStatus", "MlsStatus", "STATUS", "propStatus", "status"),
    "lat": ("Latitude", "LATITUDE", "latitude", "lat"),
    "lng": ("Longitude", "LONGITUDE", "longitude", "lng"),
    "listing_date": ("ListingContractDate", "OnMarketDate", "LIST_DATE", "listingDate"),
    "description": ("PublicRemarks", "REMARKS", "remarksConcat", "detailedRemarks", "description"),
    "garage": ("GarageSpaces", "GARAGE_SPACES", "garage"),
    "pool": ("PoolPrivateYN", "POOL", "pool"),
    "waterfront": ("WaterfrontYN", "WATERFRONT", "waterfront"),
    "fireplace": ("FireplacesTotal", "FIREPLACES", "fireplaces", "fireplace"),
    "agent_id": ("ListAgentMlsId", "ListAgentKey", "LIST_AGENT_ID", "listingAgentId", "agentId"),
    "agent_name": ("ListAgentFullName", "LIST_AGENT_NAME", "listingAgent", "agentName"),
    "images": ("Media", "PHOTOS", "images", "photos"),
    "featured_image": ("featuredImage", "PHOTO_URL", "imageUrl"),
}

# Matched against the lower-cased upstream value, exact codes first.
PROPERTY_TYPE_CODES: Dict[str, str] = {
    "sf": "houses",
    "sfr": "houses",
    "cc": "condos",
    "cnd": "condos",
    "twn": "townhomes",
    "mf": "multi-family",
    "mfr": "multi-family",
}
PROPERTY_TYPE_KEYWORDS = (
    ("condo", "condos"),
    ("town", "townhomes"),
    ("multi", "multi-family"),
    ("2-4", "multi-family"),
)

STATUS_CODES: Dict[str, str] = {
    "sld": "sold",
    "sold": "sold",
    "closed": "sold",
    "rnt": "rent",
    "rent": "rent",
    "rental": "rent",
    "lease": "rent",
    "for rent": "rent",
    "leased": "rent",
}

_TRUE_STRINGS = {"y", "yes", "true", "t", "1"}
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%m-%d-%Y")


def _layers(raw: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    layers: List[Mapping[str, Any]] = [raw]
    for key in NESTED_KEYS:
        nested = raw.get(key)
        if isinstance(nested, Mapping):
            layers.append(nested)
    return layers


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def pick(layers: Sequence[Mapping[str, Any]], field: str) -> Any:
    """First value present for ``field``, trying aliases in priority order, outer layer first."""
    for alias in FIELD_ALIASES[field]:
        for layer in layers:
            value = layer.get(alias)
            if _present(value):
                return value
    return None


class _Parser:
    """Lenient value coercion that remembers which fields failed to parse."""

    def __init__(self) -> None:
        self.problems: List[str] = []

    def number(self, field: str, value: Any) -> Optional[float]:
        if value is None:
            return None
        if isinstance(value, bool):
            return float(value)
        try:
            if isinstance(value, (int, float)):
                number = float(value)
            else:
                number = float(re.sub(r"[^\d.\-]", "", str(value)))
        except (ValueError, OverflowError):
            self.problems.append(field)
            return None
        # inf and NaN survive JSON decoding and float() but not int()
        if not math.isfinite(number):
            self.problems.append(field)
            return None
        return number

    def integer(self, field: str, value: Any, default: Optional[int] = 0) -> Optional[int]:
        number = self.number(field, value)
        if number is None:
            return default
        return int(round(number))

    @staticmethod
    def flag(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value > 0
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return False

    def date(self, field: str, value: Any) -> Optional[date]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        text = str(value).strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        self.problems.append(field)
        return None


def map_property_type(value: Any) -> str:
    if not _present(value):
        return "houses"
    text = str(value).strip().lower()
    if text in PROPERTY_TYPE_CODES:
        return PROPERTY_TYPE_CODES[text]
    if text in PROPERTY_TYPES:
        return text
    for keyword, canonical in PROPERTY_TYPE_KEYWORDS:
        if keyword in text:
            return canonical
    return "houses"


def map_status(value: Any) -> str:
    if not _present(value):
        return "sale"
    text = str(value).strip().lower()
    if text in STATUS_CODES:
        return STATUS_CODES[text]
    if "sold" in text or "closed" in text:
        return "sold"
    if "rent" in text or "lease" in text:
        return "rent"
    return "sale"


def format_address(
    street_number: Optional[str],
    street_name: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
) -> str:
    """'12 Main St, Dracut, MA 01826', leaving out whatever part is missing."""
    street = " ".join(part for part in (street_number, street_name) if part)
    locality = ", ".join(part for part in (street, city, state) if part)
    formatted = " ".join(part for part in (locality, zip_code) if part)
    formatted = re.sub(r"(,\s*)+,", ",", formatted)
    return formatted.strip(" ,")


def build_photo_urls(mls_number: str, count: int, template: str) -> List[str]:
    """Photo-service URLs for a listing number. Whether each photo exists is not checked."""
    return [template.format(mls=mls_number, n=index) for index in range(count)]


def _image_urls(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    urls: List[str] = []
    if isinstance(value, Mapping):
        value = [value.get("featured")] + list(value.get("gallery") or [])
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item.strip():
                urls.append(item)
            elif isinstance(item, Mapping):
                url = item.get("MediaURL") or item.get("url") or item.get("URL")
                if url:
                    urls.append(str(url))
    return urls


def _text(value: Any) -> Optional[str]:
    return str(value).strip() if _present(value) else None


def truncate_description(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def normalize_listing(
    raw: Mapping[str, Any],
    *,
    settings: Any = None,
    today: Optional[date] = None,
) -> Listing:
    """Turn one upstream record of any known shape into a canonical ``Listing``.

    Never raises for bad data: unknown or unparseable values fall back to their
    defaults and the record is reported with a single warning.
    """
    cfg = settings or default_settings
    today = today or date.today()
    if not isinstance(raw, Mapping):
        logger.warning(f"Expected a mapping for a listing record, got {type(raw).__name__}")
        raw = {}

    layers = _layers(raw)
    parser = _Parser()

    identifier = _text(pick(layers, "id"))
    mls_number = _text(pick(layers, "mls_number")) or identifier
    if identifier is None:
        identifier = mls_number or uuid.uuid4().hex[:12]
    if mls_number is None:
        mls_number = identifier

    city = _text(pick(layers, "city"))
    if city == "1":
        city = "Boston"
    state = _text(pick(layers, "state")) or cfg.default_state
    zip_code = _text(pick(layers, "zip_code"))
    address = format_address(
        _text(pick(layers, "street_number")),
        _text(pick(layers, "street_name")),
        city,
        state,
        zip_code,
    )

    price = parser.integer("price", pick(layers, "price"))
    sqft = parser.integer("sqft", pick(layers, "sqft"))
    property_type = map_property_type(pick(layers, "property_type"))

    images = _image_urls(pick(layers, "images")) or _image_urls(pick(layers, "featured_image"))
    if not images:
        images = build_photo_urls(mls_number, cfg.photo_count, cfg.photo_url_template)
    if cfg.fallback_image_url not in images:
        images.append(cfg.fallback_image_url)

    lat = parser.number("lat", pick(layers, "lat"))
    lng = parser.number("lng", pick(layers, "lng"))

    listed_on = parser.date("listing_date", pick(layers, "listing_date"))
    days_on_market = max((today - listed_on).days, 0) if listed_on else 0

    description = _text(pick(layers, "description"))
    if description is None:
        description = f"Beautiful {property_type.replace('-', ' ')} property in {city or 'Massachusetts'}."

    sold_on = parser.date("sold_date", pick(layers, "sold_date"))
    garage = parser.number("garage", pick(layers, "garage"))
    fireplace = parser.number("fireplace", pick(layers, "fireplace"))

    listing = Listing(
        id=identifier,
        mls_number=mls_number,
        price=price,
        address=address,
        city=city,
        state=state,
        zip_code=zip_code,
        bedrooms=parser.integer("bedrooms", pick(layers, "bedrooms")),
        bathrooms=parser.number("bathrooms", pick(layers, "bathrooms")) or 0,
        half_bathrooms=parser.integer("half_bathrooms", pick(layers, "half_bathrooms")),
        sqft=sqft,
        lot_size=parser.number("lot_size", pick(layers, "lot_size")),
        year_built=parser.integer("year_built", pick(layers, "year_built"), default=None),
        stories=parser.number("stories", pick(layers, "stories")),
        property_type=property_type,
        status=map_status(pick(layers, "status")),
        images=images,
        lat=lat if lat is not None else cfg.region_center_lat,
        lng=lng if lng is not None else cfg.region_center_lng,
        listing_date=listed_on.isoformat() if listed_on else None,
        days_on_market=days_on_market,
        description=truncate_description(description),
        features=ListingFeatures(
            garage=garage,
            pool=parser.flag(pick(layers, "pool")),
            waterfront=parser.flag(pick(layers, "waterfront")),
            fireplace=fireplace,
        ),
        agent_id=_text(pick(layers, "agent_id")),
        agent_name=_text(pick(layers, "agent_name")),
        price_per_sqft=round(price / sqft) if price and sqft else None,
        sold_price=parser.integer("sold_price", pick(layers, "sold_price"), default=None),
        sold_date=sold_on.isoformat() if sold_on else None,
    )

    if parser.problems:
        logger.warning(f"Listing {identifier}: could not parse {', '.join(sorted(set(parser.problems)))}")
    return listing


def normalize_listings(records: Any, **kwargs: Any) -> List[Listing]:
    """Normalize a list payload; anything that is not a list yields no listings."""
    if not isinstance(records, list):
        return []
    return [normalize_listing(record, **kwargs) for record in records]
