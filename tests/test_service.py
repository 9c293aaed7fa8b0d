"""Tests for the listing service and its fallback chain."""

import json
import logging
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import raw_record
from listings_backend.clients.idx_client import IdxBrokerClient
from listings_backend.errors import InvalidFilter
from listings_backend.models import ListingFilters, SearchCriteria, SoldFilters
from listings_backend.service import ListingService, build_listing_service, select_sources


async def test_failing_upstream_falls_back_to_mock(make_stub, make_service, caplog):
    stub = make_stub(fail=True)
    service = make_service(stub)

    with caplog.at_level(logging.WARNING):
        page = await service.get_listings(ListingFilters())

    assert stub.calls == ["get_listings"]
    assert page.items
    assert page.pagination.total_items > 0
    assert "stub unavailable" in caplog.text


async def test_every_upstream_tried_in_order(make_stub, make_service):
    first = make_stub(fail=True)
    second = make_stub(records=[raw_record("S1")])
    service = make_service(first, second)

    page = await service.get_listings(ListingFilters())

    assert first.calls == ["get_listings"]
    assert second.calls == ["get_listings"]
    assert [item.mls_number for item in page.items] == ["S1"]


async def test_invalid_filters_rejected_before_any_upstream_call(make_stub, make_service):
    stub = make_stub(records=[raw_record("S1")])
    service = make_service(stub)

    with pytest.raises(InvalidFilter) as excinfo:
        await service.get_listings(ListingFilters(min_price=500000, max_price=300000))

    assert excinfo.value.errors == ["Minimum price cannot be greater than maximum price"]
    assert stub.calls == []


async def test_not_found_stops_the_chain(caches, test_settings, mock_client, monkeypatch):
    idx_settings = test_settings.model_copy(update={"idx_api_key": "access", "idx_partner_key": "partner"})
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    fallback_lookup = AsyncMock()
    monkeypatch.setattr(mock_client, "get_listing_by_id", fallback_lookup)

    service = ListingService([IdxBrokerClient(http, caches, idx_settings)], mock_client, caches, idx_settings)

    assert await service.get_listing_by_id("73026808") is None
    fallback_lookup.assert_not_called()
    await http.aclose()


async def test_listing_by_id_falls_back_when_upstream_down(make_stub, make_service):
    service = make_service(make_stub(fail=True))
    listing = await service.get_listing_by_id("MA001234")
    assert listing is not None
    assert listing.mls_number == "MA001234"
    assert await service.get_listing_photos("MA001234") == listing.images


async def test_featured_listings_are_distinct(make_stub, make_service, test_settings):
    records = [raw_record(f"F{index}") for index in range(10)]
    records[7] = raw_record("F2")
    service = make_service(make_stub(records=records))

    featured = await service.get_featured_listings()

    assert len(featured) == test_settings.featured_count
    assert len({item.mls_number for item in featured}) == len(featured)
    assert [item.mls_number for item in featured] == ["F0", "F1", "F2", "F3", "F4", "F5"]


async def test_featured_listings_short_supply(make_stub, make_service):
    records = [raw_record("A"), raw_record("A"), raw_record("B")]
    featured = await make_service(make_stub(records=records)).get_featured_listings()
    assert [item.mls_number for item in featured] == ["A", "B"]


async def test_pagination_through_service(make_stub, make_service):
    records = [raw_record(f"P{index:02d}") for index in range(25)]
    service = make_service(make_stub(records=records))

    page = await service.get_listings(ListingFilters(page=3, limit=10))

    assert len(page.items) == 5
    assert page.pagination.total_pages == 3
    assert page.pagination.total_items == 25


async def test_pinned_agent_listings_lead(make_stub, make_service):
    records = [
        raw_record("A", listPrice=300000),
        raw_record("B", listPrice=900000, listingAgentId="PIN"),
        raw_record("C", listPrice=100000),
    ]
    service = make_service(make_stub(records=records))

    page = await service.get_listings(ListingFilters(sort="price-asc"))

    assert [item.mls_number for item in page.items] == ["B", "C", "A"]


async def test_filters_applied_after_normalization(make_stub, make_service):
    records = [
        raw_record("A", cityName="Lowell"),
        raw_record("B", bedrooms=1),
        raw_record("C", bedrooms=4),
    ]
    service = make_service(make_stub(records=records))

    page = await service.get_listings(ListingFilters(city="Dracut", bedrooms=3))

    assert [item.mls_number for item in page.items] == ["C"]


async def test_advanced_search_through_stub(make_stub, make_service):
    records = [
        raw_record("A", remarksConcat="Lake views and a dock", waterfront=True),
        raw_record("B", remarksConcat="Lake views"),
    ]
    service = make_service(make_stub(records=records))

    results = await service.advanced_search(SearchCriteria(keywords="lake", waterfront=True))

    assert [item.mls_number for item in results] == ["A"]


async def test_nearby_listings_within_radius(make_stub, make_service):
    records = [raw_record("near"), raw_record("far", latitude=42.2, longitude=-71.0)]
    service = make_service(make_stub(records=records))

    results = await service.get_nearby_listings(42.6667, -71.3020, 5)

    assert [item.mls_number for item in results] == ["near"]
    assert results[0].distance is not None


async def test_nearby_rejects_coordinates_outside_state(make_stub, make_service):
    stub = make_stub()
    with pytest.raises(InvalidFilter):
        await make_service(stub).get_nearby_listings(34.05, -118.24, 5)
    assert stub.calls == []


async def test_sold_listings_marked_sold(make_stub, make_service):
    records = [raw_record("A", propStatus="Active", soldPrice=470000), raw_record("B")]
    service = make_service(make_stub(records=records))

    sold = await service.get_sold_listings(SoldFilters(limit=1))

    assert len(sold) == 1
    assert sold[0].status == "sold"
    assert sold[0].sold_price == 470000


async def test_market_stats_from_upstream(make_stub, make_service):
    records = [raw_record("A", listPrice=100000), raw_record("B", listPrice=300000), raw_record("C", listPrice=200000)]
    stub = make_stub(records=records)
    service = make_service(stub)

    stats = await service.get_market_stats("Dracut")
    again = await service.get_market_stats("Dracut")

    assert stats.total_listings == 3
    assert stats.median_price == 200000
    assert again == stats
    assert stub.calls == ["get_listings"]


async def test_market_stats_rejects_unknown_city(make_stub, make_service):
    with pytest.raises(InvalidFilter):
        await make_service(make_stub()).get_market_stats("Springfield, IL")


async def test_price_distribution_and_trends_from_mock(make_service):
    service = make_service()
    distribution = await service.get_price_distribution()
    trends = await service.get_market_trends()
    assert distribution.total_listings > 0
    assert sum(band.count for band in distribution.ranges) == distribution.total_listings
    assert trends.total_sales > 0
    assert trends.price_range.min <= trends.median_price <= trends.price_range.max


async def test_cities_fall_back_to_configuration(make_stub, make_service, test_settings):
    service = make_service(make_stub(fail=True))
    assert await service.get_cities() == sorted(test_settings.get_valid_cities())


async def test_clear_cache_empties_every_cache(make_service, caches):
    caches.listings.set("a", 1)
    caches.reference.set("b", 2)
    service = make_service()
    assert service.get_cache_stats().listings == 1

    service.clear_cache()

    stats = service.get_cache_stats()
    assert (stats.listings, stats.reference, stats.stats) == (0, 0, 0)


def test_select_sources_order(caches, test_settings):
    configured = test_settings.model_copy(
        update={"idx_api_key": "access", "idx_partner_key": "partner", "mls_api_url": "http://mls.test"}
    )
    assert [source.name for source in select_sources(None, caches, configured)] == ["idx", "mls_api"]

    prefer_mls = configured.model_copy(update={"data_provider": "mls_api"})
    assert [source.name for source in select_sources(None, caches, prefer_mls)] == ["mls_api", "idx"]

    mock_only = configured.model_copy(update={"data_provider": "mock"})
    assert select_sources(None, caches, mock_only) == []

    partner_key_missing = test_settings.model_copy(update={"idx_api_key": "access"})
    assert select_sources(None, caches, partner_key_missing) == []


def test_mock_mode_when_nothing_configured(test_settings):
    service = build_listing_service(None, test_settings)
    assert service.provider == "mock"
    health = service.health()
    assert health.sources == ["mock"]
    assert health.status == "ok"


async def test_overflowing_upstream_number_does_not_break_listing_query(make_stub, make_service):
    records = [raw_record("A", sqFt=json.loads("1e400"), listPrice=float("nan")), raw_record("B")]
    page = await make_service(make_stub(records=records)).get_listings(ListingFilters())
    listings = {item.mls_number: item for item in page.items}
    assert listings["A"].sqft == 0
    assert listings["A"].price == 0
    assert listings["B"].price == 450000


async def test_nearby_listings_capped_by_limit(make_stub, make_service):
    records = [raw_record(f"N{index:02d}", latitude=42.6667 + index * 0.001, longitude=-71.3020) for index in range(15)]
    service = make_service(make_stub(records=records))

    default = await service.get_nearby_listings(42.6667, -71.3020, 5)
    capped = await service.get_nearby_listings(42.6667, -71.3020, 5, limit=3)

    assert len(default) == 10
    assert [item.mls_number for item in capped] == ["N00", "N01", "N02"]
    with pytest.raises(InvalidFilter):
        await service.get_nearby_listings(42.6667, -71.3020, 5, limit=0)


async def test_sold_listings_reject_unknown_property_type(make_stub, make_service):
    stub = make_stub()
    with pytest.raises(InvalidFilter) as excinfo:
        await make_service(stub).get_sold_listings(SoldFilters(property_type="lnd"))
    assert excinfo.value.errors[0].startswith("Property type must be one of")
    assert stub.calls == []


async def test_refresh_cache_refetches_kind(make_stub, make_service, caches):
    stub = make_stub(records=[raw_record("A"), raw_record("B")])
    service = make_service(stub)
    caches.reference.set("stale", ["Nowhere"])
    caches.listings.set("stale", [])

    cities = await service.refresh_cache("cities")
    assert cities.type == "cities"
    assert cities.item_count == 2
    assert caches.reference.size() == 0
    assert caches.listings.size() == 1

    featured = await service.refresh_cache("featured")
    assert featured.item_count == 2
    assert caches.listings.size() == 0
    assert stub.calls == ["get_cities", "get_featured_listings"]


async def test_refresh_cache_rejects_unknown_kind(make_service):
    with pytest.raises(InvalidFilter) as excinfo:
        await make_service().refresh_cache("listings")
    assert excinfo.value.errors == ["Invalid cache type. Valid types: cities, property-types, featured"]


def test_config_report_without_upstreams(make_service):
    report = make_service().config_report()
    assert report.sources == ["mock"]
    assert report.idx.configured is False
    assert report.overall.valid is False
    assert report.overall.ready is False
    assert "IDX API credentials not configured" in report.overall.warnings


def test_config_report_with_idx(caches, test_settings):
    configured = test_settings.model_copy(update={"idx_api_key": "access", "idx_partner_key": "partner"})
    report = build_listing_service(None, configured, caches).config_report()
    assert report.sources == ["idx", "mock"]
    assert report.idx.has_api_key and report.idx.has_partner_key
    assert report.overall.valid is True
    assert report.overall.ready is True
    assert "access" not in report.model_dump_json()
