"""Tests for listing filters, ordering and aggregates."""

import pytest

from conftest import build_listing
from listings_backend.config import MASSACHUSETTS_CITIES
from listings_backend.errors import InvalidFilter
from listings_backend.filters import (
    canonical_property_type,
    compute_market_stats,
    compute_price_distribution,
    dedupe_by_mls,
    filter_listings,
    paginate,
    sort_listings,
    validate_coordinates,
    validate_filters,
    within_radius,
)
from listings_backend.models import ListingFeatures, ListingFilters, SearchCriteria


def test_price_sort_then_pinned_agent_first():
    listings = [
        build_listing("1", agent_id="X", price=300000),
        build_listing("2", agent_id="PIN", price=900000),
        build_listing("3", agent_id="X", price=100000),
    ]
    ordered = sort_listings(listings, "price-asc", pinned_agent_id="PIN")
    assert [item.id for item in ordered] == ["2", "3", "1"]


def test_pinned_pass_is_stable_for_several_pinned():
    listings = [
        build_listing("a", agent_id="PIN", price=500000),
        build_listing("b", agent_id="X", price=200000),
        build_listing("c", agent_id="PIN", price=100000),
    ]
    ordered = sort_listings(listings, "price-desc", pinned_agent_id="PIN")
    assert [item.id for item in ordered] == ["a", "c", "b"]


def test_sort_without_pinned_agent():
    listings = [build_listing("1", sqft=900), build_listing("2", sqft=2000), build_listing("3", sqft=1500)]
    assert [item.id for item in sort_listings(listings, "sqft")] == ["2", "3", "1"]


def test_default_sort_is_newest_first():
    listings = [build_listing("old", days_on_market=40), build_listing("new", days_on_market=2)]
    assert [item.id for item in sort_listings(listings)] == ["new", "old"]


def test_pagination_last_partial_page():
    listings = [build_listing(str(index)) for index in range(25)]
    items, pagination = paginate(listings, page=3, limit=10)
    assert len(items) == 5
    assert pagination.total_pages == 3
    assert pagination.total_items == 25
    assert pagination.current_page == 3
    assert pagination.items_per_page == 10


def test_pagination_past_the_end_is_empty():
    items, pagination = paginate([build_listing("1")], page=4, limit=10)
    assert items == []
    assert pagination.total_pages == 1


def test_min_price_above_max_price_rejected():
    with pytest.raises(InvalidFilter) as excinfo:
        validate_filters(ListingFilters(min_price=500000, max_price=300000), MASSACHUSETTS_CITIES)
    assert excinfo.value.errors == ["Minimum price cannot be greater than maximum price"]


def test_all_violations_reported_together():
    filters = ListingFilters(min_price=5, max_price=1, bedrooms=25, bathrooms=-1, city="Springfield, IL")
    with pytest.raises(InvalidFilter) as excinfo:
        validate_filters(filters, MASSACHUSETTS_CITIES)
    assert len(excinfo.value.errors) == 4
    assert "Invalid Massachusetts city" in excinfo.value.errors


def test_search_ranges_validated():
    criteria = SearchCriteria(min_year_built=2020, max_year_built=1990, min_lot_size=2, max_lot_size=1)
    with pytest.raises(InvalidFilter) as excinfo:
        validate_filters(criteria, MASSACHUSETTS_CITIES)
    assert len(excinfo.value.errors) == 2


def test_city_check_is_case_insensitive():
    validate_filters(ListingFilters(city="dracut"), MASSACHUSETTS_CITIES)
    validate_filters(ListingFilters(city=None), MASSACHUSETTS_CITIES)


def test_coordinates_outside_massachusetts_rejected():
    with pytest.raises(InvalidFilter):
        validate_coordinates(40.7, -74.0, 5)
    validate_coordinates(42.66, -71.30, 5)


def test_filter_listings_conjunction():
    listings = [
        build_listing("1", price=300000, bedrooms=2, property_type="condos"),
        build_listing("2", price=600000, bedrooms=4, property_type="houses"),
        build_listing("3", price=650000, bedrooms=3, property_type="houses", city="Lowell"),
    ]
    filters = ListingFilters(city="Dracut", min_price=400000, bedrooms=3, property_type="sfr")
    assert [item.id for item in filter_listings(listings, filters)] == ["2"]


def test_advanced_search_predicates():
    listings = [
        build_listing("1", year_built=1990, description="Sunny colonial", features=ListingFeatures(pool=True)),
        build_listing("2", year_built=2010, description="Sunny cape", features=ListingFeatures(pool=True, garage=2)),
        build_listing("3", year_built=2015, description="Quiet ranch", features=ListingFeatures(garage=1)),
    ]
    criteria = SearchCriteria(keywords="sunny", min_year_built=2000, has_pool=True)
    assert [item.id for item in filter_listings(listings, criteria)] == ["2"]


def test_dedupe_keeps_first_occurrence():
    listings = [build_listing("1"), build_listing("2"), build_listing("1b", mls_number="1")]
    assert [item.id for item in dedupe_by_mls(listings)] == ["1", "2"]


def test_within_radius_sorted_with_distance():
    listings = [
        build_listing("far", lat=42.9, lng=-71.3),
        build_listing("near", lat=42.67, lng=-71.30),
        build_listing("mid", lat=42.70, lng=-71.30),
    ]
    nearby = within_radius(listings, 42.6667, -71.3020, 5)
    assert [item.id for item in nearby] == ["near", "mid"]
    assert nearby[0].distance <= nearby[1].distance


def test_market_stats():
    listings = [
        build_listing("1", price=100000, days_on_market=10),
        build_listing("2", price=300000, days_on_market=20),
        build_listing("3", price=200000, days_on_market=30),
    ]
    stats = compute_market_stats(listings, "Dracut")
    assert stats.total_listings == 3
    assert stats.average_price == 200000
    assert stats.median_price == 200000
    assert stats.price_range.min == 100000
    assert stats.price_range.max == 300000
    assert stats.average_days_on_market == 20
    assert stats.city == "Dracut"


def test_market_stats_empty():
    stats = compute_market_stats([])
    assert stats.total_listings == 0
    assert stats.average_price == 0


def test_price_distribution_bands():
    listings = [build_listing(str(i), price=price) for i, price in enumerate([250000, 450000, 480000, 2500000])]
    distribution = compute_price_distribution(listings)
    counts = {band.label: band.count for band in distribution.ranges}
    assert counts["Under $300K"] == 1
    assert counts["$300K - $500K"] == 2
    assert counts["Over $2M"] == 1
    assert distribution.total_listings == 4


@pytest.mark.parametrize("value, expected", [("condos", "condos"), ("CND", "condos"), ("sfr", "houses"), ("lnd", None), ("xyz", None)])
def test_canonical_property_type(value, expected):
    assert canonical_property_type(value) == expected


@pytest.mark.parametrize("value", ["lnd", "xyz"])
def test_unknown_property_type_rejected(value):
    with pytest.raises(InvalidFilter) as excinfo:
        validate_filters(ListingFilters(property_type=value), MASSACHUSETTS_CITIES)
    assert excinfo.value.errors == ["Property type must be one of: houses, condos, townhomes, multi-family"]


def test_within_radius_limit_keeps_nearest():
    listings = [build_listing(str(index), lat=42.6667 + index * 0.001, lng=-71.3020) for index in range(5)]
    assert [item.id for item in within_radius(listings, 42.6667, -71.3020, 5, limit=2)] == ["0", "1"]
