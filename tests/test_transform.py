from datetime import datetime

import pytest

from estates.domain.properties.transform import (
    DUBAI_AREAS,
    extract_location_area,
    extract_photo_urls,
    extract_property_type,
    generate_slug,
    get_area,
    get_external_id,
    list_areas,
    parse_bedrooms,
    transform_source_record,
)


class TestGenerateSlug:
    def test_title_and_id(self):
        assert generate_slug("Luxury 2BR Apartment in Marina!", "12345") == "luxury-2br-apartment-in-marina-12345"

    def test_deterministic(self):
        assert generate_slug("Palm Villa", "9") == generate_slug("Palm Villa", "9")

    def test_base_truncated_to_fifty_characters(self):
        slug = generate_slug("a" * 80, "77")
        assert slug == "a" * 50 + "-77"

    def test_no_double_hyphen_when_cut_lands_on_separator(self):
        slug = generate_slug("a" * 49 + " tower", "77")
        assert slug == "a" * 49 + "-77"

    def test_only_lowercase_alphanumerics_and_hyphens(self):
        slug = generate_slug("  Élan -- Tower // Downtown  ", "5")
        assert slug == "lan-tower-downtown-5"
        assert not slug.startswith("-")

    def test_empty_title_falls_back_to_id(self):
        assert generate_slug("!!!", "42") == "42"


class TestExternalId:
    def test_prefers_external_id(self):
        assert get_external_id({"externalID": "8812", "id": 5}) == "8812"
        assert get_external_id({"id": 5}) == "5"

    @pytest.mark.parametrize("record", [{}, {"externalID": None, "id": None}, {"externalID": "  "}])
    def test_missing_id_is_rejected(self, record):
        with pytest.raises(ValueError, match="no externalID or id"):
            get_external_id(record)


class TestFieldExtraction:
    def test_bedrooms(self):
        assert parse_bedrooms("3") == 3
        assert parse_bedrooms(4) == 4
        assert parse_bedrooms("studio") == 0
        assert parse_bedrooms("5+ maid") == 5
        assert parse_bedrooms(None) == 0
        assert parse_bedrooms("n/a") == 0

    def test_property_type_mapping(self):
        assert extract_property_type([{"slug": "villas"}]) == "villa"
        assert extract_property_type([{"slug": "Penthouses"}]) == "penthouse"
        assert extract_property_type([{"slug": "hotel-apartments"}]) == "apartment"
        assert extract_property_type(None) == "apartment"

    def test_location_prefers_community_level(self):
        location = [{"level": 0, "name": "UAE"}, {"level": 2, "name": "JLT Cluster D"}]
        assert extract_location_area(location) == "JLT Cluster D"
        assert extract_location_area([{"level": 0, "name": "Dubai"}]) == "Dubai"
        assert extract_location_area([]) == "Dubai"

    def test_photo_urls_cover_first_and_deduplicated(self, make_listing):
        record = make_listing(
            "1",
            photos=[{"url": "https://images.bayut.com/1/cover.jpg"}] + [{"url": f"https://img/{i}.jpg"} for i in range(15)],
        )
        urls = extract_photo_urls(record)
        assert urls[0] == "https://images.bayut.com/1/cover.jpg"
        assert len(urls) == 10
        assert len(set(urls)) == len(urls)


class TestTransformSourceRecord:
    def test_maps_listing_onto_property_columns(self, make_listing):
        synced_at = datetime(2026, 1, 5, 12, 0)
        data = transform_source_record(make_listing("812", purpose="for-rent"), synced_at=synced_at)

        assert data["external_id"] == "812"
        assert data["external_source"] == "bayut"
        assert data["external_url"] == "https://www.bayut.com/property/details-812.html"
        assert data["slug"] == "marina-view-tower-812"
        assert data["listing_type"] == "rent"
        assert data["bedrooms"] == 2
        assert data["size_sqft"] == 1025
        assert data["location_area"] == "Dubai Marina"
        assert data["latitude"] == 25.08
        assert data["is_published"] is False
        assert data["images"] == []
        assert data["last_synced_at"] == synced_at

    def test_missing_fields_get_defaults(self):
        data = transform_source_record({"externalID": "9"})
        assert data["title"] == "Property"
        assert data["price_aed"] == 0
        assert data["listing_type"] == "sale"
        assert data["property_type"] == "apartment"
        assert data["location_area"] == "Dubai"
        assert data["amenities"] == []


class TestAreas:
    def test_lookup(self):
        assert get_area("dubai-marina") == {"slug": "dubai-marina", "name": "Dubai Marina", "location_id": "5002"}
        assert get_area("atlantis") is None

    def test_list_areas_covers_every_slug(self):
        assert [a["slug"] for a in list_areas()] == list(DUBAI_AREAS)
