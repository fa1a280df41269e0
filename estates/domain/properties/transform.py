"""Listing transform - maps raw Bayut records onto the Property row shape"""

import re
from datetime import datetime
from typing import Any, Optional

EXTERNAL_SOURCE = "bayut"
MAX_PHOTO_URLS = 10
SLUG_BASE_MAX_LENGTH = 50
DEFAULT_AREA_NAME = "Dubai"
DEFAULT_PROPERTY_TYPE = "apartment"

# area slug -> display name + Bayut locationExternalID
DUBAI_AREAS: dict[str, dict[str, str]] = {
    "dubai-marina": {"name": "Dubai Marina", "location_id": "5002"},
    "downtown-dubai": {"name": "Downtown Dubai", "location_id": "6901"},
    "palm-jumeirah": {"name": "Palm Jumeirah", "location_id": "5548"},
    "business-bay": {"name": "Business Bay", "location_id": "6588"},
    "jumeirah-beach-residence": {"name": "Jumeirah Beach Residence (JBR)", "location_id": "5550"},
    "jumeirah-village-circle": {"name": "Jumeirah Village Circle (JVC)", "location_id": "6357"},
    "dubai-hills-estate": {"name": "Dubai Hills Estate", "location_id": "9262"},
    "arabian-ranches": {"name": "Arabian Ranches", "location_id": "5003"},
    "difc": {"name": "DIFC", "location_id": "6599"},
    "jumeirah-lake-towers": {"name": "Jumeirah Lake Towers (JLT)", "location_id": "5549"},
    "dubai-sports-city": {"name": "Dubai Sports City", "location_id": "5004"},
    "dubai-silicon-oasis": {"name": "Dubai Silicon Oasis", "location_id": "6374"},
    "al-barsha": {"name": "Al Barsha", "location_id": "5318"},
    "meydan-city": {"name": "Meydan City", "location_id": "8124"},
    "creek-harbour": {"name": "Dubai Creek Harbour", "location_id": "10817"},
}

PROPERTY_TYPE_MAP = {
    "apartment": "apartment",
    "apartments": "apartment",
    "villa": "villa",
    "villas": "villa",
    "townhouse": "townhouse",
    "townhouses": "townhouse",
    "penthouse": "penthouse",
    "penthouses": "penthouse",
    "duplex": "duplex",
    "duplexes": "duplex",
    "studio": "studio",
    "land": "land",
    "residential-plots": "land",
    "office": "commercial",
    "offices": "commercial",
    "shop": "commercial",
    "shops": "commercial",
    "warehouse": "commercial",
    "warehouses": "commercial",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_LEADING_INT = re.compile(r"^\s*(\d+)")


def get_area(slug: str) -> Optional[dict[str, str]]:
    area = DUBAI_AREAS.get(slug)
    if area is None:
        return None
    return {"slug": slug, **area}


def list_areas() -> list[dict[str, str]]:
    return [{"slug": slug, **area} for slug, area in DUBAI_AREAS.items()]


def extract_location_area(location: Optional[list[dict]]) -> str:
    """Community name from the nested location path.

    Level 1 or 2 entries name the community; otherwise the first entry is used.
    """
    if not location:
        return DEFAULT_AREA_NAME
    for entry in location:
        if entry.get("level") in (1, 2) and entry.get("name"):
            return entry["name"]
    return location[0].get("name") or DEFAULT_AREA_NAME


def extract_property_type(category: Optional[list[dict]]) -> str:
    # Unknown categories silently map to apartment
    if not category:
        return DEFAULT_PROPERTY_TYPE
    slug = (category[0].get("slug") or "").lower()
    return PROPERTY_TYPE_MAP.get(slug, DEFAULT_PROPERTY_TYPE)


def parse_bedrooms(rooms: Any) -> int:
    if rooms is None:
        return 0
    if isinstance(rooms, bool):
        return 0
    if isinstance(rooms, (int, float)):
        return max(int(rooms), 0)
    text = str(rooms).strip().lower()
    if text == "studio":
        return 0
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def generate_slug(title: str, external_id: str) -> str:
    """URL-safe slug, unique per listing through the external id suffix"""
    base = _NON_ALNUM.sub("-", (title or "").lower()).strip("-")[:SLUG_BASE_MAX_LENGTH].rstrip("-")
    return f"{base}-{external_id}" if base else str(external_id)


def get_external_id(record: dict) -> str:
    external_id = record.get("externalID") or record.get("id")
    if external_id is None or str(external_id).strip() == "":
        raise ValueError("Listing has no externalID or id")
    return str(external_id)


def extract_photo_urls(record: dict) -> list[str]:
    """Cover photo first, then gallery photos, de-duplicated"""
    urls: list[str] = []
    cover = record.get("coverPhoto") or {}
    if cover.get("url"):
        urls.append(cover["url"])
    for photo in record.get("photos") or []:
        url = photo.get("url")
        if url and url not in urls:
            urls.append(url)
    return urls[:MAX_PHOTO_URLS]


def transform_source_record(record: dict, synced_at: Optional[datetime] = None) -> dict[str, Any]:
    """Map one raw listing onto Property column values"""
    external_id = get_external_id(record)
    title = record.get("title") or "Property"
    geography = record.get("geography") or {}

    return {
        "external_id": external_id,
        "external_source": EXTERNAL_SOURCE,
        "external_url": f"https://www.bayut.com/property/details-{external_id}.html",
        "title": title,
        "description": record.get("description") or None,
        "slug": generate_slug(title, external_id),
        "price_aed": float(record.get("price") or 0),
        "listing_type": "rent" if record.get("purpose") == "for-rent" else "sale",
        "size_sqft": round(record.get("area") or 0),
        "bedrooms": parse_bedrooms(record.get("rooms")),
        "bathrooms": int(record.get("baths") or 0),
        "property_type": extract_property_type(record.get("category")),
        "furnishing": record.get("furnishingStatus") or None,
        "is_off_plan": record.get("completionStatus") == "off_plan",
        "rera_permit_number": record.get("permitNumber") or None,
        "amenities": record.get("amenities") or [],
        "images": [],
        "location_area": extract_location_area(record.get("location")),
        "latitude": geography.get("lat") or None,
        "longitude": geography.get("lng") or None,
        "is_published": False,
        "last_synced_at": synced_at or datetime.utcnow(),
    }
