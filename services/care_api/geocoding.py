"""Best-effort location tagging for pickup addresses."""
import logging
import os
from typing import Optional, Tuple

import httpx

from shared.regions import is_coordinate_pair, parse_state_district

logger = logging.getLogger(__name__)

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
USER_AGENT = "HealthOps/1.0"


def reverse_geocode(lat: str, lng: str) -> Optional[str]:
    """Return Nominatim's display name for a coordinate, or None on any failure."""
    try:
        response = httpx.get(
            NOMINATIM_URL,
            params={"format": "jsonv2", "lat": lat, "lon": lng, "addressdetails": 1},
            headers={"User-Agent": USER_AGENT},
            timeout=5.0,
        )
        response.raise_for_status()
        return response.json().get("display_name") or None
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Reverse geocode failed for ({lat}, {lng}): {e}")
        return None


def locate(pickup_address: str) -> Tuple[Optional[str], Optional[str]]:
    """(state, district) for a pickup that is either free text or 'lat,lng'."""
    if is_coordinate_pair(pickup_address):
        lat, lng = (v.strip() for v in pickup_address.split(","))
        display_name = reverse_geocode(lat, lng)
        if not display_name:
            return None, None
        return parse_state_district(display_name)
    return parse_state_district(pickup_address)
