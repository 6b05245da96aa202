"""Where the observer is: coordinates from the caller or from the IP, and the
IANA zone that governs local dates there."""
from __future__ import annotations
import logging
from typing import Optional, Tuple

import pytz
import requests
from timezonefinder import TimezoneFinder

logger = logging.getLogger(__name__)

_finder: Optional[TimezoneFinder] = None


def iana_timezone_for(lat: float, lon: float):
    """pytz zone at the coordinates; UTC over open sea."""
    global _finder
    if _finder is None:
        _finder = TimezoneFinder()
    tzname = _finder.timezone_at(lng=lon, lat=lat) or "UTC"
    return pytz.timezone(tzname)


def autolocate() -> Tuple[float, float]:
    """Best-effort IP geolocation returning ``(latitude, longitude)``.

    Tries ipinfo.io first, then ipapi.co. Errors from the fallback service
    propagate so the caller can ask for explicit coordinates.
    """
    try:
        response = requests.get("https://ipinfo.io/json", timeout=4)
        loc = response.json().get("loc") if response.ok else None
        if loc:
            lat_s, lon_s = loc.split(",")
            return float(lat_s), float(lon_s)
    except (requests.RequestException, ValueError) as e:
        logger.info("ipinfo.io lookup failed (%s); trying ipapi.co", e)

    fallback = requests.get("https://ipapi.co/json", timeout=4)
    fallback.raise_for_status()
    data = fallback.json()
    return float(data["latitude"]), float(data["longitude"])
