#!/usr/bin/env python3
"""
Geo Distance Service - great-circle distance between two postcodes.

Distances are computed with the haversine formula twice, once with the
Earth's radius in kilometres and once in miles, and rounded to one decimal.
When either postcode cannot be resolved the service answers with a sentinel
large distance instead of failing, so ranking still works.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

from core.geo.geocoder import Coordinates, GeocoderUnavailableError, PostcodeGeocoder, clean_postcode
from core.utils import round_half_up

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371
EARTH_RADIUS_MILES = 3959
UNKNOWN_DISTANCE = 999


@dataclass(frozen=True)
class Distance:
    km: float
    miles: float

    @property
    def is_unknown(self) -> bool:
        return self.km == UNKNOWN_DISTANCE and self.miles == UNKNOWN_DISTANCE

    def to_dict(self) -> Dict[str, float]:
        return {'km': self.km, 'miles': self.miles}


UNKNOWN = Distance(km=UNKNOWN_DISTANCE, miles=UNKNOWN_DISTANCE)


def haversine(lat1: float, lon1: float, lat2: float, lon2: float, earth_radius: float = EARTH_RADIUS_KM) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return earth_radius * c


def distance_between_coordinates(origin: Coordinates, destination: Coordinates) -> Distance:
    km = haversine(origin.latitude, origin.longitude, destination.latitude, destination.longitude, EARTH_RADIUS_KM)
    miles = haversine(origin.latitude, origin.longitude, destination.latitude, destination.longitude, EARTH_RADIUS_MILES)
    return Distance(km=round_half_up(km, 1), miles=round_half_up(miles, 1))


class GeoDistanceService:
    """Resolves postcodes through the geocoder and measures the distance between them."""

    def __init__(self, geocoder: PostcodeGeocoder):
        self.geocoder = geocoder

    def coordinates_for(self, postcode: Optional[str], memo: Optional[Dict[str, Optional[Coordinates]]] = None) -> Optional[Coordinates]:
        """
        Look up a postcode; None when unknown or when the lookup is unavailable.

        `memo` is a caller-owned dict reused within a single request so a list
        query does not look up the same postcode once per row.
        """
        if not postcode:
            return None
        key = clean_postcode(postcode)
        if memo is not None and key in memo:
            return memo[key]

        try:
            coordinates = self.geocoder.resolve(key)
        except GeocoderUnavailableError as e:
            logger.warning(f"Postcode lookup unavailable for {key}: {e}")
            coordinates = None

        if memo is not None:
            memo[key] = coordinates
        return coordinates

    def distance(
        self,
        postcode_a: Optional[str],
        postcode_b: Optional[str],
        memo: Optional[Dict[str, Optional[Coordinates]]] = None,
    ) -> Distance:
        origin = self.coordinates_for(postcode_a, memo)
        destination = self.coordinates_for(postcode_b, memo)
        if origin is None or destination is None:
            return UNKNOWN
        return distance_between_coordinates(origin, destination)
