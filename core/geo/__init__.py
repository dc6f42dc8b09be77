from core.geo.geocoder import (
    PostcodeGeocoder,
    Coordinates,
    GeocoderUnavailableError,
    clean_postcode,
)
from core.geo.distance import (
    GeoDistanceService,
    Distance,
    UNKNOWN,
    UNKNOWN_DISTANCE,
    haversine,
    distance_between_coordinates,
)

__all__ = [
    'PostcodeGeocoder',
    'Coordinates',
    'GeocoderUnavailableError',
    'clean_postcode',
    'GeoDistanceService',
    'Distance',
    'UNKNOWN',
    'UNKNOWN_DISTANCE',
    'haversine',
    'distance_between_coordinates',
]
