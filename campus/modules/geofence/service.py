"""
Geofence Validator - great-circle distance checks against class locations
"""
import logging
import math
from typing import Optional

from campus.core.config import settings
from campus.core.errors import InvalidCoordinate
from campus.models.domain import GeoPoint, ClassLocation, GeofenceResult

logger = logging.getLogger(__name__)


def validate_point(point: GeoPoint) -> GeoPoint:
    """Reject coordinates outside [-90, 90] / [-180, 180] or non-finite"""
    try:
        lat = float(point.latitude)
        lon = float(point.longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinate(f"Non-numeric coordinate: ({point.latitude!r}, {point.longitude!r})")

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(f"Non-finite coordinate: ({lat}, {lon})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(f"Latitude {lat} outside [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate(f"Longitude {lon} outside [-180, 180]")
    return point


def haversine_distance(a: GeoPoint, b: GeoPoint, earth_radius: float = 6_371_000.0) -> float:
    """
    Great-circle distance in meters between two points.

    Uses atan2 so antipodal points and the poles stay well defined.
    """
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push h a hair outside [0, 1]
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return earth_radius * c


class GeofenceValidator:
    """
    Checks whether a live location fix is inside a class geofence.

    Stateless: the same inputs always give the same result.
    """

    def __init__(self, earth_radius: Optional[float] = None):
        self.earth_radius = earth_radius if earth_radius is not None else settings.earth_radius_meters

    def distance_meters(self, a: GeoPoint, b: GeoPoint) -> float:
        """Distance in meters between two validated points"""
        validate_point(a)
        validate_point(b)
        return haversine_distance(a, b, self.earth_radius)

    def is_within_radius(self, current: GeoPoint, target: ClassLocation) -> GeofenceResult:
        """
        Compare the distance to the class anchor with its radius.

        The boundary is inclusive: distance == radius is verified.
        """
        radius = float(target.radius)
        if not math.isfinite(radius) or radius < 0:
            raise InvalidCoordinate(f"Invalid radius {target.radius!r} for class {target.id}")

        distance = self.distance_meters(current, target.anchor)
        verified = distance <= radius

        logger.debug(
            f"Location check for class {target.id}: {distance:.1f}m "
            f"(radius {radius:.0f}m) -> {'inside' if verified else 'outside'}"
        )
        return GeofenceResult(verified=verified, distance=distance, radius=radius)
