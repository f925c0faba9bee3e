"""Geographic value objects for cadastral parcels.

Coordinates are kept as Decimal rounded half-up to six places, which is
the precision used by the cadastre. Distance math happens in float.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ValidationError

EARTH_RADIUS_METERS = 6_371_000.0

MIN_LATITUDE = Decimal("-18.5")
MAX_LATITUDE = Decimal("0.0")
MIN_LONGITUDE = Decimal("-81.5")
MAX_LONGITUDE = Decimal("-68.0")

_PRECISION = Decimal("0.000001")

CoordinateInput = Decimal | float | int | str


def _to_decimal(value: CoordinateInput, name: str) -> Decimal:
    # str() first so floats keep their shortest repr (0.1 -> "0.1")
    try:
        return Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(
            f"{name} must be a number", details={name: value}
        ) from e


@dataclass(frozen=True)
class ParcelLocation:
    """A validated point inside the national bounding box."""

    latitude: Decimal
    longitude: Decimal

    @classmethod
    def create(
        cls,
        latitude: CoordinateInput | None,
        longitude: CoordinateInput | None,
    ) -> "ParcelLocation":
        """Validate bounds and round to cadastral precision.

        Raises:
            ValidationError: If a coordinate is missing, not numeric, or
                outside the national bounding box.
        """
        if latitude is None or longitude is None:
            raise ValidationError("Latitude and longitude must not be empty")

        lat = _to_decimal(latitude, "latitude")
        lon = _to_decimal(longitude, "longitude")

        if not lat.is_finite() or lat < MIN_LATITUDE or lat > MAX_LATITUDE:
            raise ValidationError(
                f"Latitude must be between {MIN_LATITUDE} and {MAX_LATITUDE} degrees",
                details={"latitude": str(lat)},
            )
        if not lon.is_finite() or lon < MIN_LONGITUDE or lon > MAX_LONGITUDE:
            raise ValidationError(
                f"Longitude must be between {MIN_LONGITUDE} and {MAX_LONGITUDE} degrees",
                details={"longitude": str(lon)},
            )

        return cls(
            latitude=lat.quantize(_PRECISION, rounding=ROUND_HALF_UP),
            longitude=lon.quantize(_PRECISION, rounding=ROUND_HALF_UP),
        )

    def distance_to(self, other: "ParcelLocation") -> float:
        """Great-circle distance in meters (haversine)."""
        lat1 = math.radians(float(self.latitude))
        lat2 = math.radians(float(other.latitude))
        delta_lat = math.radians(float(other.latitude - self.latitude))
        delta_lon = math.radians(float(other.longitude - self.longitude))

        a = (
            math.sin(delta_lat / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return EARTH_RADIUS_METERS * c

    def is_within(self, other: "ParcelLocation", meters: float) -> bool:
        return self.distance_to(other) <= meters

    def __str__(self) -> str:
        return f"ParcelLocation(lat={self.latitude:.6f}, lon={self.longitude:.6f})"


def distance_meters(a: ParcelLocation, b: ParcelLocation) -> float:
    """Haversine distance between two locations, in meters."""
    return a.distance_to(b)


def within_radius(a: ParcelLocation, b: ParcelLocation, meters: float) -> bool:
    return a.is_within(b, meters)


def bounding_box(
    center: ParcelLocation, radius_m: float
) -> tuple[float, float, float, float]:
    """Coarse (min_lat, max_lat, min_lon, max_lon) box enclosing a radius.

    Used by stores to prefilter rows before the exact haversine check.
    The box is slightly larger than the circle, never smaller.
    """
    lat = float(center.latitude)
    lon = float(center.longitude)
    delta_lat = math.degrees(radius_m / EARTH_RADIUS_METERS)
    # cos(lat) > 0.9 inside the national bounding box
    delta_lon = delta_lat / max(math.cos(math.radians(lat)), 0.01)
    margin = 1e-6
    return (
        lat - delta_lat - margin,
        lat + delta_lat + margin,
        lon - delta_lon - margin,
        lon + delta_lon + margin,
    )
