"""Axis-aligned bounding boxes in latitude/longitude space."""

import math


class InvalidBoundingBox(ValueError):
    pass


def format_coordinate(value):
    # Shortest repr that round-trips, so the same box always gives the same
    # string whatever the input formatting was ("2" and "2.0" both give "2.0").
    return repr(float(value))


class BoundingBox:

    __slots__ = ("min_lat", "max_lat", "min_lng", "max_lng")

    def __init__(self, min_lat, max_lat, min_lng, max_lng):
        try:
            values = [float(v) for v in (min_lat, max_lat, min_lng, max_lng)]
        except (TypeError, ValueError):
            raise InvalidBoundingBox(
                "Bounding box coordinates must be numbers, got {!r}".format(
                    (min_lat, max_lat, min_lng, max_lng)
                )
            )
        if not all(math.isfinite(v) for v in values):
            raise InvalidBoundingBox("Bounding box coordinates must be finite")
        min_lat, max_lat, min_lng, max_lng = values
        if min_lat > max_lat:
            raise InvalidBoundingBox("min latitude is greater than max latitude")
        if min_lng > max_lng:
            raise InvalidBoundingBox("min longitude is greater than max longitude")
        if min_lat < -90 or max_lat > 90:
            raise InvalidBoundingBox("latitude out of range (-90..90)")
        if min_lng < -180 or max_lng > 180:
            raise InvalidBoundingBox("longitude out of range (-180..180)")
        self.min_lat = min_lat
        self.max_lat = max_lat
        self.min_lng = min_lng
        self.max_lng = max_lng

    @classmethod
    def parse(cls, value):
        """Build a box from the "minLng,minLat,maxLng,maxLat" form (longitude
        first, as in GeoJSON and most map clients)."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidBoundingBox("Bounding box must be a string")
        tokens = [t.strip() for t in value.split(",")]
        if len(tokens) != 4:
            raise InvalidBoundingBox(
                "Bounding box needs 4 comma separated values, got {}".format(
                    len(tokens)
                )
            )
        min_lng, min_lat, max_lng, max_lat = tokens
        return cls(min_lat, max_lat, min_lng, max_lng)

    @property
    def canonical(self):
        return ",".join(
            format_coordinate(v)
            for v in (self.min_lng, self.min_lat, self.max_lng, self.max_lat)
        )

    @property
    def center(self):
        return (
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lng + self.max_lng) / 2.0,
        )

    def contains(self, lat, lng):
        """Bounds are inclusive."""
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lng <= lng <= self.max_lng
        )

    def as_dict(self):
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lng": self.min_lng,
            "max_lng": self.max_lng,
        }

    def __eq__(self, other):
        if not isinstance(other, BoundingBox):
            return NotImplemented
        return self.canonical == other.canonical

    def __hash__(self):
        return hash(self.canonical)

    def __str__(self):
        return self.canonical

    def __repr__(self):
        return "<BoundingBox {}>".format(self.canonical)
