"""Geohash codec: (lat, lng, precision) to base-32 cell and back."""

import math
from collections import namedtuple
from functools import lru_cache

import geohash

from geoheat.config import config
from geoheat.helpers.bbox import BoundingBox

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"

# python-geohash rejects latitude 90 and wraps longitude 180 to -180 (cells
# are half-open at the north and east edges).
NORTH_POLE = math.nextafter(90.0, 0.0)
EAST_EDGE = math.nextafter(180.0, 0.0)
EDGE_TOLERANCE = 1e-9

Decoded = namedtuple("Decoded", ["lat", "lng", "bbox"])


class InvalidGeohash(ValueError):
    pass


def clamp_precision(precision):
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise ValueError("precision must be an integer, got {!r}".format(precision))
    return max(config.MIN_PRECISION, min(config.MAX_PRECISION, precision))


def encode(lat, lng, precision):
    lat = float(lat)
    lng = float(lng)
    if not -90 <= lat <= 90:
        raise ValueError("latitude out of range (-90..90): {}".format(lat))
    if not -180 <= lng <= 180:
        raise ValueError("longitude out of range (-180..180): {}".format(lng))
    if precision < 1:
        raise ValueError("precision must be > 0")
    if lat == 90:
        lat = NORTH_POLE
    if lng == 180:
        lng = EAST_EDGE
    return geohash.encode(lat, lng, precision)


def validate(geoh):
    if not isinstance(geoh, str) or not geoh:
        raise InvalidGeohash("Geohash must be a non empty string")
    geoh = geoh.lower()
    for char in geoh:
        if char not in BASE32:
            raise InvalidGeohash("Invalid geohash character: {!r}".format(char))
    return geoh


@lru_cache(maxsize=4096)
def decode(geoh):
    """Return the center point and the bounding box of a geohash cell."""
    geoh = validate(geoh)
    box = geohash.bbox(geoh)
    bbox = BoundingBox(box["s"], box["n"], box["w"], box["e"])
    lat, lng = bbox.center
    return Decoded(lat, lng, bbox)


def cell_of(location, precision):
    """Geohash of the cell containing `location` at `precision`, always from
    its coordinates: a stored index may be stale."""
    return encode(location.lat, location.lng, precision)


def cell_size(precision):
    """(height, width) in degrees of a cell at `precision`."""
    bits = precision * 5
    return 180.0 / 2 ** (bits // 2), 360.0 / 2 ** (bits - bits // 2)


def _span(low, high, origin, step, count):
    first = min(int((low - origin) // step), count - 1)
    last = min(int((high - origin) // step), count - 1)
    # A bound on a cell edge may round to either side of it.
    if first > 0 and (low - origin) - first * step < EDGE_TOLERANCE:
        first -= 1
    if last < count - 1 and (last + 1) * step - (high - origin) < EDGE_TOLERANCE:
        last += 1
    return range(first, last + 1)


def cover(bbox, max_precision, limit):
    """Return `(precision, cells)`: the geohash cells intersecting `bbox` at
    the finest precision not above `max_precision` needing at most `limit`
    cells (precision 1 whatever the count, there are only 32 of them)."""
    for precision in range(max_precision, 0, -1):
        height, width = cell_size(precision)
        rows = _span(bbox.min_lat, bbox.max_lat, -90.0, height, round(180 / height))
        cols = _span(bbox.min_lng, bbox.max_lng, -180.0, width, round(360 / width))
        if len(rows) * len(cols) <= limit or precision == 1:
            break
    cells = []
    for row in rows:
        lat = -90.0 + (row + 0.5) * height
        for col in cols:
            cells.append(encode(lat, -180.0 + (col + 0.5) * width, precision))
    return precision, cells
