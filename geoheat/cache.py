"""Short lived heatmap results, kept in Redis."""

import json
import logging

import redis

from .config import config
from .core import Cell, compute, normalize_tag
from .db import DB
from .helpers import chunked, keys
from .helpers.bbox import BoundingBox, InvalidBoundingBox
from .helpers.geohash import clamp_precision

logger = logging.getLogger(__name__)


class CacheUnavailable(Exception):
    """Redis could not be reached; never raised to callers, only logged."""


class TTLCache:
    """Memoize JSON serializable values for `ttl` seconds, with prefix based
    invalidation.

    The cache is only an accelerator: any Redis failure (including timeouts)
    is logged, `get` then reports a miss and writes are dropped.
    """

    def __init__(self, db, ttl=None):
        self.db = db
        self._ttl = ttl

    @property
    def ttl(self):
        return self._ttl if self._ttl is not None else config.CACHE_TTL

    def unavailable(self, action, error):
        error = CacheUnavailable("Cache {} failed: {}".format(action, error))
        logger.warning("%s", error)

    def get(self, key):
        try:
            raw = self.db.get(key)
        except (redis.RedisError, OSError) as e:
            self.unavailable("get", e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Dropping unreadable cache entry %s", key)
            self.delete(key)
            return None

    def set(self, key, value):
        try:
            self.db.set(key, json.dumps(value), px=int(self.ttl * 1000))
        except (redis.RedisError, OSError) as e:
            self.unavailable("set", e)

    def delete(self, *keys):
        try:
            return self.db.delete(*keys) if keys else 0
        except (redis.RedisError, OSError) as e:
            self.unavailable("delete", e)
            return 0

    def keys(self, pattern):
        try:
            return list(self.db.scan_iter(match=pattern, count=1000))
        except (redis.RedisError, OSError) as e:
            self.unavailable("scan", e)
            return []

    def delete_matching(self, pattern, predicate=None):
        found = self.keys(pattern)
        if predicate is not None:
            found = [key for key in found if predicate(key)]
        deleted = 0
        for chunk in chunked(found, 1000):
            deleted += self.delete(*chunk)
        return deleted


def canonical_bbox(bbox):
    if bbox is None:
        return None
    if isinstance(bbox, BoundingBox):
        return bbox.canonical
    try:
        return BoundingBox.parse(bbox).canonical
    except InvalidBoundingBox:
        # Not ours to validate; an odd key is still a valid key.
        return bbox


class HeatmapCache:
    """Heatmap cells by query parameters."""

    def __init__(self, db, ttl=None):
        self.store = TTLCache(db, ttl)

    def key(self, bbox, precision, since_hours, tag):
        return keys.heatmap_key(
            canonical_bbox(bbox),
            precision,
            max(since_hours or 0, 0),
            normalize_tag(tag),
        )

    def get(self, bbox, precision, since_hours, tag):
        cells = self.store.get(self.key(bbox, precision, since_hours, tag))
        if cells is None:
            return None
        try:
            return [Cell.from_dict(cell) for cell in cells]
        except (KeyError, TypeError):
            logger.warning("Dropping malformed heatmap cache entry")
            return None

    def set(self, bbox, precision, since_hours, tag, cells):
        self.store.set(
            self.key(bbox, precision, since_hours, tag),
            [cell.as_dict() for cell in cells],
        )

    def invalidate_all(self):
        return self.store.delete_matching(keys.heatmap_pattern())

    def invalidate_for_bbox(self, bbox):
        """Drop every entry computed for that exact bounding box, whatever
        the precision, time window and tag."""
        pattern = keys.heatmap_bbox_pattern(canonical_bbox(bbox) or keys.MISSING)
        return self.store.delete_matching(pattern)

    def invalidate_for_location(self, lat, lng):
        """Drop every entry whose bounding box contains the given point."""

        def contains(key):
            bbox = keys.bbox_from_heatmap_key(key)
            if bbox is None:
                return False
            try:
                return BoundingBox.parse(bbox).contains(lat, lng)
            except InvalidBoundingBox:
                return False

        return self.store.delete_matching(keys.heatmap_pattern(), contains)


HEATMAPS = HeatmapCache(DB)


def heatmap(bbox, precision=None, since_hours=None, tag=None, now=None, timeout=None):
    """Cached heatmap: serve from cache, compute and fill it on miss."""
    bbox = BoundingBox.parse(bbox)
    if precision is None:
        precision = config.DEFAULT_PRECISION
    precision = clamp_precision(precision)
    if since_hours is None:
        since_hours = config.DEFAULT_SINCE_HOURS
    tag = normalize_tag(tag)
    cells = HEATMAPS.get(bbox, precision, since_hours, tag)
    if cells is None:
        cells = compute(bbox, precision, since_hours, tag, now=now, timeout=timeout)
        HEATMAPS.set(bbox, precision, since_hours, tag, cells)
    return cells


def invalidate(args):
    if args.bbox:
        count = HEATMAPS.invalidate_for_bbox(args.bbox)
    else:
        count = HEATMAPS.invalidate_all()
    print("Deleted {} heatmap cache entries.".format(count))


def register_command(subparsers):
    parser = subparsers.add_parser("invalidate", help="Drop cached heatmaps")
    parser.add_argument(
        "--bbox", help="Only entries of this bounding box (minLng,minLat,maxLng,maxLat)"
    )
    parser.set_defaults(func=invalidate)
