import math
import time
from collections import Counter
from datetime import datetime, timedelta, timezone

from .config import config
from .helpers import geohash as codec
from .helpers.bbox import BoundingBox
from .posts import POSTS


class AggregationFailed(Exception):
    """The post store could not answer a heatmap query."""


class Cell:

    __slots__ = ("geohash", "lat", "lng", "weight", "top_tags")

    def __init__(self, geohash, lat, lng, weight, top_tags=None):
        self.geohash = geohash
        self.lat = lat
        self.lng = lng
        self.weight = weight
        self.top_tags = list(top_tags or [])

    @classmethod
    def from_dict(cls, data):
        return cls(
            data["geohash"], data["lat"], data["lng"], data["weight"], data["topTags"]
        )

    def as_dict(self):
        return {
            "geohash": self.geohash,
            "lat": self.lat,
            "lng": self.lng,
            "weight": self.weight,
            "topTags": self.top_tags,
        }

    def __eq__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        return "<Cell {} ({}, {}) {:.4f} {}>".format(
            self.geohash, self.lat, self.lng, self.weight, self.top_tags
        )


def utcnow():
    return datetime.now(timezone.utc)


def normalize_tag(tag):
    if tag is None:
        return None
    return tag.strip() or None


def since_hours_ago(now, hours):
    if not hours or hours <= 0:
        return None
    return now - timedelta(hours=hours)


def decay_weight(created_at, now):
    """exp(-age / DECAY_HOURS), age in hours. Dates in the future count as
    now."""
    if created_at is None:
        return config.MISSING_TIMESTAMP_WEIGHT
    hours = max((now - created_at).total_seconds() / 3600.0, 0.0)
    return math.exp(-hours / config.DECAY_HOURS)


def top_tags(posts, limit):
    """Most frequent tags (case folded) among `posts`; a post votes once per
    tag, and equal counts keep the order tags were first met in."""
    counter = Counter()
    for post in posts:
        counter.update(dict.fromkeys(tag.casefold() for tag in post.tags))
    return [tag for tag, _ in counter.most_common(limit)]


def compute(bbox, precision, since_hours=0, tag=None, now=None, timeout=None):
    """Aggregate public posts of `bbox` into weighted geohash cells.

    `bbox` is a BoundingBox or its "minLng,minLat,maxLng,maxLat" string;
    `precision` is clamped to [MIN_PRECISION, MAX_PRECISION]. Only posts
    created in the last `since_hours` are considered when it is positive, and
    only those tagged `tag` when given. The store query is given `timeout`
    seconds (QUERY_TIMEOUT by default).

    Return the cells sorted by decreasing weight.
    """
    bbox = BoundingBox.parse(bbox)
    precision = codec.clamp_precision(precision)
    tag = normalize_tag(tag)
    if now is None:
        now = utcnow()
    if timeout is None:
        timeout = config.QUERY_TIMEOUT
    deadline = time.monotonic() + timeout if timeout else None
    try:
        posts = POSTS.find_public(
            bbox, since=since_hours_ago(now, since_hours), tag=tag, deadline=deadline
        )
    except Exception as e:
        raise AggregationFailed("Unable to query posts: {}".format(e)) from e

    groups = {}
    for post in posts:
        groups.setdefault(codec.cell_of(post.location, precision), []).append(post)

    cells = []
    for geoh, members in groups.items():
        center = codec.decode(geoh)
        cells.append(
            Cell(
                geohash=geoh,
                lat=center.lat,
                lng=center.lng,
                weight=sum(decay_weight(post.created_at, now) for post in members),
                top_tags=top_tags(members, config.TOP_TAGS),
            )
        )
    cells.sort(key=lambda cell: (-cell.weight, cell.geohash))
    return cells
