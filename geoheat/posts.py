"""Posts, as seen by the heatmap, and the store they are read from."""

import time
from datetime import datetime, timezone

from hashids import Hashids

from geoheat.config import config
from geoheat.db import RedisProxy, get_redis_params
from geoheat.helpers import chunked, keys
from geoheat.helpers import geohash as codec

PUBLIC = "PUBLIC"
FOLLOWERS = "FOLLOWERS"
PRIVATE = "PRIVATE"
VISIBILITIES = (PUBLIC, FOLLOWERS, PRIVATE)

DATA_FIELD = "data"
GEOHASH_FIELD = "geohash"
CELL_FIELD = "cell"

hashids = Hashids()


def parse_datetime(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        # fromisoformat only knows about "Z" since python 3.11.
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Location:

    __slots__ = ("lat", "lng", "geohash")

    def __init__(self, lat, lng, geohash=None):
        self.lat = float(lat)
        self.lng = float(lng)
        self.geohash = geohash or None

    @classmethod
    def from_dict(cls, data):
        if not data:
            return None
        lat, lng = data.get("lat"), data.get("lng", data.get("lon"))
        if lat is None or lng is None:
            return None
        location = cls(lat, lng, data.get("geohash") or data.get("geohashIndex"))
        if config.ZERO_LOCATION_IS_MISSING and not location.lat and not location.lng:
            return None
        return location

    def as_dict(self):
        data = {"lat": self.lat, "lng": self.lng}
        if self.geohash:
            data["geohash"] = self.geohash
        return data

    def __repr__(self):
        return "<Location {},{} ({})>".format(self.lat, self.lng, self.geohash)


class Post:
    def __init__(
        self, id=None, location=None, tags=None, created_at=None, visibility=PUBLIC
    ):
        if visibility not in VISIBILITIES:
            raise ValueError("Unknown visibility {!r}".format(visibility))
        self.id = id
        self.location = location
        self.tags = list(tags or [])
        self.created_at = parse_datetime(created_at)
        self.visibility = visibility

    @classmethod
    def from_dict(cls, data):
        created_at = data.get("created_at", data.get("createdAt"))
        return cls(
            id=data.get("id"),
            location=Location.from_dict(data.get("location")),
            tags=data.get("tags"),
            created_at=created_at,
            visibility=data.get("visibility", PUBLIC),
        )

    def as_dict(self):
        return {
            "id": self.id,
            "location": self.location.as_dict() if self.location else None,
            "tags": self.tags,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "visibility": self.visibility,
        }

    @property
    def is_public(self):
        return self.visibility == PUBLIC

    def has_tag(self, tag):
        tag = tag.casefold()
        return any(t.casefold() == tag for t in self.tags)

    def __repr__(self):
        return "<Post {} {} {}>".format(self.id, self.location, self.visibility)


def move_cell(pipe, post_id, previous, cell):
    """Queue the cell set updates moving `post_id` from `previous` to `cell`
    (either may be None)."""
    if previous == cell:
        return
    if previous:
        for size in range(1, len(previous) + 1):
            pipe.srem(keys.cell_key(previous[:size]), post_id)
    if cell:
        for size in range(1, len(cell) + 1):
            pipe.sadd(keys.cell_key(cell[:size]), post_id)


def check_deadline(deadline):
    if deadline is not None and time.monotonic() > deadline:
        raise TimeoutError("Post store query exceeded its deadline")


class RedisPostStore:
    """Posts as hashes (serialized document, geohash index field and cell
    field), with two sorted sets: ids in lexicographic order, and ids by
    creation time.

    Each located post is also a member of the `g|<prefix>` sets of its cell at
    every precision up to CELL_INDEX_PRECISION, so a bounding box query only
    reads the posts of the cells covering it.
    """

    def next_id(self):
        return hashids.encode(_DB.incr("_id_sequence"))

    def upsert(self, *posts):
        for post in posts:
            if post.id is None:
                post.id = self.next_id()
            post.id = str(post.id)
        previous = self.cells(*(post.id for post in posts))
        pipe = _DB.pipeline(transaction=True)
        for post in posts:
            key = keys.post_key(post.id)
            doc = post.as_dict()
            if doc["location"]:
                doc["location"].pop("geohash", None)
            pipe.delete(key)
            mapping = {DATA_FIELD: config.POST_SERIALIZER.dumps(doc)}
            if post.location and post.location.geohash:
                mapping[GEOHASH_FIELD] = post.location.geohash
            cell = self.cell_for(post.location)
            if cell:
                mapping[CELL_FIELD] = cell
            move_cell(pipe, post.id, previous.get(post.id), cell)
            pipe.hset(key, mapping=mapping)
            pipe.zadd(keys.POST_IDS_KEY, {post.id: 0})
            if post.created_at:
                score = post.created_at.timestamp()
                pipe.zadd(keys.POST_TIMELINE_KEY, {post.id: score})
            else:
                pipe.zrem(keys.POST_TIMELINE_KEY, post.id)
        pipe.execute()
        return posts

    def remove(self, *ids):
        previous = self.cells(*ids)
        pipe = _DB.pipeline(transaction=True)
        for post_id in ids:
            move_cell(pipe, post_id, previous.get(post_id), None)
            pipe.delete(keys.post_key(post_id))
            pipe.zrem(keys.POST_IDS_KEY, post_id)
            pipe.zrem(keys.POST_TIMELINE_KEY, post_id)
        pipe.execute()

    def cell_for(self, location):
        if not location:
            return None
        return codec.encode(location.lat, location.lng, config.CELL_INDEX_PRECISION)

    def cells(self, *ids):
        """Map each id to the cell it is currently indexed in."""
        pipe = _DB.pipeline(transaction=False)
        for post_id in ids:
            pipe.hget(keys.post_key(post_id), CELL_FIELD)
        return {
            post_id: cell.decode()
            for post_id, cell in zip(ids, pipe.execute())
            if cell
        }

    def get(self, post_id):
        for post in self.fetch(post_id):
            return post
        return None

    def fetch(self, *ids):
        pipe = _DB.pipeline(transaction=False)
        ids = [i.decode() if isinstance(i, bytes) else i for i in ids]
        for post_id in ids:
            pipe.hgetall(keys.post_key(post_id))
        for post_id, raw in zip(ids, pipe.execute()):
            blob = raw.get(DATA_FIELD.encode())
            if blob is None:
                continue
            post = Post.from_dict(config.POST_SERIALIZER.loads(blob))
            post.id = post_id
            geoh = raw.get(GEOHASH_FIELD.encode())
            if post.location:
                post.location.geohash = geoh.decode() if geoh else None
            yield post

    def count(self):
        return _DB.zcard(keys.POST_IDS_KEY)

    def candidates(self, bbox):
        """Ids of the posts indexed in the cells covering `bbox`, sorted."""
        _, cells = codec.cover(
            bbox, config.CELL_INDEX_PRECISION, config.CELL_COVER_LIMIT
        )
        return sorted(_DB.sunion([keys.cell_key(cell) for cell in cells]))

    def created_since(self, ids, since):
        """Keep the `ids` created at or after `since`, oldest first."""
        pipe = _DB.pipeline(transaction=False)
        for post_id in ids:
            pipe.zscore(keys.POST_TIMELINE_KEY, post_id)
        threshold = since.timestamp()
        scored = [
            (score, post_id)
            for post_id, score in zip(ids, pipe.execute())
            if score is not None and score >= threshold
        ]
        return [post_id for _, post_id in sorted(scored)]

    def find_public(self, bbox, since=None, tag=None, deadline=None):
        """Public located posts inside `bbox` (inclusive), created at or after
        `since` when given, carrying `tag` (case insensitive) when given.

        Posts come in id order, or in creation order when `since` is given.
        """
        ids = self.candidates(bbox)
        check_deadline(deadline)
        if since is not None:
            ids = self.created_since(ids, since)
        posts = []
        for chunk in chunked(ids, config.QUERY_CHUNK_SIZE):
            check_deadline(deadline)
            for post in self.fetch(*chunk):
                if not post.is_public or not post.location:
                    continue
                if not bbox.contains(post.location.lat, post.location.lng):
                    continue
                if tag and not post.has_tag(tag):
                    continue
                posts.append(post)
        return posts

    def scan_for_index(self, cursor=None, count=100, missing_only=True):
        """Return `(next_cursor, posts)` for the `count` ids following
        `cursor`, keeping only located posts (and only those without a
        geohash when `missing_only`). `next_cursor` is None when this batch
        reaches the end of the collection."""
        start = "({}".format(cursor) if cursor else "-"
        # One more id tells whether anything follows this batch.
        ids = _DB.zrangebylex(keys.POST_IDS_KEY, start, "+", start=0, num=count + 1)
        next_cursor = ids[count - 1].decode() if len(ids) > count else None
        ids = ids[:count]
        posts = [
            post
            for post in self.fetch(*ids)
            if post.location and not (missing_only and post.location.geohash)
        ]
        return next_cursor, posts

    def set_geohash(self, post_id, value):
        """Partial update of the geohash index field of a single post. Its
        cell membership is checked against the stored coordinates on the
        way, so a reindex also repairs the cell sets."""
        key = keys.post_key(post_id)

        def update(pipe):
            blob, previous = pipe.hmget(key, DATA_FIELD, CELL_FIELD)
            if blob is None:
                raise LookupError("Post {} not found".format(post_id))
            doc = config.POST_SERIALIZER.loads(blob)
            cell = self.cell_for(Location.from_dict(doc.get("location")))
            previous = previous.decode() if previous else None
            pipe.multi()
            pipe.hset(key, GEOHASH_FIELD, value)
            if cell != previous:
                move_cell(pipe, post_id, previous, cell)
                if cell:
                    pipe.hset(key, CELL_FIELD, cell)
                else:
                    pipe.hdel(key, CELL_FIELD)

        _DB.transaction(update, key)

    def flushdb(self):
        _DB.flushdb()


class StoreProxy:
    instance = None

    def __getattr__(self, name):
        return getattr(self.instance, name)


_DB = RedisProxy()
POSTS = StoreProxy()


@config.on_load
def on_load():
    POSTS.instance = config.POST_STORE()
    # Do not create connection if not using this store class.
    if config.POST_STORE == RedisPostStore:
        _DB.connect(**get_redis_params("posts", socket_timeout=config.QUERY_TIMEOUT))
