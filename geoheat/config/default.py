import os
from pathlib import Path

REDIS = {
    "host": os.environ.get("REDIS_HOST") or "localhost",
    "port": os.environ.get("REDIS_PORT") or 6379,
    "unix_socket_path": os.environ.get("REDIS_SOCKET"),
    "cache": {
        "db": os.environ.get("REDIS_DB_CACHE") or 0,
    },
    "posts": {
        "db": os.environ.get("REDIS_DB_POSTS") or 1,
    },
}

# Heatmap results are kept that long (in seconds) before being recomputed.
CACHE_TTL = 45

# Socket timeout (in seconds) for cache round-trips; on timeout the cache
# reports a miss.
CACHE_TIMEOUT = 0.5

# Maximum time (in seconds) allowed to the post store query of one heatmap.
QUERY_TIMEOUT = 5.0

# Posts loaded from the store per round-trip while answering a query.
QUERY_CHUNK_SIZE = 500

# Characteristic time (in hours) over which a post weight decays by a factor e.
DECAY_HOURS = 72.0

# Weight of a post which has no creation date.
MISSING_TIMESTAMP_WEIGHT = 0.1

# Number of tags reported per cell.
TOP_TAGS = 2

# Geohash precision bounds; requested precisions are clamped into this range.
MIN_PRECISION = 1
MAX_PRECISION = 12

# Used by the HTTP layer when the request does not say.
DEFAULT_PRECISION = 6
DEFAULT_SINCE_HOURS = 72

# Precision of the geohash stored alongside each post.
INDEX_PRECISION = 7

MAINTENANCE_BATCH_SIZE = 100

# Posts are indexed in sets per geohash cell, at every precision up to this
# one. Raising it needs a `reindex` at least that precise.
CELL_INDEX_PRECISION = 5

# Maximum number of cells read to answer one query; coarser cells are used
# for larger boxes.
CELL_COVER_LIMIT = 64

# Legacy data stored (0, 0) for "no location"; set to True to keep reading
# those records as located nowhere.
ZERO_LOCATION_IS_MISSING = False

# Any object like instance having `loads` and `dumps` methods.
POST_SERIALIZER_PYPATH = "geoheat.helpers.serializers.ZlibSerializer"

POST_STORE_PYPATH = "geoheat.posts.RedisPostStore"

LOG_DIR = os.environ.get("GEOHEAT_LOG_DIR", Path(__file__).parent.parent.parent)

LOG_QUERIES = False
SLOW_QUERIES = False  # False or time in ms to consider query as slow
