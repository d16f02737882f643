from datetime import datetime, timedelta, timezone

import pytest

from geoheat.helpers import keys
from geoheat.helpers.bbox import BoundingBox
from geoheat.helpers.geohash import encode
from geoheat.helpers.serializers import JSONSerializer
from geoheat.posts import POSTS, Location, Post, _DB, parse_datetime

PARIS = BoundingBox.parse("2.2,48.8,2.5,48.9")


def test_upsert_and_get(factory, now):
    post = factory(id="abc", tags=["food"], geohash="u09tvw0")
    stored = POSTS.get("abc")
    assert stored.id == "abc"
    assert stored.tags == ["food"]
    assert stored.created_at == now
    assert stored.location.lat == post.location.lat
    assert stored.location.geohash == "u09tvw0"
    assert stored.is_public


def test_get_unknown_post():
    assert POSTS.get("nope") is None


def test_upsert_generates_ids(factory):
    first = factory(id=None)
    second = factory(id=None)
    assert first.id
    assert first.id != second.id
    assert POSTS.count() == 2


def test_upsert_replaces(factory):
    factory(id="abc", tags=["food"])
    factory(id="abc", tags=["art"], created_at=None)
    assert POSTS.count() == 1
    stored = POSTS.get("abc")
    assert stored.tags == ["art"]
    assert stored.created_at is None
    since = datetime(2000, 1, 1, tzinfo=timezone.utc)
    assert POSTS.find_public(PARIS, since=since) == []


def test_remove(factory):
    factory(id="abc")
    POSTS.remove("abc")
    assert POSTS.get("abc") is None
    assert POSTS.count() == 0


def test_find_public(factory, now):
    factory(id="a", tags=["Food"])
    factory(id="b", visibility="PRIVATE")
    factory(id="c", lat=45.76, lng=4.83)
    factory(id="d", created_at=now - timedelta(hours=10))
    assert [p.id for p in POSTS.find_public(PARIS)] == ["a", "d"]
    since = now - timedelta(hours=1)
    assert [p.id for p in POSTS.find_public(PARIS, since=since)] == ["a"]
    assert [p.id for p in POSTS.find_public(PARIS, tag="food")] == ["a"]


def test_find_public_checks_deadline(factory):
    factory()
    with pytest.raises(TimeoutError):
        POSTS.find_public(PARIS, deadline=0)


def test_scan_for_index_walks_by_id(factory):
    for i in range(5):
        factory(id="p{}".format(i))
    cursor, posts = POSTS.scan_for_index(count=2)
    assert [p.id for p in posts] == ["p0", "p1"]
    cursor, posts = POSTS.scan_for_index(cursor, count=2)
    assert [p.id for p in posts] == ["p2", "p3"]
    cursor, posts = POSTS.scan_for_index(cursor, count=2)
    assert [p.id for p in posts] == ["p4"]
    assert cursor is None


def test_scan_for_index_knows_when_a_full_batch_is_the_last(factory):
    for i in range(4):
        factory(id="p{}".format(i))
    cursor, _ = POSTS.scan_for_index(count=2)
    assert cursor == "p1"
    cursor, posts = POSTS.scan_for_index(cursor, count=2)
    assert [p.id for p in posts] == ["p2", "p3"]
    assert cursor is None


def test_scan_for_index_on_empty_store():
    assert POSTS.scan_for_index(count=2) == (None, [])


def test_scan_for_index_filters(factory):
    factory(id="a")
    factory(id="b", geohash="u09tvw0")
    post = factory(id="c", skip_store=True)
    post.location = None
    POSTS.upsert(post)
    _, posts = POSTS.scan_for_index(count=10)
    assert [p.id for p in posts] == ["a"]
    _, posts = POSTS.scan_for_index(count=10, missing_only=False)
    assert [p.id for p in posts] == ["a", "b"]


def test_set_geohash_only_touches_the_index(factory, now):
    factory(id="abc", tags=["food"])
    POSTS.set_geohash("abc", "u09tvw0")
    stored = POSTS.get("abc")
    assert stored.location.geohash == "u09tvw0"
    assert stored.tags == ["food"]
    assert stored.created_at == now


def test_set_geohash_of_unknown_post():
    with pytest.raises(LookupError):
        POSTS.set_geohash("nope", "u09tvw0")
    assert POSTS.get("nope") is None


def test_post_from_dict():
    post = Post.from_dict(
        {
            "id": "abc",
            "location": {"lat": 48.85, "lon": 2.35, "geohashIndex": "u09tv"},
            "tags": ["food"],
            "createdAt": "2024-05-01T12:00:00Z",
            "visibility": "FOLLOWERS",
        }
    )
    assert post.location.lng == 2.35
    assert post.location.geohash == "u09tv"
    assert post.created_at == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert not post.is_public


def test_post_rejects_unknown_visibility():
    with pytest.raises(ValueError):
        Post(id="abc", visibility="SECRET")


@pytest.mark.parametrize(
    "data", [None, {}, {"lat": 48.85}, {"lng": 2.35}, {"lat": None, "lng": 2.35}]
)
def test_incomplete_location_is_missing(data):
    assert Location.from_dict(data) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-05-01T12:00:00Z", datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
        ("2024-05-01T14:00:00+02:00", datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
        ("2024-05-01T12:00:00", datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
        (1714564800, datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
        (None, None),
        ("", None),
    ],
)
def test_parse_datetime(value, expected):
    assert parse_datetime(value) == expected


def test_has_tag_is_case_insensitive():
    assert Post(id="a", tags=["Food"]).has_tag("fOOD")
    assert not Post(id="a", tags=["Food"]).has_tag("art")


def test_plain_json_serializer(factory, config):
    config.POST_SERIALIZER = JSONSerializer
    factory(id="abc", tags=["food"])
    assert POSTS.get("abc").tags == ["food"]


def record_fetches(monkeypatch):
    fetched = []
    fetch = POSTS.instance.fetch

    def wrapper(*ids):
        fetched.extend(i.decode() if isinstance(i, bytes) else i for i in ids)
        return fetch(*ids)

    monkeypatch.setattr(POSTS.instance, "fetch", wrapper)
    return fetched


def test_find_public_only_reads_covering_cells(factory, monkeypatch, now):
    factory(id="paris")
    factory(id="lyon", lat=45.76, lng=4.83)
    factory(id="sydney", lat=-33.8688, lng=151.2093)
    fetched = record_fetches(monkeypatch)
    assert [p.id for p in POSTS.find_public(PARIS)] == ["paris"]
    assert fetched == ["paris"]
    del fetched[:]
    since = now - timedelta(hours=1)
    assert [p.id for p in POSTS.find_public(PARIS, since=since)] == ["paris"]
    assert fetched == ["paris"]


def test_find_public_ignores_stored_geohash(factory):
    factory(id="abc", geohash="s0000000")
    assert [p.id for p in POSTS.find_public(PARIS)] == ["abc"]


def test_find_public_orders_by_creation_with_time_window(factory, now):
    factory(id="a", created_at=now)
    factory(id="b", created_at=now - timedelta(hours=2))
    since = now - timedelta(hours=3)
    assert [p.id for p in POSTS.find_public(PARIS, since=since)] == ["b", "a"]
    assert [p.id for p in POSTS.find_public(PARIS)] == ["a", "b"]


def test_moved_post_leaves_its_old_cell(factory):
    factory(id="abc", lat=45.76, lng=4.83)
    factory(id="abc")
    lyon = BoundingBox.parse("4.7,45.7,4.9,45.8")
    assert POSTS.find_public(lyon) == []
    assert [p.id for p in POSTS.find_public(PARIS)] == ["abc"]
    assert not _DB.sismember(keys.cell_key(encode(45.76, 4.83, 5)), "abc")


def test_remove_drops_cell_membership(factory):
    factory(id="abc")
    POSTS.remove("abc")
    for size in range(1, 6):
        assert not _DB.exists(keys.cell_key(encode(48.8566, 2.3522, size)))


def test_set_geohash_repairs_cell_index(factory):
    factory(id="abc")
    # Post stored without its cell sets.
    _DB.delete(*[keys.cell_key(encode(48.8566, 2.3522, s)) for s in range(1, 6)])
    _DB.hdel(keys.post_key("abc"), "cell")
    assert POSTS.find_public(PARIS) == []
    POSTS.set_geohash("abc", encode(48.8566, 2.3522, 7))
    assert [p.id for p in POSTS.find_public(PARIS)] == ["abc"]
