import logging
import time

import pytest
import redis

from geoheat.cache import HEATMAPS, HeatmapCache, TTLCache, heatmap
from geoheat.core import Cell
from geoheat.db import DB
from geoheat.helpers.bbox import InvalidBoundingBox

PARIS = "2.2,48.8,2.5,48.9"
CELLS = [Cell("u09tv", 48.85, 2.35, 1.5, ["food", "art"])]


class BrokenRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("Connection refused")

        return fail


def test_set_then_get():
    HEATMAPS.set(PARIS, 6, 72, "food", CELLS)
    assert HEATMAPS.get(PARIS, 6, 72, "food") == CELLS


def test_miss_returns_none():
    assert HEATMAPS.get(PARIS, 6, 72, "food") is None


def test_key_is_built_from_normalized_params():
    assert HEATMAPS.key(PARIS, 6, 72, "Food") == "hm|2.2,48.8,2.5,48.9|6|72|food"
    assert HEATMAPS.key("2,48,3,49", 6, 0, None) == "hm|2.0,48.0,3.0,49.0|6|0|-"
    assert HEATMAPS.key(None, 6, -3, "") == "hm|-|6|0|-"


def test_equivalent_params_share_an_entry():
    HEATMAPS.set("2,48,3,49", 6, 72, "FOOD", CELLS)
    assert HEATMAPS.get("2.0,48.0,3.0,49.0", 6, 72, "food") == CELLS


def test_entries_expire():
    cache = HeatmapCache(DB, ttl=0.05)
    cache.set(PARIS, 6, 72, None, CELLS)
    assert cache.get(PARIS, 6, 72, None) == CELLS
    time.sleep(0.1)
    assert cache.get(PARIS, 6, 72, None) is None


def test_default_ttl(config):
    HEATMAPS.set(PARIS, 6, 72, None, CELLS)
    assert 0 < DB.pttl(HEATMAPS.key(PARIS, 6, 72, None)) <= 45000
    config.CACHE_TTL = 2
    HEATMAPS.set(PARIS, 7, 72, None, CELLS)
    assert 0 < DB.pttl(HEATMAPS.key(PARIS, 7, 72, None)) <= 2000


def test_invalidate_all():
    DB.set("other", "value")
    HEATMAPS.set(PARIS, 6, 72, None, CELLS)
    HEATMAPS.set("2,48,3,49", 5, 0, "food", CELLS)
    assert HEATMAPS.invalidate_all() == 2
    assert HEATMAPS.get(PARIS, 6, 72, None) is None
    assert HEATMAPS.get("2,48,3,49", 5, 0, "food") is None
    assert DB.get("other") == b"value"


def test_invalidate_for_bbox():
    HEATMAPS.set(PARIS, 6, 72, None, CELLS)
    HEATMAPS.set(PARIS, 8, 0, "food", CELLS)
    HEATMAPS.set("2,48,3,49", 6, 72, None, CELLS)
    assert HEATMAPS.invalidate_for_bbox("2.20,48.80,2.50,48.90") == 2
    assert HEATMAPS.get(PARIS, 6, 72, None) is None
    assert HEATMAPS.get(PARIS, 8, 0, "food") is None
    assert HEATMAPS.get("2,48,3,49", 6, 72, None) == CELLS


def test_invalidate_for_location():
    HEATMAPS.set(PARIS, 6, 72, None, CELLS)
    HEATMAPS.set("2,48,3,49", 6, 72, None, CELLS)
    HEATMAPS.set("4.7,45.7,4.9,45.8", 6, 72, None, CELLS)  # Lyon
    assert HEATMAPS.invalidate_for_location(48.85, 2.35) == 2
    assert HEATMAPS.get("4.7,45.7,4.9,45.8", 6, 72, None) == CELLS


def test_unreadable_entry_is_a_miss():
    DB.set(HEATMAPS.key(PARIS, 6, 72, None), "not json{")
    assert HEATMAPS.get(PARIS, 6, 72, None) is None
    assert DB.get(HEATMAPS.key(PARIS, 6, 72, None)) is None


def test_unavailable_cache_degrades_to_miss(caplog):
    cache = HeatmapCache(BrokenRedis())
    with caplog.at_level(logging.WARNING, logger="geoheat.cache"):
        cache.set(PARIS, 6, 72, None, CELLS)
        assert cache.get(PARIS, 6, 72, None) is None
        assert cache.invalidate_all() == 0
        assert cache.invalidate_for_bbox(PARIS) == 0
    assert "Cache get failed" in caplog.text
    assert "Cache set failed" in caplog.text


def test_ttl_cache_stores_json():
    cache = TTLCache(DB, ttl=10)
    cache.set("some|key", {"a": [1, 2]})
    assert cache.get("some|key") == {"a": [1, 2]}
    assert cache.delete("some|key") == 1
    assert cache.get("some|key") is None


def test_heatmap_reads_through(factory, now):
    factory()
    cells = heatmap(PARIS, 6, 0, None, now=now)
    assert len(cells) == 1
    assert HEATMAPS.get(PARIS, 6, 0, None) == cells
    # Served from cache, the new post is not seen yet.
    factory()
    assert heatmap(PARIS, 6, 0, None, now=now) == cells
    HEATMAPS.invalidate_for_bbox(PARIS)
    assert heatmap(PARIS, 6, 0, None, now=now)[0].weight == pytest.approx(2.0)


def test_heatmap_defaults(factory, now, config):
    config.DEFAULT_SINCE_HOURS = 0
    factory()
    cells = heatmap(PARIS, now=now)
    assert len(cells[0].geohash) == config.DEFAULT_PRECISION
    assert HEATMAPS.get(PARIS, config.DEFAULT_PRECISION, 0, None) == cells


def test_heatmap_works_without_cache(factory, now, monkeypatch):
    monkeypatch.setattr(HEATMAPS.store, "db", BrokenRedis())
    factory()
    assert len(heatmap(PARIS, 6, 0, None, now=now)) == 1


def test_heatmap_invalid_bbox(monkeypatch):
    monkeypatch.setattr(HEATMAPS.store, "db", BrokenRedis())
    with pytest.raises(InvalidBoundingBox):
        heatmap("1,2,3", 6, 72, None)
