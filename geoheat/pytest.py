"""
Exposes a pytest plugin so geoheat plugins do not need to recode all the test
setup logic.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
import uuid

import pytest

# Do not import files from the top of the module, otherwise they will
# not be taken into account by the coverage.

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def pytest_configure():
    from geoheat.config import config as geoheat_config

    geoheat_config.__class__.TESTING = True
    # Force test config.
    from geoheat import config as config_module

    os.environ["GEOHEAT_CONFIG_MODULE"] = str(
        Path(config_module.__file__).parent / "test.py"
    )
    import logging

    logging.basicConfig(level=logging.DEBUG)
    geoheat_config.REDIS["cache"]["db"] = 14
    geoheat_config.REDIS["posts"]["db"] = 15
    geoheat_config.load()
    connect_fakeredis()


def import_fakeredis():
    try:
        import fakeredis
    except ImportError as e:
        raise pytest.UsageError(
            "The geoheat pytest plugin needs fakeredis: pip install geoheat[test]"
        ) from e
    return fakeredis


def connect_fakeredis():
    """Point both Redis proxies to an in-process server, so tests never touch
    a real Redis."""
    fakeredis = import_fakeredis()

    from geoheat import db, posts

    server = fakeredis.FakeServer()
    db.DB.instance = fakeredis.FakeRedis(server=server, db=14)
    posts._DB.instance = fakeredis.FakeRedis(server=server, db=15)


def pytest_runtest_setup(item):
    fakeredis = import_fakeredis()

    from geoheat import db, posts

    assert isinstance(db.DB.instance, fakeredis.FakeRedis)
    assert isinstance(posts._DB.instance, fakeredis.FakeRedis)


def pytest_runtest_teardown(item, nextitem):
    from geoheat import db, posts

    db.DB.flushdb()
    posts._DB.flushdb()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def factory(now):
    from geoheat.posts import POSTS, Location, Post

    def _(**kwargs):
        skip_store = kwargs.pop("skip_store", False)
        lat = kwargs.pop("lat", 48.8566)
        lng = kwargs.pop("lng", 2.3522)
        default = {
            "id": uuid.uuid4().hex,
            "location": Location(lat, lng, kwargs.pop("geohash", None)),
            "tags": [],
            "created_at": now,
            "visibility": "PUBLIC",
        }
        default.update(kwargs)
        post = Post(**default)
        if not skip_store:
            POSTS.upsert(post)
        return post

    return _


@pytest.fixture
def post(factory):
    return factory()


@pytest.fixture
def app():
    # Do not import before redis config has been
    # patched.
    from geoheat.http.wsgi import application

    return application


@pytest.fixture
def client(app):
    """Provide a Falcon test client accepting dict query strings."""
    from falcon import testing
    from urllib.parse import urlencode

    class _Client(testing.TestClient):
        def get(self, path, **kwargs):
            qs = kwargs.get("query_string")
            if isinstance(qs, dict):
                kwargs["query_string"] = urlencode(qs, doseq=True)
            return super().get(path, **kwargs)

    return _Client(app)


class MonkeyPatchWrapper(object):
    def __init__(self, monkeypatch, wrapped_object):
        super().__setattr__("monkeypatch", monkeypatch)
        super().__setattr__("wrapped_object", wrapped_object)

    def __getattr__(self, attr):
        return getattr(self.wrapped_object, attr)

    def __setattr__(self, attr, value):
        self.monkeypatch.setattr(self.wrapped_object, attr, value, raising=False)

    def __delattr__(self, attr):
        self.monkeypatch.delattr(self.wrapped_object, attr)


@pytest.fixture()
def config(request, monkeypatch):
    from geoheat.config import config as geoheat_config

    return MonkeyPatchWrapper(monkeypatch, geoheat_config)
