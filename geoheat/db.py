import redis

from geoheat.config import config


class RedisProxy:
    instance = None
    Error = redis.RedisError

    def connect(self, *args, **kwargs):
        self.instance = redis.Redis(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.instance, name)


DB = RedisProxy()


def get_redis_params(section, **extra):
    """Return connection parameters for one of the REDIS config sections
    ("cache" or "posts"), section values overriding the shared ones."""
    params = config.REDIS.copy()
    params.update(config.REDIS.get(section, {}))
    params = {
        "host": params.get("host"),
        "port": params.get("port"),
        "db": params.get("db"),
        "password": params.get("password"),
        "unix_socket_path": params.get("unix_socket_path"),
    }
    params.update(extra)
    return params


@config.on_load
def connect():
    # The cache must never hold a request for long.
    DB.connect(
        **get_redis_params(
            "cache",
            socket_timeout=config.CACHE_TIMEOUT,
            socket_connect_timeout=config.CACHE_TIMEOUT,
        )
    )
