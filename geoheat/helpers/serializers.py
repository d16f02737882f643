import json
import zlib


class ZlibSerializer:
    @classmethod
    def dumps(cls, data):
        return zlib.compress(json.dumps(data, separators=(",", ":")).encode())

    @classmethod
    def loads(cls, data):
        return json.loads(zlib.decompress(data).decode())


class JSONSerializer:
    """Plain JSON, handy when inspecting the store with redis-cli."""

    @classmethod
    def dumps(cls, data):
        return json.dumps(data, separators=(",", ":")).encode()

    @classmethod
    def loads(cls, data):
        if isinstance(data, bytes):
            data = data.decode()
        return json.loads(data)
