import json
import logging
import logging.handlers
from pathlib import Path
import time

import falcon

from geoheat.cache import heatmap
from geoheat.config import config
from geoheat.core import AggregationFailed
from geoheat.db import DB
from geoheat.helpers.bbox import InvalidBoundingBox

logger = logging.getLogger(__name__)

query_logger = None
slow_query_logger = None


def get_logger(name):
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    filename = Path(config.LOG_DIR).joinpath("{}.log".format(name))
    try:
        handler = logging.handlers.TimedRotatingFileHandler(
            str(filename), when="midnight"
        )
    except FileNotFoundError:
        print("Unable to write to {}".format(filename))
    else:
        logger.addHandler(handler)
    return logger


@config.on_load
def on_load():
    if config.LOG_QUERIES:
        global query_logger
        query_logger = get_logger("queries")

    if config.SLOW_QUERIES:
        global slow_query_logger
        slow_query_logger = get_logger("slow_queries")


def describe(params, cells):
    return [
        params["bbox"],
        str(params["precision"]),
        str(params["since_hours"]),
        params["tag"] or "-",
        str(len(cells)),
    ]


def log_query(params, cells):
    if config.LOG_QUERIES:
        query_logger.debug("\t".join(describe(params, cells)))


def log_slow_query(params, cells, timer):
    if config.SLOW_QUERIES:
        slow_query_logger.debug("\t".join([str(timer)] + describe(params, cells)))


class CorsMiddleware:
    def process_response(self, req, resp, resource, req_succeeded):
        resp.set_header("Access-Control-Allow-Origin", "*")
        resp.set_header("Access-Control-Allow-Headers", "X-Requested-With")


class View:

    config = config

    def json(self, req, resp, content):
        resp.text = json.dumps(content)
        resp.content_type = "application/json; charset=utf-8"

    def parse_int(self, req, key, default):
        try:
            value = req.get_param(key)
            if value is None or value == "":
                return default
            return int(value)
        except (ValueError, TypeError):
            raise falcon.HTTPInvalidParam("invalid value", key)


class Heatmap(View):
    def on_get(self, req, resp, **kwargs):
        bbox = req.get_param("bbox")
        if not bbox:
            raise falcon.HTTPMissingParam("bbox")
        params = {
            "bbox": bbox,
            "precision": self.parse_int(req, "precision", config.DEFAULT_PRECISION),
            "since_hours": self.parse_int(
                req, "sinceHours", config.DEFAULT_SINCE_HOURS
            ),
            "tag": req.get_param("tag"),
        }
        timer = time.perf_counter()
        try:
            cells = heatmap(**params)
        except InvalidBoundingBox as e:
            raise falcon.HTTPInvalidParam(str(e), "bbox")
        except AggregationFailed as e:
            logger.error("Heatmap aggregation failed: %s", e)
            raise falcon.HTTPServiceUnavailable(title="Heatmap unavailable")
        timer = int((time.perf_counter() - timer) * 1000)
        log_query(params, cells)
        if config.SLOW_QUERIES and timer > config.SLOW_QUERIES:
            log_slow_query(params, cells, timer)
        self.json(req, resp, [cell.as_dict() for cell in cells])


class Health(View):
    def on_get(self, req, resp):
        try:
            redis_version = DB.info().get("redis_version")
        except DB.Error:
            redis_version = None
        return self.json(
            req,
            resp,
            {
                "status": "HEALTHY",
                "cache": "UP" if redis_version else "DOWN",
                "redis_version": redis_version,
            },
        )


def register_http_endpoint(api):
    api.add_route("/heatmap", Heatmap())
    api.add_route("/health", Health())


def register_command(subparsers):
    parser = subparsers.add_parser("serve", help="Run debug server")
    parser.set_defaults(func=run)
    parser.add_argument(
        "--host", default="127.0.0.1", help="Host to expose the demo serve on"
    )
    parser.add_argument(
        "--port", default="7878", help="Port to expose the demo server on"
    )


def run(args):
    # Do not import at load time for preventing config import loop.
    from .wsgi import simple

    simple(args)
