"""Batch jobs keeping the geohash stored with each post up to date."""

import logging
import signal
import threading
import time

from .config import config
from .helpers import Bar, green, yellow
from .helpers.geohash import clamp_precision, encode
from .posts import POSTS

logger = logging.getLogger(__name__)


class MaintenanceRecordFailed(Exception):
    def __init__(self, post_id, reason):
        self.post_id = post_id
        super().__init__("Unable to index post {}: {}".format(post_id, reason))


class Report:
    def __init__(self, precision):
        self.precision = precision
        self.processed = 0
        self.updated = 0
        self.failed = 0
        self.cancelled = False

    def __str__(self):
        return "Processed {} posts at precision {}: {} updated, {} failed{}".format(
            self.processed,
            self.precision,
            self.updated,
            self.failed,
            " (cancelled)" if self.cancelled else "",
        )

    def __repr__(self):
        return "<Report {}>".format(self)


def index_post(post, precision):
    """Store the geohash of `post` at `precision`. Return False when the
    stored value was already the right one."""
    try:
        geoh = encode(post.location.lat, post.location.lng, precision)
        if post.location.geohash == geoh:
            return False
        POSTS.set_geohash(post.id, geoh)
    except Exception as e:
        raise MaintenanceRecordFailed(post.id, e) from e
    post.location.geohash = geoh
    return True


def should_stop(cancel, deadline):
    if cancel is not None and cancel.is_set():
        return True
    return deadline is not None and time.monotonic() > deadline


def reindex(precision, missing_only, batch_size=None, cancel=None, timeout=None,
            progress=None):
    """Walk the whole collection by id, `batch_size` posts at a time.

    Stopping (`cancel` event set, or `timeout` seconds elapsed) is only
    checked between batches. A failing post is logged and counted, while a
    failing batch fetch aborts the run.
    """
    batch_size = batch_size or config.MAINTENANCE_BATCH_SIZE
    report = Report(precision)
    deadline = time.monotonic() + timeout if timeout else None
    cursor = None
    while True:
        if should_stop(cancel, deadline):
            report.cancelled = True
            logger.info("Index maintenance stopped after cursor %s", cursor)
            break
        cursor, posts = POSTS.scan_for_index(
            cursor, count=batch_size, missing_only=missing_only
        )
        for post in posts:
            report.processed += 1
            try:
                if index_post(post, precision):
                    report.updated += 1
            except MaintenanceRecordFailed as e:
                report.failed += 1
                logger.warning("%s", e)
        if progress is not None:
            progress(len(posts))
        if cursor is None:
            break
    logger.info("%s", report)
    return report


def backfill_missing_index(precision=None, **kwargs):
    """Compute the geohash of located posts which have none."""
    if precision is None:
        precision = config.INDEX_PRECISION
    return reindex(clamp_precision(precision), missing_only=True, **kwargs)


def regenerate_index(precision, **kwargs):
    """Recompute the geohash of every located post, overwriting it."""
    return reindex(clamp_precision(precision), missing_only=False, **kwargs)


def run_job(job, args, *job_args):
    cancel = threading.Event()

    def stop(signum, frame):
        print(yellow("\nStopping after current batch…"))
        cancel.set()

    previous = signal.signal(signal.SIGINT, stop)
    bar = Bar(prefix="Indexing…")
    try:
        report = job(
            *job_args,
            batch_size=args.batch_size,
            cancel=cancel,
            timeout=args.timeout,
            progress=lambda step: bar(step=step),
        )
    finally:
        signal.signal(signal.SIGINT, previous)
    bar.finish()
    print(green(str(report)) if not report.failed else yellow(str(report)))


def backfill(args):
    run_job(backfill_missing_index, args, args.precision)


def regenerate(args):
    run_job(regenerate_index, args, args.precision)


def register_command(subparsers):
    parser = subparsers.add_parser(
        "backfill", help="Compute missing geohash of located posts"
    )
    parser.add_argument("--precision", type=int, help="Geohash precision")
    parser.add_argument("--batch-size", type=int, help="Posts per batch")
    parser.add_argument("--timeout", type=float, help="Stop after that many seconds")
    parser.set_defaults(func=backfill)
    parser = subparsers.add_parser(
        "reindex", help="Recompute geohash of all located posts"
    )
    parser.add_argument("precision", type=int, help="Geohash precision")
    parser.add_argument("--batch-size", type=int, help="Posts per batch")
    parser.add_argument("--timeout", type=float, help="Stop after that many seconds")
    parser.set_defaults(func=regenerate)
