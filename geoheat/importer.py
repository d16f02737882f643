"""Load posts from JSON lines files into the post store."""

import json
import os.path
import sys

from .cache import HEATMAPS
from .helpers import Bar, chunked
from .posts import POSTS, Post

IMPORT_CHUNK_SIZE = 1000


def to_posts(lines):
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            yield Post.from_dict(json.loads(line))
        except (TypeError, ValueError) as e:
            sys.stderr.write("Skipping invalid post {}: {}\n".format(line[:80], e))


def load_posts(lines):
    bar = Bar(prefix="Importing…")
    total = 0
    for chunk in chunked(to_posts(lines), IMPORT_CHUNK_SIZE):
        POSTS.upsert(*chunk)
        total += len(chunk)
        bar(step=len(chunk))
    bar.finish()
    return total


def process_file(filepath):
    print("Import from file", filepath)
    if not os.path.exists(filepath):
        sys.stderr.write("File not found: {}\n".format(filepath))
        sys.exit(1)
    with open(filepath) as f:
        return load_posts(f)


def run(args):
    total = 0
    if args.filepath:
        for path in args.filepath:
            total += process_file(path)
    elif not sys.stdin.isatty():
        print("Import from stdin")
        total = load_posts(sys.stdin)
    print("Imported {} posts.".format(total))


def reset(args):
    if args.force or input('Type "yes" to delete ALL posts and heatmaps: ') == "yes":
        POSTS.flushdb()
        HEATMAPS.invalidate_all()
        print("All data has been deleted.")
    else:
        print("Nothing has been deleted.")


def register_command(subparsers):
    parser = subparsers.add_parser("import", help="Import posts (JSON lines)")
    parser.add_argument("filepath", nargs="*", help="Path to file to process")
    parser.set_defaults(func=run)
    parser = subparsers.add_parser("reset", help="Delete ALL posts and heatmaps")
    parser.add_argument("--force", help="Do not ask for confirm", action="store_true")
    parser.set_defaults(func=reset)
