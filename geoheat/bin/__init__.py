#!/usr/bin/env python

import argparse
import logging
import os

from geoheat import VERSION
from geoheat.config import config


def main():
    if VERSION:
        print("geoheat", VERSION)
    main_parser = argparse.ArgumentParser(
        description="geoheat command line.", add_help=False
    )
    main_parser.add_argument("--config", help="Local config")
    main_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages"
    )
    args, extras = main_parser.parse_known_args()
    if args.config:
        os.environ["GEOHEAT_CONFIG_MODULE"] = args.config
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    main_parser.add_argument(
        "-h", "--help", action="store_true", help="Show this help message and exit"
    )

    subparsers = main_parser.add_subparsers(title="Available commands", metavar="")

    from geoheat import hooks

    config.load()
    hooks.register_command(subparsers)
    args = main_parser.parse_args(args=extras)
    if getattr(args, "func", None):
        args.func(args)
    else:
        main_parser.print_help()


if __name__ == "__main__":
    main()
