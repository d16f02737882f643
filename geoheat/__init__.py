from importlib.metadata import version, PackageNotFoundError

VERSION = None

if __package__:
    try:
        VERSION = version("geoheat")
    except PackageNotFoundError:
        VERSION = None
