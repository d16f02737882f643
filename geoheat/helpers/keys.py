HEATMAP_PREFIX = "hm|"
MISSING = "-"

# Post store.
POST_IDS_KEY = "pi"
POST_TIMELINE_KEY = "pt"


def heatmap_key(bbox, precision, since_hours, tag):
    """Cache key of a heatmap query. The bounding box comes first so that
    all entries of a given box share a prefix."""
    return "{}{}|{}|{}|{}".format(
        HEATMAP_PREFIX,
        bbox or MISSING,
        precision,
        since_hours,
        tag.casefold() if tag else MISSING,
    )


def heatmap_bbox_pattern(bbox):
    return "{}{}|*".format(HEATMAP_PREFIX, escape_pattern(bbox))


def heatmap_pattern():
    return "{}*".format(HEATMAP_PREFIX)


def bbox_from_heatmap_key(key):
    if isinstance(key, bytes):
        key = key.decode()
    bbox = key[len(HEATMAP_PREFIX):].split("|", 1)[0]
    return None if bbox == MISSING else bbox


def escape_pattern(s):
    # Redis glob special chars.
    for char in "\\*?[]":
        s = s.replace(char, "\\" + char)
    return s


def post_key(s):
    return "p|{}".format(s)


def cell_key(s):
    return "g|{}".format(s)
