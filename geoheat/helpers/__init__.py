from importlib import import_module

from progressist import ProgressBar


def import_by_path(path):
    """
    Import functions or class by their path. Should be of the form:
    path.to.module.func
    """
    if not isinstance(path, str):
        return path
    module_path, *name = path.rsplit(".", 1)
    func = import_module(module_path)
    if name:
        func = getattr(func, name[0])
    return func


def chunked(iterable, size):
    chunk = []
    for item in iterable:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


COLORS = {
    "red": "31",
    "green": "32",
    "yellow": "33",
    "reset": "39",
}


def colorText(s, color):
    # color should be a string from COLORS
    return "\033[%sm%s\033[%sm" % (COLORS[color], s, COLORS["reset"])


def red(s):
    return colorText(s, "red")


def green(s):
    return colorText(s, "green")


def yellow(s):
    return colorText(s, "yellow")


class Bar(ProgressBar):
    animation = "{spinner}"
    template = "{prefix} {animation} Done: {done} | Elapsed: {elapsed}"
