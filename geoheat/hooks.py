from collections import OrderedDict
from importlib.metadata import entry_points, PackageNotFoundError

plugins = OrderedDict()
blocked_plugins = set([])


def load():
    try:
        for ep in entry_points().select(group="geoheat.ext"):
            register(ep.load(), ep.name)
    except PackageNotFoundError:
        pass


def register(module, name=None):
    if name is None:
        name = module.__name__
    if name in blocked_plugins:
        print(f"Requested registration of plugin {name} but this plugin is blocked")
        return
    plugins[name] = module


def spec(func):
    def caller(*args, **kwargs):
        for plugin in plugins.copy().values():
            hook = getattr(plugin, func.__name__, None)
            if hook is not None:
                hook(*args, **kwargs)

    return caller


def block(name_or_module, reason=""):
    if not isinstance(name_or_module, str):
        name_or_module = name_or_module.__name__
    print(f"Blocking plugin {name_or_module}: {reason}")
    if name_or_module in plugins:
        del plugins[name_or_module]
    blocked_plugins.add(name_or_module)


@spec
def register_http_endpoint(api):
    """Add new endpoints to the heatmap API."""


@spec
def register_http_middleware(middlewares):
    """Add new middlewares to the heatmap API."""


@spec
def preconfigure(config):
    """Patch config object before user local config."""


@spec
def configure(config):
    """Patch config object after user local config."""


@spec
def register_command(subparsers):
    """Register command for geoheat CLI."""
