import os
import importlib
import sys
import types

from importlib.metadata import version as get_version, PackageNotFoundError

from geoheat import hooks, VERSION
from . import default


class Config(dict):

    TESTING = False

    def __init__(self):
        self._post_load_func = []
        self.loaded = False
        self.plugins = [
            "geoheat.http.base",
            "geoheat.cache",
            "geoheat.maintenance",
            "geoheat.importer",
        ]
        super().__init__()
        self.extend_from_object(default)

    def load(self):
        if self.loaded:
            return
        self.loaded = True
        self.load_core_plugins()
        if not Config.TESTING:
            # Installed plugins are not autoloaded during tests.
            hooks.load()  # pragma: no cover
        hooks.preconfigure(self)
        self.load_local()
        self.load_from_env()
        hooks.configure(self)
        self.resolve()
        self.post_process()
        plugins = []
        for name, plugin in hooks.plugins.items():  # pragma: no cover
            if name.startswith("geoheat."):
                version = VERSION  # Core plugin.
            else:
                try:
                    version = get_version(plugin.__package__)
                except PackageNotFoundError:
                    version = "?"
            plugins.append("{}=={}".format(name, version))
        print("Loaded plugins:\n{}".format(", ".join(plugins)))

    def on_load(self, func):
        self._post_load_func.append(func)
        return func

    def extend_from_object(self, obj):
        for key in dir(obj):
            if key.isupper():
                self[key] = getattr(obj, key)

    def load_core_plugins(self):
        for path in self.plugins:
            plugin = importlib.import_module(path)
            hooks.register(plugin)

    def load_local(self):
        path = os.environ.get("GEOHEAT_CONFIG_MODULE") or os.path.join(
            "/etc", "geoheat", "geoheat.conf"
        )
        if not os.path.exists(path):
            print('No local config file found in "{}".'.format(path))
            return

        d = types.ModuleType("config")
        d.__file__ = path
        try:
            with open(path) as config_file:
                exec(compile(config_file.read(), path, "exec"), d.__dict__)
        except (IOError, SyntaxError) as e:
            from geoheat.helpers import red

            print(red("Unable to import {} from GEOHEAT_CONFIG_MODULE".format(path)))
            sys.exit(e)
        else:
            print("Loaded local config from", path)
            self.extend_from_object(d)

    def load_from_env(self):
        for key, value in self.items():
            if key.isupper():
                env_key = "GEOHEAT_" + key
                typ = type(value)
                if typ in (list, tuple, set):
                    real_type, typ = typ, lambda x: real_type(x.split(","))
                elif typ is bool:
                    typ = lambda x: x.lower() in ("1", "true", "yes", "on")
                if env_key in os.environ:
                    self[key] = typ(os.environ[env_key])

    def __getattr__(self, key):
        return self.get(key)

    def __setattr__(self, key, value):
        self[key] = value

    def post_process(self):
        if self.MIN_PRECISION > self.MAX_PRECISION:
            raise ValueError("MIN_PRECISION must not be greater than MAX_PRECISION")
        if self.MAINTENANCE_BATCH_SIZE < 1:
            raise ValueError("MAINTENANCE_BATCH_SIZE must be a positive integer")
        if not 1 <= self.CELL_INDEX_PRECISION <= 12:
            raise ValueError("CELL_INDEX_PRECISION must be between 1 and 12")
        for func in self._post_load_func:
            func()

    def resolve(self):
        for key in list(self.keys()):
            if key.endswith("_PYPATH"):
                self.resolve_path(key)

    def resolve_path(self, key):
        from geoheat.helpers import import_by_path

        self[key[: -len("_PYPATH")]] = import_by_path(self[key])


config = Config()
