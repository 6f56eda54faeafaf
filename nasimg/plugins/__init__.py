"""Plugin system for autodiscovery and dynamic route registration."""

import importlib
from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI
from structlog import get_logger

logger = get_logger(__name__)


class PluginBase:
    """Base class for plugins to ensure consistent interface."""

    def __init__(self, name: str, version: str = "1.0.0"):
        self.name = name
        self.version = version
        self.router: APIRouter | None = None
        self.metadata: dict[str, Any] = {}

    def get_router(self) -> APIRouter | None:
        return self.router

    @property
    def prefix(self) -> str:
        """Route prefix; PLUGIN_METADATA["prefix"] overrides the plugin path."""
        return self.metadata.get("prefix", f"/{self.name}")

    def get_metadata(self) -> dict[str, Any]:
        default_metadata = {"name": self.name, "version": self.version}
        default_metadata.update(self.metadata)
        return default_metadata


class PluginDiscovery:
    """Handles automatic discovery and registration of plugins."""

    def __init__(
        self,
        plugins_dir: Path | None = None,
        package: str = __name__,
        excluded_plugins: list[str] | None = None,
    ):
        self.plugins_dir = plugins_dir or Path(__file__).parent
        self.package = package
        self.excluded_plugins = set(excluded_plugins or [])
        self.discovered_plugins: dict[str, PluginBase] = {}

    def discover_plugins(self) -> dict[str, PluginBase]:
        """Discover all valid plugins in the plugins directory."""
        if not self.plugins_dir.exists():
            logger.warning("Plugins directory does not exist", path=str(self.plugins_dir))
            return {}

        for endpoint_file in sorted(self.plugins_dir.rglob("endpoint.py")):
            relative_path = endpoint_file.parent.relative_to(self.plugins_dir)
            plugin_name = relative_path.as_posix()

            if plugin_name in self.excluded_plugins:
                logger.info("Skipping excluded plugin", plugin=plugin_name)
                continue

            if any(part.startswith("_") for part in relative_path.parts):
                continue

            plugin = self._load_plugin(endpoint_file.parent, plugin_name)
            if plugin:
                self.discovered_plugins[plugin_name] = plugin

        return self.discovered_plugins

    def _load_plugin(self, plugin_path: Path, plugin_name: str) -> PluginBase | None:
        """Load a single plugin from its directory."""
        module_name = f"{self.package}.{plugin_name.replace('/', '.')}"
        module = importlib.import_module(f"{module_name}.endpoint")

        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            logger.warning("No valid router found", plugin=plugin_name)
            return None

        plugin = PluginBase(plugin_name)
        plugin.router = router

        if (plugin_path / "__init__.py").exists():
            init_module = importlib.import_module(module_name)
            plugin.metadata = dict(getattr(init_module, "PLUGIN_METADATA", {}))
            plugin.version = plugin.metadata.get("version", plugin.version)

        return plugin

    def register_plugins(self, app: FastAPI) -> None:
        """Register all discovered plugins with the FastAPI app."""
        for plugin_name, plugin in self.discovered_plugins.items():
            router = plugin.get_router()
            if router:
                app.include_router(
                    router, prefix=plugin.prefix, tags=[plugin_name.title()]
                )
                logger.info(
                    "Registered plugin routes", plugin=plugin_name, prefix=plugin.prefix
                )
            else:
                logger.warning("No router to register", plugin=plugin_name)


def init_plugins(app: FastAPI, excluded_plugins: list[str] | None = None) -> None:
    """Initialize plugin system and register all discovered plugins."""
    plugin_discovery = PluginDiscovery(excluded_plugins=excluded_plugins)
    plugins = plugin_discovery.discover_plugins()
    plugin_discovery.register_plugins(app)

    logger.info("Plugin system initialized.", plugins=len(plugins))
