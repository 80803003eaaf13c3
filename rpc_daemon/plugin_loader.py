#!/usr/bin/env python3
"""
Plugin Loader for the RPC agent daemon

A minimal wrapper around pluggy. Handles plugin discovery and loading
without hot reload.
"""

import importlib
import importlib.util
from pathlib import Path
from typing import Dict, List, Optional

import pluggy

from rpc_common.constants import PLUGIN_MARKER
from rpc_common.logging import get_bound_logger

from . import hookspecs

logger = get_bound_logger("plugin_loader")


class PluginLoader:
    """
    Minimal plugin loader using pure pluggy patterns.

    A plugin is any module found under a plugin directory that sets
    ``rpc_plugin = True``; the module itself is registered with pluggy.
    """

    def __init__(self, plugin_dirs: Optional[List[Path]] = None, include_builtin: bool = True):
        """
        Initialize plugin loader.

        Args:
            plugin_dirs: Extra directories to search for plugins
            include_builtin: Also search ``rpc_daemon/plugins``
        """
        self.pm = pluggy.PluginManager("rpc")
        self.pm.add_hookspecs(hookspecs)

        self.plugin_dirs: List[Path] = []
        if include_builtin:
            self.plugin_dirs.append(Path(__file__).parent / "plugins")
        self.plugin_dirs.extend(Path(d) for d in (plugin_dirs or []))

        # module name -> error message for plugins that failed to import
        self.failed: Dict[str, str] = {}

    def discover_plugins(self) -> List[Path]:
        """
        Discover plugin files in plugin directories.

        Returns:
            List of candidate plugin file paths, in discovery order
        """
        plugin_files = []
        seen = set()

        for plugin_dir in self.plugin_dirs:
            if not plugin_dir.exists():
                logger.debug("Plugin directory missing", plugin_dir=str(plugin_dir))
                continue

            for path in sorted(plugin_dir.rglob("*.py")):
                if "__pycache__" in path.parts:
                    continue

                # __init__.py only counts when it carries the marker itself
                if path.name == "__init__.py":
                    try:
                        if PLUGIN_MARKER not in path.read_text(encoding="utf-8"):
                            continue
                    except OSError:
                        continue

                resolved = path.resolve()
                if resolved not in seen:
                    seen.add(resolved)
                    plugin_files.append(path)

        return plugin_files

    def _module_name(self, plugin_path: Path) -> str:
        """Dotted module name for files inside the rpc_daemon package."""
        package_dir = Path(__file__).parent.resolve()
        resolved = plugin_path.resolve()
        try:
            rel_path = resolved.relative_to(package_dir.parent)
        except ValueError:
            return ""
        parts = list(rel_path.parts[:-1])
        if plugin_path.name != "__init__.py":
            parts.append(plugin_path.stem)
        return ".".join(parts)

    def _import(self, plugin_path: Path):
        module_name = self._module_name(plugin_path)
        if module_name:
            return importlib.import_module(module_name)

        # Plugin outside the package: load it straight from the file
        module_name = f"rpc_plugins.{plugin_path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, plugin_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load plugin from {plugin_path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def load_plugin(self, plugin_path: Path) -> Optional[str]:
        """
        Load a single plugin file.

        Args:
            plugin_path: Path to plugin Python file

        Returns:
            Plugin name if the module is a plugin, None otherwise
        """
        try:
            module = self._import(plugin_path)
        except Exception as e:
            self.failed[str(plugin_path)] = str(e)
            logger.error("Failed to load plugin", plugin_path=str(plugin_path), error=str(e), exc_info=True)
            return None

        if not getattr(module, PLUGIN_MARKER, False):
            logger.debug("Module is not a plugin", module=module.__name__)
            return None

        name = module.__name__
        if self.pm.is_registered(module) or self.pm.get_plugin(name) is not None:
            return name

        self.pm.register(module, name=name)
        logger.info("Loaded plugin module", module=name)
        return name

    def register_plugin(self, plugin: object, name: Optional[str] = None) -> Optional[str]:
        """Register an already-imported plugin object (module or instance)."""
        return self.pm.register(plugin, name=name)

    def load_all_plugins(self) -> List[str]:
        """
        Discover and load all plugins.

        Returns:
            List of loaded plugin names
        """
        loaded = []
        plugin_files = self.discover_plugins()

        logger.info("Discovered plugin files", count=len(plugin_files))

        for plugin_file in plugin_files:
            plugin_name = self.load_plugin(plugin_file)
            if plugin_name:
                loaded.append(plugin_name)

        logger.info("Plugins loaded", count=len(loaded), failed=len(self.failed))
        return loaded

    @property
    def plugin_names(self) -> List[str]:
        return [name for name, _ in self.pm.list_name_plugin()]
