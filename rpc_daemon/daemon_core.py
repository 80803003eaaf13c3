#!/usr/bin/env python3
"""
Daemon core: loads agent plugins, runs their lifecycle hooks and exposes a
single entry point for handling action requests.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from rpc_common.config import RPCBaseConfig, config as default_config, load_pluginconf
from rpc_common.logging import get_bound_logger

from .action_router import ActionRouter
from .plugin_loader import PluginLoader

logger = get_bound_logger("daemon_core", version="1.0.0")


class RPCDaemon:
    """Host for agent plugins."""

    def __init__(self, daemon_config: Optional[RPCBaseConfig] = None,
                 plugin_dirs: Optional[List[Path]] = None, include_builtin: bool = True):
        self.config = daemon_config or default_config
        dirs = list(self.config.plugin_paths) + list(plugin_dirs or [])
        self.plugin_loader = PluginLoader(plugin_dirs=dirs, include_builtin=include_builtin)
        self.router = ActionRouter(self.plugin_loader, default_timeout=self.config.action_timeout)
        self.pluginconf: Dict[str, str] = {}
        self.loaded_plugins: List[str] = []
        self.initialized = False

    def initialize(self, pluginconf: Optional[Dict[str, str]] = None) -> List[str]:
        """
        Load plugins and run their startup hooks.

        Args:
            pluginconf: Flat plugin configuration map; when omitted it is read
                from ``config.pluginconf_file`` if one is configured

        Returns:
            Names of the loaded plugins

        Raises:
            RPCError: If a plugin rejects its configuration at startup
        """
        if pluginconf is None and self.config.pluginconf_file:
            pluginconf = load_pluginconf(self.config.pluginconf_file)
        self.pluginconf = dict(pluginconf or {})

        self.loaded_plugins = self.plugin_loader.load_all_plugins()

        startup_config = {"pluginconf": self.pluginconf, "daemon": self.config}
        try:
            results = self.plugin_loader.pm.hook.rpc_startup(config=startup_config)
        except Exception as e:
            logger.error("Plugin startup failed", error=str(e), exc_info=True)
            raise

        for result in results:
            if result:
                logger.debug("Plugin startup result", result=result)

        self.plugin_loader.pm.hook.rpc_ready()
        self.initialized = True
        logger.info("Daemon ready", plugins=self.loaded_plugins)
        return self.loaded_plugins

    async def handle(self, agent: str, action: str, data: Optional[Dict[str, Any]] = None,
                     context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Handle one action request."""
        if not self.initialized:
            self.initialize()
        return await self.router.route_action(agent, action, data, context=context)

    def describe(self) -> List[Dict[str, Any]]:
        """Metadata of every agent provided by the loaded plugins."""
        agents: List[Dict[str, Any]] = []
        for result in self.plugin_loader.pm.hook.rpc_describe_agents():
            agents.extend(result or [])
        return sorted(agents, key=lambda a: a.get("name", ""))

    def shutdown(self) -> None:
        """Run plugin shutdown hooks."""
        if not self.initialized:
            return
        self.plugin_loader.pm.hook.rpc_shutdown()
        self.initialized = False
        logger.info("Daemon stopped", stats=self.router.stats)
