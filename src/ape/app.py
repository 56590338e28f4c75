"""
Application wiring.

Builds a ``CommandService`` from configuration with explicit dependency
injection; nothing here is a process-wide singleton, so tests and embedders
can create as many independent services as they need.
"""

from typing import Iterable, List, Optional

from .config.models import ApeConfig
from .core.commands.executor import CommandExecutor
from .core.commands.natural_language import NaturalLanguageResolver
from .core.commands.parser import CommandParser
from .core.commands.registry import CommandRegistry
from .core.commands.service import CommandService
from .core.commands.system import register_system_commands
from .core.providers.base import ModelCapability
from .core.providers.factory import create_model_provider
from .plugins.base import BasePlugin
from .plugins.host import PluginHost, PluginOrigin
from .plugins.internal import BUILTIN_PLUGINS, GitPlugin, PocketPlugin
from .utils.logging import get_logger


logger = get_logger(__name__)


def builtin_plugins(config: ApeConfig, model: Optional[ModelCapability] = None) -> List[BasePlugin]:
    """
    Instantiate the built-in plugins named in ``plugins.enabled``.

    Plugins are created without backend clients; their handlers report the
    missing client when invoked.
    """
    plugins: List[BasePlugin] = []
    for plugin_id in config.plugins.enabled:
        plugin_class = BUILTIN_PLUGINS.get(plugin_id)
        if plugin_class is None:
            logger.warning(f"Unknown built-in plugin '{plugin_id}' in plugins.enabled, skipping")
            continue
        if plugin_class in (PocketPlugin, GitPlugin):
            plugins.append(plugin_class(model=model))
        else:
            plugins.append(plugin_class())
    return plugins


def create_command_service(
    config: Optional[ApeConfig] = None,
    plugins: Iterable[BasePlugin] = (),
    model: Optional[ModelCapability] = None,
) -> CommandService:
    """
    Create a fully wired command service.

    Args:
        config: Configuration; defaults are used when omitted
        plugins: Plugins to register (built-ins are not added implicitly)
        model: Model capability; created from ``config.llm`` when omitted

    Returns:
        CommandService whose ``host`` manages the registered plugins
    """
    config = config or ApeConfig()
    if model is None:
        model = create_model_provider(config.llm)

    registry = CommandRegistry()
    parser = CommandParser()
    executor = CommandExecutor(registry, config.executor, parser)
    resolver = NaturalLanguageResolver(registry, model, config.resolver)
    host = PluginHost(registry, resolver)

    register_system_commands(registry, executor, host)

    for plugin in plugins:
        if not host.register_plugin(plugin, PluginOrigin.INTERNAL):
            logger.warning(f"Plugin '{plugin.id or plugin.__class__.__name__}' was not registered")

    for plugin_id in config.plugins.disabled:
        if not host.disable_plugin(plugin_id):
            logger.debug(f"plugins.disabled names '{plugin_id}', which is not registered")

    service = CommandService(registry, executor, resolver, parser, config.resolver, host=host)

    stats = registry.statistics()
    logger.info(f"Command service ready: {stats['domains']} domain(s), {stats['commands']} command(s)")
    return service
