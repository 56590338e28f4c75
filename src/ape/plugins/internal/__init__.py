"""
Built-in domain plugins.
"""

from .git import GitClient, GitPlugin
from .jira import JiraClient, JiraPlugin
from .pocket import PocketClient, PocketPlugin, StorageObject
from .swdp import BuildType, SwdpClient, SwdpPlugin

# Plugin id -> class, used to build the enabled set from configuration
BUILTIN_PLUGINS = {
    PocketPlugin.id: PocketPlugin,
    GitPlugin.id: GitPlugin,
    JiraPlugin.id: JiraPlugin,
    SwdpPlugin.id: SwdpPlugin,
}

__all__ = [
    "BUILTIN_PLUGINS",
    "BuildType",
    "GitClient",
    "GitPlugin",
    "JiraClient",
    "JiraPlugin",
    "PocketClient",
    "PocketPlugin",
    "StorageObject",
    "SwdpClient",
    "SwdpPlugin",
]
