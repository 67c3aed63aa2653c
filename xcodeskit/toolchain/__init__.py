"""
Version resolution, installation and selection of Xcode toolchains.
"""

from .catalog import Catalog, CatalogEntry
from .installed import InstalledToolchain, ToolchainStore
from .matcher import VersionQuery, parse_query, resolve
from .pipeline import InstallPipeline, InstallResult, PipelineStage
from .selection import SelectionManager, SelectionResult
from .uninstaller import Uninstaller
from .version import Version

__all__ = [
    "Catalog",
    "CatalogEntry",
    "InstallPipeline",
    "InstallResult",
    "InstalledToolchain",
    "PipelineStage",
    "SelectionManager",
    "SelectionResult",
    "ToolchainStore",
    "Uninstaller",
    "Version",
    "VersionQuery",
    "parse_query",
    "resolve",
]
