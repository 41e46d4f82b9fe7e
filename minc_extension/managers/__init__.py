"""Managers for the CLI tool, the provider and cluster reconciliation."""

from .cli_tool_lifecycle import CliToolState, CliToolStatus
from .cli_tool_manager import CliToolManager, MincInstaller, MincUpdate
from .cluster_reconciler import ClusterReconciler, RegisteredConnection
from .minc_cluster import MincCluster
from .provider_manager import ProviderManager

__all__ = [
    "CliToolManager",
    "CliToolState",
    "CliToolStatus",
    "ClusterReconciler",
    "MincCluster",
    "MincInstaller",
    "MincUpdate",
    "ProviderManager",
    "RegisteredConnection",
]
