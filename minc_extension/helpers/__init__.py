"""Leaf helpers: binary locator, release source, cluster scan and creation."""

from .cluster_search_helper import CLUSTER_LABEL, ClusterSearchHelper
from .create_cluster_helper import CreateClusterHelper
from .file_helper import BinaryInfo, FileHelper
from .github_helper import GitHubHelper, ReleaseArtifact

__all__ = [
    "BinaryInfo",
    "CLUSTER_LABEL",
    "ClusterSearchHelper",
    "CreateClusterHelper",
    "FileHelper",
    "GitHubHelper",
    "ReleaseArtifact",
]
