"""Repository scanner: fetch manifests across an organisation and build the graph."""

from depgraph.scanner.builder import build_graph
from depgraph.scanner.context import ScanContext
from depgraph.scanner.host import LocalDirectoryHost, RemoteHost, RepoHandle
from depgraph.scanner.models import ScanErrorKind, ScannedDependency, ScanResult
from depgraph.scanner.scanner import RepositoryScanner

__all__ = [
    "LocalDirectoryHost",
    "RemoteHost",
    "RepoHandle",
    "RepositoryScanner",
    "ScanContext",
    "ScanErrorKind",
    "ScanResult",
    "ScannedDependency",
    "build_graph",
]
