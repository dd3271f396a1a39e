"""Delta ProjectGraph - hierarchical task graphs with grouping and dependency scheduling."""
__version__ = "1.0.0"

from .graph import (
    DependencyEdge,
    DependencyType,
    GraphError,
    NodeKind,
    Outcome,
    TaskGraph,
    TaskNode,
)
from .models import ProjectGraphConfig
from .core import ProjectEditor, load_config
from .persistence import GraphStore
from .cli import main
from .logging import log, init_logging, ProjectGraphLogger

__all__ = [
    "DependencyEdge",
    "DependencyType",
    "GraphError",
    "NodeKind",
    "Outcome",
    "TaskGraph",
    "TaskNode",
    "ProjectGraphConfig",
    "ProjectEditor",
    "load_config",
    "GraphStore",
    "main",
    "log",
    "init_logging",
    "ProjectGraphLogger",
]
