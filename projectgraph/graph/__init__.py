"""
Hierarchical task-dependency graph

Node/edge model, grouping, dependency scheduling and Gantt row layout.
"""

from .model import (
    DependencyEdge,
    DependencyType,
    GraphError,
    NodeKind,
    Outcome,
    TaskGraph,
    TaskNode,
)
from .grouping import GroupingEngine, is_edge_visible, is_node_visible
from .scheduler import DependencyScheduler, ScheduleReport, candidate_start
from .rows import RowLayoutAssigner

__all__ = [
    "DependencyEdge",
    "DependencyType",
    "GraphError",
    "NodeKind",
    "Outcome",
    "TaskGraph",
    "TaskNode",
    "GroupingEngine",
    "is_edge_visible",
    "is_node_visible",
    "DependencyScheduler",
    "ScheduleReport",
    "candidate_start",
    "RowLayoutAssigner",
]
