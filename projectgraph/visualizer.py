"""
Gantt visualizer

ASCII rendering of the Gantt rows and the visible dependency edges.
"""

from datetime import date
from typing import Iterable, Optional, Set

from .graph import DependencyEdge, NodeKind, TaskGraph, TaskNode, is_edge_visible


class GanttVisualizer:
    """
    Gantt visualizer

    Supports:
    - one line per Gantt row with a day-scaled bar
    - critical-path highlighting
    - dependency listing on visible endpoints
    """

    KIND_ICONS = {
        NodeKind.TASK: "■",
        NodeKind.MILESTONE: "◆",
        NodeKind.RESOURCE: "☺",
    }

    def __init__(self, graph: TaskGraph, critical: Optional[Set[int]] = None):
        """
        Args:
            graph: graph to render
            critical: ids of critical-path tasks
        """
        self._graph = graph
        self._critical = critical or set()

    def render_gantt(self, rows: Iterable[TaskNode], width: int = 40) -> str:
        """
        Render the Gantt chart

        Args:
            rows: nodes in display order
            width: bar area width in characters

        Returns:
            ASCII string
        """
        rows = list(rows)
        dated = [n for n in rows if n.start is not None]
        if not dated:
            return "(no dated tasks)"

        first = min(n.start for n in dated)
        last = max(n.end for n in dated)
        span = max(1, (last - first).days + 1)
        scale = width / span

        lines = [f"{'':<32} {first.isoformat()} .. {last.isoformat()}"]
        for node in rows:
            label = self._label(node)
            lines.append(f"{label:<32} {self._bar(node, first, scale, width)}")
        return "\n".join(lines)

    def render_dependencies(self, node_view: bool = False) -> str:
        """Render visible edges as ``from -TYPE+lag-> to`` lines."""
        lines = []
        for edge in self._graph.edges:
            if not is_edge_visible(self._graph, edge, node_view):
                continue
            lines.append(self._edge_line(edge))
        return "\n".join(lines) if lines else "(no dependencies)"

    def render_summary(self) -> str:
        nodes = self._graph.nodes
        tasks = [n for n in nodes if n.kind is NodeKind.TASK]
        done = sum(1 for t in tasks if t.percent_complete >= 100)
        return (
            f"{len(tasks)} tasks ({done} complete), "
            f"{sum(1 for n in nodes if n.kind is NodeKind.MILESTONE)} milestones, "
            f"{len(self._graph.groups())} groups, "
            f"{len(self._graph.edges)} dependencies, "
            f"{len(self._critical)} critical"
        )

    def _label(self, node: TaskNode) -> str:
        if node.is_group:
            icon = "▸" if node.is_collapsed else "▾"
        else:
            icon = self.KIND_ICONS.get(node.kind, "?")
        indent = "  " if self._graph.find_node(node.parent_group_id) is not None else ""
        mark = "*" if node.id in self._critical else " "
        line = f"{mark}{indent}{icon} {node.id}:{node.name}"
        if len(line) > 32:
            line = line[:29] + "..."
        return line

    def _bar(self, node: TaskNode, first: date, scale: float, width: int) -> str:
        if node.start is None:
            return ""
        offset = int((node.start - first).days * scale)
        if node.kind is NodeKind.MILESTONE:
            return " " * min(offset, width - 1) + "◆"

        length = max(1, round(((node.end - node.start).days + 1) * scale))
        fill = "▒" if node.is_group else "█"
        done = int(length * node.percent_complete / 100)
        return " " * offset + "▓" * done + fill * (length - done)

    def _edge_line(self, edge: DependencyEdge) -> str:
        lag = ""
        if edge.lag_days:
            lag = f"{edge.lag_days:+d}"
        remapped = ""
        if edge.is_remapped:
            remapped = f"  (was {edge.effective_from}->{edge.effective_to})"
        return f"{edge.from_id} -{edge.type_code}{lag}-> {edge.to_id}{remapped}"

