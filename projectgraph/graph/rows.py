"""
Row layout

Assigns dense row indices to the tasks and groups shown in the Gantt view,
interleaving each group header with its members when it is expanded.
"""

from datetime import date
from typing import Dict, List, Tuple

from ..logging import get_logger
from .model import NodeKind, TaskGraph, TaskNode

log = get_logger()

UNASSIGNED = float("inf")


def _row_key(node: TaskNode) -> Tuple[float, date, int]:
    row = node.row_index if node.row_index >= 0 else UNASSIGNED
    return (row, node.start or date.max, node.id)


class RowLayoutAssigner:
    """
    Gantt row ordering

    Groups sort by the lowest prior row among their members, standalone
    tasks by their own prior row, then start date. Re-running on an
    already-compacted graph changes nothing.
    """

    def __init__(self, graph: TaskGraph):
        self._graph = graph

    def assign(self) -> List[TaskNode]:
        """
        Renumber rows 0..n-1

        Returns:
            Visible nodes in row order
        """
        rows = self.ordered()

        for index, node in enumerate(rows):
            node.row_index = index

        # Hidden members follow their collapsed group so the group keeps its
        # place on the next run; their relative order is preserved.
        for group in self._graph.groups():
            if not group.is_collapsed:
                continue
            members = self._graph.members_of(group)
            placed = [m for m in members if m.row_index >= 0]
            if placed:
                offset = group.row_index - min(m.row_index for m in placed)
                for member in placed:
                    member.row_index += offset
            for member in members:
                if member.row_index < 0:
                    member.row_index = group.row_index

        log.debug(f"Assigned {len(rows)} rows", operation="assign_rows")
        return rows

    def ordered(self) -> List[TaskNode]:
        """Visible tasks and groups in row order, without renumbering."""
        nodes = [n for n in self._graph.nodes if n.kind is not NodeKind.RESOURCE]
        groups = [n for n in nodes if n.is_group]
        standalone = sorted(
            (n for n in nodes if not n.is_group and self._graph.find_node(n.parent_group_id) is None),
            key=_row_key,
        )

        group_keys: Dict[int, Tuple[float, int]] = {}
        for group in groups:
            member_rows = [
                m.row_index for m in self._graph.members_of(group) if m.row_index >= 0
            ]
            group_keys[group.id] = (min(member_rows) if member_rows else UNASSIGNED, group.id)
        groups.sort(key=lambda g: group_keys[g.id])

        result: List[TaskNode] = []
        s_idx = 0
        g_idx = 0
        while s_idx < len(standalone) or g_idx < len(groups):
            next_standalone = _row_key(standalone[s_idx])[0] if s_idx < len(standalone) else UNASSIGNED
            next_group = group_keys[groups[g_idx].id][0] if g_idx < len(groups) else UNASSIGNED

            if g_idx < len(groups) and (next_group <= next_standalone or s_idx >= len(standalone)):
                group = groups[g_idx]
                g_idx += 1
                result.append(group)
                if not group.is_collapsed:
                    result.extend(sorted(self._graph.members_of(group), key=_row_key))
            else:
                result.append(standalone[s_idx])
                s_idx += 1

        return result
