"""
Group nodes

Creates, collapses, expands and deletes group nodes. Dependency edges that
cross a collapsed group's boundary are re-pointed at the group and restored
when the group opens again.
"""

import math
from datetime import date
from typing import Iterable, List, Optional, Set, Tuple

from ..logging import LogLevel, get_logger
from .model import DependencyEdge, NodeKind, Outcome, TaskGraph, TaskNode

log = get_logger()

# (edge id, attribute, new value)
RemapStep = Tuple[int, str, object]


def is_node_visible(graph: TaskGraph, node: TaskNode, node_view: bool = False) -> bool:
    """
    Whether a node is drawn

    Args:
        graph: graph the node belongs to
        node: node to test
        node_view: top-level node-view projection, where group headers
            are always drawn

    Returns:
        False for an expanded group header (outside node view) and for
        members of a collapsed group
    """
    if node.is_group and not node.is_collapsed and not node_view:
        return False
    parent = graph.find_node(node.parent_group_id)
    if parent is not None and parent.is_group and parent.is_collapsed:
        return False
    return True


def is_edge_visible(graph: TaskGraph, edge: DependencyEdge, node_view: bool = False) -> bool:
    """An edge is drawn unless hidden-internal or attached to a hidden node."""
    if edge.is_hidden_internal:
        return False
    for endpoint in (edge.from_id, edge.to_id):
        node = graph.find_node(endpoint)
        if node is not None and not is_node_visible(graph, node, node_view):
            return False
    return True


class GroupingEngine:
    """
    Group lifecycle on a TaskGraph

    Supports:
    - grouping a selection into a collapsed summary node
    - collapse / expand with boundary-edge remapping
    - ungrouping, which restores members and drops group-attached edges
    """

    def __init__(self, graph: TaskGraph):
        self._graph = graph

    # -- preconditions -----------------------------------------------------

    def check_selection(self, selected_ids: Iterable[int]) -> Outcome:
        """Whether ``create_group`` would accept this selection."""
        ids = list(dict.fromkeys(selected_ids))
        if len(ids) < 2:
            return Outcome.noop("need at least 2 tasks to create a group")

        for node_id in ids:
            node = self._graph.find_node(node_id)
            if node is None:
                return Outcome.noop(f"node {node_id} does not exist")
            if node.is_group:
                return Outcome.noop(f"node {node_id} is a group; nested groups are not supported")
            if not node.kind.is_groupable:
                return Outcome.noop(f"node {node_id} is a {node.kind.value} and cannot be grouped")
            if node.parent_group_id is not None:
                return Outcome.noop(f"node {node_id} already belongs to group {node.parent_group_id}")
        return Outcome.done()

    def can_create_group(self, selected_ids: Iterable[int]) -> bool:
        return self.check_selection(selected_ids).ok

    def _get_group(self, group_id: int) -> Optional[TaskNode]:
        node = self._graph.find_node(group_id)
        if node is None or not node.is_group:
            return None
        return node

    # -- operations --------------------------------------------------------

    def create_group(self, selected_ids: Iterable[int], name: str = "") -> Outcome:
        """
        Fold a selection into a new collapsed group

        Args:
            selected_ids: ids of at least two ungrouped task/milestone nodes
            name: group label, defaults to ``Group (n tasks)``

        Returns:
            Outcome carrying the new group id on success
        """
        ids = list(dict.fromkeys(selected_ids))
        check = self.check_selection(ids)
        if not check:
            log.graph_log(f"create_group rejected: {check.reason}", operation="create_group")
            return check

        members = [self._graph.find_node(i) for i in ids]
        rows = [m.row_index for m in members if m.row_index >= 0]

        group = self._graph.add_node(
            kind=NodeKind.GROUP,
            name=name or f"Group ({len(ids)} tasks)",
            is_collapsed=True,
            contained_node_ids=list(ids),
            row_index=min(rows) if rows else -1,
        )
        self._place_group(group, members)
        self.update_group_dates(group)

        for member in members:
            member.parent_group_id = group.id

        self.remap_boundary_edges(group, ids)

        log.graph_log(
            f"Created group {group.id} containing {len(ids)} tasks",
            operation="create_group",
            group_id=group.id,
        )
        return Outcome.done(group.id)

    def remap_boundary_edges(self, group: TaskNode, member_ids: Iterable[int]) -> int:
        """
        Re-point boundary edges at the group and hide internal ones.

        Idempotent: an endpoint that already has an original recorded keeps it.

        Returns:
            Number of edges changed
        """
        members: Set[int] = set(member_ids)
        plan: List[RemapStep] = []

        for edge in self._graph.edges:
            from_inside = edge.from_id in members
            to_inside = edge.to_id in members

            if from_inside and to_inside:
                if not edge.is_hidden_internal:
                    plan.append((edge.id, "is_hidden_internal", True))
            elif from_inside:
                if edge.original_from is None:
                    plan.append((edge.id, "original_from", edge.from_id))
                plan.append((edge.id, "from_id", group.id))
            elif to_inside:
                if edge.original_to is None:
                    plan.append((edge.id, "original_to", edge.to_id))
                plan.append((edge.id, "to_id", group.id))

        return self._apply(plan)

    def collapse_group(self, group_id: int) -> Outcome:
        group = self._get_group(group_id)
        if group is None:
            log.debug(f"collapse_group: no group {group_id}", operation="collapse_group")
            return Outcome.noop(f"group {group_id} does not exist")
        if group.is_collapsed:
            return Outcome.noop(f"group {group_id} is already collapsed")

        group.is_collapsed = True
        changed = self.remap_boundary_edges(group, group.contained_node_ids)
        self.update_group_dates(group)

        log.graph_log(
            f"Collapsed group {group_id} ({changed} edges remapped)",
            operation="collapse_group",
            group_id=group_id,
        )
        return Outcome.done(group_id)

    def expand_group(self, group_id: int) -> Outcome:
        group = self._get_group(group_id)
        if group is None:
            log.debug(f"expand_group: no group {group_id}", operation="expand_group")
            return Outcome.noop(f"group {group_id} does not exist")
        if not group.is_collapsed:
            return Outcome.noop(f"group {group_id} is already expanded")

        group.is_collapsed = False
        restored = self._apply(self._restore_plan(group))
        unhidden = self._unhide_internal(group)

        log.graph_log(
            f"Expanded group {group_id} ({restored} endpoints restored, {unhidden} internal edges shown)",
            operation="expand_group",
            group_id=group_id,
        )
        return Outcome.done(group_id)

    def toggle_group(self, group_id: int) -> Outcome:
        group = self._get_group(group_id)
        if group is None:
            return Outcome.noop(f"group {group_id} does not exist")
        if group.is_collapsed:
            return self.expand_group(group_id)
        return self.collapse_group(group_id)

    def delete_group(self, group_id: int) -> Outcome:
        """
        Ungroup: restore members and remove the group node.

        Edges still attached to the group id after expansion are dropped.
        """
        group = self._get_group(group_id)
        if group is None:
            log.debug(f"delete_group: no group {group_id}", operation="delete_group")
            return Outcome.noop(f"group {group_id} does not exist")

        if group.is_collapsed:
            self.expand_group(group_id)

        member_ids = list(group.contained_node_ids)
        for member in self._graph.members_of(group):
            if member.parent_group_id == group_id:
                member.parent_group_id = None
        self._unhide_internal(group, member_ids)

        dropped = [e.id for e in self._graph.edges if group_id in (e.from_id, e.to_id)]
        if dropped:
            log.graph_log(
                f"Ungroup drops {len(dropped)} edges still attached to group {group_id}",
                operation="delete_group",
                group_id=group_id,
                level=LogLevel.WARNING,
            )

        # remove_node strips the attached edges
        group.contained_node_ids = []
        self._graph.remove_node(group_id)

        log.graph_log(
            f"Ungrouped group {group_id}, {len(member_ids)} tasks released",
            operation="delete_group",
            group_id=group_id,
        )
        return Outcome.done(group_id)

    # -- dates -------------------------------------------------------------

    def update_group_dates(self, group: TaskNode) -> None:
        """Set the group's span and progress from its live members."""
        members = self._graph.members_of(group)
        span = group_span(members)

        if span is not None:
            start, end = span
            group.start = start
            group.duration_days = (end - start).days + 1
        if members:
            group.percent_complete = int(sum(m.percent_complete for m in members) / len(members))

    def update_all_group_dates(self) -> None:
        for group in self._graph.groups():
            self.update_group_dates(group)

    # -- helpers -----------------------------------------------------------

    def _restore_plan(self, group: TaskNode) -> List[RemapStep]:
        plan: List[RemapStep] = []
        for edge in self._graph.edges:
            new_from = edge.from_id
            if edge.from_id == group.id:
                if edge.original_from is not None:
                    new_from = edge.original_from
                    plan.append((edge.id, "original_from", None))
                else:
                    nearest = self.find_nearest_member(group, edge.effective_to)
                    if nearest is not None:
                        new_from = nearest.id
                if new_from != edge.from_id:
                    plan.append((edge.id, "from_id", new_from))

            if edge.to_id == group.id:
                new_to = edge.to_id
                if edge.original_to is not None:
                    new_to = edge.original_to
                    plan.append((edge.id, "original_to", None))
                else:
                    reference = new_from if edge.from_id == group.id else edge.effective_from
                    nearest = self.find_nearest_member(group, reference)
                    if nearest is not None:
                        new_to = nearest.id
                if new_to != edge.to_id:
                    plan.append((edge.id, "to_id", new_to))
        return plan

    def find_nearest_member(self, group: TaskNode, reference_id: Optional[int]) -> Optional[TaskNode]:
        """
        Member whose layout center is closest to the reference node's.

        Ties go to the first-created member; without a reference node the
        first-created member is returned.
        """
        members = self._graph.members_of(group)
        if not members:
            return None

        reference = self._graph.find_node(reference_id)
        if reference is None:
            return members[0]

        ref_x, ref_y = reference.center

        def distance(node: TaskNode) -> float:
            x, y = node.center
            return math.hypot(x - ref_x, y - ref_y)

        return min(members, key=distance)

    def _unhide_internal(self, group: TaskNode, member_ids: Optional[Iterable[int]] = None) -> int:
        members = set(member_ids if member_ids is not None else group.contained_node_ids)
        plan: List[RemapStep] = [
            (edge.id, "is_hidden_internal", False)
            for edge in self._graph.edges
            if edge.is_hidden_internal and edge.from_id in members and edge.to_id in members
        ]
        return self._apply(plan)

    def _apply(self, plan: List[RemapStep]) -> int:
        touched = set()
        for edge_id, attr, value in plan:
            edge = self._graph.find_edge(edge_id)
            if edge is None:
                continue
            setattr(edge, attr, value)
            touched.add(edge_id)
        return len(touched)

    def _place_group(self, group: TaskNode, members: List[TaskNode]) -> None:
        """Center the group header on its members' bounding box."""
        if not members:
            return
        min_x = min(m.x for m in members)
        min_y = min(m.y for m in members)
        max_x = max(m.x + m.width for m in members)
        max_y = max(m.y + m.height for m in members)
        group.x = (min_x + max_x) / 2 - group.width / 2
        group.y = (min_y + max_y) / 2 - group.height / 2


def group_span(members: List[TaskNode]) -> Optional[Tuple[date, date]]:
    """(start, inclusive end) covering the dated members, or None."""
    dated = [m for m in members if m.start is not None]
    if not dated:
        return None
    start = min(m.start for m in dated)
    end = max(m.end for m in dated)
    return start, end
