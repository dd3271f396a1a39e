"""
Dependency scheduling

Forward auto-scheduling from a changed task through its transitive
successors, plus the structural edits that add and remove dependencies.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Set, Tuple

from ..calendar import WorkingCalendar
from ..logging import LogLevel, get_logger
from ..models import SchedulerConfig
from .model import DependencyEdge, DependencyType, NodeKind, Outcome, TaskGraph, TaskNode

log = get_logger()


def candidate_start(
    predecessor: TaskNode,
    dependency_type: DependencyType,
    lag_days: int = 0,
) -> Optional[date]:
    """
    Earliest successor start implied by one predecessor

    Args:
        predecessor: predecessor node with its current dates
        dependency_type: constraint type
        lag_days: signed day offset, negative for a lead

    Returns:
        Candidate start, or None when the predecessor has no dates
    """
    if predecessor.start is None:
        return None

    if dependency_type is DependencyType.FINISH_TO_START:
        base = predecessor.end + timedelta(days=1)
    elif dependency_type is DependencyType.START_TO_START:
        base = predecessor.start
    elif dependency_type is DependencyType.FINISH_TO_FINISH:
        base = predecessor.end
    else:
        base = predecessor.start

    return base + timedelta(days=lag_days)


@dataclass
class ScheduleReport:
    """Outcome of one auto-schedule run"""
    origin_id: int
    closure: List[int] = field(default_factory=list)
    moved: Dict[int, Tuple[Optional[date], date]] = field(default_factory=dict)
    fixed: List[int] = field(default_factory=list)
    unresolved: List[int] = field(default_factory=list)
    passes: int = 0

    @property
    def converged(self) -> bool:
        return not self.unresolved


class DependencyScheduler:
    """
    Constraint-driven forward scheduler

    Supports:
    - auto-schedule from a task across all four dependency types with lag
    - bounded, deterministic termination on cyclic input
    - dependency add / remove with precondition checks
    """

    def __init__(
        self,
        graph: TaskGraph,
        calendar: Optional[WorkingCalendar] = None,
        config: Optional[SchedulerConfig] = None,
    ):
        self._graph = graph
        self.calendar = calendar or WorkingCalendar.standard()
        self.config = config or SchedulerConfig()

    # -- structural edits --------------------------------------------------

    def add_dependency(
        self,
        from_id: int,
        to_id: int,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
        lag_days: int = 0,
    ) -> Outcome:
        """
        Add a dependency edge. Does not reschedule.

        Returns:
            Outcome carrying the new edge id, or the reason for a no-op
        """
        if from_id == to_id:
            return self._reject(f"self-dependency on {from_id} rejected")

        source = self._graph.find_node(from_id)
        target = self._graph.find_node(to_id)
        if source is None or target is None:
            missing = from_id if source is None else to_id
            log.debug(f"add_dependency: node {missing} does not exist", operation="add_dependency")
            return Outcome.noop(f"node {missing} does not exist")

        for node in (source, target):
            if node.kind is NodeKind.RESOURCE:
                return self._reject(f"node {node.id} is a resource and cannot take dependencies")

        if (source.is_group and target.parent_group_id == source.id) or (
            target.is_group and source.parent_group_id == target.id
        ):
            return self._reject(f"dependency between group and its own member ({from_id} -> {to_id})")

        if self.find_dependencies(from_id, to_id):
            return self._reject(f"dependency {from_id} -> {to_id} already exists")

        if self.config.reject_cycles and self.would_create_cycle(from_id, to_id):
            return self._reject(f"dependency {from_id} -> {to_id} would create a cycle")

        edge = self._graph.add_edge(from_id, to_id, dependency_type, lag_days)
        log.graph_log(
            f"Added {edge.type_code} dependency {from_id} -> {to_id} (lag {lag_days})",
            operation="add_dependency",
            node_id=to_id,
            edge_id=edge.id,
        )
        return Outcome.done(node_id=to_id, edge_id=edge.id)

    def remove_dependency(self, from_id: int, to_id: int) -> Outcome:
        """Remove every edge whose current or declared endpoints are (from_id, to_id)."""
        matches = self.find_dependencies(from_id, to_id)
        if not matches:
            log.debug(f"remove_dependency: no edge {from_id} -> {to_id}", operation="remove_dependency")
            return Outcome.noop(f"no dependency {from_id} -> {to_id}")

        for edge in matches:
            self._graph.remove_edge(edge.id)
        log.graph_log(
            f"Removed dependency {from_id} -> {to_id}",
            operation="remove_dependency",
            node_id=to_id,
            edge_id=matches[0].id,
        )
        return Outcome.done(node_id=to_id, edge_id=matches[0].id)

    def find_dependencies(self, from_id: int, to_id: int) -> List[DependencyEdge]:
        return [
            e for e in self._graph.edges
            if (e.from_id, e.to_id) == (from_id, to_id)
            or (e.effective_from, e.effective_to) == (from_id, to_id)
        ]

    def would_create_cycle(self, from_id: int, to_id: int) -> bool:
        """Whether ``from_id`` is reachable from ``to_id`` along declared edges."""
        successors = self._successor_lookup()
        visited: Set[int] = set()
        stack = [to_id]

        while stack:
            current = stack.pop()
            if current == from_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            for edge in successors.get(current, []):
                if edge.effective_to not in visited:
                    stack.append(edge.effective_to)

        return False

    # -- scheduling --------------------------------------------------------

    def auto_schedule_from(self, task_id: int) -> ScheduleReport:
        """
        Push ``task_id`` and its transitive successors to their earliest
        feasible start dates.

        Forward only: a task is never moved earlier than its current start.
        Milestones, groups and resources keep their dates.

        Args:
            task_id: task the user changed

        Returns:
            ScheduleReport; unresolved ids indicate a dependency cycle
        """
        report = ScheduleReport(origin_id=task_id)
        if task_id not in self._graph:
            log.debug(f"auto_schedule_from: node {task_id} does not exist", operation="auto_schedule")
            return report

        successors = self._successor_lookup()
        predecessors = self._predecessor_lookup()

        # Breadth-first closure
        order: List[int] = [task_id]
        closure: Set[int] = {task_id}
        queue = deque([task_id])
        while queue:
            current = queue.popleft()
            for edge in successors.get(current, []):
                if edge.effective_to not in closure:
                    closure.add(edge.effective_to)
                    order.append(edge.effective_to)
                    queue.append(edge.effective_to)
        report.closure = order

        finalized: Set[int] = set()
        budget = self.config.pass_budget_factor * len(order)

        while len(finalized) < len(order) and report.passes < budget:
            report.passes += 1
            progressed = False

            for node_id in order:
                if node_id in finalized:
                    continue
                preds_in_set = [
                    e for e in predecessors.get(node_id, [])
                    if e.effective_from in closure
                ]
                if any(e.effective_from not in finalized for e in preds_in_set):
                    continue

                self._finalize(node_id, preds_in_set, report)
                finalized.add(node_id)
                progressed = True

            if not progressed:
                break

        report.unresolved = [n for n in order if n not in finalized]
        if report.unresolved:
            log.graph_log(
                f"auto_schedule_from {task_id}: {len(report.unresolved)} tasks left unscheduled "
                f"(dependency cycle?): {report.unresolved}",
                operation="auto_schedule",
                node_id=task_id,
                level=LogLevel.WARNING,
            )

        log.graph_log(
            f"auto_schedule_from {task_id}: {len(order)} tasks, {len(report.moved)} moved, "
            f"{report.passes} passes",
            operation="auto_schedule",
            node_id=task_id,
        )
        return report

    def _finalize(self, node_id: int, preds: List[DependencyEdge], report: ScheduleReport) -> None:
        node = self._graph.find_node(node_id)
        if node is None:
            return
        if not node.kind.is_schedulable:
            report.fixed.append(node_id)
            return

        earliest = node.start
        for edge in preds:
            predecessor = self._graph.find_node(edge.effective_from)
            if predecessor is None:
                continue
            candidate = candidate_start(predecessor, edge.dependency_type, edge.lag_days)
            if candidate is not None and (earliest is None or candidate > earliest):
                earliest = candidate

        if earliest is None:
            return

        earliest = self.calendar.snap_to_working_day(earliest)
        if earliest != node.start:
            report.moved[node_id] = (node.start, earliest)
            log.debug(f"Moving {node_id} from {node.start} to {earliest}", node_id=node_id)
            node.set_start(earliest)

    def _successor_lookup(self) -> Dict[int, List[DependencyEdge]]:
        lookup: Dict[int, List[DependencyEdge]] = {}
        for edge in self._graph.edges:
            if edge.effective_from in self._graph and edge.effective_to in self._graph:
                lookup.setdefault(edge.effective_from, []).append(edge)
        return lookup

    def _predecessor_lookup(self) -> Dict[int, List[DependencyEdge]]:
        lookup: Dict[int, List[DependencyEdge]] = {}
        for edge in self._graph.edges:
            if edge.effective_from in self._graph and edge.effective_to in self._graph:
                lookup.setdefault(edge.effective_to, []).append(edge)
        return lookup

    def _reject(self, reason: str) -> Outcome:
        log.graph_log(f"add_dependency rejected: {reason}", operation="add_dependency")
        return Outcome.noop(reason)
