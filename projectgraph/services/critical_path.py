"""
Critical path

Pure precedence-diagram analysis over task durations and dependency edges.
Never mutates the nodes or edges it is given.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Set

from ..logging import get_logger
from ..graph.model import DependencyEdge, DependencyType, NodeKind, TaskNode

log = get_logger()


class CriticalPathService(Protocol):
    """Computes critical-path membership."""

    def compute(self, tasks: Iterable[TaskNode], edges: Iterable[DependencyEdge]) -> Set[int]:
        ...


@dataclass
class CpmTiming:
    """Day-offset timing of one task"""
    task_id: int
    duration: int
    early_start: int = 0
    early_finish: int = 0
    late_start: int = 0
    late_finish: int = 0

    @property
    def total_float(self) -> int:
        return self.late_start - self.early_start

    @property
    def is_critical(self) -> bool:
        return self.total_float == 0


class CpmCriticalPathService:
    """
    Critical Path Method over all four dependency types

    Offsets are whole days from the project start; finishes are exclusive
    so a task occupies [start, start + duration).
    """

    def compute(self, tasks: Iterable[TaskNode], edges: Iterable[DependencyEdge]) -> Set[int]:
        timings = self.analyze(tasks, edges)
        if timings is None:
            return set()
        return {t.task_id for t in timings.values() if t.is_critical}

    def analyze(
        self,
        tasks: Iterable[TaskNode],
        edges: Iterable[DependencyEdge],
    ) -> Optional[Dict[int, CpmTiming]]:
        """
        Forward and backward pass

        Returns:
            Timing per task id, or None if the dependencies form a cycle
        """
        timings: Dict[int, CpmTiming] = {}
        for task in tasks:
            if task.kind in (NodeKind.GROUP, NodeKind.RESOURCE):
                continue
            duration = 0 if task.kind is NodeKind.MILESTONE else max(1, task.duration_days)
            timings[task.id] = CpmTiming(task_id=task.id, duration=duration)

        deps = [
            e for e in edges
            if e.effective_from in timings and e.effective_to in timings
            and e.effective_from != e.effective_to
        ]
        order = self.topological_order(list(timings), deps)
        if order is None:
            log.warning("Critical path skipped: dependencies contain a cycle", operation="critical_path")
            return None

        incoming: Dict[int, List[DependencyEdge]] = {}
        outgoing: Dict[int, List[DependencyEdge]] = {}
        for dep in deps:
            incoming.setdefault(dep.effective_to, []).append(dep)
            outgoing.setdefault(dep.effective_from, []).append(dep)

        # Forward pass
        for task_id in order:
            t = timings[task_id]
            t.early_start = 0
            for dep in incoming.get(task_id, []):
                p = timings[dep.effective_from]
                t.early_start = max(t.early_start, self._earliest(p, t.duration, dep))
            t.early_finish = t.early_start + t.duration

        project_end = max((t.early_finish for t in timings.values()), default=0)

        # Backward pass
        for task_id in reversed(order):
            t = timings[task_id]
            t.late_finish = project_end
            for dep in outgoing.get(task_id, []):
                s = timings[dep.effective_to]
                t.late_finish = min(t.late_finish, self._latest(s, t.duration, dep))
            t.late_start = t.late_finish - t.duration

        return timings

    @staticmethod
    def _earliest(pred: CpmTiming, duration: int, dep: DependencyEdge) -> int:
        lag = dep.lag_days
        kind = dep.dependency_type
        if kind is DependencyType.FINISH_TO_START:
            return pred.early_finish + lag
        if kind is DependencyType.START_TO_START:
            return pred.early_start + lag
        if kind is DependencyType.FINISH_TO_FINISH:
            return pred.early_finish + lag - duration
        return pred.early_start + lag - duration

    @staticmethod
    def _latest(succ: CpmTiming, duration: int, dep: DependencyEdge) -> int:
        """Latest finish of the predecessor allowed by one successor."""
        lag = dep.lag_days
        kind = dep.dependency_type
        if kind is DependencyType.FINISH_TO_START:
            return succ.late_start - lag
        if kind is DependencyType.START_TO_START:
            return succ.late_start - lag + duration
        if kind is DependencyType.FINISH_TO_FINISH:
            return succ.late_finish - lag
        return succ.late_finish - lag + duration

    @staticmethod
    def topological_order(task_ids: List[int], deps: List[DependencyEdge]) -> Optional[List[int]]:
        """Kahn order over the given ids, or None if a cycle remains."""
        indegree = {task_id: 0 for task_id in task_ids}
        successors: Dict[int, List[int]] = {}
        for dep in deps:
            indegree[dep.effective_to] += 1
            successors.setdefault(dep.effective_from, []).append(dep.effective_to)

        ready = [task_id for task_id in task_ids if indegree[task_id] == 0]
        order: List[int] = []
        while ready:
            current = ready.pop(0)
            order.append(current)
            for nxt in successors.get(current, []):
                indegree[nxt] -= 1
                if indegree[nxt] == 0:
                    ready.append(nxt)

        if len(order) != len(task_ids):
            return None
        return order
