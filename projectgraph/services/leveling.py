"""
Resource leveling

Solver contract, a greedy default solver, and a runner that keeps the
solve off the mutation path and hands back a version-stamped result.
"""

import copy
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from ..calendar import WorkingCalendar
from ..logging import get_logger
from ..models import LevelingConfig
from ..graph.model import DependencyEdge, NodeKind, TaskNode
from ..graph.scheduler import candidate_start
from .critical_path import CpmCriticalPathService

log = get_logger()


class SolverStatus(Enum):
    """Solver outcome"""
    OPTIMAL = "optimal"
    INFEASIBLE = "infeasible"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class LevelingResult:
    """New starts and durations proposed by a solver"""
    status: SolverStatus = SolverStatus.OPTIMAL
    message: str = ""
    optimized_start: Dict[int, date] = field(default_factory=dict)
    optimized_duration: Dict[int, int] = field(default_factory=dict)
    graph_version: int = -1
    solve_time_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status is SolverStatus.OPTIMAL


class ResourceLevelingSolver(Protocol):
    """Long-running schedule optimizer."""

    def solve(
        self,
        tasks: List[TaskNode],
        edges: List[DependencyEdge],
        config: LevelingConfig,
    ) -> LevelingResult:
        ...


class GreedyLevelingSolver:
    """
    Serial greedy leveling

    Tasks are placed in dependency order, each at the earliest day that
    honours its predecessors and finds every assigned resource free.
    Tasks never move earlier than their current start.
    """

    def __init__(self, calendar: Optional[WorkingCalendar] = None):
        self.calendar = calendar or WorkingCalendar.standard()

    def solve(
        self,
        tasks: List[TaskNode],
        edges: List[DependencyEdge],
        config: LevelingConfig,
    ) -> LevelingResult:
        started = time.monotonic()
        result = LevelingResult()

        schedulable = {
            t.id: t for t in tasks
            if t.kind in (NodeKind.TASK, NodeKind.MILESTONE) and t.start is not None
        }
        if not schedulable:
            result.status = SolverStatus.ERROR
            result.message = "No dated tasks to level."
            return result

        deps = [
            e for e in edges
            if e.effective_from in schedulable and e.effective_to in schedulable
        ]
        order = CpmCriticalPathService.topological_order(list(schedulable), deps)
        if order is None:
            result.status = SolverStatus.INFEASIBLE
            result.message = "Cannot level a schedule with circular dependencies."
            return result

        incoming: Dict[int, List[DependencyEdge]] = {}
        for dep in deps:
            incoming.setdefault(dep.effective_to, []).append(dep)

        # Longest predecessor chain; sorting on it keeps dependency order
        depth: Dict[int, int] = {}
        for task_id in order:
            depth[task_id] = max(
                (depth[dep.effective_from] + 1 for dep in incoming.get(task_id, [])),
                default=0,
            )

        placed: Dict[int, TaskNode] = {}
        bookings: Dict[int, List[Tuple[date, date]]] = {}
        passes = 0

        def placement_key(task_id: int):
            task = schedulable[task_id]
            return (depth[task_id], task.start, -task.priority, task_id)

        for task_id in sorted(order, key=placement_key):
            passes += 1
            if passes > config.max_passes:
                result.status = SolverStatus.ERROR
                result.message = f"Pass limit {config.max_passes} exceeded."
                return result
            if time.monotonic() - started > config.timeout_seconds:
                result.status = SolverStatus.CANCELLED
                result.message = "Solver timed out."
                return result

            task = copy.copy(schedulable[task_id])
            if not self._is_locked(task, config):
                task.start = self._place(task, incoming.get(task_id, []), placed, bookings, config)
            placed[task_id] = task

            for resource_id in task.assigned_resource_ids:
                bookings.setdefault(resource_id, []).append((task.start, task.end))

            if task.start != schedulable[task_id].start:
                result.optimized_start[task_id] = task.start

        result.message = f"Leveled {len(placed)} tasks, {len(result.optimized_start)} moved."
        result.solve_time_ms = int((time.monotonic() - started) * 1000)
        return result

    def _place(
        self,
        task: TaskNode,
        preds: List[DependencyEdge],
        placed: Dict[int, TaskNode],
        bookings: Dict[int, List[Tuple[date, date]]],
        config: LevelingConfig,
    ) -> date:
        start = task.start
        if config.respect_dependencies:
            for dep in preds:
                predecessor = placed.get(dep.effective_from)
                if predecessor is None:
                    continue
                candidate = candidate_start(predecessor, dep.dependency_type, dep.lag_days)
                if candidate is not None and candidate > start:
                    start = candidate
        start = self.calendar.snap_to_working_day(start)

        # Slide past overlapping bookings until every resource is free
        moved = True
        while moved:
            moved = False
            task.start = start
            for resource_id in task.assigned_resource_ids:
                for booked_start, booked_end in bookings.get(resource_id, []):
                    if task.start <= booked_end and booked_start <= task.end:
                        start = self.calendar.snap_to_working_day(booked_end + timedelta(days=1))
                        moved = True
                        break
                if moved:
                    break
        return start

    @staticmethod
    def _is_locked(task: TaskNode, config: LevelingConfig) -> bool:
        if task.kind is NodeKind.MILESTONE:
            return True
        return config.completed_tasks_locked and task.percent_complete >= 100


class LevelingRunner:
    """
    Runs a solver in a worker thread

    The solver sees deep copies of the tasks and edges, so the live graph
    is never touched until the caller applies the result.
    """

    def __init__(self, solver: Optional[ResourceLevelingSolver] = None, max_workers: int = 1):
        self.solver = solver or GreedyLevelingSolver()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="leveling")

    def submit(
        self,
        tasks: Iterable[TaskNode],
        edges: Iterable[DependencyEdge],
        config: LevelingConfig,
        graph_version: int,
    ) -> "Future[LevelingResult]":
        task_copies = copy.deepcopy(list(tasks))
        edge_copies = copy.deepcopy(list(edges))
        return self._pool.submit(self._run, task_copies, edge_copies, config, graph_version)

    def _run(
        self,
        tasks: List[TaskNode],
        edges: List[DependencyEdge],
        config: LevelingConfig,
        graph_version: int,
    ) -> LevelingResult:
        try:
            result = self.solver.solve(tasks, edges, config)
        except Exception as e:
            log.error(f"Leveling solver failed: {e}", operation="level")
            result = LevelingResult(status=SolverStatus.ERROR, message=f"Solver error: {e}")
        result.graph_version = graph_version
        return result

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
