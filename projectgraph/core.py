"""Project editor: the single mutator that wires graph edits to grouping,
scheduling, row layout and critical-path refresh."""
from __future__ import annotations

import json
from concurrent.futures import Future
from datetime import date
from pathlib import Path
from typing import Optional, Set

from .calendar import WorkingCalendar
from .graph import (
    DependencyScheduler,
    DependencyType,
    GroupingEngine,
    NodeKind,
    Outcome,
    RowLayoutAssigner,
    ScheduleReport,
    TaskGraph,
    TaskNode,
    is_edge_visible,
    is_node_visible,
)
from .logging import LogLevel, get_logger
from .models import LevelingConfig, ProjectGraphConfig
from .services import (
    CpmCriticalPathService,
    CriticalPathService,
    GreedyLevelingSolver,
    LevelingResult,
    LevelingRunner,
    ResourceLevelingSolver,
)

log = get_logger()

RC_FILE = ".projectgraphrc"

# Node attributes update_task may change
EDITABLE_FIELDS = frozenset({"start", "duration_days", "percent_complete", "name", "notes", "priority"})


def load_config(repo: Path) -> ProjectGraphConfig:
    """Load config from .projectgraphrc or defaults."""
    rc_file = repo / RC_FILE
    if rc_file.exists():
        data = json.loads(rc_file.read_text(encoding="utf-8"))
        return ProjectGraphConfig(**data)
    return ProjectGraphConfig()


class ProjectEditor:
    """Applies user actions to a TaskGraph and keeps derived state current."""

    def __init__(
        self,
        graph: TaskGraph | None = None,
        config: ProjectGraphConfig | None = None,
        critical_path_service: CriticalPathService | None = None,
        leveling_solver: ResourceLevelingSolver | None = None,
    ):
        self.graph = graph or TaskGraph()
        self.config = config or ProjectGraphConfig()
        self.calendar: WorkingCalendar = self.config.calendar.build()
        self.grouping = GroupingEngine(self.graph)
        self.scheduler = DependencyScheduler(self.graph, self.calendar, self.config.scheduler)
        self.rows = RowLayoutAssigner(self.graph)
        self.critical_path_service = critical_path_service or CpmCriticalPathService()
        self._leveling = LevelingRunner(leveling_solver or GreedyLevelingSolver(self.calendar))
        self._pending: Optional[Future] = None

        self.version = 0
        self.critical_path: Set[int] = set()
        self._refresh(structural=True, bump=False)

    # -- state -------------------------------------------------------------

    @property
    def editing_locked(self) -> bool:
        """True while a leveling solve is in flight."""
        return self._pending is not None and not self._pending.done()

    def _guard(self, operation: str) -> Optional[Outcome]:
        if self.editing_locked:
            log.graph_log(
                f"{operation} refused: graph edits are disabled while leveling runs",
                operation=operation,
            )
            return Outcome.noop("graph edits are disabled while leveling runs")
        return None

    def _refresh(self, structural: bool, bump: bool = True) -> None:
        if bump:
            self.version += 1
        self.rows.assign()
        if structural:
            self.critical_path = self.critical_path_service.compute(self.graph.nodes, self.graph.edges)

    # -- nodes -------------------------------------------------------------

    def add_task(
        self,
        name: str,
        start: date | None = None,
        duration_days: int = 1,
        **attrs,
    ) -> Outcome:
        if blocked := self._guard("add_task"):
            return blocked
        if start is not None:
            start = self.calendar.snap_to_working_day(start)
        node = self.graph.add_node(
            kind=NodeKind.TASK,
            name=name,
            start=start,
            duration_days=max(1, duration_days),
            row_index=attrs.pop("row_index", self._next_row()),
            **attrs,
        )
        self._refresh(structural=True)
        return Outcome.done(node.id)

    def add_milestone(self, name: str, day: date, **attrs) -> Outcome:
        if blocked := self._guard("add_milestone"):
            return blocked
        node = self.graph.add_node(
            kind=NodeKind.MILESTONE,
            name=name,
            start=day,
            row_index=attrs.pop("row_index", self._next_row()),
            **attrs,
        )
        self._refresh(structural=True)
        return Outcome.done(node.id)

    def add_resource(self, name: str, **attrs) -> Outcome:
        if blocked := self._guard("add_resource"):
            return blocked
        node = self.graph.add_node(kind=NodeKind.RESOURCE, name=name, duration_days=0, **attrs)
        self._refresh(structural=False)
        return Outcome.done(node.id)

    def remove_node(self, node_id: int) -> Outcome:
        """Delete a node and its edges; groups are ungrouped first."""
        if blocked := self._guard("remove_node"):
            return blocked
        node = self.graph.find_node(node_id)
        if node is None:
            log.debug(f"remove_node: node {node_id} does not exist", operation="remove_node")
            return Outcome.noop(f"node {node_id} does not exist")

        if node.is_group:
            outcome = self.grouping.delete_group(node_id)
        else:
            parent = self.graph.find_node(node.parent_group_id)
            if node.kind is NodeKind.RESOURCE:
                for task in self.graph.nodes:
                    if node_id in task.assigned_resource_ids:
                        task.assigned_resource_ids.remove(node_id)
            self.graph.remove_node(node_id)
            if parent is not None:
                self.grouping.update_group_dates(parent)
            outcome = Outcome.done(node_id)

        self._refresh(structural=True)
        return outcome

    def update_task(self, node_id: int, **changes) -> Outcome:
        """
        Edit task attributes directly (dates, duration, progress, labels).

        A new start date is snapped to the next working day.
        """
        if blocked := self._guard("update_task"):
            return blocked
        node = self.graph.find_node(node_id)
        if node is None:
            return Outcome.noop(f"node {node_id} does not exist")
        if node.is_group:
            return Outcome.noop(f"group {node_id} dates follow its members")
        unsupported = set(changes) - EDITABLE_FIELDS
        if unsupported:
            return Outcome.noop(f"unsupported fields: {', '.join(sorted(unsupported))}")

        if "start" in changes:
            start = changes.pop("start")
            node.start = self.calendar.snap_to_working_day(start) if start else None
        if "duration_days" in changes:
            duration = changes.pop("duration_days")
            if node.kind is not NodeKind.MILESTONE:
                node.duration_days = max(1, int(duration))
        if "percent_complete" in changes:
            node.percent_complete = max(0, min(100, int(changes.pop("percent_complete"))))
        for attr in ("name", "notes", "priority"):
            if attr in changes:
                setattr(node, attr, changes.pop(attr))

        parent = self.graph.find_node(node.parent_group_id)
        if parent is not None:
            self.grouping.update_group_dates(parent)
        self._refresh(structural=True)
        return Outcome.done(node_id)

    def assign_resource(self, task_id: int, resource_id: int) -> Outcome:
        if blocked := self._guard("assign_resource"):
            return blocked
        task = self.graph.find_node(task_id)
        resource = self.graph.find_node(resource_id)
        if task is None or resource is None:
            return Outcome.noop("task or resource does not exist")
        if resource.kind is not NodeKind.RESOURCE or not task.kind.is_schedulable:
            return Outcome.noop(f"cannot assign {resource_id} to {task_id}")
        if resource_id not in task.assigned_resource_ids:
            task.assigned_resource_ids.append(resource_id)
        self._refresh(structural=False)
        return Outcome.done(task_id)

    # -- dependencies ------------------------------------------------------

    def add_dependency(
        self,
        from_id: int,
        to_id: int,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
        lag_days: int = 0,
    ) -> Outcome:
        if blocked := self._guard("add_dependency"):
            return blocked
        outcome = self.scheduler.add_dependency(from_id, to_id, dependency_type, lag_days)
        if outcome:
            # An endpoint hidden inside a collapsed group is re-pointed at it
            for node_id in (from_id, to_id):
                parent = self.graph.find_node(self.graph.find_node(node_id).parent_group_id)
                if parent is not None and parent.is_collapsed:
                    self.grouping.remap_boundary_edges(parent, parent.contained_node_ids)
            self._refresh(structural=True)
        return outcome

    def remove_dependency(self, from_id: int, to_id: int) -> Outcome:
        if blocked := self._guard("remove_dependency"):
            return blocked
        outcome = self.scheduler.remove_dependency(from_id, to_id)
        if outcome:
            self._refresh(structural=True)
        return outcome

    # -- groups ------------------------------------------------------------

    def create_group(self, selected_ids, name: str = "") -> Outcome:
        if blocked := self._guard("create_group"):
            return blocked
        outcome = self.grouping.create_group(selected_ids, name)
        if outcome:
            self._refresh(structural=True)
        return outcome

    def collapse_group(self, group_id: int) -> Outcome:
        return self._group_op("collapse_group", self.grouping.collapse_group, group_id)

    def expand_group(self, group_id: int) -> Outcome:
        return self._group_op("expand_group", self.grouping.expand_group, group_id)

    def toggle_group(self, group_id: int) -> Outcome:
        return self._group_op("toggle_group", self.grouping.toggle_group, group_id)

    def ungroup(self, group_id: int) -> Outcome:
        if blocked := self._guard("ungroup"):
            return blocked
        outcome = self.grouping.delete_group(group_id)
        if outcome:
            self._refresh(structural=True)
        return outcome

    def _group_op(self, name: str, op, group_id: int) -> Outcome:
        if blocked := self._guard(name):
            return blocked
        outcome = op(group_id)
        if outcome:
            self._refresh(structural=False)
        return outcome

    # -- scheduling --------------------------------------------------------

    def auto_schedule_from(self, task_id: int) -> ScheduleReport:
        """User action "auto-schedule from this task"."""
        if self.editing_locked:
            self._guard("auto_schedule")
            return ScheduleReport(origin_id=task_id)
        report = self.scheduler.auto_schedule_from(task_id)
        if report.moved:
            self.grouping.update_all_group_dates()
            self._refresh(structural=False)
        return report

    # -- leveling ----------------------------------------------------------

    def start_leveling(self, config: LevelingConfig | None = None) -> Future:
        """
        Submit a leveling solve on a snapshot of the graph.

        Edits are refused until the solve finishes.
        """
        if self.editing_locked:
            return self._pending
        tasks = [n for n in self.graph.nodes if n.kind is not NodeKind.GROUP]
        self._pending = self._leveling.submit(
            tasks, self.graph.edges, config or self.config.leveling, self.version,
        )
        log.graph_log(f"Leveling started at graph version {self.version}", operation="level")
        return self._pending

    def cancel_leveling(self) -> None:
        """Stop waiting for the solve; a late result is still version-checked."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def apply_leveling(self, result: LevelingResult | None = None) -> Outcome:
        """
        Apply a solver result in one step.

        Results computed against an older graph version are discarded.
        """
        if result is None:
            if self._pending is None:
                return Outcome.noop("no leveling result pending")
            result = self._pending.result()
        self._pending = None

        if result.graph_version != self.version:
            log.graph_log(
                f"Discarding leveling result for version {result.graph_version}; graph is at {self.version}",
                operation="level",
                level=LogLevel.WARNING,
            )
            return Outcome.noop("graph changed since leveling started")
        if not result.ok:
            return Outcome.noop(result.message or result.status.value)

        for task_id, new_start in result.optimized_start.items():
            node = self.graph.find_node(task_id)
            if node is None or node.start is None:
                continue
            node.set_start(new_start, result.optimized_duration.get(task_id))
        for task_id, duration in result.optimized_duration.items():
            node = self.graph.find_node(task_id)
            if node is not None and task_id not in result.optimized_start:
                node.set_start(node.start, duration)

        self.grouping.update_all_group_dates()
        self._refresh(structural=True)
        log.graph_log(f"Applied leveling: {len(result.optimized_start)} tasks moved", operation="level")
        return Outcome.done()

    def close(self) -> None:
        self._leveling.shutdown(wait=False)

    # -- views -------------------------------------------------------------

    def visible_nodes(self, node_view: bool = False) -> list[TaskNode]:
        return [n for n in self.graph.nodes if is_node_visible(self.graph, n, node_view)]

    def visible_edges(self, node_view: bool = False):
        return [e for e in self.graph.edges if is_edge_visible(self.graph, e, node_view)]

    def gantt_rows(self) -> list[TaskNode]:
        return self.rows.ordered()

    def _next_row(self) -> int:
        rows = [n.row_index for n in self.graph.nodes if n.row_index >= 0]
        return max(rows) + 1 if rows else 0
