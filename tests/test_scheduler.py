"""
Dependency scheduler tests

Dependency add/remove preconditions and forward auto-scheduling.
"""

import pytest

from projectgraph.calendar import WorkingCalendar
from projectgraph.graph import (
    DependencyScheduler,
    DependencyType,
    GroupingEngine,
    NodeKind,
    candidate_start,
)
from projectgraph.models import SchedulerConfig

from conftest import day


@pytest.fixture
def scheduler(graph, continuous):
    return DependencyScheduler(graph, continuous)


class TestCandidateStart:

    @pytest.mark.parametrize("dep_type,lag,expected", [
        (DependencyType.FINISH_TO_START, 0, 3),
        (DependencyType.START_TO_START, 0, 0),
        (DependencyType.FINISH_TO_FINISH, 0, 2),
        (DependencyType.START_TO_FINISH, 0, 0),
        (DependencyType.FINISH_TO_START, 2, 5),
        (DependencyType.FINISH_TO_START, -1, 2),
    ])
    def test_rules(self, task_factory, dep_type, lag, expected):
        predecessor = task_factory(start=0, duration=3)
        assert candidate_start(predecessor, dep_type, lag) == day(expected)

    def test_undated_predecessor(self, task_factory):
        predecessor = task_factory(start=None)
        assert candidate_start(predecessor, DependencyType.FINISH_TO_START) is None


class TestAddDependency:

    def test_adds_edge(self, graph, scheduler, chain):
        outcome = scheduler.add_dependency(chain[0].id, chain[1].id, DependencyType.START_TO_START, 2)
        assert outcome
        edge = graph.find_edge(outcome.edge_id)
        assert (edge.from_id, edge.to_id, edge.type_code, edge.lag_days) == (1, 2, "SS", 2)

    def test_self_loop_is_noop(self, graph, scheduler, task_factory):
        for _ in range(5):
            task_factory()
        count = len(graph.edges)

        assert not scheduler.add_dependency(5, 5)
        assert len(graph.edges) == count

    def test_missing_node_is_noop(self, scheduler, chain):
        outcome = scheduler.add_dependency(chain[0].id, 99)
        assert not outcome
        assert "does not exist" in outcome.reason

    def test_resource_endpoint_is_noop(self, graph, scheduler, chain):
        resource = graph.add_node(kind=NodeKind.RESOURCE)
        assert not scheduler.add_dependency(resource.id, chain[0].id)

    def test_duplicate_is_noop(self, graph, scheduler, chain):
        scheduler.add_dependency(chain[0].id, chain[1].id)
        assert not scheduler.add_dependency(chain[0].id, chain[1].id, DependencyType.FINISH_TO_FINISH)
        assert len(graph.edges) == 1

    def test_duplicate_of_remapped_edge_is_noop(self, graph, scheduler, chain):
        a, b, outside = chain
        scheduler.add_dependency(a.id, outside.id)
        GroupingEngine(graph).create_group([a.id, b.id])
        assert not scheduler.add_dependency(a.id, outside.id)

    def test_group_to_own_member_is_noop(self, graph, scheduler, chain):
        group_id = GroupingEngine(graph).create_group([chain[0].id, chain[1].id]).node_id
        assert not scheduler.add_dependency(group_id, chain[0].id)
        assert not scheduler.add_dependency(chain[1].id, group_id)

    def test_cycles_allowed_by_default(self, scheduler, chain):
        scheduler.add_dependency(chain[0].id, chain[1].id)
        assert scheduler.add_dependency(chain[1].id, chain[0].id)

    def test_cycles_rejected_when_configured(self, graph, continuous, chain):
        scheduler = DependencyScheduler(graph, continuous, SchedulerConfig(reject_cycles=True))
        scheduler.add_dependency(chain[0].id, chain[1].id)
        scheduler.add_dependency(chain[1].id, chain[2].id)
        outcome = scheduler.add_dependency(chain[2].id, chain[0].id)
        assert not outcome
        assert "cycle" in outcome.reason


class TestRemoveDependency:

    def test_removes_edge(self, graph, scheduler, chain):
        scheduler.add_dependency(chain[0].id, chain[1].id)
        assert scheduler.remove_dependency(chain[0].id, chain[1].id)
        assert graph.edges == []

    def test_missing_edge_is_noop(self, scheduler, chain):
        assert not scheduler.remove_dependency(chain[0].id, chain[1].id)

    def test_removes_by_declared_endpoints(self, graph, scheduler, chain):
        a, b, outside = chain
        scheduler.add_dependency(b.id, outside.id)
        GroupingEngine(graph).create_group([a.id, b.id])
        assert scheduler.remove_dependency(b.id, outside.id)
        assert graph.edges == []


class TestAutoSchedule:

    def test_finish_to_start_chain(self, graph, scheduler, task_factory):
        t1 = task_factory("T1", start=0, duration=3)
        t2 = task_factory("T2", start=0, duration=1)
        scheduler.add_dependency(t1.id, t2.id)

        report = scheduler.auto_schedule_from(t1.id)

        assert t2.start == day(3)
        assert report.moved == {t2.id: (day(0), day(3))}
        assert report.converged

    @pytest.mark.parametrize("dep_type,expected", [
        (DependencyType.FINISH_TO_START, 6),
        (DependencyType.START_TO_START, 2),
        (DependencyType.FINISH_TO_FINISH, 5),
        (DependencyType.START_TO_FINISH, 2),
    ])
    def test_dependency_types(self, scheduler, task_factory, dep_type, expected):
        pred = task_factory(start=2, duration=4)
        succ = task_factory(start=0, duration=2)
        scheduler.add_dependency(pred.id, succ.id, dep_type)

        scheduler.auto_schedule_from(pred.id)
        assert succ.start == day(expected)

    def test_lag(self, scheduler, task_factory):
        pred = task_factory(start=0, duration=2)
        succ = task_factory(start=0)
        scheduler.add_dependency(pred.id, succ.id, lag_days=3)

        scheduler.auto_schedule_from(pred.id)
        assert succ.start == day(5)

    def test_never_moves_earlier(self, scheduler, task_factory):
        pred = task_factory(start=0, duration=1)
        succ = task_factory(start=10)
        scheduler.add_dependency(pred.id, succ.id)

        report = scheduler.auto_schedule_from(pred.id)
        assert succ.start == day(10)
        assert report.moved == {}

    def test_takes_latest_predecessor(self, scheduler, task_factory):
        a = task_factory(start=0, duration=2)
        b = task_factory(start=0, duration=5)
        c = task_factory(start=0)
        scheduler.add_dependency(a.id, b.id, DependencyType.START_TO_START)
        scheduler.add_dependency(a.id, c.id)
        scheduler.add_dependency(b.id, c.id)

        scheduler.auto_schedule_from(a.id)
        assert c.start == day(5)

    def test_transitive_chain(self, scheduler, task_factory):
        tasks = [task_factory(start=0, duration=2) for _ in range(4)]
        for pred, succ in zip(tasks, tasks[1:]):
            scheduler.add_dependency(pred.id, succ.id)

        scheduler.auto_schedule_from(tasks[0].id)
        assert [t.start for t in tasks] == [day(0), day(2), day(4), day(6)]

    def test_milestones_are_fixed(self, scheduler, task_factory):
        task = task_factory(start=0, duration=5)
        milestone = task_factory(kind=NodeKind.MILESTONE, start=1)
        after = task_factory(start=0)
        scheduler.add_dependency(task.id, milestone.id)
        scheduler.add_dependency(milestone.id, after.id)

        report = scheduler.auto_schedule_from(task.id)
        assert milestone.start == day(1)
        assert after.start == day(2)
        assert milestone.id in report.fixed

    def test_out_of_closure_predecessors_ignored(self, scheduler, task_factory):
        origin = task_factory(start=0, duration=1)
        other = task_factory(start=20, duration=1)
        succ = task_factory(start=0)
        scheduler.add_dependency(origin.id, succ.id)
        scheduler.add_dependency(other.id, succ.id)

        scheduler.auto_schedule_from(origin.id)
        assert succ.start == day(1)

    def test_edges_through_collapsed_group_use_declared_endpoints(self, graph, scheduler, task_factory):
        a = task_factory(start=0, duration=4)
        b = task_factory(start=0, duration=1)
        c = task_factory(start=0, duration=1)
        scheduler.add_dependency(a.id, c.id)
        GroupingEngine(graph).create_group([a.id, b.id])

        scheduler.auto_schedule_from(a.id)
        assert c.start == day(4)

    def test_snaps_to_working_day(self, graph, task_factory):
        scheduler = DependencyScheduler(graph, WorkingCalendar.standard())
        friday = task_factory(start=4, duration=1)
        succ = task_factory(start=0)
        scheduler.add_dependency(friday.id, succ.id)

        scheduler.auto_schedule_from(friday.id)
        assert succ.start == day(7)

    def test_cycle_terminates(self, scheduler, task_factory, log_records):
        a = task_factory(start=0, duration=1)
        b = task_factory(start=0, duration=1)
        c = task_factory(start=0, duration=1)
        scheduler.add_dependency(a.id, b.id)
        scheduler.add_dependency(b.id, c.id)
        scheduler.add_dependency(c.id, a.id)

        report = scheduler.auto_schedule_from(a.id)

        assert not report.converged
        assert set(report.unresolved) == {a.id, b.id, c.id}
        assert report.passes <= 2 * len(report.closure)
        assert any(r.levelname == "WARNING" for r in log_records)

    def test_cycle_downstream_still_schedules_upstream(self, scheduler, task_factory):
        origin = task_factory(start=0, duration=3)
        b = task_factory(start=0)
        c = task_factory(start=0)
        scheduler.add_dependency(origin.id, b.id)
        scheduler.add_dependency(b.id, c.id)
        scheduler.add_dependency(c.id, b.id)

        report = scheduler.auto_schedule_from(origin.id)
        assert origin.id not in report.unresolved
        assert set(report.unresolved) == {b.id, c.id}

    def test_missing_origin(self, scheduler):
        report = scheduler.auto_schedule_from(42)
        assert report.closure == []
        assert report.moved == {}
