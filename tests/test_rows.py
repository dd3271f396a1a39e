"""
Row layout tests
"""

import pytest

from projectgraph.graph import GroupingEngine, NodeKind, RowLayoutAssigner


@pytest.fixture
def assigner(graph):
    return RowLayoutAssigner(graph)


def snapshot(graph):
    return {n.id: n.row_index for n in graph.nodes}


class TestRowLayout:

    def test_rows_are_dense(self, graph, assigner, task_factory):
        a = task_factory("A", row_index=5)
        b = task_factory("B", row_index=2)
        c = task_factory("C", row_index=9)

        rows = assigner.assign()

        assert [n.id for n in rows] == [b.id, a.id, c.id]
        assert [n.row_index for n in rows] == [0, 1, 2]

    def test_unassigned_rows_sort_last_by_start(self, assigner, task_factory):
        late = task_factory("late", start=5)
        early = task_factory("early", start=1)
        placed = task_factory("placed", start=9, row_index=0)

        rows = assigner.assign()
        assert [n.id for n in rows] == [placed.id, early.id, late.id]

    def test_resources_get_no_row(self, graph, assigner, task_factory):
        task_factory("A", row_index=0)
        resource = graph.add_node(kind=NodeKind.RESOURCE, name="R")
        rows = assigner.assign()
        assert resource not in rows
        assert resource.row_index == -1

    def test_collapsed_group_takes_first_member_row(self, graph, assigner, chain, task_factory):
        last = task_factory("last", row_index=3)
        group_id = GroupingEngine(graph).create_group([chain[1].id, chain[2].id]).node_id

        rows = assigner.assign()
        assert [n.id for n in rows] == [chain[0].id, group_id, last.id]

    def test_expanded_group_interleaves_members(self, graph, assigner, chain, task_factory):
        last = task_factory("last", row_index=3)
        engine = GroupingEngine(graph)
        group_id = engine.create_group([chain[2].id, chain[1].id]).node_id
        engine.expand_group(group_id)

        rows = assigner.assign()
        assert [n.id for n in rows] == [chain[0].id, group_id, chain[1].id, chain[2].id, last.id]
        assert [n.row_index for n in rows] == [0, 1, 2, 3, 4]

    def test_group_precedes_standalone_on_tie(self, graph, assigner, task_factory):
        a = task_factory("A", row_index=0)
        b = task_factory("B", row_index=1)
        loose = task_factory("loose", row_index=0)
        group_id = GroupingEngine(graph).create_group([a.id, b.id]).node_id

        rows = assigner.ordered()
        assert [n.id for n in rows] == [group_id, loose.id]

    def test_idempotent(self, graph, assigner, chain, task_factory):
        task_factory("D", row_index=7)
        task_factory("E")
        engine = GroupingEngine(graph)
        engine.create_group([chain[0].id, chain[2].id])

        assigner.assign()
        first = snapshot(graph)
        assigner.assign()
        assert snapshot(graph) == first

    def test_idempotent_after_expand(self, graph, assigner, chain, task_factory):
        task_factory("D", row_index=7)
        engine = GroupingEngine(graph)
        group_id = engine.create_group([chain[0].id, chain[2].id]).node_id
        assigner.assign()
        engine.expand_group(group_id)

        assigner.assign()
        first = snapshot(graph)
        assigner.assign()
        assert snapshot(graph) == first

    def test_hidden_members_follow_group(self, graph, assigner, chain):
        group_id = GroupingEngine(graph).create_group([chain[1].id, chain[2].id]).node_id
        group = graph.find_node(group_id)
        assigner.assign()

        rows = [chain[1].row_index, chain[2].row_index]
        assert min(rows) == group.row_index
        assert rows[0] < rows[1]
