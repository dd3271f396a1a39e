"""
Gantt visualizer tests
"""

from projectgraph.graph import GroupingEngine, NodeKind, RowLayoutAssigner
from projectgraph.visualizer import GanttVisualizer


class TestGanttVisualizer:

    def test_render_gantt(self, graph, task_factory):
        a = task_factory("A", start=0, duration=4, row_index=0)
        task_factory("B", start=4, duration=4, row_index=1, percent_complete=50)
        task_factory("M", kind=NodeKind.MILESTONE, start=7, row_index=2)

        text = GanttVisualizer(graph, {a.id}).render_gantt(RowLayoutAssigner(graph).ordered(), width=8)
        lines = text.splitlines()

        assert lines[0].strip() == "2024-01-01 .. 2024-01-08"
        assert lines[1].startswith("*■ 1:A")
        assert lines[1].endswith(" " + "█" * 4)
        assert lines[2].endswith(" " * 4 + "▓▓██")
        assert lines[3].endswith("◆")

    def test_collapsed_group_row(self, graph, chain):
        group_id = GroupingEngine(graph).create_group([chain[0].id, chain[1].id], "Phase").node_id
        text = GanttVisualizer(graph).render_gantt(RowLayoutAssigner(graph).ordered())
        assert f"▸ {group_id}:Phase" in text
        assert "T0" not in text

    def test_no_dated_tasks(self, graph, task_factory):
        task_factory(start=None)
        assert GanttVisualizer(graph).render_gantt(graph.nodes) == "(no dated tasks)"

    def test_render_dependencies(self, graph, chain):
        a, b, outside = chain
        graph.add_edge(a.id, b.id)
        graph.add_edge(b.id, outside.id)
        group_id = GroupingEngine(graph).create_group([a.id, b.id]).node_id

        text = GanttVisualizer(graph).render_dependencies()
        assert text == f"{group_id} -FS-> {outside.id}  (was {b.id}->{outside.id})"

    def test_render_summary(self, graph, chain):
        graph.add_edge(chain[0].id, chain[1].id)
        summary = GanttVisualizer(graph, {chain[0].id}).render_summary()
        assert summary == "3 tasks (0 complete), 0 milestones, 0 groups, 1 dependencies, 1 critical"
