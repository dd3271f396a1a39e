#!/usr/bin/env python3
"""Delta ProjectGraph CLI - edit and schedule a project graph file."""
from __future__ import annotations
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.table import Table
from rich import box

from . import __version__
from .core import ProjectEditor, load_config
from .graph import DependencyType, Outcome, TaskGraph
from .logging import init_logging, get_console
from .persistence import GraphStore, graph_to_dict
from .visualizer import GanttVisualizer

console = get_console()

DEFAULT_FILE = "project.json"
DATE = click.DateTime(formats=["%Y-%m-%d"])


class AliasedGroup(click.Group):
    """Support command aliases."""

    def get_command(self, ctx, cmd_name):
        aliases = {
            "s": "show",
            "ls": "show",
            "t": "add-task",
            "m": "add-milestone",
            "d": "depend",
            "g": "group",
            "sched": "schedule",
            "cp": "critical",
            "rm": "remove",
        }
        cmd_name = aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)


@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.option("--repo", "-r", default=".", help="Directory holding .projectgraphrc (default: current dir)")
@click.option("--file", "-f", "graph_file", default=DEFAULT_FILE, help="Graph file, relative to the repo")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None, help="Log level")
@click.option("--log-file", type=click.Path(), default=None, help="Log file path")
@click.version_option(version=__version__, prog_name="pgraph")
@click.pass_context
def cli(ctx, repo: str, graph_file: str, output_json: bool, log_level: Optional[str], log_file: Optional[str]):
    """Delta ProjectGraph - grouped task graphs with dependency scheduling.

    \b
    Quick start:
      pgraph add-task "Design" --start 2024-01-01 --duration 3
      pgraph add-task "Build" --duration 5
      pgraph depend 1 2             # finish-to-start
      pgraph schedule 1             # push successors forward
      pgraph group 1 2 --name Phase
      pgraph show

    \b
    Aliases:
      s/ls → show, t → add-task, m → add-milestone, d → depend,
      g → group, sched → schedule, cp → critical, rm → remove
    """
    repo_path = Path(repo).resolve()
    config = load_config(repo_path)
    init_logging(level=log_level or config.log_level, log_file=Path(log_file) if log_file else None)

    ctx.ensure_object(dict)
    ctx.obj["repo"] = repo_path
    ctx.obj["config"] = config
    ctx.obj["store"] = GraphStore(repo_path / graph_file)
    ctx.obj["json"] = output_json or config.output_format == "json"

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def open_editor(ctx) -> ProjectEditor:
    """Load the graph file (or start empty) behind an editor."""
    graph = ctx.obj["store"].load() or TaskGraph()
    return ProjectEditor(graph, ctx.obj["config"])


def commit(ctx, editor: ProjectEditor, outcome: Outcome, message: str) -> None:
    """Save on success and report the outcome; a no-op exits with status 1."""
    editor.close()
    if outcome:
        if not ctx.obj["store"].save(editor.graph):
            raise click.ClickException(f"Could not write {ctx.obj['store'].path}")

    if ctx.obj["json"]:
        click.echo(json.dumps({
            "ok": outcome.ok,
            "reason": outcome.reason,
            "node_id": outcome.node_id,
            "edge_id": outcome.edge_id,
        }))
    elif outcome:
        console.print(f"[green]✓ {message}")
    else:
        console.print(f"[yellow]No change: {outcome.reason}")

    if not outcome:
        ctx.exit(1)


@cli.command()
@click.option("--deps", is_flag=True, help="List visible dependencies")
@click.option("--gantt", is_flag=True, help="Draw an ASCII Gantt chart")
@click.option("--nodes", "node_view", is_flag=True, help="Visibility as in the node view")
@click.pass_context
def show(ctx, deps: bool, gantt: bool, node_view: bool):
    """Show Gantt rows, dates and critical tasks."""
    editor = open_editor(ctx)
    editor.close()
    rows = editor.gantt_rows()

    if ctx.obj["json"]:
        data = graph_to_dict(editor.graph)
        data["rows"] = [n.id for n in rows]
        data["critical"] = sorted(editor.critical_path)
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title="Project", box=box.ROUNDED)
    table.add_column("Row", justify="right")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("%", justify="right")

    for node in rows:
        name = node.name
        if editor.graph.find_node(node.parent_group_id) is not None:
            name = f"  {name}"
        if node.id in editor.critical_path:
            name = f"[bold red]{name}"
        kind = node.kind.value
        if node.is_group:
            kind += " (collapsed)" if node.is_collapsed else " (expanded)"
        table.add_row(
            str(node.row_index),
            str(node.id),
            name,
            kind,
            node.start.isoformat() if node.start else "-",
            node.end.isoformat() if node.end else "-",
            str(node.percent_complete),
        )

    console.print(table)
    visualizer = GanttVisualizer(editor.graph, editor.critical_path)
    if gantt:
        console.print(visualizer.render_gantt(rows), markup=False, highlight=False)
    if deps:
        console.print(visualizer.render_dependencies(node_view), markup=False, highlight=False)
    console.print(visualizer.render_summary())


@cli.command("add-task")
@click.argument("name")
@click.option("--start", type=DATE, default=None, help="Start date (YYYY-MM-DD)")
@click.option("--duration", "-n", type=int, default=1, help="Duration in days")
@click.option("--priority", "-p", type=int, default=0, help="Leveling priority")
@click.pass_context
def add_task(ctx, name: str, start: Optional[datetime], duration: int, priority: int):
    """Add a task."""
    editor = open_editor(ctx)
    outcome = editor.add_task(name, start.date() if start else None, duration, priority=priority)
    commit(ctx, editor, outcome, f"Added task {outcome.node_id}: {name}")


@cli.command("add-milestone")
@click.argument("name")
@click.option("--date", "day", type=DATE, required=True, help="Milestone date (YYYY-MM-DD)")
@click.pass_context
def add_milestone(ctx, name: str, day: datetime):
    """Add a milestone."""
    editor = open_editor(ctx)
    outcome = editor.add_milestone(name, day.date())
    commit(ctx, editor, outcome, f"Added milestone {outcome.node_id}: {name}")


@cli.command("add-resource")
@click.argument("name")
@click.pass_context
def add_resource(ctx, name: str):
    """Add a resource that tasks can be assigned to."""
    editor = open_editor(ctx)
    outcome = editor.add_resource(name)
    commit(ctx, editor, outcome, f"Added resource {outcome.node_id}: {name}")


@cli.command()
@click.argument("task_id", type=int)
@click.argument("resource_id", type=int)
@click.pass_context
def assign(ctx, task_id: int, resource_id: int):
    """Assign a resource to a task."""
    editor = open_editor(ctx)
    outcome = editor.assign_resource(task_id, resource_id)
    commit(ctx, editor, outcome, f"Assigned resource {resource_id} to task {task_id}")


@cli.command("set")
@click.argument("node_id", type=int)
@click.option("--start", type=DATE, default=None, help="New start date")
@click.option("--duration", "-n", type=int, default=None, help="New duration in days")
@click.option("--percent", type=click.IntRange(0, 100), default=None, help="Percent complete")
@click.option("--name", default=None, help="New name")
@click.pass_context
def set_task(ctx, node_id: int, start, duration, percent, name):
    """Edit a task's dates, progress or name."""
    changes = {}
    if start is not None:
        changes["start"] = start.date()
    if duration is not None:
        changes["duration_days"] = duration
    if percent is not None:
        changes["percent_complete"] = percent
    if name is not None:
        changes["name"] = name

    editor = open_editor(ctx)
    outcome = editor.update_task(node_id, **changes)
    commit(ctx, editor, outcome, f"Updated node {node_id}")


@cli.command()
@click.argument("node_id", type=int)
@click.pass_context
def remove(ctx, node_id: int):
    """Remove a node and its dependencies (groups are ungrouped)."""
    editor = open_editor(ctx)
    outcome = editor.remove_node(node_id)
    commit(ctx, editor, outcome, f"Removed node {node_id}")


@cli.command()
@click.argument("from_id", type=int)
@click.argument("to_id", type=int)
@click.option(
    "--type", "-t", "dep_type",
    type=click.Choice(["FS", "SS", "FF", "SF"], case_sensitive=False),
    default="FS",
    help="Dependency type",
)
@click.option("--lag", type=int, default=0, help="Lag in days (may be negative)")
@click.pass_context
def depend(ctx, from_id: int, to_id: int, dep_type: str, lag: int):
    """Add a dependency FROM_ID -> TO_ID."""
    editor = open_editor(ctx)
    outcome = editor.add_dependency(from_id, to_id, DependencyType.parse(dep_type), lag)
    commit(ctx, editor, outcome, f"Added {dep_type.upper()} dependency {from_id} -> {to_id}")


@cli.command()
@click.argument("from_id", type=int)
@click.argument("to_id", type=int)
@click.pass_context
def undepend(ctx, from_id: int, to_id: int):
    """Remove every dependency FROM_ID -> TO_ID."""
    editor = open_editor(ctx)
    outcome = editor.remove_dependency(from_id, to_id)
    commit(ctx, editor, outcome, f"Removed dependency {from_id} -> {to_id}")


@cli.command()
@click.argument("node_ids", type=int, nargs=-1, required=True)
@click.option("--name", default="", help="Group name")
@click.pass_context
def group(ctx, node_ids, name: str):
    """Group two or more tasks or milestones (created collapsed)."""
    editor = open_editor(ctx)
    outcome = editor.create_group(list(node_ids), name)
    commit(ctx, editor, outcome, f"Created group {outcome.node_id}")


@cli.command()
@click.argument("group_id", type=int)
@click.pass_context
def expand(ctx, group_id: int):
    """Expand a collapsed group."""
    editor = open_editor(ctx)
    outcome = editor.expand_group(group_id)
    commit(ctx, editor, outcome, f"Expanded group {group_id}")


@cli.command()
@click.argument("group_id", type=int)
@click.pass_context
def collapse(ctx, group_id: int):
    """Collapse an expanded group."""
    editor = open_editor(ctx)
    outcome = editor.collapse_group(group_id)
    commit(ctx, editor, outcome, f"Collapsed group {group_id}")


@cli.command()
@click.argument("group_id", type=int)
@click.pass_context
def toggle(ctx, group_id: int):
    """Collapse or expand a group."""
    editor = open_editor(ctx)
    outcome = editor.toggle_group(group_id)
    commit(ctx, editor, outcome, f"Toggled group {group_id}")


@cli.command()
@click.argument("group_id", type=int)
@click.pass_context
def ungroup(ctx, group_id: int):
    """Delete a group, keeping its members."""
    editor = open_editor(ctx)
    outcome = editor.ungroup(group_id)
    commit(ctx, editor, outcome, f"Deleted group {group_id}")


@cli.command()
@click.argument("task_id", type=int)
@click.pass_context
def schedule(ctx, task_id: int):
    """Auto-schedule everything downstream of TASK_ID."""
    editor = open_editor(ctx)
    report = editor.auto_schedule_from(task_id)
    editor.close()
    if report.moved:
        if not ctx.obj["store"].save(editor.graph):
            raise click.ClickException(f"Could not write {ctx.obj['store'].path}")

    if ctx.obj["json"]:
        click.echo(json.dumps({
            "origin": report.origin_id,
            "moved": {str(k): [old.isoformat() if old else None, new.isoformat()]
                      for k, (old, new) in report.moved.items()},
            "unresolved": sorted(report.unresolved),
            "passes": report.passes,
            "converged": report.converged,
        }))
        return

    if not report.moved:
        console.print("[yellow]Nothing to reschedule")
    for node_id, (old, new) in report.moved.items():
        node = editor.graph.find_node(node_id)
        console.print(f"  {node_id}:{node.name}  {old} → [green]{new}")
    if not report.converged:
        console.print(f"[red]Did not converge; unresolved: {sorted(report.unresolved)}")


@cli.command()
@click.pass_context
def critical(ctx):
    """List critical-path tasks."""
    editor = open_editor(ctx)
    editor.close()
    timings = editor.critical_path_service.analyze(editor.graph.nodes, editor.graph.edges)

    if ctx.obj["json"]:
        click.echo(json.dumps({"critical": sorted(editor.critical_path)}))
        return

    if timings is None:
        console.print("[red]Dependencies contain a cycle; no critical path")
        return

    table = Table(title="Critical Path", box=box.ROUNDED)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("ES", justify="right")
    table.add_column("EF", justify="right")
    table.add_column("Float", justify="right")
    for timing in sorted(timings.values(), key=lambda t: (t.early_start, t.task_id)):
        if not timing.is_critical:
            continue
        node = editor.graph.find_node(timing.task_id)
        table.add_row(
            str(timing.task_id), node.name,
            str(timing.early_start), str(timing.early_finish), str(timing.total_float),
        )
    console.print(table)


@cli.command()
@click.option("--timeout", type=float, default=None, help="Solver timeout in seconds")
@click.option("--unlock-completed", is_flag=True, help="Allow moving completed tasks")
@click.pass_context
def level(ctx, timeout: Optional[float], unlock_completed: bool):
    """Resolve resource over-allocation by delaying tasks."""
    editor = open_editor(ctx)
    config = editor.config.leveling.model_copy()
    if timeout is not None:
        config.timeout_seconds = timeout
    if unlock_completed:
        config.completed_tasks_locked = False

    future = editor.start_leveling(config)
    result = future.result()
    outcome = editor.apply_leveling(result)
    if outcome:
        message = result.message
    else:
        message = outcome.reason
    commit(ctx, editor, outcome, message)


def main():
    """Entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
