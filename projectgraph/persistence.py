"""
Graph persistence

JSON round-trip of every node and edge field, with atomic writes, a
SHA-256 checksum and rotating backups.
"""

import hashlib
import json
import shutil
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from .graph.model import DependencyEdge, DependencyType, GraphError, NodeKind, TaskGraph, TaskNode
from .logging import get_logger

log = get_logger()

FORMAT_VERSION = "1.0"


def node_to_dict(node: TaskNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "kind": node.kind.value,
        "name": node.name,
        "start": node.start.isoformat() if node.start else None,
        "duration_days": node.duration_days,
        "percent_complete": node.percent_complete,
        "row_index": node.row_index,
        "parent_group_id": node.parent_group_id,
        "contained_node_ids": list(node.contained_node_ids),
        "is_collapsed": node.is_collapsed,
        "layout": {"x": node.x, "y": node.y, "width": node.width, "height": node.height},
        "priority": node.priority,
        "notes": node.notes,
        "assigned_resource_ids": list(node.assigned_resource_ids),
    }


def node_from_dict(data: Dict[str, Any]) -> TaskNode:
    layout = data.get("layout", {})
    start = data.get("start")
    return TaskNode(
        id=data["id"],
        kind=NodeKind(data.get("kind", "task")),
        name=data.get("name", ""),
        start=date.fromisoformat(start) if start else None,
        duration_days=data.get("duration_days", 1),
        percent_complete=data.get("percent_complete", 0),
        row_index=data.get("row_index", -1),
        parent_group_id=data.get("parent_group_id"),
        contained_node_ids=list(data.get("contained_node_ids", [])),
        is_collapsed=data.get("is_collapsed", False),
        x=layout.get("x", 0.0),
        y=layout.get("y", 0.0),
        width=layout.get("width", 120.0),
        height=layout.get("height", 60.0),
        priority=data.get("priority", 0),
        notes=data.get("notes", ""),
        assigned_resource_ids=list(data.get("assigned_resource_ids", [])),
    )


def edge_to_dict(edge: DependencyEdge) -> Dict[str, Any]:
    return {
        "id": edge.id,
        "from": edge.from_id,
        "to": edge.to_id,
        "type": edge.type_code,
        "lag_days": edge.lag_days,
        "is_hidden_internal": edge.is_hidden_internal,
        "original_from": edge.original_from,
        "original_to": edge.original_to,
    }


def edge_from_dict(data: Dict[str, Any]) -> DependencyEdge:
    return DependencyEdge(
        id=data["id"],
        from_id=data["from"],
        to_id=data["to"],
        dependency_type=DependencyType.parse(data.get("type", "FS")),
        lag_days=data.get("lag_days", 0),
        is_hidden_internal=data.get("is_hidden_internal", False),
        original_from=data.get("original_from"),
        original_to=data.get("original_to"),
    )


def graph_to_dict(graph: TaskGraph) -> Dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "next_node_id": graph.next_node_id,
        "next_edge_id": graph.next_edge_id,
        "nodes": [node_to_dict(n) for n in graph.nodes],
        "edges": [edge_to_dict(e) for e in graph.edges],
    }


def graph_from_dict(data: Dict[str, Any]) -> TaskGraph:
    """
    Rebuild a graph

    Raises:
        KeyError: a node or edge lacks its id or endpoints
        GraphError: malformed document, duplicate ids or dangling edge endpoints
    """
    if not isinstance(data, dict):
        raise GraphError(f"Graph document must be an object, got {type(data).__name__}")
    graph = TaskGraph()
    for node_data in data.get("nodes", []):
        if not isinstance(node_data, dict):
            raise GraphError(f"Node entry must be an object, got {type(node_data).__name__}")
        graph.add_node(node_from_dict(node_data))
    for edge_data in data.get("edges", []):
        if not isinstance(edge_data, dict):
            raise GraphError(f"Edge entry must be an object, got {type(edge_data).__name__}")
        edge = edge_from_dict(edge_data)
        for endpoint in (edge.from_id, edge.to_id):
            if endpoint not in graph:
                raise GraphError(f"Edge {edge.id} references missing node {endpoint}")
        graph.restore_edge(edge)
    graph.reserve_ids(data.get("next_node_id", 1), data.get("next_edge_id", 1))
    return graph


def to_json(graph: TaskGraph, indent: int = 2) -> str:
    return json.dumps(graph_to_dict(graph), indent=indent, ensure_ascii=False)


class GraphStore:
    """Graph file manager"""

    def __init__(
        self,
        path: Path,
        atomic_writes: bool = True,
        backup_count: int = 3,
    ):
        self.path = Path(path)
        self.atomic_writes = atomic_writes
        self.backup_count = backup_count

    @property
    def checksum_path(self) -> Path:
        return self.path.with_name(self.path.name + ".sha256")

    def _compute_checksum(self, content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def _backup_path(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}.backup.{index}")

    def save(self, graph: TaskGraph) -> bool:
        """
        Save a graph

        Args:
            graph: graph to write

        Returns:
            Whether the write succeeded
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        content = to_json(graph)
        checksum = self._compute_checksum(content)

        if not self.atomic_writes:
            self.path.write_text(content, encoding="utf-8")
            self.checksum_path.write_text(checksum, encoding="utf-8")
            return True

        # Write temporaries, then rename over the originals
        temp_path = self.path.with_name(self.path.name + ".tmp")
        temp_checksum_path = self.checksum_path.with_name(self.checksum_path.name + ".tmp")

        try:
            if self.path.exists():
                self._rotate_backups()

            temp_path.write_text(content, encoding="utf-8")
            temp_checksum_path.write_text(checksum, encoding="utf-8")

            temp_path.replace(self.path)
            temp_checksum_path.replace(self.checksum_path)
            return True
        except OSError as e:
            log.error(f"Failed to save graph to {self.path}: {e}", operation="save")
            temp_path.unlink(missing_ok=True)
            temp_checksum_path.unlink(missing_ok=True)
            return False

    def _rotate_backups(self) -> None:
        if self.backup_count <= 0:
            return

        self._backup_path(self.backup_count).unlink(missing_ok=True)

        for i in range(self.backup_count - 1, 0, -1):
            src = self._backup_path(i)
            if src.exists():
                src.rename(self._backup_path(i + 1))

        shutil.copy2(self.path, self._backup_path(1))

    def load(self) -> Optional[TaskGraph]:
        """
        Load the graph

        Returns:
            The graph, or None if the file is missing and no backup is readable
        """
        if not self.path.exists():
            return None

        try:
            content = self.path.read_text(encoding="utf-8")

            if self.checksum_path.exists():
                expected = self.checksum_path.read_text(encoding="utf-8").strip()
                if expected != self._compute_checksum(content):
                    log.warning(f"Checksum mismatch for {self.path}, trying backups", operation="load")
                    return self._recover_from_backup()

            return graph_from_dict(json.loads(content))

        except (json.JSONDecodeError, KeyError, TypeError, ValueError, GraphError) as e:
            log.warning(f"Unreadable graph file {self.path}: {e}", operation="load")
            return self._recover_from_backup()

    def _recover_from_backup(self) -> Optional[TaskGraph]:
        for i in range(1, self.backup_count + 1):
            backup_path = self._backup_path(i)
            if backup_path.exists():
                try:
                    data = json.loads(backup_path.read_text(encoding="utf-8"))
                    return graph_from_dict(data)
                except (json.JSONDecodeError, KeyError, TypeError, ValueError, GraphError):
                    continue

        return None
