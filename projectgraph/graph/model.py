"""
Task dependency graph

Node/edge data model and the id-indexed lookup and mutation primitives.
Algorithms live in the grouping, scheduler and rows modules.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class NodeKind(Enum):
    """Node kind"""
    TASK = "task"
    MILESTONE = "milestone"
    GROUP = "group"
    RESOURCE = "resource"

    @property
    def is_schedulable(self) -> bool:
        """Whether auto-scheduling may move nodes of this kind"""
        return self is NodeKind.TASK

    @property
    def is_groupable(self) -> bool:
        """Whether nodes of this kind may become group members"""
        return self in (NodeKind.TASK, NodeKind.MILESTONE)


class DependencyType(Enum):
    """Dependency constraint between predecessor and successor"""
    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"

    @classmethod
    def parse(cls, value: str) -> "DependencyType":
        """Accept a code (``FS``) or a member name (``finish_to_start``)."""
        text = value.strip()
        for member in cls:
            if text.upper() == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"Unknown dependency type: {value}")


class GraphError(Exception):
    """Misuse of a graph primitive"""
    pass


@dataclass
class Outcome:
    """Result of a user-facing graph operation.

    Operations never raise on precondition failures; they report a no-op
    with a reason instead.
    """
    ok: bool
    reason: str = ""
    node_id: Optional[int] = None
    edge_id: Optional[int] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def done(cls, node_id: Optional[int] = None, edge_id: Optional[int] = None) -> "Outcome":
        return cls(ok=True, node_id=node_id, edge_id=edge_id)

    @classmethod
    def noop(cls, reason: str) -> "Outcome":
        return cls(ok=False, reason=reason)


@dataclass
class TaskNode:
    """A task, milestone, group or resource node"""
    id: int
    kind: NodeKind = NodeKind.TASK
    name: str = ""
    start: Optional[date] = None
    duration_days: int = 1
    percent_complete: int = 0
    row_index: int = -1
    parent_group_id: Optional[int] = None

    # Group only
    contained_node_ids: List[int] = field(default_factory=list)
    is_collapsed: bool = False

    # Layout geometry in diagram view
    x: float = 0.0
    y: float = 0.0
    width: float = 120.0
    height: float = 60.0

    priority: int = 0
    notes: str = ""
    assigned_resource_ids: List[int] = field(default_factory=list)

    def __post_init__(self):
        if self.kind is NodeKind.MILESTONE:
            self.duration_days = 0
        self.percent_complete = max(0, min(100, self.percent_complete))

    @property
    def is_group(self) -> bool:
        return self.kind is NodeKind.GROUP

    @property
    def end(self) -> Optional[date]:
        """Inclusive end date derived from start and duration."""
        if self.start is None:
            return None
        if self.kind is NodeKind.MILESTONE:
            return self.start
        return self.start + timedelta(days=max(1, self.duration_days) - 1)

    @property
    def center(self) -> Tuple[float, float]:
        """Layout center in diagram coordinates."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    def set_start(self, start: Optional[date], duration_days: Optional[int] = None) -> None:
        """Move the node; the end follows from the duration."""
        self.start = start
        if duration_days is not None and self.kind is not NodeKind.MILESTONE:
            self.duration_days = max(0, duration_days)


@dataclass
class DependencyEdge:
    """A typed dependency between two nodes"""
    id: int
    from_id: int
    to_id: int
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = 0
    is_hidden_internal: bool = False
    original_from: Optional[int] = None
    original_to: Optional[int] = None

    @property
    def type_code(self) -> str:
        return self.dependency_type.value

    @property
    def is_remapped(self) -> bool:
        return self.original_from is not None or self.original_to is not None

    @property
    def effective_from(self) -> int:
        """Predecessor as declared, regardless of group collapse state."""
        return self.original_from if self.original_from is not None else self.from_id

    @property
    def effective_to(self) -> int:
        return self.original_to if self.original_to is not None else self.to_id

    def touches(self, node_id: int) -> bool:
        return node_id in (self.from_id, self.to_id, self.original_from, self.original_to)


class TaskGraph:
    """
    Id-indexed graph of task nodes and dependency edges

    Supports:
    - O(1) node and edge lookup by id
    - cascading node removal
    - successor / predecessor queries on current endpoints
    """

    def __init__(self):
        self._nodes: Dict[int, TaskNode] = {}
        self._edges: Dict[int, DependencyEdge] = {}
        self._next_node_id = 1
        self._next_edge_id = 1

    # -- nodes -------------------------------------------------------------

    def add_node(self, node: Optional[TaskNode] = None, **attrs) -> TaskNode:
        """
        Add a node

        Args:
            node: a prepared node; its id is kept when it is positive
            **attrs: TaskNode fields, used when ``node`` is not given

        Returns:
            The stored node

        Raises:
            GraphError: the explicit id is already taken
        """
        if node is None:
            node = TaskNode(id=attrs.pop("id", 0), **attrs)
        if node.id <= 0:
            node.id = self._next_node_id
        if node.id in self._nodes:
            raise GraphError(f"Node {node.id} already exists")
        if node.is_group and node.parent_group_id is not None:
            raise GraphError(f"Group {node.id} cannot belong to another group")

        self._nodes[node.id] = node
        self._next_node_id = max(self._next_node_id, node.id + 1)
        return node

    def remove_node(self, node_id: int) -> bool:
        """Remove a node with every edge incident to it."""
        node = self._nodes.pop(node_id, None)
        if node is None:
            return False

        for edge_id in [e.id for e in self._edges.values() if e.touches(node_id)]:
            del self._edges[edge_id]

        if node.parent_group_id is not None:
            parent = self._nodes.get(node.parent_group_id)
            if parent is not None and node_id in parent.contained_node_ids:
                parent.contained_node_ids.remove(node_id)

        if node.is_group:
            for member_id in node.contained_node_ids:
                member = self._nodes.get(member_id)
                if member is not None and member.parent_group_id == node_id:
                    member.parent_group_id = None
        return True

    def find_node(self, node_id: Optional[int]) -> Optional[TaskNode]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    @property
    def nodes(self) -> List[TaskNode]:
        """Nodes in creation order."""
        return list(self._nodes.values())

    def groups(self) -> List[TaskNode]:
        return [n for n in self._nodes.values() if n.is_group]

    def members_of(self, group: TaskNode) -> List[TaskNode]:
        """Live members of a group, in creation order."""
        wanted = set(group.contained_node_ids)
        return [n for n in self._nodes.values() if n.id in wanted]

    # -- edges -------------------------------------------------------------

    def add_edge(
        self,
        from_id: int,
        to_id: int,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
        lag_days: int = 0,
        edge_id: int = 0,
    ) -> DependencyEdge:
        """
        Add an edge between two existing nodes

        Raises:
            GraphError: an endpoint does not exist or the id is taken
        """
        for endpoint in (from_id, to_id):
            if endpoint not in self._nodes:
                raise GraphError(f"Node {endpoint} does not exist")
        if edge_id <= 0:
            edge_id = self._next_edge_id
        if edge_id in self._edges:
            raise GraphError(f"Edge {edge_id} already exists")

        edge = DependencyEdge(
            id=edge_id,
            from_id=from_id,
            to_id=to_id,
            dependency_type=dependency_type,
            lag_days=lag_days,
        )
        self._edges[edge_id] = edge
        self._next_edge_id = max(self._next_edge_id, edge_id + 1)
        return edge

    def restore_edge(self, edge: DependencyEdge) -> DependencyEdge:
        """Insert a fully populated edge, e.g. from persistence."""
        if edge.id in self._edges:
            raise GraphError(f"Edge {edge.id} already exists")
        self._edges[edge.id] = edge
        self._next_edge_id = max(self._next_edge_id, edge.id + 1)
        return edge

    def remove_edge(self, edge_id: int) -> bool:
        return self._edges.pop(edge_id, None) is not None

    def find_edge(self, edge_id: int) -> Optional[DependencyEdge]:
        return self._edges.get(edge_id)

    @property
    def edges(self) -> List[DependencyEdge]:
        return list(self._edges.values())

    def successors(self, node_id: int) -> List[DependencyEdge]:
        """Edges currently leaving ``node_id``."""
        return [e for e in self._edges.values() if e.from_id == node_id]

    def predecessors(self, node_id: int) -> List[DependencyEdge]:
        """Edges currently entering ``node_id``."""
        return [e for e in self._edges.values() if e.to_id == node_id]

    # -- misc --------------------------------------------------------------

    @property
    def next_node_id(self) -> int:
        return self._next_node_id

    @property
    def next_edge_id(self) -> int:
        return self._next_edge_id

    def reserve_ids(self, next_node_id: int, next_edge_id: int) -> None:
        """Keep id counters ahead of ids that were used before a reload."""
        self._next_node_id = max(self._next_node_id, next_node_id)
        self._next_edge_id = max(self._next_edge_id, next_edge_id)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TaskNode]:
        return iter(self._nodes.values())
