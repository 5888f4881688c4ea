"""Graph data structures for the execution engine."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NodeStatus(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class Edge:
    id: str
    source: str
    target: str
    source_socket: str  # output port id on the source node's definition
    target_socket: str  # input port id on the target node's definition


@dataclass
class Node:
    id: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    status: NodeStatus = NodeStatus.IDLE
    error: str | None = None
    output_values: dict[str, Any] | None = None
    position: dict[str, float] = field(default_factory=dict)
    label: str | None = None


@dataclass
class Group:
    id: str
    node_ids: set[str] = field(default_factory=set)
    locked: bool = False
    bounds: dict[str, float] = field(default_factory=dict)
    label: str = ""


@dataclass
class Graph:
    nodes: dict[str, Node] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)

    def get_incoming_edges(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def get_predecessors(self, node_id: str) -> set[str]:
        return {e.source for e in self.edges if e.target == node_id}

    def get_group(self, group_id: str) -> Group | None:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def locked_node_ids(self) -> set[str]:
        """Ids of every node that belongs to at least one locked group."""
        locked: set[str] = set()
        for group in self.groups:
            if group.locked:
                locked |= group.node_ids
        return locked

