"""Pydantic schemas for API request/response models and workflow documents."""
from typing import Any, Literal

from pydantic import BaseModel, Field

from ..engine.graph import Edge, Graph, Group, Node, NodeStatus

SOURCE_HANDLE_PREFIX = "out-"
TARGET_HANDLE_PREFIX = "in-"


def _strip_prefix(handle: str, prefix: str) -> str:
    return handle[len(prefix):] if handle.startswith(prefix) else handle


class NodeSchema(BaseModel):
    id: str
    type: str
    config: dict[str, Any] = {}
    status: NodeStatus = NodeStatus.IDLE
    error: str | None = None
    output_values: dict[str, Any] | None = None
    position: dict[str, float] = {}
    label: str | None = None


class EdgeSchema(BaseModel):
    id: str
    source: str
    target: str
    source_socket: str
    target_socket: str


class GroupSchema(BaseModel):
    id: str
    node_ids: list[str] = []
    locked: bool = False
    bounds: dict[str, float] = {}
    label: str = ""


class ViewportSchema(BaseModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class WorkflowDocument(BaseModel):
    version: int = 1
    name: str = "Untitled Workflow"
    description: str | None = None
    nodes: list[NodeSchema] = []
    edges: list[EdgeSchema] = []
    groups: list[GroupSchema] = []
    viewport: ViewportSchema = Field(default_factory=ViewportSchema)

    def to_graph(self) -> Graph:
        nodes = {
            n.id: Node(
                id=n.id, type=n.type, config=dict(n.config),
                status=n.status, error=n.error,
                output_values=dict(n.output_values) if n.output_values is not None else None,
                position=dict(n.position), label=n.label,
            )
            for n in self.nodes
        }
        edges = [
            Edge(
                id=e.id, source=e.source, target=e.target,
                source_socket=_strip_prefix(e.source_socket, SOURCE_HANDLE_PREFIX),
                target_socket=_strip_prefix(e.target_socket, TARGET_HANDLE_PREFIX),
            )
            for e in self.edges
        ]
        groups = [
            Group(
                id=g.id, node_ids=set(g.node_ids), locked=g.locked,
                bounds=dict(g.bounds), label=g.label,
            )
            for g in self.groups
        ]
        return Graph(nodes=nodes, edges=edges, groups=groups)

    @classmethod
    def from_graph(cls, graph: Graph, name: str = "Untitled Workflow") -> "WorkflowDocument":
        return cls(
            name=name,
            nodes=[
                NodeSchema(
                    id=n.id, type=n.type, config=n.config, status=n.status,
                    error=n.error, output_values=n.output_values,
                    position=n.position, label=n.label,
                )
                for n in graph.nodes.values()
            ],
            edges=[
                EdgeSchema(
                    id=e.id, source=e.source, target=e.target,
                    source_socket=e.source_socket, target_socket=e.target_socket,
                )
                for e in graph.edges
            ],
            groups=[
                GroupSchema(
                    id=g.id, node_ids=sorted(g.node_ids), locked=g.locked,
                    bounds=g.bounds, label=g.label,
                )
                for g in graph.groups
            ],
        )


class ExecuteRequest(BaseModel):
    workflow: WorkflowDocument | None = None
    mode: Literal["full", "node", "group"] = "full"
    target_id: str | None = None
    force: bool = False
    backend: str | None = None
    session_id: str | None = None
    wait: bool = False


class ExecuteResponse(BaseModel):
    execution_id: str
    session_id: str
    status: str
    result: dict[str, Any] | None = None
    nodes: list[NodeSchema] | None = None


class ValidateResponse(BaseModel):
    valid: bool
    errors: list[str] = []
    order: list[str] | None = None


class ConnectionCheckRequest(BaseModel):
    source_kind: str | None = None
    target_kind: str | None = None
    workflow: WorkflowDocument | None = None
    source: str | None = None
    source_socket: str | None = None
    target: str | None = None
    target_socket: str | None = None


class ConnectionCheckResponse(BaseModel):
    compatible: bool
    reason: str | None = None


class NodeConfigUpdate(BaseModel):
    config: dict[str, Any]
