"""Canonical node state for one workflow, updated by explicit messages."""
import copy
import threading
from dataclasses import dataclass
from typing import Any

from .context import StatusCallback
from .executor import ExecutionResult
from .graph import Graph, Node, NodeStatus


@dataclass(frozen=True)
class NodeConfigChanged:
    node_id: str
    config: dict[str, Any]


class WorkflowStore:
    """Owns the authoritative Node records for one workflow.

    Config edits arrive as :class:`NodeConfigChanged` messages; run progress
    arrives through :meth:`status_callback` and :meth:`merge_result`.
    """

    def __init__(self, graph: Graph | None = None):
        self._graph = graph or Graph()
        self._lock = threading.Lock()

    def load(self, graph: Graph):
        with self._lock:
            self._graph = graph

    def snapshot(self) -> Graph:
        with self._lock:
            return copy.deepcopy(self._graph)

    def node(self, node_id: str) -> Node | None:
        with self._lock:
            node = self._graph.nodes.get(node_id)
            return copy.deepcopy(node) if node else None

    def apply(self, message: NodeConfigChanged) -> bool:
        """Replace a node's config. Returns False for an unknown node."""
        with self._lock:
            node = self._graph.nodes.get(message.node_id)
            if node is None:
                return False
            node.config = dict(message.config)
            return True

    def update_status(self, node_id: str, status: NodeStatus, message: str | None = None):
        with self._lock:
            node = self._graph.nodes.get(node_id)
            if node is None:
                return
            node.status = status
            if status == NodeStatus.ERROR:
                node.error = message
                node.output_values = None
            elif status == NodeStatus.QUEUED:
                node.error = None
                node.output_values = None
            elif status != NodeStatus.SKIPPED:
                node.error = None

    def merge_result(self, result: ExecutionResult):
        with self._lock:
            for node_id, outputs in result.outputs.items():
                node = self._graph.nodes.get(node_id)
                if node is not None:
                    node.output_values = dict(outputs)

    def status_callback(self, forward: StatusCallback | None = None) -> StatusCallback:
        def callback(node_id: str, status: NodeStatus, message: str | None = None):
            self.update_status(node_id, status, message)
            if forward is not None:
                forward(node_id, status, message)
        return callback

    def reset(self):
        """Return every node to idle, dropping errors and outputs."""
        with self._lock:
            for node in self._graph.nodes.values():
                node.status = NodeStatus.IDLE
                node.error = None
                node.output_values = None
