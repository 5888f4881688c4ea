"""Execution engine: run a workflow graph in topological order.

Three entry points share one step machine:

- :func:`execute_workflow` runs every node.
- :func:`execute_from_node` runs a node, its ancestors and its descendants.
- :func:`execute_group` does the same for every member of a group.

Partial runs reuse the stored outputs of ancestors that already succeeded,
unless ``force`` is set. Per node the status moves
idle -> queued -> running -> success | error, or queued -> skipped for nodes
inside a locked group. A failed node fails its descendants ("Upstream node
failed") but never its siblings; a skipped node does not.
"""
import inspect
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..nodes.base import ExecutorFailure, NodeDefinition
from ..nodes.registry import NodeRegistry
from ..utils.logger import get_logger
from .context import ExecutionContext
from .dependencies import group_run_scope, node_run_scope
from .graph import Graph, Node, NodeStatus
from .validator import GraphCycleError, validate_and_sort

logger = get_logger(__name__)

LOCKED_MESSAGE = "Group is locked"
UPSTREAM_FAILED_MESSAGE = "Upstream node failed"
CACHED_MESSAGE = "Cached"
GENERIC_FAILURE_MESSAGE = "Execution failed"


@dataclass
class ExecutionResult:
    outputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    completed_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    cancelled: bool = False
    order: list[str] = field(default_factory=list)
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "outputs": self.outputs,
            "completed_count": self.completed_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "cancelled": self.cancelled,
            "order": self.order,
            "duration": self.duration,
        }


async def execute_workflow(
    graph: Graph,
    registry: NodeRegistry,
    context: ExecutionContext,
) -> ExecutionResult:
    """Execute every node of ``graph`` once, in topological order."""
    return await _run(graph, registry, context)


async def execute_from_node(
    graph: Graph,
    registry: NodeRegistry,
    node_id: str,
    context: ExecutionContext,
    force: bool = False,
) -> ExecutionResult:
    """Re-execute ``node_id`` and its descendants, resolving its ancestors.

    Ancestors already at success with stored outputs are reused as-is unless
    ``force`` is set.
    """
    scope, rerun = node_run_scope(graph, node_id)
    return await _run(graph, registry, context, scope=scope, rerun=rerun, force=force)


async def execute_group(
    graph: Graph,
    registry: NodeRegistry,
    group_id: str,
    context: ExecutionContext,
    force: bool = False,
) -> ExecutionResult:
    """Re-execute every member of a group plus their descendants.

    Cache reuse applies only to ancestors outside the group.
    """
    scope, rerun = group_run_scope(graph, group_id)
    return await _run(graph, registry, context, scope=scope, rerun=rerun, force=force)


def _is_cached(node: Node) -> bool:
    return node.status == NodeStatus.SUCCESS and node.output_values is not None


class _Run:
    """Mutable bookkeeping for a single pass over the graph."""

    def __init__(self, graph: Graph, registry: NodeRegistry, context: ExecutionContext,
                 scope: set[str]):
        self.graph = graph
        self.registry = registry
        self.context = context
        self.scope = scope
        self.failed: set[str] = set()
        self.result = ExecutionResult()

    def set_status(self, node: Node, status: NodeStatus, message: str | None = None):
        node.status = status
        if status == NodeStatus.ERROR:
            node.error = message
            node.output_values = None
        elif status != NodeStatus.SKIPPED:
            node.error = None
        self.context.report(node.id, status, message)

    def fail(self, node: Node, message: str):
        self.set_status(node, NodeStatus.ERROR, message)
        self.failed.add(node.id)
        self.result.error_count += 1
        logger.warning(f"Node {node.id} ({node.type}) failed: {message}")

    def gather_inputs(self, node_id: str) -> dict[str, Any]:
        """Port-id to port-id copy of upstream outputs along incoming edges."""
        inputs: dict[str, Any] = {}
        for edge in self.graph.get_incoming_edges(node_id):
            source_outputs = self.result.outputs.get(edge.source)
            if source_outputs is None and edge.source not in self.scope:
                # Sources outside a partial run's scope contribute their last
                # successful outputs.
                source = self.graph.nodes.get(edge.source)
                if source is not None and _is_cached(source):
                    source_outputs = source.output_values
            if not source_outputs:
                continue
            value = source_outputs.get(edge.source_socket)
            if value is not None:
                inputs[edge.target_socket] = value
        return inputs

    async def invoke(self, node: Node, definition: NodeDefinition, executor,
                     inputs: dict[str, Any]):
        config = {**definition.default_config, **node.config}
        try:
            outputs = executor(inputs, config, self.context)
            if inspect.isawaitable(outputs):
                outputs = await outputs
        except Exception as e:
            logger.debug(f"Executor for {node.id} raised", exc_info=True)
            return None, str(e) or GENERIC_FAILURE_MESSAGE

        if isinstance(outputs, ExecutorFailure):
            return None, outputs.message or GENERIC_FAILURE_MESSAGE
        if outputs is None:
            outputs = {}
        if not isinstance(outputs, Mapping):
            return None, f"Executor returned {type(outputs).__name__}, expected a mapping"
        return dict(outputs), None


async def _run(
    graph: Graph,
    registry: NodeRegistry,
    context: ExecutionContext,
    scope: set[str] | None = None,
    rerun: set[str] | None = None,
    force: bool = False,
) -> ExecutionResult:
    start_time = time.time()

    sort = validate_and_sort(graph, scope)
    if not sort.valid:
        logger.error(sort.error)
        raise GraphCycleError(sort.error)
    order = sort.order
    members = set(order)

    locked = graph.locked_node_ids() & members
    cached: set[str] = set()
    if rerun is not None and not force:
        cached = {
            nid for nid in order
            if nid not in rerun and nid not in locked and _is_cached(graph.nodes[nid])
        }

    run = _Run(graph, registry, context, members)
    run.result.order = list(order)
    logger.info(
        f"Executing {len(order)} node(s)"
        + (f" ({len(cached)} cached, {len(locked)} locked)" if cached or locked else "")
    )

    for node_id in order:
        if node_id in cached:
            continue
        node = graph.nodes[node_id]
        node.output_values = None
        run.set_status(node, NodeStatus.QUEUED)

    for node_id in order:
        if node_id in locked:
            run.set_status(graph.nodes[node_id], NodeStatus.SKIPPED, LOCKED_MESSAGE)
            run.result.skipped_count += 1

    for node_id in order:
        if context.cancelled:
            run.result.cancelled = True
            logger.info("Run cancelled, remaining nodes left queued")
            break

        node = graph.nodes[node_id]
        if node_id in locked:
            continue

        if graph.get_predecessors(node_id) & run.failed:
            run.fail(node, UPSTREAM_FAILED_MESSAGE)
            continue

        if node_id in cached:
            run.result.outputs[node_id] = dict(node.output_values)
            run.result.completed_count += 1
            context.report(node_id, NodeStatus.SUCCESS, CACHED_MESSAGE)
            continue

        entry = registry.lookup(node.type)
        if entry is None:
            run.fail(node, f"Unknown node type: {node.type}")
            continue
        definition = entry.definition

        inputs = run.gather_inputs(node_id)

        missing = None
        for spec in definition.inputs:
            if spec.id in inputs:
                continue
            if spec.has_default:
                inputs[spec.id] = spec.default
            elif spec.required:
                missing = spec
                break
        if missing is not None:
            run.fail(node, f"Missing required input: {missing.label}")
            continue

        run.set_status(node, NodeStatus.RUNNING)
        node_start = time.time()
        outputs, error = await run.invoke(node, definition, entry.executor, inputs)
        if error is not None:
            run.fail(node, error)
            continue

        run.result.outputs[node_id] = outputs
        node.output_values = outputs
        run.set_status(node, NodeStatus.SUCCESS)
        run.result.completed_count += 1
        logger.debug(f"Node {node_id} ({node.type}) succeeded in {time.time() - node_start:.3f}s")

    result = run.result
    result.duration = time.time() - start_time
    logger.info(
        f"Run finished in {result.duration:.3f}s: {result.completed_count} completed, "
        f"{result.error_count} failed, {result.skipped_count} skipped"
        + (" (cancelled)" if result.cancelled else "")
    )
    return result
