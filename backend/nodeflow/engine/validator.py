"""Graph validation: cycle detection with ordering, port and kind checks."""
from collections import deque
from dataclasses import dataclass

from ..nodes.base import is_socket_compatible
from ..nodes.registry import NodeRegistry
from .graph import Edge, Graph

CYCLE_MESSAGE = "Workflow contains a cycle. Remove circular connections to proceed."


class GraphCycleError(ValueError):
    """The graph (or the subgraph a partial run would cover) is cyclic."""


@dataclass
class SortResult:
    valid: bool
    order: list[str] | None = None
    error: str | None = None


def validate_and_sort(graph: Graph, node_ids: set[str] | None = None) -> SortResult:
    """Kahn's algorithm over ``node_ids`` (default: every node in the graph).

    Edges touching a node outside the set are ignored. Ties between nodes that
    become ready together resolve in FIFO order. A cycle is reported through
    the result, never raised.
    """
    if node_ids is None:
        ids = list(graph.nodes)
    else:
        ids = [nid for nid in graph.nodes if nid in node_ids]
    members = set(ids)

    in_degree: dict[str, int] = {nid: 0 for nid in ids}
    adj: dict[str, list[str]] = {nid: [] for nid in ids}
    for edge in graph.edges:
        if edge.source not in members or edge.target not in members:
            continue
        adj[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(nid for nid in ids if in_degree[nid] == 0)
    order: list[str] = []
    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for succ in adj[node_id]:
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                queue.append(succ)

    if len(order) != len(ids):
        return SortResult(valid=False, error=CYCLE_MESSAGE)
    return SortResult(valid=True, order=order)


def topological_sort(graph: Graph, node_ids: set[str] | None = None) -> list[str]:
    """Like :func:`validate_and_sort` but raises :class:`GraphCycleError`."""
    result = validate_and_sort(graph, node_ids)
    if not result.valid:
        raise GraphCycleError(result.error)
    return result.order


def validate_graph(graph: Graph, registry: NodeRegistry) -> list[str]:
    """Validate a graph, returning a list of error messages (empty = valid)."""
    errors: list[str] = []
    sort = validate_and_sort(graph)
    if not sort.valid:
        errors.append(sort.error)
    errors.extend(_check_node_types(graph, registry))
    errors.extend(_check_edges(graph, registry))
    errors.extend(_check_groups(graph))
    return errors


def _check_node_types(graph: Graph, registry: NodeRegistry) -> list[str]:
    return [
        f"Unknown node type: {node.type}"
        for node in graph.nodes.values()
        if registry.lookup(node.type) is None
    ]


def _check_edges(graph: Graph, registry: NodeRegistry) -> list[str]:
    errors: list[str] = []
    for edge in graph.edges:
        src_node = graph.nodes.get(edge.source)
        tgt_node = graph.nodes.get(edge.target)
        if not src_node or not tgt_node:
            errors.append(f"Edge {edge.id} references missing node")
            continue

        src_entry = registry.lookup(src_node.type)
        tgt_entry = registry.lookup(tgt_node.type)
        if src_entry is None or tgt_entry is None:
            # Reported once per node by _check_node_types
            continue

        output = src_entry.definition.get_output(edge.source_socket)
        if output is None:
            errors.append(
                f"Edge {edge.id}: output '{edge.source_socket}' "
                f"not found on {src_node.type}"
            )
            continue

        inp = tgt_entry.definition.get_input(edge.target_socket)
        if inp is None:
            errors.append(
                f"Edge {edge.id}: input '{edge.target_socket}' "
                f"not found on {tgt_node.type}"
            )
            continue

        if not is_socket_compatible(output.kind, inp.kind):
            errors.append(
                f"Edge {edge.id}: type mismatch {output.kind.value} → {inp.kind.value}"
            )
    return errors


def _check_groups(graph: Graph) -> list[str]:
    errors: list[str] = []
    for group in graph.groups:
        missing = sorted(nid for nid in group.node_ids if nid not in graph.nodes)
        if missing:
            errors.append(f"Group {group.id} references missing nodes: {', '.join(missing)}")
    return errors


def check_connection(
    graph: Graph,
    registry: NodeRegistry,
    source: str,
    source_socket: str,
    target: str,
    target_socket: str,
) -> str | None:
    """Check a proposed edge before it is created.

    Returns ``None`` when the connection is allowed, otherwise the reason it
    is rejected.
    """
    if source == target:
        return "A node cannot connect to itself"

    src_node = graph.nodes.get(source)
    tgt_node = graph.nodes.get(target)
    if not src_node or not tgt_node:
        return "Connection references missing node"

    src_entry = registry.lookup(src_node.type)
    tgt_entry = registry.lookup(tgt_node.type)
    if src_entry is None:
        return f"Unknown node type: {src_node.type}"
    if tgt_entry is None:
        return f"Unknown node type: {tgt_node.type}"

    output = src_entry.definition.get_output(source_socket)
    inp = tgt_entry.definition.get_input(target_socket)
    if output is None:
        return f"Output '{source_socket}' not found on {src_node.type}"
    if inp is None:
        return f"Input '{target_socket}' not found on {tgt_node.type}"
    if not is_socket_compatible(output.kind, inp.kind):
        return f"Cannot connect {output.kind.value} to {inp.kind.value}"

    proposed = Graph(
        nodes=graph.nodes,
        edges=graph.edges + [Edge(
            id="__proposed__", source=source, target=target,
            source_socket=source_socket, target_socket=target_socket,
        )],
    )
    if not validate_and_sort(proposed).valid:
        return "Connection would create a cycle"
    return None
