"""Dependency resolution: transitive upstream/downstream walks."""
from collections import deque

from .graph import Graph


class NodeNotFoundError(KeyError):
    pass


class GroupNotFoundError(KeyError):
    pass


def _walk(graph: Graph, start: str, forward: bool) -> set[str]:
    neighbors: dict[str, list[str]] = {}
    for edge in graph.edges:
        src, dst = (edge.source, edge.target) if forward else (edge.target, edge.source)
        neighbors.setdefault(src, []).append(dst)

    seen: set[str] = set()
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for nxt in neighbors.get(current, ()):
            if nxt not in seen and nxt != start:
                seen.add(nxt)
                queue.append(nxt)
    return seen


def get_upstream(graph: Graph, node_id: str) -> set[str]:
    """Every node that can reach ``node_id`` along edges, excluding itself."""
    return _walk(graph, node_id, forward=False)


def get_downstream(graph: Graph, node_id: str) -> set[str]:
    """Every node reachable from ``node_id`` along edges, excluding itself."""
    return _walk(graph, node_id, forward=True)


def node_run_scope(graph: Graph, node_id: str) -> tuple[set[str], set[str]]:
    """Scope of a "run from node" call.

    Returns ``(scope, rerun)``: the node ids to consider (target, ancestors and
    descendants) and the subset that must re-execute (target and descendants).
    """
    if node_id not in graph.nodes:
        raise NodeNotFoundError(f"Node not found: {node_id}")
    rerun = {node_id} | get_downstream(graph, node_id)
    scope = rerun | get_upstream(graph, node_id)
    return scope, rerun


def group_run_scope(graph: Graph, group_id: str) -> tuple[set[str], set[str]]:
    """Scope of a "run group" call; every group member is a target."""
    group = graph.get_group(group_id)
    if group is None:
        raise GroupNotFoundError(f"Group not found: {group_id}")

    members = {nid for nid in group.node_ids if nid in graph.nodes}
    rerun = set(members)
    upstream: set[str] = set()
    for member in members:
        rerun |= get_downstream(graph, member)
        upstream |= get_upstream(graph, member)
    return rerun | upstream, rerun
