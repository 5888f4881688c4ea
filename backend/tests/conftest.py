"""Shared test fixtures for nodeflow backend tests."""
import sys
from collections import Counter
from pathlib import Path

import pytest

# Ensure nodeflow package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from nodeflow.engine.context import CancellationToken, ExecutionContext
from nodeflow.engine.graph import Edge, Graph, Group, Node
from nodeflow.nodes.base import (
    ExecutorFailure, InputSpec, NodeDefinition, NodeEntry, OutputSpec, SocketKind,
)
from nodeflow.nodes.registry import NodeRegistry


class Recorder:
    """Counts executor invocations and keeps the inputs each node received."""

    def __init__(self):
        self.calls: Counter = Counter()
        self.inputs: dict[str, dict] = {}
        self.order: list[str] = []


def _tracked(recorder: Recorder, fn):
    def executor(inputs, config, context):
        node_id = config.get("_id", "?")
        recorder.calls[node_id] += 1
        recorder.inputs[node_id] = dict(inputs)
        recorder.order.append(node_id)
        return fn(inputs, config, context)
    return executor


def _async_tracked(recorder: Recorder, fn):
    async def executor(inputs, config, context):
        node_id = config.get("_id", "?")
        recorder.calls[node_id] += 1
        recorder.inputs[node_id] = dict(inputs)
        recorder.order.append(node_id)
        return fn(inputs, config, context)
    return executor


def _raise(inputs, config, context):
    raise RuntimeError(config.get("message", "boom"))


def _raise_empty(inputs, config, context):
    raise RuntimeError()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def registry(recorder):
    """Deterministic fake node types. ``config['_id']`` names the node in the recorder."""
    reg = NodeRegistry()
    any_out = [OutputSpec(id="value", label="Value", kind=SocketKind.ANY)]

    def add(type_, inputs, outputs, fn, is_async=False, default_config=None):
        wrap = _async_tracked if is_async else _tracked
        reg.register(NodeEntry(
            definition=NodeDefinition(
                type=type_, label=type_, inputs=inputs, outputs=outputs,
                default_config=default_config or {},
            ),
            executor=wrap(recorder, fn),
        ))

    add("textSource", [], [OutputSpec(id="text", label="Text", kind=SocketKind.TEXT)],
        lambda i, c, ctx: {"text": c.get("text", "a cat")})
    add("generator",
        [InputSpec(id="text", label="Text", kind=SocketKind.TEXT, required=True)],
        [OutputSpec(id="image", label="Image", kind=SocketKind.IMAGE)],
        lambda i, c, ctx: {"image": "url-1" if i["text"] == "a cat" else "url-other"})
    add("source", [], any_out, lambda i, c, ctx: {"value": c.get("value", 1)})
    add("passthrough",
        [InputSpec(id="value", label="Value", kind=SocketKind.ANY, required=True)],
        any_out, lambda i, c, ctx: {"value": i["value"]})
    add("optional",
        [InputSpec(id="value", label="Value", kind=SocketKind.ANY)],
        any_out, lambda i, c, ctx: {"value": i.get("value", "unset")})
    add("defaulted",
        [InputSpec(id="value", label="Value", kind=SocketKind.ANY, required=True,
                   default="fallback")],
        any_out, lambda i, c, ctx: {"value": i["value"]})
    add("merge",
        [
            InputSpec(id="a", label="Input A", kind=SocketKind.ANY, required=True),
            InputSpec(id="b", label="Input B", kind=SocketKind.ANY),
        ],
        any_out, lambda i, c, ctx: {"value": [i.get("a"), i.get("b")]})
    add("failing",
        [InputSpec(id="value", label="Value", kind=SocketKind.ANY)],
        any_out, _raise)
    add("silentFailing", [], any_out, _raise_empty)
    add("softFailing", [], any_out, lambda i, c, ctx: ExecutorFailure("quota exceeded"))
    add("asyncSource", [], any_out, lambda i, c, ctx: {"value": c.get("value", "async")},
        is_async=True)
    add("cancelling", [], any_out, _cancel_and_return)
    return reg


def _cancel_and_return(inputs, config, context):
    context.cancel_token.cancel()
    return {"value": "done"}


@pytest.fixture
def build_graph():
    """Build a Graph from compact tuples.

    nodes: ``(id, type)`` or ``(id, type, config)``
    edges: ``(source, source_socket, target, target_socket)``
    groups: ``(id, [node ids], locked)``
    """
    def _build(nodes, edges=(), groups=()):
        graph = Graph()
        for spec in nodes:
            node_id, node_type = spec[0], spec[1]
            config = dict(spec[2]) if len(spec) > 2 else {}
            config.setdefault("_id", node_id)
            graph.nodes[node_id] = Node(id=node_id, type=node_type, config=config)
        for index, (src, src_sock, tgt, tgt_sock) in enumerate(edges):
            graph.edges.append(Edge(
                id=f"e{index}", source=src, target=tgt,
                source_socket=src_sock, target_socket=tgt_sock,
            ))
        for group_id, members, locked in groups:
            graph.groups.append(Group(id=group_id, node_ids=set(members), locked=locked))
        return graph
    return _build


@pytest.fixture
def status_events():
    return []


@pytest.fixture
def make_context(status_events):
    def _make(**kwargs):
        kwargs.setdefault("cancel_token", CancellationToken())
        kwargs.setdefault(
            "on_status",
            lambda node_id, status, message=None: status_events.append((node_id, status, message)),
        )
        return ExecutionContext(**kwargs)
    return _make


@pytest.fixture
def context(make_context):
    return make_context()
