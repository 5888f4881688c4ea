"""Tests for partial runs: run-from-node and run-group with cache reuse."""
import asyncio

import pytest

from nodeflow.engine.dependencies import GroupNotFoundError, NodeNotFoundError
from nodeflow.engine.executor import (
    CACHED_MESSAGE, UPSTREAM_FAILED_MESSAGE, execute_from_node, execute_group,
    execute_workflow,
)
from nodeflow.engine.graph import NodeStatus
from nodeflow.engine.validator import GraphCycleError


@pytest.fixture
def chain(build_graph):
    """a -> b -> c -> d plus an unrelated node z."""
    return build_graph(
        [("a", "source", {"value": "A"}), ("b", "passthrough"), ("c", "passthrough"),
         ("d", "passthrough"), ("z", "source")],
        [("a", "value", "b", "value"), ("b", "value", "c", "value"),
         ("c", "value", "d", "value")],
    )


def full_run(graph, registry, context):
    return asyncio.run(execute_workflow(graph, registry, context))


class TestRunFromNode:
    def test_cached_ancestors_not_reinvoked(self, chain, registry, make_context, recorder):
        full_run(chain, registry, make_context())
        recorder.calls.clear()

        result = asyncio.run(execute_from_node(chain, registry, "c", make_context()))
        assert recorder.calls["a"] == 0
        assert recorder.calls["b"] == 0
        assert recorder.calls["c"] == 1
        assert recorder.calls["d"] == 1
        assert result.completed_count == 4
        assert result.outputs["a"] == {"value": "A"}
        assert result.outputs["d"] == {"value": "A"}

    def test_unrelated_nodes_untouched(self, chain, registry, make_context, recorder):
        full_run(chain, registry, make_context())
        recorder.calls.clear()
        result = asyncio.run(execute_from_node(chain, registry, "c", make_context()))
        assert recorder.calls["z"] == 0
        assert "z" not in result.order
        assert "z" not in result.outputs

    def test_target_and_descendants_always_rerun(self, chain, registry, make_context, recorder):
        full_run(chain, registry, make_context())
        full_run_calls = dict(recorder.calls)
        asyncio.run(execute_from_node(chain, registry, "b", make_context()))
        assert recorder.calls["b"] == full_run_calls["b"] + 1
        assert recorder.calls["c"] == full_run_calls["c"] + 1
        assert recorder.calls["d"] == full_run_calls["d"] + 1
        assert recorder.calls["a"] == full_run_calls["a"]

    def test_force_reruns_ancestors(self, chain, registry, make_context, recorder):
        full_run(chain, registry, make_context())
        recorder.calls.clear()
        asyncio.run(execute_from_node(chain, registry, "c", make_context(), force=True))
        assert recorder.calls["a"] == 1
        assert recorder.calls["b"] == 1

    def test_uncached_ancestor_runs(self, chain, registry, make_context, recorder):
        # Nothing has run yet, so every ancestor must execute
        result = asyncio.run(execute_from_node(chain, registry, "c", make_context()))
        assert recorder.calls["a"] == 1
        assert recorder.calls["b"] == 1
        assert result.outputs["d"] == {"value": "A"}

    def test_errored_ancestor_is_retried(self, chain, registry, make_context, recorder):
        full_run(chain, registry, make_context())
        chain.nodes["b"].status = NodeStatus.ERROR
        chain.nodes["b"].output_values = None
        recorder.calls.clear()
        asyncio.run(execute_from_node(chain, registry, "c", make_context()))
        assert recorder.calls["a"] == 0
        assert recorder.calls["b"] == 1

    def test_config_change_on_target_is_picked_up(self, build_graph, registry, make_context):
        graph = build_graph(
            [("p", "textSource", {"text": "a dog"}), ("g", "generator")],
            [("p", "text", "g", "text")],
        )
        full_run(graph, registry, make_context())
        assert graph.nodes["g"].output_values == {"image": "url-other"}

        graph.nodes["p"].config["text"] = "a cat"
        result = asyncio.run(execute_from_node(graph, registry, "p", make_context()))
        assert result.outputs["g"] == {"image": "url-1"}

    def test_cached_nodes_report_success(self, chain, registry, make_context, status_events):
        full_run(chain, registry, make_context())
        status_events.clear()
        asyncio.run(execute_from_node(chain, registry, "c", make_context()))
        a_events = [(s, m) for nid, s, m in status_events if nid == "a"]
        assert a_events == [(NodeStatus.SUCCESS, CACHED_MESSAGE)]
        c_statuses = [s for nid, s, _ in status_events if nid == "c"]
        assert c_statuses == [NodeStatus.QUEUED, NodeStatus.RUNNING, NodeStatus.SUCCESS]

    def test_sibling_parent_outside_scope_feeds_stored_output(
        self, build_graph, registry, make_context, recorder,
    ):
        # n -> m <- p ; p is neither upstream nor downstream of n
        graph = build_graph(
            [("n", "source", {"value": "N"}), ("p", "source", {"value": "P"}), ("m", "merge")],
            [("n", "value", "m", "a"), ("p", "value", "m", "b")],
        )
        full_run(graph, registry, make_context())
        recorder.calls.clear()
        result = asyncio.run(execute_from_node(graph, registry, "n", make_context()))
        assert recorder.calls["p"] == 0
        assert result.outputs["m"] == {"value": ["N", "P"]}
        assert "p" not in result.outputs

    def test_failure_in_partial_run_cascades_down_only(self, build_graph, registry,
                                                       make_context):
        graph = build_graph(
            [("a", "source"), ("bad", "failing"), ("after", "optional")],
            [("a", "value", "bad", "value"), ("bad", "value", "after", "value")],
        )
        full_run(graph, registry, make_context())
        result = asyncio.run(execute_from_node(graph, registry, "bad", make_context()))
        assert graph.nodes["a"].status == NodeStatus.SUCCESS
        assert graph.nodes["after"].error == UPSTREAM_FAILED_MESSAGE
        assert result.error_count == 2
        assert result.completed_count == 1

    def test_locked_ancestor_skipped(self, chain, registry, make_context, recorder):
        full_run(chain, registry, make_context())
        chain.groups.append(_group("g", ["a"], locked=True))
        recorder.calls.clear()
        result = asyncio.run(execute_from_node(chain, registry, "b", make_context()))
        assert chain.nodes["a"].status == NodeStatus.SKIPPED
        assert chain.nodes["b"].error == "Missing required input: Value"
        assert result.skipped_count == 1
        assert recorder.calls["a"] == 0

    def test_unknown_target(self, chain, registry, make_context):
        with pytest.raises(NodeNotFoundError):
            asyncio.run(execute_from_node(chain, registry, "nope", make_context()))

    def test_cycle_in_scope_fails_whole_call(self, build_graph, registry, make_context,
                                             recorder):
        graph = build_graph(
            [("a", "passthrough"), ("b", "passthrough"), ("free", "source")],
            [("a", "value", "b", "value"), ("b", "value", "a", "value")],
        )
        with pytest.raises(GraphCycleError):
            asyncio.run(execute_from_node(graph, registry, "a", make_context()))
        assert sum(recorder.calls.values()) == 0

    def test_cycle_outside_scope_is_ignored(self, build_graph, registry, make_context):
        graph = build_graph(
            [("a", "source"), ("b", "passthrough"), ("x", "passthrough"), ("y", "passthrough")],
            [("a", "value", "b", "value"),
             ("x", "value", "y", "value"), ("y", "value", "x", "value")],
        )
        result = asyncio.run(execute_from_node(graph, registry, "b", make_context()))
        assert result.completed_count == 2
        assert set(result.order) == {"a", "b"}


class TestRunGroup:
    def test_members_and_descendants_rerun(self, build_graph, registry, make_context, recorder):
        # up -> g1 -> g2 -> down ; up is outside the group
        graph = build_graph(
            [("up", "source", {"value": 1}), ("g1", "passthrough"), ("g2", "passthrough"),
             ("down", "passthrough"), ("other", "source")],
            [("up", "value", "g1", "value"), ("g1", "value", "g2", "value"),
             ("g2", "value", "down", "value")],
            groups=[("grp", ["g1", "g2"], False)],
        )
        full_run(graph, registry, make_context())
        recorder.calls.clear()

        result = asyncio.run(execute_group(graph, registry, "grp", make_context()))
        assert recorder.calls["up"] == 0
        assert recorder.calls["g1"] == 1
        assert recorder.calls["g2"] == 1
        assert recorder.calls["down"] == 1
        assert recorder.calls["other"] == 0
        assert result.completed_count == 4

    def test_member_downstream_of_member_still_reruns(self, build_graph, registry,
                                                       make_context, recorder):
        graph = build_graph(
            [("g1", "source"), ("g2", "passthrough")],
            [("g1", "value", "g2", "value")],
            groups=[("grp", ["g1", "g2"], False)],
        )
        full_run(graph, registry, make_context())
        recorder.calls.clear()
        asyncio.run(execute_group(graph, registry, "grp", make_context()))
        assert recorder.calls["g1"] == 1
        assert recorder.calls["g2"] == 1

    def test_force_group_run(self, build_graph, registry, make_context, recorder):
        graph = build_graph(
            [("up", "source"), ("g1", "passthrough")],
            [("up", "value", "g1", "value")],
            groups=[("grp", ["g1"], False)],
        )
        full_run(graph, registry, make_context())
        recorder.calls.clear()
        asyncio.run(execute_group(graph, registry, "grp", make_context(), force=True))
        assert recorder.calls["up"] == 1

    def test_running_a_locked_group_skips_its_members(self, build_graph, registry,
                                                      make_context, recorder):
        graph = build_graph([("g1", "source")], groups=[("grp", ["g1"], True)])
        result = asyncio.run(execute_group(graph, registry, "grp", make_context()))
        assert result.skipped_count == 1
        assert recorder.calls["g1"] == 0

    def test_unknown_group(self, build_graph, registry, make_context):
        graph = build_graph([("a", "source")])
        with pytest.raises(GroupNotFoundError):
            asyncio.run(execute_group(graph, registry, "missing", make_context()))


def _group(group_id, members, locked):
    from nodeflow.engine.graph import Group
    return Group(id=group_id, node_ids=set(members), locked=locked)
