"""Tests for the node registry and socket compatibility."""
import pytest

from nodeflow.nodes import build_registry
from nodeflow.nodes.base import (
    InputSpec, NodeDefinition, NodeEntry, OutputSpec, SocketKind, is_socket_compatible,
)
from nodeflow.nodes.registry import NodeRegistry


def _entry(type_, label="Node", executor=None):
    return NodeEntry(
        definition=NodeDefinition(type=type_, label=label),
        executor=executor or (lambda i, c, ctx: {}),
    )


class TestNodeRegistry:
    def test_register_and_lookup(self):
        registry = NodeRegistry()
        entry = registry.register(_entry("a"))
        assert registry.lookup("a") is entry
        assert "a" in registry

    def test_lookup_missing_returns_none(self):
        assert NodeRegistry().lookup("missing") is None

    def test_get_missing_raises(self):
        with pytest.raises(KeyError, match="Unknown node type: missing"):
            NodeRegistry().get("missing")

    def test_later_registration_wins(self):
        registry = NodeRegistry()
        registry.register(_entry("a", label="First"))
        registry.register(_entry("a", label="Second"))
        assert len(registry) == 1
        assert registry.lookup("a").definition.label == "Second"

    def test_all_definitions_is_a_snapshot(self):
        registry = NodeRegistry()
        registry.register(_entry("a"))
        defs = registry.all_definitions()
        defs.clear()
        assert len(registry.all_definitions()) == 1

    def test_registries_are_independent(self):
        first, second = NodeRegistry(), NodeRegistry()
        first.register(_entry("a"))
        assert second.lookup("a") is None


class TestBuiltinRegistry:
    def test_builtin_types_registered(self):
        registry = build_registry()
        for node_type in ("promptInput", "promptMerge", "settingsNode", "imageGenerate",
                          "imageToImage", "imageGrid", "imagePreview", "note"):
            assert registry.lookup(node_type) is not None, node_type

    def test_definition_serializes(self):
        data = build_registry().get("imageGenerate").definition.to_dict()
        assert data["type"] == "imageGenerate"
        prompt = data["inputs"][0]
        assert prompt == {
            "id": "prompt", "label": "Prompt", "kind": "text", "required": True, "default": None,
        }
        assert data["outputs"] == [{"id": "image", "label": "Image", "kind": "image"}]


class TestSocketCompatibility:
    @pytest.mark.parametrize("kind", list(SocketKind))
    def test_same_kind(self, kind):
        assert is_socket_compatible(kind, kind)

    @pytest.mark.parametrize("kind", list(SocketKind))
    def test_universal_kind(self, kind):
        assert is_socket_compatible(SocketKind.ANY, kind)
        assert is_socket_compatible(kind, SocketKind.ANY)

    def test_mismatch(self):
        assert not is_socket_compatible(SocketKind.TEXT, SocketKind.IMAGE)
        assert not is_socket_compatible(SocketKind.SETTINGS, SocketKind.NUMBER)


class TestInputSpec:
    def test_default_detection(self):
        assert not InputSpec(id="a", label="A", kind=SocketKind.TEXT).has_default
        assert InputSpec(id="a", label="A", kind=SocketKind.TEXT, default=None).has_default

    def test_definition_port_lookup(self):
        definition = NodeDefinition(
            type="t", label="T",
            inputs=[InputSpec(id="in", label="In", kind=SocketKind.TEXT)],
            outputs=[OutputSpec(id="out", label="Out", kind=SocketKind.TEXT)],
        )
        assert definition.get_input("in").label == "In"
        assert definition.get_output("out").label == "Out"
        assert definition.get_input("out") is None
