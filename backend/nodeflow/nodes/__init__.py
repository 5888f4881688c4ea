"""Built-in node types."""
from .registry import NodeRegistry


def register_builtin_nodes(registry: NodeRegistry) -> NodeRegistry:
    """Register every built-in node module's ``ENTRIES`` into ``registry``."""
    registry.discover(__name__)
    return registry


def build_registry() -> NodeRegistry:
    return register_builtin_nodes(NodeRegistry())
