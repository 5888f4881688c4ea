"""Node registry: type identifier -> definition, renderer and executor."""
import importlib
import pkgutil

from .base import NodeDefinition, NodeEntry


class NodeRegistry:
    """Table of node types, filled once at startup and read-only afterwards.

    An instance is built explicitly and passed to the engine and the API,
    so nothing is registered as an import side effect.

    Usage:
        registry = NodeRegistry()
        registry.register(NodeEntry(definition=..., executor=...))
    """

    def __init__(self):
        self._entries: dict[str, NodeEntry] = {}

    def register(self, entry: NodeEntry) -> NodeEntry:
        # Later registrations for the same type win.
        self._entries[entry.definition.type] = entry
        return entry

    def lookup(self, node_type: str) -> NodeEntry | None:
        return self._entries.get(node_type)

    def get(self, node_type: str) -> NodeEntry:
        entry = self.lookup(node_type)
        if entry is None:
            raise KeyError(f"Unknown node type: {node_type}")
        return entry

    def all_definitions(self) -> list[NodeDefinition]:
        return [entry.definition for entry in self._entries.values()]

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def discover(self, package_name: str) -> None:
        """Import every module in a package and register its ``ENTRIES``."""
        package = importlib.import_module(package_name)
        if not hasattr(package, "__path__"):
            return
        for _, module_name, _ in pkgutil.iter_modules(package.__path__):
            if module_name.startswith("_") or module_name in ("base", "registry"):
                continue
            module = importlib.import_module(f"{package_name}.{module_name}")
            for entry in getattr(module, "ENTRIES", ()):
                self.register(entry)
