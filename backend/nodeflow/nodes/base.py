"""Node type definitions, socket kinds and the executor contract."""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

if TYPE_CHECKING:
    from ..engine.context import ExecutionContext


class SocketKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    SETTINGS = "settings"
    NUMBER = "number"
    ANY = "any"


class NodeCategory(str, Enum):
    INPUT = "input"
    PROCESSING = "processing"
    OUTPUT = "output"
    UTILITY = "utility"


def is_socket_compatible(source: SocketKind, target: SocketKind) -> bool:
    """Whether an output of kind ``source`` may feed an input of kind ``target``.

    ``any`` is the universal kind and matches everything, on either side.
    """
    if source == SocketKind.ANY or target == SocketKind.ANY:
        return True
    return source == target


_NO_DEFAULT = object()


@dataclass
class InputSpec:
    id: str
    label: str
    kind: SocketKind
    required: bool = False
    default: Any = _NO_DEFAULT

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT


@dataclass
class OutputSpec:
    id: str
    label: str
    kind: SocketKind


@dataclass
class NodeDefinition:
    """Static, per-type description of a node's ports and default config."""
    type: str
    label: str
    category: NodeCategory = NodeCategory.PROCESSING
    description: str = ""
    inputs: list[InputSpec] = field(default_factory=list)
    outputs: list[OutputSpec] = field(default_factory=list)
    default_config: dict[str, Any] = field(default_factory=dict)

    def get_input(self, port_id: str) -> InputSpec | None:
        for spec in self.inputs:
            if spec.id == port_id:
                return spec
        return None

    def get_output(self, port_id: str) -> OutputSpec | None:
        for spec in self.outputs:
            if spec.id == port_id:
                return spec
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "label": self.label,
            "category": self.category.value,
            "description": self.description,
            "inputs": [
                {
                    "id": s.id,
                    "label": s.label,
                    "kind": s.kind.value,
                    "required": s.required,
                    "default": s.default if s.has_default else None,
                }
                for s in self.inputs
            ],
            "outputs": [
                {"id": s.id, "label": s.label, "kind": s.kind.value}
                for s in self.outputs
            ],
            "default_config": dict(self.default_config),
        }


@dataclass
class ExecutorFailure:
    """Returned by an executor in place of an output map to report failure."""
    message: str = ""


ExecutorResult = Union[dict[str, Any], ExecutorFailure]

# (resolved inputs, node config, execution context) -> outputs.
# Executors may be plain functions or coroutine functions.
NodeExecutor = Callable[
    [dict[str, Any], dict[str, Any], "ExecutionContext"],
    Union[ExecutorResult, Awaitable[ExecutorResult]],
]


class ExecutorError(RuntimeError):
    """Convenience exception for executors; any exception counts as failure."""


@dataclass
class NodeEntry:
    definition: NodeDefinition
    executor: NodeExecutor
    renderer: Any = None  # opaque to the engine, consumed by a UI layer
