"""Preview and annotation nodes."""
from .base import (
    InputSpec, NodeCategory, NodeDefinition, NodeEntry, OutputSpec, SocketKind,
)


image_preview_definition = NodeDefinition(
    type="imagePreview",
    label="Preview",
    category=NodeCategory.OUTPUT,
    description="Display an image produced upstream",
    inputs=[InputSpec(id="image", label="Image", kind=SocketKind.IMAGE, required=True)],
    outputs=[OutputSpec(id="image", label="Image", kind=SocketKind.IMAGE)],
)


def image_preview_executor(inputs, config, context):
    return {"image": inputs["image"]}


note_definition = NodeDefinition(
    type="note",
    label="Note",
    category=NodeCategory.UTILITY,
    description="Free-form text annotation; does nothing when run",
    default_config={"text": ""},
)


def note_executor(inputs, config, context):
    return {}


ENTRIES = [
    NodeEntry(definition=image_preview_definition, executor=image_preview_executor),
    NodeEntry(definition=note_definition, executor=note_executor),
]
