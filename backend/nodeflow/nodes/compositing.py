"""Local image compositing nodes."""
from .base import (
    ExecutorError, InputSpec, NodeCategory, NodeDefinition, NodeEntry, OutputSpec,
    SocketKind,
)

GRID_SLOTS = ("image_a", "image_b", "image_c", "image_d")


image_grid_definition = NodeDefinition(
    type="imageGrid",
    label="Image Grid",
    category=NodeCategory.PROCESSING,
    description="Arrange up to four images in a grid",
    inputs=[
        InputSpec(id="image_a", label="Image A", kind=SocketKind.IMAGE, required=True),
        InputSpec(id="image_b", label="Image B", kind=SocketKind.IMAGE),
        InputSpec(id="image_c", label="Image C", kind=SocketKind.IMAGE),
        InputSpec(id="image_d", label="Image D", kind=SocketKind.IMAGE),
    ],
    outputs=[OutputSpec(id="image", label="Grid", kind=SocketKind.IMAGE)],
    default_config={"gap": 2, "background": "#000000", "columns": None},
)


async def image_grid_executor(inputs, config, context):
    refs = [inputs[slot] for slot in GRID_SLOTS if inputs.get(slot)]
    if not refs:
        raise ExecutorError("At least one image is required")
    if context.compositor is None:
        raise ExecutorError("No image compositor available")

    gap = config.get("gap")
    context.cancel_token.raise_if_cancelled()
    image = await context.cancel_token.guard(context.compositor.grid(
        refs,
        columns=config.get("columns"),
        gap=2 if gap is None else gap,
        background=config.get("background") or "#000000",
    ))
    return {"image": image}


ENTRIES = [NodeEntry(definition=image_grid_definition, executor=image_grid_executor)]
