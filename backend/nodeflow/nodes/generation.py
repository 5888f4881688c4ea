"""Image generation and reference image nodes."""
from .base import (
    ExecutorError, InputSpec, NodeCategory, NodeDefinition, NodeEntry, OutputSpec,
    SocketKind,
)


image_generate_definition = NodeDefinition(
    type="imageGenerate",
    label="Generate Image",
    category=NodeCategory.PROCESSING,
    description="Generate an image from a prompt with the selected backend",
    inputs=[
        InputSpec(id="prompt", label="Prompt", kind=SocketKind.TEXT, required=True),
        InputSpec(id="negative", label="Negative", kind=SocketKind.TEXT),
        InputSpec(id="settings", label="Settings", kind=SocketKind.SETTINGS),
        InputSpec(id="reference", label="Reference", kind=SocketKind.IMAGE),
        InputSpec(id="references", label="References", kind=SocketKind.IMAGE),
    ],
    outputs=[OutputSpec(id="image", label="Image", kind=SocketKind.IMAGE)],
    default_config={"apiId": None},
)


def _collect_references(inputs) -> list[str]:
    refs: list[str] = []
    many = inputs.get("references")
    if isinstance(many, (list, tuple)):
        refs.extend(str(r) for r in many if r)
    single = inputs.get("reference")
    if single and single not in refs:
        refs.append(str(single))
    return refs


async def image_generate_executor(inputs, config, context):
    prompt = inputs.get("prompt")
    if not prompt:
        raise ExecutorError("Prompt is required")
    if context.generation is None:
        raise ExecutorError("No generation backend available")

    options = inputs.get("settings") or {}
    backend = config.get("apiId") or options.get("apiId") or context.backend
    context.cancel_token.raise_if_cancelled()

    image = await context.cancel_token.guard(context.generation.generate(
        prompt=str(prompt),
        negative=str(inputs.get("negative") or ""),
        options=options,
        references=_collect_references(inputs),
        backend=backend,
    ))
    return {"image": image}


reference_image_definition = NodeDefinition(
    type="imageToImage",
    label="Reference Image",
    category=NodeCategory.INPUT,
    description="Provide uploaded or connected reference images",
    inputs=[InputSpec(id="image", label="Image", kind=SocketKind.IMAGE)],
    outputs=[
        OutputSpec(id="image", label="Image", kind=SocketKind.IMAGE),
        OutputSpec(id="references", label="References", kind=SocketKind.IMAGE),
    ],
    default_config={"images": []},
)


def reference_image_executor(inputs, config, context):
    connected = inputs.get("image")
    if connected:
        return {"image": connected, "references": [connected]}

    images = config.get("images") or []
    if images:
        paths = [
            img.get("storagePath") if isinstance(img, dict) else img
            for img in images
        ]
        paths = [p for p in paths if p]
        if not paths:
            raise ExecutorError("Images are still uploading")
        return {"image": paths[0], "references": paths}

    legacy = config.get("storagePath")
    if legacy:
        return {"image": legacy, "references": [legacy]}

    raise ExecutorError("No reference images provided")


ENTRIES = [
    NodeEntry(definition=image_generate_definition, executor=image_generate_executor),
    NodeEntry(definition=reference_image_definition, executor=reference_image_executor),
]
