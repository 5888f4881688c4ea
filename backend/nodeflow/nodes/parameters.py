"""Generation parameter bundle node."""
from .base import NodeCategory, NodeDefinition, NodeEntry, OutputSpec, SocketKind

ASPECT_RATIOS = ["1:1", "4:3", "3:4", "16:9", "9:16", "3:2", "2:3", "5:4", "4:5", "21:9"]
IMAGE_SIZES = ["1K", "2K", "4K"]


settings_definition = NodeDefinition(
    type="settingsNode",
    label="Settings",
    category=NodeCategory.INPUT,
    description="Configure generation settings like aspect ratio and quality",
    outputs=[OutputSpec(id="settings", label="Settings", kind=SocketKind.SETTINGS)],
    default_config={
        "aspectRatio": "1:1",
        "imageSize": "2K",
        "outputCount": 1,
        "generationSpeed": "fast",
        "apiId": None,
    },
)


def settings_executor(inputs, config, context):
    aspect_ratio = config.get("aspectRatio") or "1:1"
    image_size = config.get("imageSize") or "2K"
    if aspect_ratio not in ASPECT_RATIOS:
        raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")
    if image_size not in IMAGE_SIZES:
        raise ValueError(f"Unsupported image size: {image_size}")

    return {
        "settings": {
            "aspectRatio": aspect_ratio,
            "imageSize": image_size,
            "outputCount": int(config.get("outputCount") or 1),
            "generationSpeed": config.get("generationSpeed") or "fast",
            "apiId": config.get("apiId"),
        },
    }


ENTRIES = [NodeEntry(definition=settings_definition, executor=settings_executor)]
