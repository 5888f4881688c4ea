"""Prompt source and prompt combination nodes."""
from .base import (
    InputSpec, NodeCategory, NodeDefinition, NodeEntry, OutputSpec, SocketKind,
)


prompt_input_definition = NodeDefinition(
    type="promptInput",
    label="Prompt",
    category=NodeCategory.INPUT,
    description="Write a prompt and an optional negative prompt",
    outputs=[
        OutputSpec(id="prompt", label="Prompt", kind=SocketKind.TEXT),
        OutputSpec(id="negative", label="Negative", kind=SocketKind.TEXT),
    ],
    default_config={"prompt": "", "negativePrompt": ""},
)


def prompt_input_executor(inputs, config, context):
    return {
        "prompt": str(config.get("prompt") or "").strip(),
        "negative": str(config.get("negativePrompt") or "").strip(),
    }


prompt_merge_definition = NodeDefinition(
    type="promptMerge",
    label="Prompt Merge",
    category=NodeCategory.PROCESSING,
    description="Combine up to three prompts by concatenation or a template",
    inputs=[
        InputSpec(id="prompt_a", label="Prompt A", kind=SocketKind.TEXT, required=True),
        InputSpec(id="prompt_b", label="Prompt B", kind=SocketKind.TEXT),
        InputSpec(id="prompt_c", label="Prompt C", kind=SocketKind.TEXT),
    ],
    outputs=[OutputSpec(id="prompt", label="Merged", kind=SocketKind.TEXT)],
    default_config={"separator": ", ", "mode": "concatenate", "template": "{A}, {B}, {C}"},
)


def prompt_merge_executor(inputs, config, context):
    prompts = [
        str(p) for p in (inputs.get("prompt_a"), inputs.get("prompt_b"), inputs.get("prompt_c"))
        if p
    ]

    if config.get("mode") == "template":
        template = config.get("template") or "{A}, {B}, {C}"
        padded = prompts + [""] * (3 - len(prompts))
        merged = (
            template.replace("{A}", padded[0], 1)
            .replace("{B}", padded[1], 1)
            .replace("{C}", padded[2], 1)
        )
        return {"prompt": merged.strip()}

    separator = config.get("separator")
    if separator is None:
        separator = ", "
    return {"prompt": separator.join(prompts).strip()}


ENTRIES = [
    NodeEntry(definition=prompt_input_definition, executor=prompt_input_executor),
    NodeEntry(definition=prompt_merge_definition, executor=prompt_merge_executor),
]
